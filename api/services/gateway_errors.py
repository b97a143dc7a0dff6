"""
BNA Payment Bridge -- Gateway error taxonomy

Everything raised by the checkout and webhook services derives from
BnaGatewayError so routers can catch the family in one place.
"""


class BnaGatewayError(Exception):
  """Base class for all bridge errors."""


class ConfigurationError(BnaGatewayError):
  """A required credential or identifier is missing. Never reaches the network."""


class TransportError(BnaGatewayError):
  """Network-level failure or timeout talking to the BNA API."""


class ProviderRejectionError(BnaGatewayError):
  """BNA answered with a non-200 status."""

  def __init__(self, message, status_code=None, response_body=None):
    super().__init__(message)
    self.status_code = status_code
    self.response_body = response_body


class NoTokenError(ProviderRejectionError):
  """Still non-200 after the customer-exists recovery retries were used up."""


class MalformedResponseError(BnaGatewayError):
  """BNA answered 200 but the body is missing an expected field."""

  def __init__(self, message, response_body=None):
    super().__init__(message)
    self.response_body = response_body


class WebhookValidationError(BnaGatewayError):
  """Inbound webhook body is structurally invalid."""


class OrderNotFoundError(BnaGatewayError):
  """No local order matches the given identifier."""


class ReconciliationError(BnaGatewayError):
  """Applying a transaction status to an order failed."""
