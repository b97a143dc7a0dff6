"""
BNA Payment Bridge -- Payment Gateway Interface

Abstract base for the hosted-checkout API client. The checkout
orchestrator only talks to this interface, so tests (and any future
provider) can stand in for the BNA client.
"""

from abc import ABC, abstractmethod


class PaymentGatewayInterface(ABC):
  """Abstract base for hosted-checkout gateways."""

  @abstractmethod
  async def get_checkout_token(self, order):
    """
    Exchange an order for a hosted-checkout token.

    Args:
      order: services.order_models.Order snapshot.

    Returns: the token string.

    Raises (services.gateway_errors):
      ProviderRejectionError / NoTokenError -- non-200 from the provider.
      MalformedResponseError -- 200 without a token.
      TransportError -- network failure or timeout.
    """
    ...

  @abstractmethod
  async def find_customer_id_by_email(self, email):
    """
    Search the provider's customer directory by email.

    Returns: the provider customer id, or None if not found or the
    search itself failed.
    """
    ...

  @abstractmethod
  def get_environment_info(self):
    """
    Returns: dict with at minimum:
      {
        "mode": "development",
        "mode_label": "...",
        "api_url": "https://...",
        "is_production": False,
      }
    """
    ...
