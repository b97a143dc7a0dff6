"""
BNA Payment Bridge -- Operator identification

Store operators call the checkout endpoint with
`Authorization: Bearer <BNA_OPERATOR_API_TOKEN>` and get detailed error
messages back. Everyone else is treated as an end customer.
"""

import hmac
import logging

import config

logger = logging.getLogger("bnapay.operator_auth")


def extract_bearer_token(request):
  """Bearer token from the Authorization header, or None."""
  auth_header = request.headers.get("authorization", "")
  if not auth_header.lower().startswith("bearer "):
    return None
  token_string = auth_header[7:].strip()
  return token_string or None


def is_request_from_operator(request):
  """True only if an operator token is configured and the request presents it."""
  if not config.OPERATOR_API_TOKEN:
    return False

  token_string = extract_bearer_token(request)
  if token_string is None:
    return False

  is_operator = hmac.compare_digest(
    token_string.encode("utf-8"), config.OPERATOR_API_TOKEN.encode("utf-8"),
  )
  if not is_operator:
    logger.warning("Bearer token presented on checkout does not match the operator token")
  return is_operator
