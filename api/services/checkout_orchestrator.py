"""
BNA Payment Bridge -- Checkout Orchestrator

Drives "pay for this order": validate gateway settings, get a checkout
token from BNA, tag the order with it and move the order to pending.

Customers only ever see a generic failure message. Operators see the
underlying error so they can act on it without digging through logs.
"""

import logging

import config
from services.gateway_errors import (
  BnaGatewayError,
  ConfigurationError,
  OrderNotFoundError,
)
from services.order_models import (
  META_CHECKOUT_TOKEN,
  META_PAYMENT_METHOD,
  ORDER_STATUS_PENDING,
)

logger = logging.getLogger("bnapay.checkout")

CUSTOMER_FAILURE_MESSAGE = "Payment initialization failed. Please try again."
OPERATOR_FAILURE_MESSAGE = "BNA API Error - {error}. Check logs for details."
AWAITING_PAYMENT_NOTE = "Awaiting BNA payment"


def validate_gateway_settings(gateway_settings):
  """Raise ConfigurationError unless iframe id, access key and secret key are all set."""
  if not (gateway_settings.get("iframe_id") or "").strip():
    raise ConfigurationError("iFrame ID is not configured")
  access_key = (gateway_settings.get("access_key") or "").strip()
  secret_key = (gateway_settings.get("secret_key") or "").strip()
  if not access_key or not secret_key:
    raise ConfigurationError("API credentials are not configured")


def build_order_payment_url(order_id):
  return f"{config.PUBLIC_BASE_URL}/checkout/order-pay/{order_id}"


class CheckoutOrchestrator:

  def __init__(self, order_store, gateway_settings, gateway_client_factory):
    """
    gateway_client_factory: zero-argument callable returning a
    PaymentGatewayInterface. Called only once the settings are valid.
    """
    self.order_store = order_store
    self.gateway_settings = gateway_settings
    self.gateway_client_factory = gateway_client_factory

  async def process_payment(self, order_id, is_privileged_operator=False):
    """
    Returns:
      {"result": "success", "redirect": "<payment page url>"}
      {"result": "failure", "message": "<customer or operator message>"}

    Raises OrderNotFoundError for an unknown order and ConfigurationError
    for missing gateway settings, both before any network call.
    """
    logger.info("Process payment called: order_id=%s", order_id)

    order = self.order_store.get_order(order_id)
    if order is None:
      logger.error("Process payment: order %s not found", order_id)
      raise OrderNotFoundError(f"Order {order_id} not found")

    try:
      validate_gateway_settings(self.gateway_settings)
    except ConfigurationError as configuration_error:
      logger.error("Gateway settings validation failed: %s", configuration_error)
      raise

    gateway_client = self.gateway_client_factory()

    try:
      token = await gateway_client.get_checkout_token(order)
    except BnaGatewayError as gateway_error:
      logger.error(
        "Token generation failed for order %s: %s (%s)",
        order_id, gateway_error, type(gateway_error).__name__,
      )
      if is_privileged_operator:
        message = OPERATOR_FAILURE_MESSAGE.format(error=gateway_error)
      else:
        message = CUSTOMER_FAILURE_MESSAGE
      return {"result": "failure", "message": message}

    self.order_store.apply_order_changes(
      order_id,
      meta_updates={META_CHECKOUT_TOKEN: token, META_PAYMENT_METHOD: config.GATEWAY_ID},
      new_status=ORDER_STATUS_PENDING,
      note=AWAITING_PAYMENT_NOTE,
    )

    redirect_url = build_order_payment_url(order_id)
    logger.info("Order %s tagged with checkout token, redirecting to %s", order_id, redirect_url)
    return {"result": "success", "redirect": redirect_url}
