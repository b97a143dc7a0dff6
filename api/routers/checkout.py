"""
BNA Payment Bridge -- Checkout Router

  POST /api/v1/checkout/orders/{order_id}/process
    Get a BNA checkout token for the order, store it on the order and
    move the order to pending. Returns the payment page redirect.

  GET  /api/v1/checkout/orders/{order_id}/token
    What the payment page needs to render the BNA iframe: the stored
    checkout token, the iframe id and the API base URL.

Error messages are generic for customers. Requests bearing the operator
token (see services.operator_auth) get the underlying error instead.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

import config
from services import operator_auth
from services.checkout_orchestrator import CUSTOMER_FAILURE_MESSAGE
from services.gateway_errors import ConfigurationError, OrderNotFoundError
from services.order_models import META_CHECKOUT_TOKEN

logger = logging.getLogger("bnapay.checkout_router")

router = APIRouter(prefix="/api/v1/checkout", tags=["checkout"])


def _error_response(http_status_code, error_code, error_message):
  """Build a standard error envelope."""
  return JSONResponse(
    status_code=http_status_code,
    content={
      "ok": False,
      "data": None,
      "error": {"code": error_code, "message": error_message},
    },
  )


def _success_response(data, http_status_code=200):
  """Build a standard success envelope."""
  return JSONResponse(
    status_code=http_status_code,
    content={"ok": True, "data": data, "error": None},
  )


@router.post("/orders/{order_id}/process")
async def process_order_payment(order_id: str, request: Request):
  """
  Start the hosted checkout for an order.

  Response:
    {
      "ok": true,
      "data": {"result": "success", "redirect": "https://.../checkout/order-pay/1234"},
      "error": null
    }
  """
  gateway_services = request.app.state.gateway_services
  is_operator = operator_auth.is_request_from_operator(request)

  try:
    checkout_result = await gateway_services.checkout_orchestrator.process_payment(
      order_id, is_privileged_operator=is_operator,
    )
  except OrderNotFoundError:
    return _error_response(404, "ORDER_NOT_FOUND", "Order not found")
  except ConfigurationError as configuration_error:
    message = str(configuration_error) if is_operator else CUSTOMER_FAILURE_MESSAGE
    return _error_response(503, "GATEWAY_NOT_CONFIGURED", message)

  if checkout_result["result"] != "success":
    return _error_response(502, "PAYMENT_PROVIDER_ERROR", checkout_result["message"])

  return _success_response(checkout_result)


@router.get("/orders/{order_id}/token")
async def get_order_checkout_token(order_id: str, request: Request):
  """Iframe parameters for an order that already went through /process."""
  gateway_services = request.app.state.gateway_services

  order = gateway_services.order_store.get_order(order_id)
  if order is None:
    return _error_response(404, "ORDER_NOT_FOUND", "Order not found")

  checkout_token = order.get_meta(META_CHECKOUT_TOKEN)
  if not checkout_token:
    logger.warning("Payment page requested for order %s without a checkout token", order_id)
    return _error_response(
      404, "CHECKOUT_SESSION_EXPIRED",
      "Your payment session has expired. Please place the order again.",
    )

  gateway_settings = gateway_services.gateway_settings
  return _success_response({
    "order_id": order.order_id,
    "order_status": order.status,
    "checkout_token": checkout_token,
    "iframe_id": gateway_settings.get("iframe_id", ""),
    "api_url": config.resolve_api_base_url(gateway_settings.get("mode")),
  })
