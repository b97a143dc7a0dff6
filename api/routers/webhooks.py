"""
BNA Payment Bridge -- Webhook Router

Receives transaction notifications from BNA Smart Payment.

  POST /api/v1/webhooks/bna
  POST /bna-webhook            (legacy path, same handler)

Responses:
  400 {"message": "..."}  -- empty body, invalid JSON, bad signature, or
                             missing transaction fields. No order is touched.
  200 {"message": "OK"}   -- every structurally valid notification, even
                             when no order matches or reconciliation fails.
                             BNA retries anything non-200, and a local
                             matching problem must not turn into a retry
                             storm. Those cases are logged for follow-up.

BNA sends no idempotency key; duplicates are absorbed by the status
reconciler's state checks.
"""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from services.gateway_errors import ReconciliationError, WebhookValidationError
from services.webhook_validator import extract_transaction_record, verify_webhook_signature

logger = logging.getLogger("bnapay.webhooks")

router = APIRouter(tags=["webhooks"])


def _message_response(http_status_code, message):
  return JSONResponse(status_code=http_status_code, content={"message": message})


@router.post("/api/v1/webhooks/bna")
@router.post("/bna-webhook")
async def receive_bna_webhook(request: Request):
  """
  Receive and process a BNA transaction notification.

  Body: canonical {"event", "data": {"transaction": {...}}} or the legacy
  flat transaction object.
  """
  raw_body = await request.body()
  gateway_services = request.app.state.gateway_services

  if not raw_body or not raw_body.strip():
    logger.warning("BNA webhook rejected: empty payload")
    return _message_response(400, "Empty payload")

  if not verify_webhook_signature(
    raw_body, dict(request.headers), gateway_services.gateway_settings.get("webhook_secret"),
  ):
    logger.warning("BNA webhook rejected: signature verification FAILED")
    return _message_response(400, "Invalid webhook signature")

  try:
    webhook_payload = json.loads(raw_body)
  except ValueError as decode_error:
    logger.warning("BNA webhook rejected: invalid JSON (%s)", decode_error)
    return _message_response(400, "Invalid JSON")

  try:
    event_name, transaction_record = extract_transaction_record(webhook_payload)
  except WebhookValidationError as validation_error:
    logger.warning(
      "BNA webhook rejected: %s, payload=%s",
      validation_error, raw_body[:500].decode("utf-8", errors="replace"),
    )
    return _message_response(400, "Invalid webhook data")

  logger.info(
    "BNA webhook received: event=%s, transaction_id=%s, status=%s, reference=%s",
    event_name, transaction_record.id, transaction_record.status,
    transaction_record.reference_uuid,
  )

  try:
    _process_transaction_notification(gateway_services, event_name, transaction_record)
  except ReconciliationError as reconciliation_error:
    logger.error(
      "BNA webhook reconciliation error: event=%s, transaction_id=%s, reference=%s, error=%s. "
      "Order state may be inconsistent -- MANUAL REVIEW REQUIRED.",
      event_name, transaction_record.id, transaction_record.reference_uuid, reconciliation_error,
    )
  except Exception as processing_error:
    logger.exception(
      "BNA webhook processing error: event=%s, transaction_id=%s, reference=%s, error=%s",
      event_name, transaction_record.id, transaction_record.reference_uuid, processing_error,
    )

  # Always acknowledge a structurally valid notification
  return _message_response(200, "OK")


def _process_transaction_notification(gateway_services, event_name, transaction_record):
  """Match the notification to an order and apply it."""
  order = gateway_services.order_matcher.find(transaction_record.reference_uuid)
  if order is None:
    logger.warning(
      "BNA webhook: no order found for reference=%s (event=%s, transaction_id=%s, status=%s)",
      transaction_record.reference_uuid, event_name, transaction_record.id,
      transaction_record.status,
    )
    return

  outcome = gateway_services.status_reconciler.reconcile(order, event_name, transaction_record)
  logger.info(
    "BNA webhook applied to order %s: event=%s, transaction_id=%s, outcome=%s",
    order.order_id, event_name, transaction_record.id, outcome,
  )
