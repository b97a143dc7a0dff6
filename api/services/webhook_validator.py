"""
BNA Payment Bridge -- Webhook validation

BNA posts transaction notifications in two shapes:

  canonical: {"event": "transaction.approved",
              "data": {"transaction": {"id", "status", "referenceUUID", "message"?}}}
  legacy:    {"id", "status", "referenceUUID", "message"?}

Both reduce to the same TransactionRecord. The canonical shape is tried
first; the legacy flat shape is the fallback.

Signature check (optional): when a webhook secret is configured, the
X-BNA-Signature header must be the hex HMAC-SHA256 of the raw body.
"""

import hashlib
import hmac
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from services.gateway_errors import WebhookValidationError

logger = logging.getLogger("bnapay.webhook_validator")

REQUIRED_TRANSACTION_FIELDS = ("id", "status", "referenceUUID")
SIGNATURE_HEADER_NAME = "x-bna-signature"


class TransactionRecord(BaseModel):
  model_config = ConfigDict(populate_by_name=True, frozen=True)

  id: str
  status: str
  reference_uuid: str = Field(alias="referenceUUID")
  message: Optional[str] = None


def _clean_field_value(value):
  """Scalar -> stripped string. Containers and None -> ""."""
  if value is None or isinstance(value, (dict, list, bool)):
    return ""
  return str(value).strip()


def _build_transaction_record(transaction_data):
  """TransactionRecord if all required fields are present and non-empty, else None."""
  if not isinstance(transaction_data, dict):
    return None

  cleaned_fields = {}
  for field_name in REQUIRED_TRANSACTION_FIELDS:
    cleaned_value = _clean_field_value(transaction_data.get(field_name))
    if not cleaned_value:
      return None
    cleaned_fields[field_name] = cleaned_value

  message = _clean_field_value(transaction_data.get("message")) or None
  return TransactionRecord(
    id=cleaned_fields["id"],
    status=cleaned_fields["status"],
    reference_uuid=cleaned_fields["referenceUUID"],
    message=message,
  )


def _extract_canonical_shape(payload):
  event_name = _clean_field_value(payload.get("event"))
  data = payload.get("data")
  if not event_name or not isinstance(data, dict):
    return None
  record = _build_transaction_record(data.get("transaction"))
  if record is None:
    return None
  return event_name, record


def extract_transaction_record(payload):
  """
  Validate a decoded webhook body.

  Returns: (event_name, TransactionRecord). event_name is None for the
  legacy flat shape.

  Raises WebhookValidationError if neither shape validates.
  """
  if not isinstance(payload, dict):
    raise WebhookValidationError("Webhook body must be a JSON object")

  canonical = _extract_canonical_shape(payload)
  if canonical is not None:
    return canonical

  legacy_record = _build_transaction_record(payload)
  if legacy_record is not None:
    logger.info("Webhook accepted in legacy flat shape (transaction %s)", legacy_record.id)
    return None, legacy_record

  missing_fields = [
    field_name for field_name in REQUIRED_TRANSACTION_FIELDS
    if not _clean_field_value(payload.get(field_name))
  ]
  raise WebhookValidationError(
    f"Invalid webhook data: missing transaction fields {', '.join(missing_fields)}"
  )


def compute_webhook_signature(raw_body, webhook_secret):
  if isinstance(raw_body, str):
    raw_body = raw_body.encode("utf-8")
  return hmac.new(webhook_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body, headers, webhook_secret):
  """
  True if the signature header matches, or if no webhook secret is configured.
  """
  if not webhook_secret:
    logger.warning("Webhook signature verification skipped - no secret configured")
    return True

  header_map = {key.lower(): value for key, value in headers.items()}
  received_signature = (header_map.get(SIGNATURE_HEADER_NAME) or "").strip()
  if not received_signature:
    logger.error("Webhook signature missing from headers (%s)", sorted(header_map))
    return False

  expected_signature = compute_webhook_signature(raw_body, webhook_secret)
  is_valid = hmac.compare_digest(expected_signature, received_signature.lower())
  if not is_valid:
    logger.error(
      "Webhook signature verification failed (expected_length=%d, received_length=%d)",
      len(expected_signature), len(received_signature),
    )
  return is_valid
