"""
BNA Payment Bridge -- Status Reconciler

Applies a BNA transaction to its order:

  event / status                                  action
  ----------------------------------------------  ------------------------
  transaction.approved|completed, APPROVED|COMPLETED  mark paid
  transaction.declined|failed, DECLINED|FAILED        -> failed
  transaction.cancelled|canceled, CANCELLED|CANCELED  -> cancelled
  transaction.created, PROCESSING                     record transaction id
  anything else                                       log only

The event name is looked up first; the transaction status (case
insensitive) only when the event is missing or unknown. Both lookups
end in apply_transition, which owns the idempotence checks: webhooks
arrive duplicated and out of order, so every action inspects the
current order state before it mutates anything.
"""

import logging

from services.gateway_errors import ReconciliationError
from services.order_models import (
  META_BNA_TRANSACTION_ID,
  ORDER_STATUS_CANCELLED,
  ORDER_STATUS_FAILED,
  PAID_ORDER_STATUSES,
  TERMINAL_ORDER_STATUSES,
)

# Paid or terminal: no success, failure or cancel notification may move the order again.
SETTLED_ORDER_STATUSES = PAID_ORDER_STATUSES | TERMINAL_ORDER_STATUSES

logger = logging.getLogger("bnapay.status_reconciler")

ACTION_MARK_PAID = "mark_paid"
ACTION_MARK_FAILED = "mark_failed"
ACTION_MARK_CANCELLED = "mark_cancelled"
ACTION_RECORD_TRANSACTION = "record_transaction"

EVENT_ACTIONS = {
  "transaction.approved": ACTION_MARK_PAID,
  "transaction.completed": ACTION_MARK_PAID,
  "transaction.declined": ACTION_MARK_FAILED,
  "transaction.failed": ACTION_MARK_FAILED,
  "transaction.cancelled": ACTION_MARK_CANCELLED,
  "transaction.canceled": ACTION_MARK_CANCELLED,
  "transaction.created": ACTION_RECORD_TRANSACTION,
}

STATUS_ACTIONS = {
  "approved": ACTION_MARK_PAID,
  "completed": ACTION_MARK_PAID,
  "declined": ACTION_MARK_FAILED,
  "failed": ACTION_MARK_FAILED,
  "cancelled": ACTION_MARK_CANCELLED,
  "canceled": ACTION_MARK_CANCELLED,
  "processing": ACTION_RECORD_TRANSACTION,
}

OUTCOME_APPLIED = "applied"
OUTCOME_ALREADY_APPLIED = "already_applied"
OUTCOME_IGNORED = "ignored"


def resolve_action(event_name, transaction_status):
  """Returns (action, matched_on) where matched_on is "event" or "status"; (None, None) if unknown."""
  event_key = (event_name or "").strip().lower()
  if event_key in EVENT_ACTIONS:
    return EVENT_ACTIONS[event_key], "event"

  status_key = (transaction_status or "").strip().lower()
  if status_key in STATUS_ACTIONS:
    return STATUS_ACTIONS[status_key], "status"

  return None, None


class StatusReconciler:

  def __init__(self, order_store):
    self.order_store = order_store

  def reconcile(self, order, event_name, record):
    """
    Apply one transaction record to its order.

    Returns OUTCOME_APPLIED, OUTCOME_ALREADY_APPLIED or OUTCOME_IGNORED.
    Raises ReconciliationError if the order store fails mid-transition.
    """
    action, matched_on = resolve_action(event_name, record.status)
    if action is None:
      logger.info(
        "Unrecognized webhook event=%s status=%s for order %s (transaction %s), ignoring",
        event_name, record.status, order.order_id, record.id,
      )
      return OUTCOME_IGNORED

    logger.info(
      "Reconciling order %s (status=%s): action=%s matched on %s, transaction=%s",
      order.order_id, order.status, action, matched_on, record.id,
    )

    try:
      return self.apply_transition(order, action, record)
    except ReconciliationError:
      raise
    except Exception as store_error:
      raise ReconciliationError(
        f"Failed to apply {action} to order {order.order_id}: {store_error}"
      ) from store_error

  def apply_transition(self, order, action, record):
    if action == ACTION_MARK_PAID:
      return self._mark_paid(order, record)
    if action == ACTION_MARK_FAILED:
      return self._mark_unsuccessful(
        order, record, ORDER_STATUS_FAILED, "Payment failed", "Payment failed via BNA webhook",
      )
    if action == ACTION_MARK_CANCELLED:
      return self._mark_unsuccessful(
        order, record, ORDER_STATUS_CANCELLED, "Payment cancelled", "Payment cancelled via BNA webhook",
      )
    if action == ACTION_RECORD_TRANSACTION:
      return self._record_transaction(order, record)
    raise ReconciliationError(f"Unknown reconciliation action {action!r}")

  def _mark_paid(self, order, record):
    if order.has_status(*PAID_ORDER_STATUSES):
      logger.info("Order %s already paid (status=%s), skipping", order.order_id, order.status)
      return OUTCOME_ALREADY_APPLIED
    if order.has_status(*SETTLED_ORDER_STATUSES):
      logger.warning(
        "Order %s is already %s, ignoring payment confirmation (transaction %s)",
        order.order_id, order.status, record.id,
      )
      return OUTCOME_ALREADY_APPLIED

    self.order_store.mark_order_payment_complete(
      order.order_id,
      record.id,
      f"Payment confirmed via BNA webhook. Transaction ID: {record.id}",
    )
    logger.info("Order %s marked paid (transaction %s)", order.order_id, record.id)
    return OUTCOME_APPLIED

  def _mark_unsuccessful(self, order, record, new_status, default_message, note_prefix):
    if order.has_status(*SETTLED_ORDER_STATUSES):
      logger.warning(
        "Order %s is already %s, not moving it to %s (transaction %s, message=%s)",
        order.order_id, order.status, new_status, record.id, record.message,
      )
      return OUTCOME_ALREADY_APPLIED

    message = record.message or default_message
    self.order_store.update_order_status(
      order.order_id,
      new_status,
      f"{note_prefix}: {message}. Transaction ID: {record.id}",
    )
    logger.info("Order %s -> %s (transaction %s): %s", order.order_id, new_status, record.id, message)
    return OUTCOME_APPLIED

  def _record_transaction(self, order, record):
    if order.get_meta(META_BNA_TRANSACTION_ID) == record.id:
      logger.info("Transaction %s already recorded on order %s", record.id, order.order_id)
      return OUTCOME_ALREADY_APPLIED

    self.order_store.apply_order_changes(
      order.order_id,
      meta_updates={META_BNA_TRANSACTION_ID: record.id},
      note=f"BNA transaction {record.id} recorded (status {record.status})",
    )
    return OUTCOME_APPLIED
