"""
BNA Payment Bridge -- Order Store

The store's order engine is an external collaborator. The bridge talks to
it through OrderStore: read a snapshot, change status, append notes, and
keep correlation identifiers in the order's key-value metadata.

MySQLOrderStore is the production backend (tables store_orders,
store_order_meta, store_order_notes -- see database.BRIDGE_SCHEMA_STATEMENTS).
Writes rely on the database to serialize per-row updates; there is no
in-process locking.
"""

import logging
from abc import ABC, abstractmethod

from services.order_models import (
  BillingProfile,
  Order,
  META_TRANSACTION_ID,
  ORDER_STATUS_PROCESSING,
)

logger = logging.getLogger("bnapay.order_store")


class OrderStore(ABC):
  """Abstract order store."""

  @abstractmethod
  def get_order(self, order_id):
    """Return the Order snapshot, or None."""
    ...

  @abstractmethod
  def update_order_status(self, order_id, new_status, note=None):
    """Set the order status, appending `note` to the order log if given."""
    ...

  @abstractmethod
  def find_orders_by_meta_value(self, meta_key, meta_value, limit=1):
    """Exact-match lookup on a metadata entry, newest orders first."""
    ...

  @abstractmethod
  def get_recent_orders_with_meta_key(self, meta_key, limit):
    """The `limit` newest orders carrying a non-empty value for `meta_key`."""
    ...

  @abstractmethod
  def apply_order_changes(self, order_id, meta_updates=None, new_status=None, note=None):
    """
    Write metadata entries, a status change and a note as one unit:
    either all of them are stored or none is.
    """
    ...

  def mark_order_payment_complete(self, order_id, transaction_id, note=None):
    """
    Record the transaction id and move the order to processing.
    Callers are responsible for the already-paid check.
    """
    self.apply_order_changes(
      order_id,
      meta_updates={META_TRANSACTION_ID: transaction_id},
      new_status=ORDER_STATUS_PROCESSING,
      note=note,
    )


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


_ORDER_COLUMNS = """
  order_id, order_number, status, total_amount, currency,
  billing_email, billing_first_name, billing_last_name, billing_phone,
  billing_address_1, billing_address_2, billing_city, billing_state,
  billing_postcode, billing_country, created_at
"""

_UPSERT_META_SQL = """
  INSERT INTO store_order_meta (order_id, meta_key, meta_value)
  VALUES (%s, %s, %s)
  ON DUPLICATE KEY UPDATE meta_value = VALUES(meta_value)
"""

_INSERT_NOTE_SQL = "INSERT INTO store_order_notes (order_id, note) VALUES (%s, %s)"


class MySQLOrderStore(OrderStore):
  """Order store backed by the bridge MySQL tables."""

  def __init__(self, database_module=None):
    self._database_module = database_module

  @property
  def db(self):
    return self._database_module or _get_database()

  def _build_order_from_row(self, row):
    meta_rows = self.db.execute_query_returning_all_rows(
      "SELECT meta_key, meta_value FROM store_order_meta WHERE order_id = %s",
      (row["order_id"],),
    )
    note_rows = self.db.execute_query_returning_all_rows(
      "SELECT note FROM store_order_notes WHERE order_id = %s ORDER BY note_id",
      (row["order_id"],),
    )
    return Order(
      order_id=str(row["order_id"]),
      order_number=str(row.get("order_number") or ""),
      status=row["status"],
      total=float(row.get("total_amount") or 0),
      currency=row.get("currency") or "CAD",
      billing=BillingProfile(
        email=row.get("billing_email") or "",
        first_name=row.get("billing_first_name") or "",
        last_name=row.get("billing_last_name") or "",
        phone=row.get("billing_phone") or "",
        address_1=row.get("billing_address_1") or "",
        address_2=row.get("billing_address_2") or "",
        city=row.get("billing_city") or "",
        state=row.get("billing_state") or "",
        postcode=row.get("billing_postcode") or "",
        country=row.get("billing_country") or "",
      ),
      meta={meta_row["meta_key"]: meta_row["meta_value"] for meta_row in meta_rows},
      notes=[note_row["note"] for note_row in note_rows],
      created_at=row.get("created_at"),
    )

  def get_order(self, order_id):
    row = self.db.execute_query_returning_one_row(
      f"SELECT {_ORDER_COLUMNS} FROM store_orders WHERE order_id = %s",
      (order_id,),
    )
    if row is None:
      return None
    return self._build_order_from_row(row)

  def update_order_status(self, order_id, new_status, note=None):
    self.apply_order_changes(order_id, new_status=new_status, note=note)

  def apply_order_changes(self, order_id, meta_updates=None, new_status=None, note=None):
    statements = [
      (_UPSERT_META_SQL, (order_id, meta_key, meta_value))
      for meta_key, meta_value in (meta_updates or {}).items()
    ]
    if new_status:
      statements.append((
        "UPDATE store_orders SET status = %s WHERE order_id = %s",
        (new_status, order_id),
      ))
    if note:
      statements.append((_INSERT_NOTE_SQL, (order_id, note)))
    if not statements:
      return
    self.db.execute_multiple_statements_in_transaction(statements)
    if new_status:
      logger.info("Order %s status -> %s", order_id, new_status)

  def find_orders_by_meta_value(self, meta_key, meta_value, limit=1):
    rows = self.db.execute_query_returning_all_rows(
      f"""
      SELECT {_ORDER_COLUMNS} FROM store_orders
      WHERE order_id IN (
        SELECT order_id FROM store_order_meta WHERE meta_key = %s AND meta_value = %s
      )
      ORDER BY created_at DESC
      LIMIT %s
      """,
      (meta_key, meta_value, limit),
    )
    return [self._build_order_from_row(row) for row in rows]

  def get_recent_orders_with_meta_key(self, meta_key, limit):
    rows = self.db.execute_query_returning_all_rows(
      f"""
      SELECT {_ORDER_COLUMNS} FROM store_orders
      WHERE order_id IN (
        SELECT order_id FROM store_order_meta WHERE meta_key = %s AND meta_value <> ''
      )
      ORDER BY created_at DESC
      LIMIT %s
      """,
      (meta_key, limit),
    )
    return [self._build_order_from_row(row) for row in rows]
