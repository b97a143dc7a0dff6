"""
BNA Payment Bridge -- Order snapshot models

The store owns orders; the bridge only reads snapshots of them and asks
the store to mutate status, notes and metadata. These models describe
what the bridge sees.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

# --- Order statuses ---
ORDER_STATUS_CREATED = "created"
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_FAILED = "failed"
ORDER_STATUS_CANCELLED = "cancelled"

# Payment already captured; a repeated success notification must not touch the order.
PAID_ORDER_STATUSES = frozenset({ORDER_STATUS_PROCESSING, ORDER_STATUS_COMPLETED})
TERMINAL_ORDER_STATUSES = frozenset({
  ORDER_STATUS_COMPLETED,
  ORDER_STATUS_FAILED,
  ORDER_STATUS_CANCELLED,
})

# --- Order metadata keys (correlation identifiers) ---
META_CHECKOUT_TOKEN = "checkout_token"
META_TRANSACTION_ID = "transaction_id"
META_BNA_TRANSACTION_ID = "bna_transaction_id"
META_REFERENCE_UUID = "reference_uuid"
META_PAYMENT_METHOD = "payment_method"


class BillingProfile(BaseModel):
  email: str = ""
  first_name: str = ""
  last_name: str = ""
  phone: str = ""
  address_1: str = ""
  address_2: str = ""
  city: str = ""
  state: str = ""
  postcode: str = ""
  country: str = ""


class Order(BaseModel):
  """Snapshot of a store order as seen by the bridge."""

  order_id: str
  order_number: str = ""
  status: str = ORDER_STATUS_CREATED
  total: float = 0.0
  currency: str = "CAD"
  billing: BillingProfile = Field(default_factory=BillingProfile)
  meta: dict[str, str] = Field(default_factory=dict)
  notes: list[str] = Field(default_factory=list)
  created_at: Optional[datetime] = None

  def get_meta(self, meta_key):
    return self.meta.get(meta_key)

  def has_status(self, *statuses):
    return self.status in statuses

  @property
  def display_number(self):
    return self.order_number or self.order_id
