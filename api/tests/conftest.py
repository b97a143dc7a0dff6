"""
Shared pytest fixtures for the bridge test suite.

No MySQL and no network: the order store and the option storage are
in-memory implementations of the same ABCs the MySQL backends implement,
and outbound BNA calls go through an httpx.MockTransport backed by
FakeBnaApi.
"""

import json
import os
import sys

import httpx
import pytest

# Add the api directory to the path so we can import services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.customer_identity_cache import CustomerIdentityCache, KeyValueStorage
from services.gateway_services import GatewayServices
from services.order_models import BillingProfile, Order, ORDER_STATUS_PENDING
from services.order_store import OrderStore


# ===========================================================================
# In-memory storage backends
# ===========================================================================

class InMemoryOrderStore(OrderStore):
  """Orders kept in insertion order; the newest order is the last one added."""

  def __init__(self):
    self.orders = {}
    self.meta_lookups = []
    self.fail_on_status_update = False

  def add_order(self, order):
    self.orders[order.order_id] = order.model_copy(deep=True)
    return order

  def _newest_first(self):
    return list(reversed(list(self.orders.values())))

  def get_order(self, order_id):
    order = self.orders.get(order_id)
    return order.model_copy(deep=True) if order else None

  def update_order_status(self, order_id, new_status, note=None):
    self.apply_order_changes(order_id, new_status=new_status, note=note)

  def apply_order_changes(self, order_id, meta_updates=None, new_status=None, note=None):
    if self.fail_on_status_update and new_status:
      raise RuntimeError("order store unavailable")
    order = self.orders[order_id]
    order.meta.update(meta_updates or {})
    if new_status:
      order.status = new_status
    if note:
      order.notes.append(note)

  def find_orders_by_meta_value(self, meta_key, meta_value, limit=1):
    self.meta_lookups.append(meta_key)
    matches = [
      order for order in self._newest_first()
      if order.meta.get(meta_key) == meta_value
    ]
    return [order.model_copy(deep=True) for order in matches[:limit]]

  def get_recent_orders_with_meta_key(self, meta_key, limit):
    matches = [order for order in self._newest_first() if order.meta.get(meta_key)]
    return [order.model_copy(deep=True) for order in matches[:limit]]


class InMemoryKeyValueStorage(KeyValueStorage):

  def __init__(self):
    self.values = {}

  def get_value(self, key):
    return self.values.get(key)

  def set_value(self, key, value):
    self.values[key] = value


# ===========================================================================
# Fake BNA API
# ===========================================================================

class FakeBnaApi:
  """
  Scripted BNA API behind an httpx.MockTransport.

  customer_search_results: queue of customer lists, one per search call
    (an empty queue means "no customer found").
  checkout_responses: queue of (status_code, body) tuples, one per
    checkout POST. body may be a dict (sent as JSON) or a raw string.
  """

  def __init__(self):
    self.customer_search_results = []
    self.checkout_responses = []
    self.checkout_requests = []
    self.customer_searches = []
    self.requests = []
    self.raise_on_checkout = None

  def handle(self, request):
    self.requests.append(request)

    if request.method == "GET" and request.url.path == "/v1/customers":
      self.customer_searches.append(request.url.params.get("email"))
      customers = self.customer_search_results.pop(0) if self.customer_search_results else []
      return httpx.Response(200, json={"data": customers})

    if request.method == "POST" and request.url.path == "/v1/checkout":
      self.checkout_requests.append(json.loads(request.content))
      if self.raise_on_checkout is not None:
        raise self.raise_on_checkout
      status_code, body = self.checkout_responses.pop(0)
      if isinstance(body, str):
        return httpx.Response(status_code, text=body)
      return httpx.Response(status_code, json=body)

    return httpx.Response(404, json={"message": "not found"})

  @property
  def transport(self):
    return httpx.MockTransport(self.handle)


# ===========================================================================
# Fixtures
# ===========================================================================

@pytest.fixture
def order_store():
  return InMemoryOrderStore()


@pytest.fixture
def key_value_storage():
  return InMemoryKeyValueStorage()


@pytest.fixture
def identity_cache(key_value_storage):
  return CustomerIdentityCache(key_value_storage)


@pytest.fixture
def gateway_settings():
  return {
    "mode": "development",
    "iframe_id": "iframe-123",
    "access_key": "access-abc",
    "secret_key": "secret-xyz",
    "webhook_secret": "",
  }


@pytest.fixture
def fake_bna_api():
  return FakeBnaApi()


@pytest.fixture
def make_order(order_store):
  """Factory: make_order("1001", status=..., meta={...}, billing overrides...)."""

  def _make_order(order_id="1001", status=ORDER_STATUS_PENDING, meta=None, total=125.5, **billing_overrides):
    billing_fields = {
      "email": "jane@example.com",
      "first_name": "Jane",
      "last_name": "Doe",
      "phone": "(416) 555-0199",
      "address_1": "100 King St W",
      "address_2": "Suite 5",
      "city": "Toronto",
      "state": "ON",
      "postcode": "M5X 1A9",
      "country": "CA",
    }
    billing_fields.update(billing_overrides)
    order = Order(
      order_id=order_id,
      order_number=order_id,
      status=status,
      total=total,
      currency="CAD",
      billing=BillingProfile(**billing_fields),
      meta=dict(meta or {}),
    )
    order_store.add_order(order)
    return order

  return _make_order


@pytest.fixture
def gateway_services(order_store, identity_cache, gateway_settings, fake_bna_api):
  return GatewayServices(
    order_store=order_store,
    customer_identity_cache=identity_cache,
    gateway_settings=gateway_settings,
    http_transport=fake_bna_api.transport,
  )


@pytest.fixture
def client(gateway_services):
  from fastapi.testclient import TestClient
  from app import create_app

  return TestClient(create_app(gateway_services))
