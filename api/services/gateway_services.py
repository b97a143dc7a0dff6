"""
BNA Payment Bridge -- Service wiring

Everything with state (order store, customer identity cache, gateway
settings) is constructed once at process start and handed to the
FastAPI app, which keeps it on app.state.gateway_services. Routers read
it from there instead of from module-level singletons.
"""

import logging

import config
from services.bna_api_client import BnaApiClient
from services.checkout_orchestrator import CheckoutOrchestrator
from services.customer_identity_cache import CustomerIdentityCache, MySQLKeyValueStorage
from services.order_matcher import OrderMatcher
from services.order_store import MySQLOrderStore
from services.status_reconciler import StatusReconciler

logger = logging.getLogger("bnapay.services")


class GatewayServices:
  """Process-wide collaborators for the checkout and webhook routers."""

  def __init__(self, order_store, customer_identity_cache, gateway_settings, http_transport=None):
    self.order_store = order_store
    self.customer_identity_cache = customer_identity_cache
    self.gateway_settings = gateway_settings
    self.http_transport = http_transport

    self.order_matcher = OrderMatcher(order_store)
    self.status_reconciler = StatusReconciler(order_store)
    self.checkout_orchestrator = CheckoutOrchestrator(
      order_store, gateway_settings, self.build_api_client,
    )

  def build_api_client(self):
    return BnaApiClient(
      self.gateway_settings,
      self.customer_identity_cache,
      http_transport=self.http_transport,
    )


def build_default_gateway_services():
  """MySQL-backed services configured from the environment."""
  gateway_settings = config.load_gateway_settings()
  logger.info(
    "Gateway services configured: mode=%s, api_url=%s",
    gateway_settings["mode"], config.resolve_api_base_url(gateway_settings["mode"]),
  )
  return GatewayServices(
    order_store=MySQLOrderStore(),
    customer_identity_cache=CustomerIdentityCache(MySQLKeyValueStorage()),
    gateway_settings=gateway_settings,
  )
