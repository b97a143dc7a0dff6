"""
BNA Payment Bridge -- Order Matcher

Resolves a webhook's referenceUUID to a local order. Depending on when a
notification arrives, the identifier BNA sends may have been stored
under different metadata keys, so lookups run in a fixed priority:

  1. transaction_id       (set when a payment completes)
  2. bna_transaction_id   (older BNA-specific field)
  3. checkout_token       (set at checkout)
  4. reference_uuid       (generic correlation field)
  5. scan of the most recent orders carrying a checkout token, comparing
     the token directly. Covers tokens issued before a transaction id
     was known; the scan size is config.ORDER_MATCHER_TOKEN_SCAN_LIMIT.

Every attempted strategy is logged so silent mismatches can be diagnosed.
"""

import logging

import config
from services.order_models import (
  META_BNA_TRANSACTION_ID,
  META_CHECKOUT_TOKEN,
  META_REFERENCE_UUID,
  META_TRANSACTION_ID,
)

logger = logging.getLogger("bnapay.order_matcher")

INDEXED_LOOKUP_STRATEGIES = (
  ("transaction_id_meta", META_TRANSACTION_ID),
  ("bna_transaction_id_meta", META_BNA_TRANSACTION_ID),
  ("checkout_token_meta", META_CHECKOUT_TOKEN),
  ("reference_uuid_meta", META_REFERENCE_UUID),
)
RECENT_TOKEN_SCAN_STRATEGY = "recent_checkout_token_scan"


class OrderMatcher:

  def __init__(self, order_store, token_scan_limit=None):
    self.order_store = order_store
    if token_scan_limit is None:
      token_scan_limit = config.ORDER_MATCHER_TOKEN_SCAN_LIMIT
    self.token_scan_limit = token_scan_limit

  def find_with_strategy(self, reference_uuid):
    """Returns (order, strategy_name), or (None, None) if nothing matches."""
    if not reference_uuid:
      return None, None

    for strategy_name, meta_key in INDEXED_LOOKUP_STRATEGIES:
      matching_orders = self.order_store.find_orders_by_meta_value(meta_key, reference_uuid, limit=1)
      if matching_orders:
        order = matching_orders[0]
        logger.info(
          "Order match: reference=%s -> order %s via %s",
          reference_uuid, order.order_id, strategy_name,
        )
        return order, strategy_name
      logger.info("Order match: strategy %s found nothing for reference=%s", strategy_name, reference_uuid)

    recent_orders = self.order_store.get_recent_orders_with_meta_key(
      META_CHECKOUT_TOKEN, self.token_scan_limit,
    )
    for order in recent_orders:
      if order.get_meta(META_CHECKOUT_TOKEN) == reference_uuid:
        logger.info(
          "Order match: reference=%s -> order %s via %s",
          reference_uuid, order.order_id, RECENT_TOKEN_SCAN_STRATEGY,
        )
        return order, RECENT_TOKEN_SCAN_STRATEGY

    logger.warning(
      "Order match: no order for reference=%s (scanned %d recent tokenized orders)",
      reference_uuid, len(recent_orders),
    )
    return None, None

  def find(self, reference_uuid):
    order, _strategy_name = self.find_with_strategy(reference_uuid)
    return order
