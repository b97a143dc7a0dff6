"""
BNA Payment Bridge -- Customer Identity Cache

Remembers which BNA customer id belongs to a billing email so that a
repeat checkout does not try to create the customer again.

Keys are "bna_customer_" + sha256(lowercased email): no email address
is stored in the key. Entries never expire. If BNA deletes a customer,
or an address is re-used upstream by someone else, the cached id goes
stale and nothing here notices.
"""

import hashlib
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger("bnapay.customer_identity_cache")

CUSTOMER_KEY_PREFIX = "bna_customer_"


class KeyValueStorage(ABC):
  """Durable process-wide key-value storage."""

  @abstractmethod
  def get_value(self, key):
    """Return the stored string, or None."""
    ...

  @abstractmethod
  def set_value(self, key, value):
    ...


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


class MySQLKeyValueStorage(KeyValueStorage):
  """Key-value storage in the gateway_options table."""

  def __init__(self, database_module=None):
    self._database_module = database_module

  @property
  def db(self):
    return self._database_module or _get_database()

  def get_value(self, key):
    row = self.db.execute_query_returning_one_row(
      "SELECT option_value FROM gateway_options WHERE option_key = %s",
      (key,),
    )
    if row is None:
      return None
    return row["option_value"]

  def set_value(self, key, value):
    self.db.execute_insert_or_update(
      """
      INSERT INTO gateway_options (option_key, option_value)
      VALUES (%s, %s)
      ON DUPLICATE KEY UPDATE option_value = VALUES(option_value)
      """,
      (key, value),
    )


def build_customer_cache_key(email):
  normalized_email = (email or "").strip().lower()
  email_digest = hashlib.sha256(normalized_email.encode("utf-8")).hexdigest()
  return f"{CUSTOMER_KEY_PREFIX}{email_digest}"


class CustomerIdentityCache:
  """Maps billing email -> BNA customer id."""

  def __init__(self, storage):
    self.storage = storage

  def get(self, email):
    if not email:
      return None
    customer_id = self.storage.get_value(build_customer_cache_key(email))
    if customer_id:
      logger.info("Retrieved stored customer ID %s", customer_id)
      return customer_id
    return None

  def put(self, email, customer_id):
    if not email or not customer_id:
      return
    cache_key = build_customer_cache_key(email)
    self.storage.set_value(cache_key, str(customer_id))
    logger.info("Stored customer ID %s under %s", customer_id, cache_key)
