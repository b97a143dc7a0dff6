"""
BNA Payment Bridge -- Database connection pool

Uses mysql-connector-python with a connection pool for concurrent requests.
Backs the order store and the gateway options table (customer identity cache).

Create the tables once with:
    python database.py
"""

import logging

import mysql.connector
from mysql.connector import pooling
import config

logger = logging.getLogger("bnapay.database")

_connection_pool = None


def get_connection_pool():
  """Get or create the MySQL connection pool (lazy init)."""
  global _connection_pool
  if _connection_pool is None:
    logger.info(
      "Creating MySQL pool: %s@%s:%d/%s (size %d)",
      config.MYSQL_USER, config.MYSQL_HOST, config.MYSQL_PORT,
      config.MYSQL_DATABASE, config.MYSQL_POOL_SIZE,
    )
    _connection_pool = pooling.MySQLConnectionPool(
      pool_name="bna_bridge_pool",
      pool_size=config.MYSQL_POOL_SIZE,
      pool_reset_session=True,
      host=config.MYSQL_HOST,
      port=config.MYSQL_PORT,
      user=config.MYSQL_USER,
      password=config.MYSQL_PASSWORD,
      database=config.MYSQL_DATABASE,
      charset="utf8mb4",
      collation="utf8mb4_unicode_ci",
      autocommit=False,
    )
  return _connection_pool


def get_database_connection():
  """Get a connection from the pool. Caller must close it when done."""
  pool = get_connection_pool()
  return pool.get_connection()


def execute_query_returning_one_row(query, params=None):
  """Execute a SELECT query and return a single row as dict, or None."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor(dictionary=True)
    cursor.execute(query, params)
    row = cursor.fetchone()
    cursor.close()
    return row
  finally:
    connection.close()


def execute_query_returning_all_rows(query, params=None):
  """Execute a SELECT query and return all rows as list of dicts."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor(dictionary=True)
    cursor.execute(query, params)
    rows = cursor.fetchall()
    cursor.close()
    return rows
  finally:
    connection.close()


def execute_insert_or_update(query, params=None):
  """Execute an INSERT/UPDATE/DELETE and commit. Returns lastrowid."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor()
    cursor.execute(query, params)
    connection.commit()
    last_id = cursor.lastrowid
    cursor.close()
    return last_id
  finally:
    connection.close()


def execute_multiple_statements_in_transaction(statements_with_params):
  """
  Execute multiple INSERT/UPDATE/DELETE statements in a single transaction.
  statements_with_params is a list of (query, params) tuples.
  Rolls back on any failure.
  """
  connection = get_database_connection()
  try:
    cursor = connection.cursor()
    for query, params in statements_with_params:
      cursor.execute(query, params)
    connection.commit()
    cursor.close()
  except Exception:
    connection.rollback()
    raise
  finally:
    connection.close()


# ---------------------------------------------------------------------------
# Schema for the order store and the gateway options table
# ---------------------------------------------------------------------------

BRIDGE_SCHEMA_STATEMENTS = (
  """
  CREATE TABLE IF NOT EXISTS store_orders (
    order_id VARCHAR(64) PRIMARY KEY,
    order_number VARCHAR(64) NOT NULL,
    status VARCHAR(32) NOT NULL DEFAULT 'created',
    total_amount DECIMAL(12, 2) NOT NULL DEFAULT 0,
    currency CHAR(3) NOT NULL DEFAULT 'CAD',
    billing_email VARCHAR(255) NOT NULL DEFAULT '',
    billing_first_name VARCHAR(255) NOT NULL DEFAULT '',
    billing_last_name VARCHAR(255) NOT NULL DEFAULT '',
    billing_phone VARCHAR(64) NOT NULL DEFAULT '',
    billing_address_1 VARCHAR(255) NOT NULL DEFAULT '',
    billing_address_2 VARCHAR(255) NOT NULL DEFAULT '',
    billing_city VARCHAR(255) NOT NULL DEFAULT '',
    billing_state VARCHAR(64) NOT NULL DEFAULT '',
    billing_postcode VARCHAR(32) NOT NULL DEFAULT '',
    billing_country CHAR(2) NOT NULL DEFAULT '',
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
    INDEX idx_store_orders_created_at (created_at)
  )
  """,
  """
  CREATE TABLE IF NOT EXISTS store_order_meta (
    order_id VARCHAR(64) NOT NULL,
    meta_key VARCHAR(64) NOT NULL,
    meta_value VARCHAR(255) NOT NULL,
    PRIMARY KEY (order_id, meta_key),
    INDEX idx_store_order_meta_lookup (meta_key, meta_value)
  )
  """,
  """
  CREATE TABLE IF NOT EXISTS store_order_notes (
    note_id BIGINT AUTO_INCREMENT PRIMARY KEY,
    order_id VARCHAR(64) NOT NULL,
    note TEXT NOT NULL,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    INDEX idx_store_order_notes_order (order_id)
  )
  """,
  """
  CREATE TABLE IF NOT EXISTS gateway_options (
    option_key VARCHAR(191) PRIMARY KEY,
    option_value VARCHAR(255) NOT NULL,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
  )
  """,
)


def create_bridge_schema():
  """Create the bridge tables if they do not exist yet. Idempotent."""
  execute_multiple_statements_in_transaction(
    [(statement, None) for statement in BRIDGE_SCHEMA_STATEMENTS]
  )


def check_database_connectivity():
  """Returns "connected", "error", or "error: <reason>" for the health check."""
  try:
    row = execute_query_returning_one_row("SELECT 1 AS alive")
  except mysql.connector.Error as db_error:
    logger.error("Database health check failed: %s", db_error)
    return f"error: {db_error}"
  if row and row.get("alive") == 1:
    return "connected"
  return "error"


if __name__ == "__main__":
  create_bridge_schema()
  print("Bridge schema ready on %s:%d/%s" % (config.MYSQL_HOST, config.MYSQL_PORT, config.MYSQL_DATABASE))
