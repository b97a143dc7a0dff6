"""
BNA Payment Bridge -- Configuration

All configuration values with sensible defaults.
Override via environment variables or /srv/apps/bna-bridge/api/.env file.

Also home of the API base URL resolver: the gateway mode
(development / staging / production) picks the BNA Smart Payment host.
"""

import logging
import os

logger = logging.getLogger("bnapay.config")

# --- MySQL Database ---
MYSQL_HOST = os.environ.get("BNA_DB_HOST", "127.0.0.1")
MYSQL_PORT = int(os.environ.get("BNA_DB_PORT", "3306"))
MYSQL_USER = os.environ.get("BNA_DB_USER", "bnabridge")
# SECURITY: No hardcoded default -- must be set via environment variable or systemd unit
MYSQL_PASSWORD = os.environ.get("BNA_DB_PASSWORD", "")
MYSQL_DATABASE = os.environ.get("BNA_DB_NAME", "bnabridge")
MYSQL_POOL_SIZE = int(os.environ.get("BNA_DB_POOL_SIZE", "5"))

# --- API Settings ---
API_VERSION = "1.0.5"
API_HOST = os.environ.get("BNA_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("BNA_API_PORT", "8190"))

# --- Public URL (for checkout redirects) ---
PUBLIC_BASE_URL = os.environ.get("BNA_PUBLIC_URL", "http://127.0.0.1:8190")

# --- BNA Smart Payment gateway ---
GATEWAY_ID = "bna_gateway"
BNA_MODE = os.environ.get("BNA_MODE", "development")
# SECURITY: No hardcoded defaults -- must be set via environment variable or systemd unit
BNA_IFRAME_ID = os.environ.get("BNA_IFRAME_ID", "")
BNA_ACCESS_KEY = os.environ.get("BNA_ACCESS_KEY", "")
BNA_SECRET_KEY = os.environ.get("BNA_SECRET_KEY", "")
# Optional. When empty, webhook signatures are not checked.
BNA_WEBHOOK_SECRET = os.environ.get("BNA_WEBHOOK_SECRET", "")

# Bearer token that identifies store operators (they get detailed checkout errors)
OPERATOR_API_TOKEN = os.environ.get("BNA_OPERATOR_API_TOKEN", "")

BNA_API_BASE_URLS_BY_MODE = {
  "development": "https://dev-api-service.bnasmartpayment.com",
  "staging": "https://stage-api-service.bnasmartpayment.com",
  "production": "https://api.bnasmartpayment.com",
}

BNA_MODE_LABELS = {
  "development": "Development (Testing)",
  "staging": "Staging (Pre-production)",
  "production": "Production (Live)",
}

DEFAULT_MODE = "development"

DEFAULT_GATEWAY_SETTINGS = {
  "enabled": False,
  "title": "BNA Smart Payment",
  "description": "Pay securely using BNA Smart Payment system.",
  "mode": DEFAULT_MODE,
  "iframe_id": "",
  "access_key": "",
  "secret_key": "",
  "webhook_secret": "",
  "currency": "CAD",
}

# --- Outbound HTTP timeouts ---
CUSTOMER_SEARCH_TIMEOUT_SECONDS = 30
CHECKOUT_REQUEST_TIMEOUT_SECONDS = 45

# --- Webhook order matching ---
# Size of the fallback scan over recent orders that carry a checkout token.
ORDER_MATCHER_TOKEN_SCAN_LIMIT = 20


def is_valid_mode(mode):
  """True if the mode has a known API endpoint."""
  return mode in BNA_API_BASE_URLS_BY_MODE


def resolve_api_base_url(mode):
  """
  Map a gateway mode to the BNA API base URL.
  Unknown modes fall back to development.
  """
  if not is_valid_mode(mode):
    logger.warning("Invalid BNA mode %r, falling back to %s", mode, DEFAULT_MODE)
    mode = DEFAULT_MODE
  return BNA_API_BASE_URLS_BY_MODE[mode]


def get_mode_label(mode):
  return BNA_MODE_LABELS.get(mode, "Unknown")


def load_gateway_settings():
  """Gateway settings from the environment, layered over the defaults."""
  gateway_settings = dict(DEFAULT_GATEWAY_SETTINGS)
  gateway_settings.update({
    "enabled": True,
    "mode": BNA_MODE,
    "iframe_id": BNA_IFRAME_ID,
    "access_key": BNA_ACCESS_KEY,
    "secret_key": BNA_SECRET_KEY,
    "webhook_secret": BNA_WEBHOOK_SECRET,
  })
  return gateway_settings
