"""
BNA Payment Bridge -- BNA Smart Payment API client

Direct HTTP calls via httpx with HTTP Basic auth (access_key:secret_key).

Endpoints used:
  GET  /v1/customers?email=...   -- customer search (30s timeout)
  POST /v1/checkout              -- hosted checkout token (45s timeout)

Customer creation is optimistic. A checkout without a known customer id
sends the full customer profile and lets BNA create the customer. When
two checkouts for the same new customer race, the loser gets a
"customer already exists" rejection; we then search for the customer
again and retry with its id, or as a last resort with no customer at all.

Every request, retry and response is logged with its full payload so a
failed checkout can be reconstructed from the logs alone.
"""

import logging

import httpx

import config
from services.checkout_payload import (
  CustomerInfoCheckoutPayload,
  build_checkout_payload,
  build_minimal_checkout_payload,
)
from services.gateway_errors import (
  MalformedResponseError,
  NoTokenError,
  ProviderRejectionError,
  TransportError,
)
from services.payment_gateway_interface import PaymentGatewayInterface

logger = logging.getLogger("bnapay.api_client")

CHECKOUT_ENDPOINT = "/v1/checkout"
CUSTOMERS_ENDPOINT = "/v1/customers"

# Lowercased substrings of BNA's error message that mean the customer exists.
CUSTOMER_EXISTS_ERROR_MARKERS = ("already exists", "duplicate")


def is_customer_exists_error(response_body):
  """True if a rejected checkout says the customer (or email) already exists."""
  if isinstance(response_body, dict):
    message = response_body.get("message") or ""
  else:
    message = response_body or ""
  message = str(message).lower()
  return any(marker in message for marker in CUSTOMER_EXISTS_ERROR_MARKERS)


def _response_body_for_log(response):
  """Parsed JSON body if possible, raw text otherwise."""
  try:
    return response.json()
  except ValueError:
    return response.text


class BnaApiClient(PaymentGatewayInterface):
  """BNA Smart Payment hosted-checkout client."""

  def __init__(self, gateway_settings, customer_identity_cache, http_transport=None):
    requested_mode = gateway_settings.get("mode") or config.DEFAULT_MODE
    self.api_base_url = config.resolve_api_base_url(requested_mode)
    self.mode = requested_mode if config.is_valid_mode(requested_mode) else config.DEFAULT_MODE
    self.iframe_id = gateway_settings.get("iframe_id", "")
    self.access_key = gateway_settings.get("access_key", "")
    self.secret_key = gateway_settings.get("secret_key", "")
    self.customer_identity_cache = customer_identity_cache
    # Tests pass an httpx.MockTransport here
    self.http_transport = http_transport

    logger.info(
      "BNA API client initialized: mode=%s (%s), api_url=%s, iframe_id=%s, has_credentials=%s",
      self.mode, config.get_mode_label(self.mode), self.api_base_url,
      self.iframe_id or "NOT_SET", bool(self.access_key and self.secret_key),
    )

  # -----------------------------------------------------------------------
  # HTTP plumbing
  # -----------------------------------------------------------------------

  def _user_agent(self):
    return f"BNA-Payment-Bridge/{config.API_VERSION} ({self.mode})"

  def _http_client(self, timeout_seconds):
    return httpx.AsyncClient(
      base_url=self.api_base_url,
      auth=(self.access_key, self.secret_key),
      timeout=timeout_seconds,
      transport=self.http_transport,
      headers={"Accept": "application/json", "User-Agent": self._user_agent()},
    )

  async def _post_checkout(self, payload, attempt_label):
    """POST one checkout payload. Returns the httpx.Response whatever its status."""
    request_body = payload.to_request_body()
    logger.info(
      "BNA checkout request [%s]: url=%s%s, payload=%s",
      attempt_label, self.api_base_url, CHECKOUT_ENDPOINT, request_body,
    )

    try:
      async with self._http_client(config.CHECKOUT_REQUEST_TIMEOUT_SECONDS) as http_client:
        response = await http_client.post(CHECKOUT_ENDPOINT, json=request_body)
    except httpx.RequestError as transport_error:
      logger.error(
        "BNA checkout request [%s] failed at transport level: %s, payload=%s",
        attempt_label, transport_error, request_body,
      )
      raise TransportError(f"BNA checkout request failed: {transport_error}") from transport_error

    logger.info(
      "BNA checkout response [%s]: status=%s, body=%s",
      attempt_label, response.status_code, _response_body_for_log(response),
    )
    return response

  def _extract_token(self, response):
    """Returns (token, response_data) from a 200 checkout response."""
    try:
      response_data = response.json()
    except ValueError:
      logger.error("BNA checkout returned 200 with a non-JSON body: %s", response.text)
      raise MalformedResponseError("Checkout response is not JSON", response.text)

    token = response_data.get("token") if isinstance(response_data, dict) else None
    if not isinstance(token, str) or not token.strip():
      logger.error("Token not found in successful checkout response: %s", response_data)
      raise MalformedResponseError("Checkout response has no token", response_data)

    return token.strip(), response_data

  # -----------------------------------------------------------------------
  # Customer search
  # -----------------------------------------------------------------------

  async def find_customer_id_by_email(self, email):
    """
    Search BNA customers by email. Returns the first match's id, or None.

    Search failures are logged and reported as "not found": the checkout
    then falls back to the identity cache or inline customer creation.
    """
    if not email:
      return None

    logger.debug("Searching BNA customer by email %s", email)

    try:
      async with self._http_client(config.CUSTOMER_SEARCH_TIMEOUT_SECONDS) as http_client:
        response = await http_client.get(CUSTOMERS_ENDPOINT, params={"email": email})
    except httpx.RequestError as transport_error:
      logger.error("BNA customer search failed at transport level: %s", transport_error)
      return None

    if response.status_code != 200:
      logger.warning(
        "BNA customer search failed: status=%s, body=%s",
        response.status_code, _response_body_for_log(response),
      )
      return None

    try:
      search_data = response.json()
    except ValueError:
      logger.warning("BNA customer search returned a non-JSON body: %s", response.text)
      return None

    customers = search_data.get("data") if isinstance(search_data, dict) else None
    if not isinstance(customers, list) or not customers:
      logger.info("No BNA customer found for this email")
      return None

    first_customer = customers[0]
    if not isinstance(first_customer, dict) or not first_customer.get("id"):
      logger.warning("BNA customer search result has no id: %s", first_customer)
      return None

    customer_id = str(first_customer["id"])
    logger.info("BNA customer found: customer_id=%s", customer_id)
    return customer_id

  # -----------------------------------------------------------------------
  # Checkout token
  # -----------------------------------------------------------------------

  async def get_checkout_token(self, order):
    """
    Turn an order into a hosted-checkout token.

    1. Find the customer id: BNA search first, then the identity cache.
    2. POST the customer-id payload if we have an id, else the
       customer-info payload (BNA creates the customer).
    3. On a "customer already exists" rejection of a customer-info
       payload: search again and retry with the id, or retry once with
       the minimal payload if the search still finds nothing.
    4. On 200, remember the customer id BNA created for us.
    """
    email = order.billing.email
    logger.info(
      "Checkout token requested: order_id=%s, total=%s %s, mode=%s",
      order.order_id, order.total, order.currency, self.mode,
    )

    customer_id = await self.find_customer_id_by_email(email)
    if not customer_id:
      customer_id = self.customer_identity_cache.get(email)
      if customer_id:
        logger.info("Using stored customer ID %s for order %s", customer_id, order.order_id)

    payload = build_checkout_payload(order, self.iframe_id, customer_id)
    attempt_label = "customer_id" if customer_id else "customer_info"
    response = await self._post_checkout(payload, attempt_label)

    if response.status_code != 200 and not customer_id:
      response_body = _response_body_for_log(response)
      if is_customer_exists_error(response_body):
        logger.warning(
          "Customer exists error for order %s (status=%s), searching for existing customer",
          order.order_id, response.status_code,
        )
        found_customer_id = await self.find_customer_id_by_email(email)
        if not found_customer_id:
          logger.warning(
            "Existing customer not found for order %s, retrying with minimal payload",
            order.order_id,
          )
          return await self._retry_with_minimal_payload(order)

        self.customer_identity_cache.put(email, found_customer_id)
        payload = build_checkout_payload(order, self.iframe_id, found_customer_id)
        response = await self._post_checkout(payload, "retry_customer_id")
        if response.status_code != 200:
          logger.error(
            "Retry with customer ID %s failed for order %s: status=%s",
            found_customer_id, order.order_id, response.status_code,
          )
          raise NoTokenError(
            f"BNA checkout failed after customer retry (HTTP {response.status_code})",
            status_code=response.status_code,
            response_body=_response_body_for_log(response),
          )

    if response.status_code != 200:
      response_body = _response_body_for_log(response)
      logger.error(
        "BNA checkout rejected for order %s: status=%s, body=%s",
        order.order_id, response.status_code, response_body,
      )
      raise ProviderRejectionError(
        f"BNA checkout rejected (HTTP {response.status_code})",
        status_code=response.status_code,
        response_body=response_body,
      )

    token, response_data = self._extract_token(response)

    new_customer_id = response_data.get("customerId")
    if isinstance(payload, CustomerInfoCheckoutPayload) and new_customer_id:
      self.customer_identity_cache.put(email, new_customer_id)
      logger.info("New BNA customer %s created for order %s", new_customer_id, order.order_id)

    logger.info(
      "Checkout token issued for order %s (token prefix %s...)",
      order.order_id, token[:10],
    )
    return token

  async def _retry_with_minimal_payload(self, order):
    """Last resort: no customer data, nothing saved on the BNA side."""
    payload = build_minimal_checkout_payload(order, self.iframe_id)
    response = await self._post_checkout(payload, "retry_minimal")

    if response.status_code != 200:
      logger.error(
        "Minimal payload request also failed for order %s: status=%s",
        order.order_id, response.status_code,
      )
      raise NoTokenError(
        f"BNA checkout failed after minimal retry (HTTP {response.status_code})",
        status_code=response.status_code,
        response_body=_response_body_for_log(response),
      )

    token, _response_data = self._extract_token(response)
    logger.info("Checkout token issued for order %s via minimal payload", order.order_id)
    return token

  # -----------------------------------------------------------------------
  # Environment
  # -----------------------------------------------------------------------

  def is_production(self):
    return self.mode == "production"

  def get_environment_info(self):
    return {
      "mode": self.mode,
      "mode_label": config.get_mode_label(self.mode),
      "api_url": self.api_base_url,
      "is_production": self.is_production(),
    }
