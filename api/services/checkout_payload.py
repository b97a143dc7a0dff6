"""
BNA Payment Bridge -- Checkout payloads

POST /v1/checkout accepts three body shapes, one class each:

  CustomerIdCheckoutPayload    -- existing BNA customer, referenced by id
  CustomerInfoCheckoutPayload  -- inline profile, BNA creates the customer
  MinimalCheckoutPayload       -- no customer at all (last-resort retry)

Each class carries only its own customer field, so a payload can never
hold both customerId and customerInfo.

BNA rejects empty strings in several customer fields, so every missing
billing value is replaced with a placeholder.
"""

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ALLOWED_CUSTOMER_COUNTRIES = ("US", "CA", "GB", "AU")
DEFAULT_CUSTOMER_COUNTRY = "US"

CANADIAN_PROVINCE_CODES = (
  "AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT",
)
DEFAULT_CANADIAN_PROVINCE = "ON"
DEFAULT_US_STATE = "NY"
PROVINCE_PLACEHOLDER = "State"

MINIMUM_PHONE_DIGITS = 10
PHONE_NUMBER_PLACEHOLDER = "1234567890"
DEFAULT_PHONE_CODE = "+1"
DEFAULT_BIRTH_DATE = "1990-01-01"
DEFAULT_CUSTOMER_TYPE = "Personal"

FIRST_NAME_PLACEHOLDER = "Customer"
LAST_NAME_PLACEHOLDER = "Name"
STREET_NAME_PLACEHOLDER = "Main Street"
STREET_NUMBER_PLACEHOLDER = "1"
CITY_PLACEHOLDER = "City"
POSTAL_CODE_PLACEHOLDER = "12345"


class _BnaModel(BaseModel):
  model_config = ConfigDict(populate_by_name=True)


class CheckoutItem(_BnaModel):
  amount: float
  description: str
  price: float
  quantity: int = 1
  sku: str


class CustomerAddress(_BnaModel):
  street_name: str = Field(alias="streetName")
  street_number: str = Field(alias="streetNumber")
  apartment: Optional[str] = None
  city: str
  province: str
  country: str
  postal_code: str = Field(alias="postalCode")


class CustomerInfo(_BnaModel):
  email: str
  type: str = DEFAULT_CUSTOMER_TYPE
  phone_code: str = Field(DEFAULT_PHONE_CODE, alias="phoneCode")
  phone_number: str = Field(alias="phoneNumber")
  first_name: str = Field(alias="firstName")
  last_name: str = Field(alias="lastName")
  birth_date: str = Field(DEFAULT_BIRTH_DATE, alias="birthDate")
  address: CustomerAddress


class _CheckoutPayloadBase(_BnaModel):
  iframe_id: str = Field(alias="iframeId")
  items: list[CheckoutItem]
  subtotal: float

  def to_request_body(self):
    """JSON-ready dict with BNA's camelCase field names."""
    return self.model_dump(by_alias=True, exclude_none=True)


class CustomerIdCheckoutPayload(_CheckoutPayloadBase):
  customer_id: str = Field(alias="customerId")


class CustomerInfoCheckoutPayload(_CheckoutPayloadBase):
  customer_info: CustomerInfo = Field(alias="customerInfo")
  save_customer: Literal[True] = Field(True, alias="saveCustomer")


class MinimalCheckoutPayload(_CheckoutPayloadBase):
  save_customer: Literal[False] = Field(False, alias="saveCustomer")


# ---------------------------------------------------------------------------
# Field normalization
# ---------------------------------------------------------------------------

def normalize_country_code(country):
  country_code = (country or "").strip().upper()
  if country_code in ALLOWED_CUSTOMER_COUNTRIES:
    return country_code
  return DEFAULT_CUSTOMER_COUNTRY


def normalize_phone_number(phone):
  """Digits only; anything shorter than ten digits becomes the placeholder."""
  digits = re.sub(r"[^0-9]", "", phone or "")
  if len(digits) < MINIMUM_PHONE_DIGITS:
    return PHONE_NUMBER_PLACEHOLDER
  return digits


def normalize_province(state, country_code):
  """`country_code` must already be normalized."""
  state_code = (state or "").strip().upper()
  if country_code == "CA":
    if state_code in CANADIAN_PROVINCE_CODES:
      return state_code
    return DEFAULT_CANADIAN_PROVINCE
  if country_code == "US":
    return state_code or DEFAULT_US_STATE
  return PROVINCE_PLACEHOLDER


def _value_or_placeholder(value, placeholder):
  value = (value or "").strip()
  return value or placeholder


def build_customer_info(order):
  """Inline customer profile for first-time customer creation."""
  billing = order.billing
  country_code = normalize_country_code(billing.country)
  return CustomerInfo(
    email=billing.email,
    phone_number=normalize_phone_number(billing.phone),
    first_name=_value_or_placeholder(billing.first_name, FIRST_NAME_PLACEHOLDER),
    last_name=_value_or_placeholder(billing.last_name, LAST_NAME_PLACEHOLDER),
    address=CustomerAddress(
      street_name=_value_or_placeholder(billing.address_1, STREET_NAME_PLACEHOLDER),
      street_number=_value_or_placeholder(billing.address_2, STREET_NUMBER_PLACEHOLDER),
      city=_value_or_placeholder(billing.city, CITY_PLACEHOLDER),
      province=normalize_province(billing.state, country_code),
      country=country_code,
      postal_code=_value_or_placeholder(billing.postcode, POSTAL_CODE_PLACEHOLDER),
    ),
  )


def build_order_items(order):
  """The whole order goes to BNA as one line item."""
  order_total = float(order.total)
  return [
    CheckoutItem(
      amount=order_total,
      description=f"Order #{order.display_number}",
      price=order_total,
      quantity=1,
      sku=f"ORDER-{order.order_id}",
    )
  ]


def build_checkout_payload(order, iframe_id, customer_id=None):
  """Customer-id variant when the id is known, customer-info variant otherwise."""
  if customer_id:
    return CustomerIdCheckoutPayload(
      iframe_id=iframe_id,
      customer_id=str(customer_id),
      items=build_order_items(order),
      subtotal=float(order.total),
    )
  return CustomerInfoCheckoutPayload(
    iframe_id=iframe_id,
    customer_info=build_customer_info(order),
    items=build_order_items(order),
    subtotal=float(order.total),
  )


def build_minimal_checkout_payload(order, iframe_id):
  return MinimalCheckoutPayload(
    iframe_id=iframe_id,
    items=build_order_items(order),
    subtotal=float(order.total),
  )
