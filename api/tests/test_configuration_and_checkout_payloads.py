"""
BNA Payment Bridge -- Tests for configuration, identity cache and checkout payloads

Pure functions only: no HTTP, no database.
  - Mode -> API base URL resolution
  - Customer identity cache keys and round-trips
  - Billing field normalization (country, province, phone, placeholders)
  - Checkout payload variants and their wire shape
"""

import hashlib

import pytest


# ===========================================================================
# Test: API base URL resolution
# ===========================================================================

class TestApiBaseUrlResolution:

  def test_each_known_mode_maps_to_its_host(self):
    import config
    assert config.resolve_api_base_url("development") == "https://dev-api-service.bnasmartpayment.com"
    assert config.resolve_api_base_url("staging") == "https://stage-api-service.bnasmartpayment.com"
    assert config.resolve_api_base_url("production") == "https://api.bnasmartpayment.com"

  @pytest.mark.parametrize("bad_mode", ["", None, "live", "PRODUCTION", "test"])
  def test_unknown_mode_falls_back_to_development(self, bad_mode):
    import config
    assert config.resolve_api_base_url(bad_mode) == "https://dev-api-service.bnasmartpayment.com"

  def test_mode_labels(self):
    import config
    assert config.get_mode_label("production") == "Production (Live)"
    assert config.get_mode_label("nonsense") == "Unknown"

  def test_loaded_settings_include_every_default_key(self):
    import config
    gateway_settings = config.load_gateway_settings()
    for key in config.DEFAULT_GATEWAY_SETTINGS:
      assert key in gateway_settings
    assert gateway_settings["mode"] == config.BNA_MODE


# ===========================================================================
# Test: Customer identity cache
# ===========================================================================

class TestCustomerIdentityCache:

  def test_cache_key_is_a_hash_of_the_normalized_email(self):
    from services.customer_identity_cache import build_customer_cache_key
    expected_digest = hashlib.sha256(b"jane@example.com").hexdigest()
    assert build_customer_cache_key("  Jane@Example.COM ") == f"bna_customer_{expected_digest}"

  def test_cache_key_never_contains_the_email(self):
    from services.customer_identity_cache import build_customer_cache_key
    cache_key = build_customer_cache_key("jane@example.com")
    assert "jane" not in cache_key
    assert "example.com" not in cache_key

  def test_put_then_get_is_case_insensitive_on_email(self, identity_cache, key_value_storage):
    identity_cache.put("Jane@Example.com", "cust-42")
    assert identity_cache.get("jane@example.com") == "cust-42"
    assert len(key_value_storage.values) == 1

  def test_get_unknown_email_returns_none(self, identity_cache):
    assert identity_cache.get("nobody@example.com") is None

  def test_empty_email_is_never_stored_or_looked_up(self, identity_cache, key_value_storage):
    identity_cache.put("", "cust-1")
    identity_cache.put("jane@example.com", "")
    assert key_value_storage.values == {}
    assert identity_cache.get("") is None
    assert identity_cache.get(None) is None

  def test_later_put_overwrites(self, identity_cache):
    identity_cache.put("jane@example.com", "cust-1")
    identity_cache.put("jane@example.com", "cust-2")
    assert identity_cache.get("jane@example.com") == "cust-2"


# ===========================================================================
# Test: Billing normalization
# ===========================================================================

class TestCountryNormalization:

  @pytest.mark.parametrize("country,expected", [
    ("CA", "CA"), ("ca", "CA"), (" gb ", "GB"), ("AU", "AU"), ("US", "US"),
    ("FR", "US"), ("", "US"), (None, "US"), ("Canada", "US"),
  ])
  def test_country_codes(self, country, expected):
    from services.checkout_payload import normalize_country_code
    assert normalize_country_code(country) == expected


class TestProvinceNormalization:

  def test_valid_canadian_province_is_kept(self):
    from services.checkout_payload import normalize_province
    assert normalize_province("qc", "CA") == "QC"

  def test_invalid_canadian_province_becomes_ontario(self):
    from services.checkout_payload import normalize_province
    assert normalize_province("XX", "CA") == "ON"
    assert normalize_province("", "CA") == "ON"

  def test_us_state_is_kept_or_defaults_to_new_york(self):
    from services.checkout_payload import normalize_province
    assert normalize_province("CA", "US") == "CA"
    assert normalize_province("", "US") == "NY"

  def test_other_countries_get_the_placeholder(self):
    from services.checkout_payload import normalize_province
    assert normalize_province("Kent", "GB") == "State"
    assert normalize_province("NSW", "AU") == "State"


class TestPhoneNormalization:

  def test_formatting_is_stripped(self):
    from services.checkout_payload import normalize_phone_number
    assert normalize_phone_number("(416) 555-0199") == "4165550199"
    assert normalize_phone_number("+1 416.555.0199") == "14165550199"

  def test_short_numbers_become_the_placeholder(self):
    from services.checkout_payload import normalize_phone_number
    assert normalize_phone_number("555-1212") == "1234567890"
    assert normalize_phone_number("") == "1234567890"
    assert normalize_phone_number(None) == "1234567890"


# ===========================================================================
# Test: Customer info and items
# ===========================================================================

class TestCustomerInfo:

  def test_complete_billing_profile(self, make_order):
    from services.checkout_payload import build_customer_info
    customer_info = build_customer_info(make_order())
    wire_shape = customer_info.model_dump(by_alias=True, exclude_none=True)
    assert wire_shape == {
      "email": "jane@example.com",
      "type": "Personal",
      "phoneCode": "+1",
      "phoneNumber": "4165550199",
      "firstName": "Jane",
      "lastName": "Doe",
      "birthDate": "1990-01-01",
      "address": {
        "streetName": "100 King St W",
        "streetNumber": "Suite 5",
        "city": "Toronto",
        "province": "ON",
        "country": "CA",
        "postalCode": "M5X 1A9",
      },
    }

  def test_empty_billing_fields_get_placeholders(self, make_order):
    from services.checkout_payload import build_customer_info
    order = make_order(
      first_name="", last_name="  ", phone="555-1212", address_1="", address_2="",
      city="", state="XX", postcode="", country="CA",
    )
    customer_info = build_customer_info(order)
    assert customer_info.first_name == "Customer"
    assert customer_info.last_name == "Name"
    assert customer_info.phone_number == "1234567890"
    assert customer_info.address.street_name == "Main Street"
    assert customer_info.address.street_number == "1"
    assert customer_info.address.city == "City"
    assert customer_info.address.province == "ON"
    assert customer_info.address.postal_code == "12345"

  def test_unsupported_country_becomes_us(self, make_order):
    from services.checkout_payload import build_customer_info
    customer_info = build_customer_info(make_order(country="FR", state=""))
    assert customer_info.address.country == "US"
    assert customer_info.address.province == "NY"


class TestOrderItems:

  def test_order_is_sent_as_one_line_item(self, make_order):
    from services.checkout_payload import build_order_items
    items = build_order_items(make_order("2040", total=89.99))
    assert len(items) == 1
    assert items[0].model_dump() == {
      "amount": 89.99,
      "description": "Order #2040",
      "price": 89.99,
      "quantity": 1,
      "sku": "ORDER-2040",
    }


# ===========================================================================
# Test: Checkout payload variants
# ===========================================================================

class TestCheckoutPayloadVariants:

  def test_known_customer_id_sends_only_the_id(self, make_order):
    from services.checkout_payload import CustomerIdCheckoutPayload, build_checkout_payload
    payload = build_checkout_payload(make_order(), "iframe-123", customer_id="cust-7")
    assert isinstance(payload, CustomerIdCheckoutPayload)
    request_body = payload.to_request_body()
    assert request_body["customerId"] == "cust-7"
    assert request_body["iframeId"] == "iframe-123"
    assert request_body["subtotal"] == 125.5
    assert "customerInfo" not in request_body
    assert "saveCustomer" not in request_body

  def test_unknown_customer_sends_profile_and_asks_to_save(self, make_order):
    from services.checkout_payload import CustomerInfoCheckoutPayload, build_checkout_payload
    payload = build_checkout_payload(make_order(), "iframe-123")
    assert isinstance(payload, CustomerInfoCheckoutPayload)
    request_body = payload.to_request_body()
    assert request_body["saveCustomer"] is True
    assert request_body["customerInfo"]["email"] == "jane@example.com"
    assert "customerId" not in request_body

  def test_minimal_payload_has_no_customer_at_all(self, make_order):
    from services.checkout_payload import build_minimal_checkout_payload
    request_body = build_minimal_checkout_payload(make_order(), "iframe-123").to_request_body()
    assert request_body["saveCustomer"] is False
    assert "customerId" not in request_body
    assert "customerInfo" not in request_body
    assert request_body["items"][0]["sku"] == "ORDER-1001"

  def test_customer_id_variant_rejects_missing_id(self):
    from pydantic import ValidationError
    from services.checkout_payload import CustomerIdCheckoutPayload
    with pytest.raises(ValidationError):
      CustomerIdCheckoutPayload(iframe_id="iframe-123", items=[], subtotal=1.0)
