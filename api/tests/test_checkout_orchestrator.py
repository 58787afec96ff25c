"""
Tests for the checkout leg (checkout_orchestrator.py).

Orders, cart lines and payments live in FakeDatabase; PayPal is replaced by
a provider double that records the request body it was given.

Tests cover:
  1. Success: approval link returned, PayPal order id stored on the payment
  2. PayPal answers without an approve link / without id -> False
  3. Provider errors -> False
  4. Unknown order, nothing left to pay -> False, no payment created
  5. Installments: remaining amount charged with a rescaled cart
"""

import asyncio
from decimal import Decimal

import pytest

from services import checkout_orchestrator
from services.payment_errors import AuthError, TransportError
from services.payment_provider_interface import PaymentProviderInterface

APPROVE_URL = "https://www.sandbox.paypal.com/checkoutnow?token=5O190127TN364715T"


def _created(provider_order_id="5O190127TN364715T", approval_url=APPROVE_URL, links=None):
  if links is None:
    links = [{"href": "https://api-m.sandbox.paypal.com/v2/checkout/orders/x", "rel": "self"}]
    if approval_url:
      links.append({"href": approval_url, "rel": "approve"})
  return {
    "provider_order_id": provider_order_id,
    "approval_url": approval_url,
    "links": links,
    "status": "CREATED",
  }


class FakeProvider(PaymentProviderInterface):

  def __init__(self, result=None, error=None):
    self.result = result
    self.error = error
    self.requests = []

  async def create_checkout_order(self, order_request):
    self.requests.append(order_request)
    if self.error is not None:
      raise self.error
    return self.result

  async def capture_order(self, provider_order_id):
    raise AssertionError("not used by the checkout leg")


def _run(order_id, provider, vat_code=None):
  return asyncio.run(checkout_orchestrator.create_approval_link(order_id, provider, vat_code=vat_code))


@pytest.fixture
def shop(fake_database):
  fake_database.add_order(
    42, "100.00", email="buyer@gmail.com",
    products=[("A-1", "Item A", "60.00", 1), ("B-2", "Item B", "40.00", 1)],
  )
  return fake_database


# ===========================================================================
# 1. Success
# ===========================================================================

class TestApprovalLink:

  def test_returns_approve_link_and_records_paypal_order(self, shop):
    provider = FakeProvider(result=_created())

    assert _run(42, provider) == APPROVE_URL

    [payment] = shop.payments.values()
    assert payment["order_id"] == 42
    assert payment["amount"] == Decimal("100.00")
    assert payment["status"] == "created"
    assert payment["provider_order_id"] == "5O190127TN364715T"

  def test_request_body_points_back_to_the_payment(self, shop):
    provider = FakeProvider(result=_created())
    _run(42, provider)

    [payment] = shop.payments.values()
    [body] = provider.requests
    unit = body["purchase_units"][0]
    assert unit["custom_id"] == str(payment["id"])
    assert unit["invoice_id"] == "42"
    assert body["application_context"]["return_url"].endswith(f"paymentHash={payment['hash']}")
    assert body["payer"] == {"email_address": "buyer@gmail.com"}
    assert [item["sku"] for item in unit["items"]] == ["A-1", "B-2"]

  def test_vat_code_reaches_the_items(self, shop):
    provider = FakeProvider(result=_created())
    _run(42, provider, vat_code="20")
    unit = provider.requests[0]["purchase_units"][0]
    assert [item["tax"]["value"] for item in unit["items"]] == ["10.00", "6.67"]
    assert [item["unit_amount"]["value"] for item in unit["items"]] == ["50.00", "33.33"]
    assert unit["amount"]["breakdown"]["item_total"]["value"] == "83.33"
    assert unit["amount"]["breakdown"]["tax_total"]["value"] == "16.67"

  def test_each_checkout_gets_a_new_payment_hash(self, shop):
    _run(42, FakeProvider(result=_created()))
    _run(42, FakeProvider(result=_created()))
    hashes = [payment["hash"] for payment in shop.payments.values()]
    assert len(hashes) == 2
    assert hashes[0] != hashes[1]


# ===========================================================================
# 2. Incomplete PayPal answers
# ===========================================================================

class TestIncompleteCreateResponse:

  def test_missing_approve_link_returns_false(self, shop):
    provider = FakeProvider(result=_created(approval_url=None))

    assert _run(42, provider) is False

    [payment] = shop.payments.values()
    assert payment["provider_order_id"] == "5O190127TN364715T"
    assert payment["status"] != "completed"
    assert shop.orders[42]["paid_amount"] == Decimal(0)

  def test_missing_order_id_returns_false_without_recording(self, shop):
    provider = FakeProvider(result=_created(provider_order_id=None))

    assert _run(42, provider) is False

    [payment] = shop.payments.values()
    assert payment["provider_order_id"] is None

  def test_missing_links_returns_false(self, shop):
    provider = FakeProvider(result=_created(links=[]))
    assert _run(42, provider) is False


# ===========================================================================
# 3. Provider errors
# ===========================================================================

class TestProviderErrors:

  @pytest.mark.parametrize("error", [
    AuthError("invalid_client"),
    TransportError("connection reset"),
  ])
  def test_integration_errors_return_false(self, shop, error):
    assert _run(42, FakeProvider(error=error)) is False

  def test_unexpected_errors_return_false(self, shop):
    assert _run(42, FakeProvider(error=KeyError("id"))) is False


# ===========================================================================
# 4. Nothing to pay
# ===========================================================================

class TestNothingToPay:

  def test_unknown_order_returns_false(self, fake_database):
    provider = FakeProvider(result=_created())
    assert _run(999, provider) is False
    assert provider.requests == []
    assert fake_database.payments == {}

  def test_fully_paid_order_returns_false(self, shop):
    shop.add_payment(42, "100.00", "aaaa", status="completed")
    provider = FakeProvider(result=_created())

    assert _run(42, provider) is False
    assert provider.requests == []
    assert len(shop.payments) == 1


# ===========================================================================
# 5. Installments
# ===========================================================================

class TestInstallments:

  def test_remaining_amount_is_charged_with_scaled_items(self, shop):
    shop.add_payment(42, "60.00", "aaaa", status="completed")
    shop.add_payment(42, "25.00", "bbbb", status="failed")
    provider = FakeProvider(result=_created())

    assert _run(42, provider) == APPROVE_URL

    unit = provider.requests[0]["purchase_units"][0]
    assert unit["amount"]["value"] == "40.00"
    assert [item["unit_amount"]["value"] for item in unit["items"]] == ["24.00", "16.00"]

    new_payment = [p for p in shop.payments.values() if p["hash"] not in ("aaaa", "bbbb")][0]
    assert new_payment["amount"] == Decimal("40.00")
