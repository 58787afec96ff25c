"""
Shared fixtures for the Commerce PayPal Checkout API tests.

FakeDatabase stands in for database.py: it understands the handful of
statements the order and ledger services issue, and keeps rows in dicts.
That lets the ledger's real status guards run without MySQL.

Run with: python -m pytest api/tests -v
"""

import os
import sys
from decimal import Decimal

import pytest

# Add the api directory to the path so we can import services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services import order_service, payment_ledger_service  # noqa: E402


class FakeDatabase:
  """In-memory replacement for the database module's helper functions."""

  def __init__(self):
    self.orders = {}
    self.order_products = {}
    self.payments = {}
    self.writes = []
    self._next_payment_id = 1

  # -- seeding helpers ----------------------------------------------------

  def add_order(self, order_id, amount, currency="USD", email=None, products=()):
    self.orders[order_id] = {
      "id": order_id,
      "amount": Decimal(str(amount)),
      "currency": currency,
      "email": email,
      "paid_amount": Decimal(0),
    }
    self.order_products[order_id] = [
      {
        "id": index + 1,
        "product_id": product[0],
        "title": product[1],
        "price": Decimal(str(product[2])),
        "count": product[3],
      }
      for index, product in enumerate(products)
    ]

  def add_payment(self, order_id, amount, payment_hash, status="created", currency="USD", provider_order_id=None):
    payment_id = self._next_payment_id
    self._next_payment_id += 1
    self.payments[payment_id] = {
      "id": payment_id,
      "order_id": order_id,
      "amount": Decimal(str(amount)),
      "currency": currency,
      "hash": payment_hash,
      "status": status,
      "provider_order_id": provider_order_id,
      "captured_amount": None,
    }
    return payment_id

  def payment_by_hash(self, payment_hash):
    for payment in self.payments.values():
      if payment["hash"] == payment_hash:
        return payment
    return None

  # -- database.py interface ----------------------------------------------

  def execute_query_returning_one_row(self, query, params=None):
    if "FROM commerce_orders" in query:
      row = self.orders.get(params[0])
      return dict(row) if row else None
    if "SUM(amount)" in query:
      paid = sum(
        (p["amount"] for p in self.payments.values()
         if p["order_id"] == params[0] and p["status"] == "completed"),
        Decimal(0),
      )
      return {"paid_amount": paid}
    if "WHERE payment_hash" in query:
      payment = self.payment_by_hash(params[0])
      return dict(payment) if payment else None
    if "SELECT 1" in query:
      return {"alive": 1}
    raise AssertionError(f"unexpected query: {query}")

  def execute_query_returning_all_rows(self, query, params=None):
    if "FROM commerce_order_products" in query:
      return [dict(row) for row in self.order_products.get(params[0], [])]
    raise AssertionError(f"unexpected query: {query}")

  def execute_insert_or_update(self, query, params=None):
    self.writes.append((query, params))
    if "INSERT INTO commerce_order_payments" in query:
      order_id, amount, currency, payment_hash = params
      payment_id = self.add_payment(order_id, amount, payment_hash, currency=currency)
      return (payment_id, 1)
    if "SET provider_order_id" in query:
      provider_order_id, payment_id = params
      self.payments[payment_id]["provider_order_id"] = provider_order_id
      return (None, 1)
    if "SET status = 'capture_requested'" in query:
      payment = self.payment_by_hash(params[0])
      if payment and payment["status"] == "created":
        payment["status"] = "capture_requested"
        return (None, 1)
      return (None, 0)
    if "SET status = 'failed'" in query:
      payment = self.payment_by_hash(params[0])
      if payment and payment["status"] in ("created", "capture_requested"):
        payment["status"] = "failed"
        return (None, 1)
      return (None, 0)
    raise AssertionError(f"unexpected statement: {query}")

  def execute_guarded_statements_in_transaction(self, guard_query, guard_params, followup_statements):
    self.writes.append((guard_query, guard_params))
    captured_amount, payment_hash = guard_params
    payment = self.payment_by_hash(payment_hash)
    if payment is None or payment["status"] not in ("created", "capture_requested", "failed"):
      return False
    payment["status"] = "completed"
    payment["captured_amount"] = captured_amount
    for query, params in followup_statements:
      self.writes.append((query, params))
      amount, order_id = params
      self.orders[order_id]["paid_amount"] += amount
    return True


@pytest.fixture
def fake_database(monkeypatch):
  """FakeDatabase wired into the order and ledger services."""
  fake = FakeDatabase()
  monkeypatch.setattr(order_service, "_get_database", lambda: fake)
  monkeypatch.setattr(payment_ledger_service, "_get_database", lambda: fake)
  return fake
