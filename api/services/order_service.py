"""
Commerce PayPal Checkout API -- Order Service

Read-only access to the shop's orders and their cart lines.

Orders live in `commerce_orders`; cart lines in `commerce_order_products`
(one row per product, ordered by `position`). Amounts come back from MySQL
as DECIMAL and are kept as Decimal end to end.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import config
from services import currency_service

logger = logging.getLogger("commerce.orders")


@dataclass(frozen=True)
class Order:
  """Immutable snapshot of an order for the duration of one run."""
  id: int
  currency: str
  total: Decimal
  email: Optional[str] = None
  site_name: str = ""
  site_url: str = ""


@dataclass(frozen=True)
class CartItem:
  id: str
  name: str
  price: Decimal
  quantity: int


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


def order_from_row(row):
  """Build an Order from a `commerce_orders` row (dict)."""
  currency_code = (row.get("currency") or "").upper()
  return Order(
    id=int(row["id"]),
    currency=currency_code,
    total=currency_service.quantize_amount(row["amount"], currency_code),
    email=(row.get("email") or "").strip() or None,
    site_name=config.SITE_NAME,
    site_url=config.SITE_URL,
  )


def cart_item_from_row(row):
  """Build a CartItem from a `commerce_order_products` row (dict)."""
  return CartItem(
    id=str(row.get("product_id") or row.get("id") or ""),
    name=row.get("title") or "",
    price=currency_service.to_decimal(row["price"]),
    quantity=int(row.get("count") or 0),
  )


def load_order(order_id):
  """Return the Order for an id, or None if it does not exist."""
  db = _get_database()
  row = db.execute_query_returning_one_row(
    "SELECT id, currency, amount, email FROM commerce_orders WHERE id = %s",
    (order_id,),
  )
  if row is None:
    return None
  return order_from_row(row)


def load_cart_items(order_id):
  """Return the order's cart lines in display order. Zero-quantity lines are dropped."""
  db = _get_database()
  rows = db.execute_query_returning_all_rows(
    """
    SELECT id, product_id, title, price, count
    FROM commerce_order_products
    WHERE order_id = %s
    ORDER BY position, id
    """,
    (order_id,),
  )
  items = [cart_item_from_row(row) for row in rows]
  return [item for item in items if item.quantity > 0]


def get_order_due_amount(order):
  """
  Amount the payer still owes: order total minus completed payments.

  A value below the order total means this payment is an installment
  and the request builder rescales the cart accordingly.
  """
  db = _get_database()
  row = db.execute_query_returning_one_row(
    """
    SELECT COALESCE(SUM(amount), 0) AS paid_amount
    FROM commerce_order_payments
    WHERE order_id = %s AND status = 'completed'
    """,
    (order.id,),
  )
  paid_amount = currency_service.to_decimal(row["paid_amount"] if row else 0)
  due_amount = currency_service.quantize_amount(order.total - paid_amount, order.currency)
  if due_amount < 0:
    logger.warning("Order %s is overpaid: total=%s, paid=%s", order.id, order.total, paid_amount)
    return Decimal(0)
  return due_amount
