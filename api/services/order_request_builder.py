"""
Commerce PayPal Checkout API -- Order Request Builder

Turns an Order, the Payment being collected and the cart into the body of
POST /v2/checkout/orders.

PayPal rejects an order whose items do not add up to the declared
item_total, so the item list must sum to the payment amount exactly:

  - full payment, cart total == payment amount -> items sent as they are
  - installment (payment < order total), or a cart that does not match
    the amount (discounts, surcharges) -> unit prices are rescaled

Rescaling: each unit price is multiplied by amount / cart_total and
rounded down (floor) to the currency's minor unit. The leftover (always >= 0 and
smaller than the total quantity in minor units) goes to the last line:
spread over its quantity when it divides evenly, otherwise the last line
is split into (quantity - 1) units at the scaled price plus one unit that
carries the leftover.
"""

import logging
import re
from decimal import Decimal, ROUND_FLOOR

from pydantic import EmailStr, TypeAdapter, ValidationError

import config
from services import currency_service, translation_service
from services.order_service import CartItem

logger = logging.getLogger("commerce.request_builder")

_email_adapter = TypeAdapter(EmailStr)

_VAT_PERCENTAGE_PATTERN = re.compile(r"^\d{1,3}(\.\d{1,3})?$")


def truncate_item_name(name, max_length=config.PAYPAL_ITEM_NAME_MAX_LENGTH):
  """
  Cut a name to max_length characters.

  Python str slicing counts code points, so a multi-byte character is
  either kept whole or dropped, never split.
  """
  return (name or "")[:max_length]


def is_valid_email(email):
  """True if the address is syntactically valid (no DNS lookup)."""
  if not email or not isinstance(email, str):
    return False
  try:
    _email_adapter.validate_python(email)
  except ValidationError:
    return False
  return True


def parse_vat_rate(vat_code):
  """
  Return the VAT percentage as a Decimal, or None.
  Empty or zero means "no VAT handling"; anything that is not a 0-100
  percentage is ignored.
  """
  vat_code = (vat_code or "").strip()
  if not vat_code:
    return None
  if not _VAT_PERCENTAGE_PATTERN.match(vat_code) or Decimal(vat_code) > 100:
    logger.warning("Ignoring vat_code %r: not a percentage", vat_code)
    return None
  vat_rate = Decimal(vat_code)
  return vat_rate if vat_rate > 0 else None


def split_included_tax(gross_price, vat_rate, currency_code):
  """
  Split a VAT-inclusive unit price into (net, tax), both in minor units.
  net + tax == gross_price exactly.
  """
  gross_price = currency_service.quantize_amount(gross_price, currency_code)
  tax = currency_service.quantize_amount(gross_price * vat_rate / (100 + vat_rate), currency_code)
  return gross_price - tax, tax


def cart_total(cart_items):
  """Sum of unit price * quantity over the cart."""
  return sum((item.price * item.quantity for item in cart_items), Decimal(0))


def rescale_cart_items(cart_items, target_amount, currency_code):
  """
  Scale unit prices so the cart sums to target_amount exactly.

  Returns a new list of CartItem. May contain one more line than the input
  (the last line split in two) when the rounding leftover does not divide
  by the last line's quantity.
  """
  minor_unit = currency_service.get_minor_unit(currency_code)
  source_total = cart_total(cart_items)
  target_amount = currency_service.quantize_amount(target_amount, currency_code)

  if not cart_items or source_total <= 0:
    return list(cart_items)

  factor = target_amount / source_total

  scaled_items = [
    CartItem(
      id=item.id,
      name=item.name,
      price=(item.price * factor).quantize(minor_unit, rounding=ROUND_FLOOR),
      quantity=item.quantity,
    )
    for item in cart_items
  ]

  leftover = target_amount - cart_total(scaled_items)
  if leftover == 0:
    return scaled_items

  last_item = scaled_items[-1]
  leftover_units = int(leftover / minor_unit)

  if leftover_units % last_item.quantity == 0:
    scaled_items[-1] = CartItem(
      id=last_item.id,
      name=last_item.name,
      price=last_item.price + leftover / last_item.quantity,
      quantity=last_item.quantity,
    )
    return scaled_items

  split_lines = []
  if last_item.quantity > 1:
    split_lines.append(CartItem(
      id=last_item.id,
      name=last_item.name,
      price=last_item.price,
      quantity=last_item.quantity - 1,
    ))
  split_lines.append(CartItem(
    id=last_item.id,
    name=last_item.name,
    price=last_item.price + leftover,
    quantity=1,
  ))
  return scaled_items[:-1] + split_lines


def _money(value, currency_code):
  return {"currency_code": currency_code, "value": currency_service.format_amount(value, currency_code)}


def _build_items(cart_items, currency_code, vat_rate):
  """Returns (items, tax_total). With VAT, unit_amount is net and tax carries the VAT share."""
  products = []
  tax_total = Decimal(0)
  for item in cart_items:
    unit_price = item.price
    product = {
      "name": truncate_item_name(item.name),
      "quantity": str(int(item.quantity)),
      "sku": str(item.id),
    }
    if vat_rate is not None:
      unit_price, unit_tax = split_included_tax(item.price, vat_rate, currency_code)
      product["tax"] = _money(unit_tax, currency_code)
      tax_total += unit_tax * item.quantity
    product["unit_amount"] = _money(unit_price, currency_code)
    products.append(product)
  return products, tax_total


def build_order_request(order, payment, cart_items, vat_code=None, language=None):
  """
  Build the PayPal create-order body.

  Args:
    order: Order snapshot (id, currency, total, email, site context).
    payment: Ledger payment dict (id, hash, amount).
    cart_items: Ordered list of CartItem.
    vat_code: Optional VAT percentage; prices are taken as VAT-inclusive
      and split into net unit_amount plus per-item tax.
    language: Template language; defaults to the site language.

  Returns: dict ready to be JSON-encoded.
  """
  currency_code = order.currency
  payment_amount = currency_service.quantize_amount(payment["amount"], currency_code)
  amount_value = currency_service.format_amount(payment_amount, currency_code)

  purchase_unit = {
    "amount": {
      "currency_code": currency_code,
      "value": amount_value,
    },
    "description": translation_service.render_message(
      "payments.payment_description",
      {"order_id": order.id, "site_name": order.site_name},
      language,
    ),
    "custom_id": str(payment["id"]),
    "invoice_id": str(order.id),
  }

  items = list(cart_items)
  if items and cart_total(items) > 0:
    is_partial_payment = payment_amount < order.total
    has_sub_minor_prices = any(
      item.price != currency_service.quantize_amount(item.price, currency_code) for item in items
    )
    if is_partial_payment or has_sub_minor_prices or cart_total(items) != payment_amount:
      logger.info(
        "Rescaling cart for order %s: cart_total=%s, payment=%s, order_total=%s",
        order.id, cart_total(items), payment_amount, order.total,
      )
      items = rescale_cart_items(items, payment_amount, currency_code)

    products, tax_total = _build_items(items, currency_code, parse_vat_rate(vat_code))
    breakdown = {"item_total": _money(payment_amount - tax_total, currency_code)}
    if tax_total:
      breakdown["tax_total"] = _money(tax_total, currency_code)
    purchase_unit["amount"]["breakdown"] = breakdown
    purchase_unit["items"] = products

  data = {
    "intent": "CAPTURE",
    "purchase_units": [purchase_unit],
    "application_context": {
      "user_action": "PAY_NOW",
      "return_url": build_return_url(order.site_url, payment["hash"]),
      "cancel_url": f"{order.site_url}{config.PAYMENT_FAILED_PATH}",
    },
  }

  if order.email and is_valid_email(order.email):
    data["payer"] = {"email_address": order.email}

  return data


def build_return_url(site_url, payment_hash):
  """Where PayPal sends the payer after approval."""
  return f"{site_url}{config.PAYMENT_PROCESS_PATH}?paymentHash={payment_hash}"
