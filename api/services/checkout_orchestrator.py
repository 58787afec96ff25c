"""
Commerce PayPal Checkout API -- Checkout Orchestrator

Produces the PayPal approval link for an order:

  1. Load the order and its cart
  2. Work out what is due now (full total or the remaining installment)
  3. Create a payment in the ledger (its hash goes into the return URL)
  4. Build the PayPal order body and send it
  5. Store the PayPal order id on the payment
  6. Return the rel="approve" link

Any failure along the way yields False. The caller shows one generic
"could not start payment" message; the reason is only logged.
"""

import logging

from services import order_request_builder, order_service, payment_ledger_service
from services.payment_errors import PaymentIntegrationError

logger = logging.getLogger("commerce.checkout")


async def create_approval_link(order_id, provider, vat_code=None):
  """
  Start a PayPal checkout for an order.

  Args:
    order_id: The shop order to pay.
    provider: A run-scoped PaymentProviderInterface implementation.
    vat_code: The payment method's VAT setting, passed to the builder.

  Returns: the approval URL (str), or False.
  """
  try:
    return await _create_approval_link(order_id, provider, vat_code)
  except PaymentIntegrationError as provider_error:
    logger.error("PayPal checkout failed for order %s: %s", order_id, provider_error)
    return False
  except Exception as unexpected_error:
    logger.exception("Unexpected checkout failure for order %s: %s", order_id, unexpected_error)
    return False


async def _create_approval_link(order_id, provider, vat_code):
  order = order_service.load_order(order_id)
  if order is None:
    logger.warning("Approval link requested for unknown order %s", order_id)
    return False

  due_amount = order_service.get_order_due_amount(order)
  if due_amount <= 0:
    logger.warning("Order %s has nothing left to pay", order.id)
    return False

  cart_items = order_service.load_cart_items(order.id)
  payment = payment_ledger_service.create_payment(order.id, due_amount, order.currency)

  order_request = order_request_builder.build_order_request(
    order, payment, cart_items, vat_code=vat_code,
  )

  order_result = await provider.create_checkout_order(order_request)

  provider_order_id = order_result.get("provider_order_id")
  if not provider_order_id or not order_result.get("links"):
    logger.error(
      "PayPal order creation returned no order id/links: order=%s, payment=%s",
      order.id, payment["id"],
    )
    return False

  payment_ledger_service.update_payment_provider_order_id(payment["id"], provider_order_id)

  approval_url = order_result.get("approval_url")
  if not approval_url:
    logger.error(
      "PayPal order %s has no approve link: order=%s, payment=%s",
      provider_order_id, order.id, payment["id"],
    )
    return False

  logger.info(
    "Approval link ready: order=%s, payment=%s, paypal_order=%s, amount=%s %s",
    order.id, payment["id"], provider_order_id, payment["amount"], order.currency,
  )
  return approval_url
