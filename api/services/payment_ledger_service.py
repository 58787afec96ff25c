"""
Commerce PayPal Checkout API -- Payment Ledger Service

System of record for payments made against shop orders.

Payment lifecycle:
  1. Checkout starts -> we create a payment (status 'created') with a
     random hash that goes into the PayPal return URL
  2. PayPal order is created -> we store its id for correlation
  3. Payer returns -> status 'capture_requested' while we capture
  4. Capture COMPLETED -> status 'completed', order paid amount increased
  5. Capture not COMPLETED -> status 'failed'

Payments are never deleted. 'completed' is terminal; 'failed' only moves
on to 'completed' when a later capture of the same PayPal order succeeds.

Payments are stored in the `commerce_order_payments` table.
"""

import logging
import secrets

logger = logging.getLogger("commerce.ledger")

PAYMENT_STATUS_CREATED = "created"
PAYMENT_STATUS_CAPTURE_REQUESTED = "capture_requested"
PAYMENT_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_FAILED = "failed"

APPLY_RESULT_APPLIED = "applied"
APPLY_RESULT_ALREADY_COMPLETED = "already_completed"
APPLY_RESULT_NOT_APPLICABLE = "not_applicable"

# 16 random bytes -> 32 lowercase hex chars. Matches the callback's
# ^[a-z0-9]+$ guard and has no relation to the numeric payment id.
_PAYMENT_HASH_BYTES = 16


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


def generate_payment_hash():
  """Opaque, URL-safe, unguessable payment hash."""
  return secrets.token_hex(_PAYMENT_HASH_BYTES)


def create_payment(order_id, amount, currency):
  """
  Create a payment for (part of) an order.

  Args:
    order_id: The shop order being paid.
    amount: Decimal amount to collect now (may be an installment).
    currency: ISO 4217 code of the order.

  Returns: dict with id, order_id, amount, currency, hash, status.
  """
  db = _get_database()

  payment_hash = generate_payment_hash()
  payment_id, _ = db.execute_insert_or_update(
    """
    INSERT INTO commerce_order_payments
      (order_id, amount, currency, payment_hash, status, created_at)
    VALUES (%s, %s, %s, %s, 'created', NOW())
    """,
    (order_id, amount, currency, payment_hash),
  )

  logger.info(
    "Payment created: id=%s, order=%s, amount=%s %s",
    payment_id, order_id, amount, currency,
  )

  return {
    "id": payment_id,
    "order_id": order_id,
    "amount": amount,
    "currency": currency,
    "hash": payment_hash,
    "status": PAYMENT_STATUS_CREATED,
  }


def get_payment_by_hash(payment_hash):
  """
  Look up a payment by its hash.
  Returns the row as a dict, or None. Never creates anything.
  """
  db = _get_database()
  return db.execute_query_returning_one_row(
    """
    SELECT id, order_id, amount, currency, payment_hash AS hash, status,
           provider_order_id, captured_amount
    FROM commerce_order_payments
    WHERE payment_hash = %s
    """,
    (payment_hash,),
  )


def update_payment_provider_order_id(payment_id, provider_order_id):
  """Store the PayPal order id on the payment after order creation."""
  db = _get_database()
  db.execute_insert_or_update(
    """
    UPDATE commerce_order_payments
    SET provider_order_id = %s
    WHERE id = %s
    """,
    (provider_order_id, payment_id),
  )


def mark_payment_capture_requested(payment_hash):
  """
  Move a 'created' payment to 'capture_requested'.
  No-op for unknown hashes or payments already past 'created'.
  """
  db = _get_database()
  _, rowcount = db.execute_insert_or_update(
    """
    UPDATE commerce_order_payments
    SET status = 'capture_requested'
    WHERE payment_hash = %s AND status = 'created'
    """,
    (payment_hash,),
  )
  return rowcount == 1


def mark_payment_failed(payment_hash, reason):
  """Mark a non-terminal payment as failed. Completed payments are untouched."""
  db = _get_database()
  _, rowcount = db.execute_insert_or_update(
    """
    UPDATE commerce_order_payments
    SET status = 'failed'
    WHERE payment_hash = %s AND status IN ('created', 'capture_requested')
    """,
    (payment_hash,),
  )
  if rowcount:
    logger.info("Payment marked as failed: hash=%s, reason=%s", payment_hash, reason)
  return rowcount == 1


def apply_captured_amount(payment, captured_amount):
  """
  Record a completed capture against a payment and its order, exactly once.

  The status guard and the order update run in one transaction. A second
  delivery for the same payment finds status 'completed', matches no row,
  and changes nothing. A 'failed' payment is still accepted: PayPal only
  answers COMPLETED when money was actually taken.

  Returns APPLY_RESULT_APPLIED, APPLY_RESULT_ALREADY_COMPLETED, or
  APPLY_RESULT_NOT_APPLICABLE when the payment is in no state to take it.
  """
  db = _get_database()
  applied = db.execute_guarded_statements_in_transaction(
    """
    UPDATE commerce_order_payments
    SET status = 'completed', captured_amount = %s, paid_at = NOW()
    WHERE payment_hash = %s AND status IN ('created', 'capture_requested', 'failed')
    """,
    (captured_amount, payment["hash"]),
    [
      (
        """
        UPDATE commerce_orders
        SET paid_amount = paid_amount + %s
        WHERE id = %s
        """,
        (captured_amount, payment["order_id"]),
      ),
    ],
  )

  if applied:
    logger.info(
      "Payment completed: id=%s, order=%s, captured=%s",
      payment["id"], payment["order_id"], captured_amount,
    )
    return APPLY_RESULT_APPLIED

  current = get_payment_by_hash(payment["hash"])
  if current and current.get("status") == PAYMENT_STATUS_COMPLETED:
    logger.info("Payment %s already completed, duplicate capture ignored", payment["id"])
    return APPLY_RESULT_ALREADY_COMPLETED

  logger.error(
    "Capture of %s could not be applied to payment %s (status=%s)",
    captured_amount, payment["id"], current.get("status") if current else None,
  )
  return APPLY_RESULT_NOT_APPLICABLE
