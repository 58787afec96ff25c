"""
Commerce PayPal Checkout API -- Payment Callback Handler

Handles the payer's return from PayPal:

  GET /commerce/paypal/payment-process?token=<PayPal order id>&paymentHash=<hash>

This URL is public and unauthenticated, so nothing from the query string
reaches the ledger until it has been parsed into a ValidatedCallback.

  received -> validated -> capture_requested -> finalized
                   \\              \\                 \\
                    +--------------+-----------------+--> rejected

Every rejection produces the same redirect to the failure page, whatever
the reason. The reason is logged, never shown.

The payment is looked up before anything is written or captured. A token
that does not match the PayPal order stored on the payment is rejected
untouched.

Exactly-once: the ledger applies a capture only to a payment that is not
yet completed. A second delivery of the same callback re-captures at
PayPal (which answers COMPLETED again or an error) and then finds the
payment already completed -- a no-op that still redirects to success.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import config
from services import payment_ledger_service
from services.payment_errors import (
  CallbackValidationError,
  CaptureIncomplete,
  LedgerLookupError,
  PaymentIntegrationError,
  PaymentMismatchError,
  PaymentStateError,
)

logger = logging.getLogger("commerce.callback")
debug_logger = logging.getLogger("commerce.paypal.debug")

_TOKEN_PATTERN = re.compile(r"[A-Z0-9]+")
_PAYMENT_HASH_PATTERN = re.compile(r"[a-z0-9]+")
_MAX_PARAMETER_LENGTH = 128

OUTCOME_FINALIZED = "finalized"
OUTCOME_REJECTED = "rejected"


@dataclass(frozen=True)
class ValidatedCallback:
  """Return-leg parameters that passed validation."""
  token: str
  payment_hash: str


@dataclass(frozen=True)
class CallbackOutcome:
  status: str
  redirect_url: str
  payment_hash: Optional[str] = None
  reason: Optional[str] = None

  @property
  def is_finalized(self):
    return self.status == OUTCOME_FINALIZED


def _get_single_scalar(query_params, name):
  """
  Return the parameter as a str, or None if missing, repeated, or not a
  plain string (e.g. a list from a parsed `?token[]=...`).
  """
  if hasattr(query_params, "getlist"):
    values = query_params.getlist(name)
    if len(values) != 1:
      return None
    value = values[0]
  else:
    value = query_params.get(name)
  if not isinstance(value, str):
    return None
  return value


def _validate(value, pattern, name):
  if value is None:
    raise CallbackValidationError(f"'{name}' is missing or not a single string")
  if len(value) > _MAX_PARAMETER_LENGTH or not pattern.fullmatch(value):
    raise CallbackValidationError(f"'{name}' has an invalid format")
  return value


def parse_callback_parameters(query_params):
  """
  Validate the return-leg query parameters.

  token must be [A-Z0-9]+, paymentHash must be [a-z0-9]+ (whole string).

  Returns: ValidatedCallback. Raises CallbackValidationError.
  """
  token = _validate(_get_single_scalar(query_params, "token"), _TOKEN_PATTERN, "token")
  payment_hash = validate_payment_hash(_get_single_scalar(query_params, "paymentHash"))
  return ValidatedCallback(token=token, payment_hash=payment_hash)


def validate_payment_hash(value):
  """Return value if it is a well-formed payment hash. Raises CallbackValidationError."""
  return _validate(value, _PAYMENT_HASH_PATTERN, "paymentHash")


def get_request_payment_hash(query_params):
  """The paymentHash query value if it is a single string, else None."""
  return _get_single_scalar(query_params, "paymentHash")


def build_success_url(payment_hash, site_url=None):
  return f"{site_url or config.SITE_URL}{config.PAYMENT_SUCCESS_PATH}?paymentHash={payment_hash}"


def build_failure_url(site_url=None):
  return f"{site_url or config.SITE_URL}{config.PAYMENT_FAILED_PATH}"


def _rejected(reason, site_url):
  return CallbackOutcome(status=OUTCOME_REJECTED, redirect_url=build_failure_url(site_url), reason=reason)


async def handle_payment_callback(query_params, provider, site_url=None, debug=False):
  """
  Run the return-leg state machine for one callback.

  Args:
    query_params: The request's query parameters (starlette QueryParams or dict).
    provider: A run-scoped PaymentProviderInterface implementation.
    site_url: Base for the success/failure redirects (defaults to config).
    debug: Log the raw query parameters.

  Returns: CallbackOutcome. Never raises.
  """
  try:
    callback = parse_callback_parameters(query_params)
  except CallbackValidationError as validation_error:
    logger.warning("Rejected PayPal callback: %s", validation_error)
    return _rejected(str(validation_error), site_url)

  if debug:
    debug_logger.info("PayPal callback parameters: %s", dict(query_params))

  try:
    return await _capture_and_finalize(callback, provider, site_url)
  except PaymentIntegrationError as payment_error:
    logger.error(
      "PayPal callback rejected: token=%s, hash=%s, error=%s",
      callback.token, callback.payment_hash, payment_error,
    )
    return _rejected(str(payment_error), site_url)
  except Exception as unexpected_error:
    logger.exception(
      "Payment process failed: token=%s, hash=%s, error=%s",
      callback.token, callback.payment_hash, unexpected_error,
    )
    return _rejected("unexpected error", site_url)


async def _capture_and_finalize(callback, provider, site_url):
  payment = payment_ledger_service.get_payment_by_hash(callback.payment_hash)
  if not payment:
    raise LedgerLookupError(f"Payment {callback.payment_hash!r} not found (PayPal order {callback.token})")

  # The hash is in a public URL; only the PayPal order it was issued for may touch it.
  if payment.get("provider_order_id") and payment["provider_order_id"] != callback.token:
    raise PaymentMismatchError(
      f"Payment {payment['id']} belongs to PayPal order {payment['provider_order_id']}, "
      f"not {callback.token}"
    )

  payment_ledger_service.mark_payment_capture_requested(callback.payment_hash)

  capture_result = await provider.capture_order(callback.token)

  status = capture_result.get("status")
  if status != "COMPLETED":
    payment_ledger_service.mark_payment_failed(callback.payment_hash, f"capture status {status}")
    raise CaptureIncomplete(status)

  captured_amount = capture_result["captured_amount"]
  if captured_amount < payment["amount"]:
    logger.warning(
      "Capture shortfall for payment %s (order %s, PayPal order %s): captured %s of %s",
      payment["id"], payment["order_id"], callback.token, captured_amount, payment["amount"],
    )

  apply_result = payment_ledger_service.apply_captured_amount(payment, captured_amount)
  if apply_result == payment_ledger_service.APPLY_RESULT_NOT_APPLICABLE:
    # PayPal has taken the money but the ledger would not book it.
    raise PaymentStateError(
      f"Captured {captured_amount} for payment {payment['id']} (PayPal order {callback.token}) "
      f"was not applied; reconcile manually"
    )

  return CallbackOutcome(
    status=OUTCOME_FINALIZED,
    redirect_url=build_success_url(callback.payment_hash, site_url),
    payment_hash=callback.payment_hash,
  )
