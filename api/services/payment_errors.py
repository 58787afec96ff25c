"""
Commerce PayPal Checkout API -- Payment error taxonomy

Every error here is contained to a single request. The orchestrator turns
them into a `False` approval link; the callback handler turns them into
the generic failure redirect. Only the logs ever see the detail.
"""


class PaymentIntegrationError(Exception):
  """Base class for all checkout/capture failures."""


class AuthError(PaymentIntegrationError):
  """The client-credentials exchange failed or returned no access token."""


class TransportError(PaymentIntegrationError):
  """Connection failure, timeout, or a response body that is not JSON."""


class CallbackValidationError(PaymentIntegrationError):
  """Inbound return-leg query parameters are missing or malformed."""


class LedgerLookupError(PaymentIntegrationError):
  """No payment exists for the given hash."""


class CaptureIncomplete(PaymentIntegrationError):
  """The capture response status was not exactly COMPLETED."""

  def __init__(self, status):
    super().__init__(f"capture status is {status!r}, expected 'COMPLETED'")
    self.status = status


class PaymentMismatchError(LedgerLookupError):
  """The payment exists but was created for a different PayPal order."""


class PaymentStateError(PaymentIntegrationError):
  """A completed capture could not be applied to the payment's current state."""
