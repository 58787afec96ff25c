"""
Commerce PayPal Checkout API -- PayPal Payment Provider

PayPal REST API v2 integration using direct HTTP calls via httpx.

One provider instance == one run (an approval-link request or a callback).
It owns the run's credential cache and transport; nothing is kept at
module level, so concurrent requests never share a token.

debug=on switches to the sandbox and logs every request/response.

Endpoints used:
  POST /v1/oauth2/token                  -- get bearer token
  POST /v2/checkout/orders               -- create order
  POST /v2/checkout/orders/{id}/capture  -- capture payment
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import config
from services.payment_errors import TransportError
from services.payment_provider_interface import PaymentProviderInterface
from services.paypal_credential_cache import PayPalCredentialCache
from services.paypal_transport import PayPalTransport

logger = logging.getLogger("commerce.paypal")


@dataclass(frozen=True)
class PayPalSettings:
  """The payment method's settings, snapshotted for one run."""
  client_id: str
  client_secret: str
  debug: bool = False
  vat_code: str = ""
  timeout_seconds: float = 30.0

  @property
  def api_base_url(self):
    if self.debug:
      return config.PAYPAL_SANDBOX_API_BASE_URL
    return config.PAYPAL_LIVE_API_BASE_URL

  @property
  def has_client_credentials(self):
    return bool(self.client_id) and bool(self.client_secret)

  @classmethod
  def from_config(cls):
    return cls(
      client_id=config.PAYPAL_CLIENT_ID,
      client_secret=config.PAYPAL_CLIENT_SECRET,
      debug=config.PAYPAL_DEBUG,
      vat_code=config.PAYPAL_VAT_CODE,
      timeout_seconds=config.PAYPAL_HTTP_TIMEOUT_SECONDS,
    )


def find_approval_url(links):
  """Return the href of the rel="approve" link, or None."""
  for link in links or []:
    if isinstance(link, dict) and link.get("rel") == "approve" and link.get("href"):
      return link["href"]
  return None


def sum_capture_amounts(capture_data):
  """
  Add up every capture amount in every purchase unit.

  Returns (Decimal total, [capture ids]). Raises TransportError if an
  amount value is not a number.
  """
  total = Decimal(0)
  capture_ids = []
  for purchase_unit in capture_data.get("purchase_units") or []:
    payments = purchase_unit.get("payments") or {}
    for capture in payments.get("captures") or []:
      amount_value = (capture.get("amount") or {}).get("value", "0")
      try:
        total += Decimal(str(amount_value))
      except InvalidOperation as amount_error:
        raise TransportError(f"Capture amount {amount_value!r} is not a number") from amount_error
      if capture.get("id"):
        capture_ids.append(capture["id"])
  return total, capture_ids


class PayPalPaymentProvider(PaymentProviderInterface):
  """PayPal REST API v2 payment provider."""

  def __init__(self, settings=None, http_transport=None):
    self.settings = settings or PayPalSettings.from_config()
    self.credentials = PayPalCredentialCache(self.settings.client_id, self.settings.client_secret)
    self.transport = PayPalTransport(
      credentials=self.credentials,
      api_base_url=self.settings.api_base_url,
      debug=self.settings.debug,
      timeout_seconds=self.settings.timeout_seconds,
      http_transport=http_transport,
    )

  # -----------------------------------------------------------------------
  # Create checkout order
  # -----------------------------------------------------------------------

  async def create_checkout_order(self, order_request):
    """
    Create a PayPal order for buyer-approved checkout.

    The buyer must visit the approval_url to approve the payment, after
    which PayPal redirects them to our payment-process callback.
    """
    order_data = await self.transport.send("v2/checkout/orders", order_request)

    provider_order_id = order_data.get("id") or None
    links = order_data.get("links") or []
    approval_url = find_approval_url(links)

    if provider_order_id and approval_url:
      logger.info("PayPal order created: order_id=%s", provider_order_id)
    else:
      logger.warning(
        "PayPal order creation returned no usable order: id=%s, name=%s, message=%s",
        provider_order_id, order_data.get("name"), order_data.get("message"),
      )

    return {
      "provider_order_id": provider_order_id,
      "approval_url": approval_url,
      "links": links,
      "status": order_data.get("status"),
    }

  # -----------------------------------------------------------------------
  # Capture order
  # -----------------------------------------------------------------------

  async def capture_order(self, provider_order_id):
    """Capture (finalize) a previously approved PayPal order."""
    capture_data = await self.transport.send(f"v2/checkout/orders/{provider_order_id}/capture")

    status = capture_data.get("status")
    captured_amount, capture_ids = (Decimal(0), [])
    if status == "COMPLETED":
      captured_amount, capture_ids = sum_capture_amounts(capture_data)

    logger.info(
      "PayPal capture response: order_id=%s, status=%s, captured=%s, captures=%s",
      provider_order_id, status, captured_amount, capture_ids,
    )

    return {
      "status": status,
      "captured_amount": captured_amount,
      "capture_ids": capture_ids,
    }


def get_paypal_payment_provider():
  """
  Build the provider for one run.

  Used as a FastAPI dependency: every request gets its own instance (and
  with it its own token cache).
  """
  return PayPalPaymentProvider()
