"""
Commerce PayPal Checkout API -- PayPal Credential Cache

Holds the OAuth2 bearer token for one run (one approval-link request or
one callback). The first authenticated call performs the client-credentials
exchange; later calls in the same run reuse the token.

Nothing is shared between runs: each PayPalPaymentProvider owns its own
cache, so concurrent requests never see each other's token.
"""

import asyncio
import logging

from services.payment_errors import AuthError

logger = logging.getLogger("commerce.paypal.credentials")


class PayPalCredentialCache:
  """Lazily-populated, run-scoped PayPal access token."""

  def __init__(self, client_id, client_secret):
    self.client_id = client_id
    self.client_secret = client_secret
    self._access_token = None
    self._lock = asyncio.Lock()

  @property
  def has_token(self):
    return self._access_token is not None

  async def get_token(self, transport):
    """
    Return the cached token, exchanging client credentials on first use.

    Raises AuthError if the exchange fails or yields no access_token.
    TransportError from the exchange is re-raised as AuthError so callers
    see a single failure type for "could not authenticate".
    """
    if self._access_token is not None:
      return self._access_token

    async with self._lock:
      # Another task may have populated it while we waited.
      if self._access_token is not None:
        return self._access_token

      if not self.client_id or not self.client_secret:
        raise AuthError("PayPal client credentials are not configured")

      try:
        token_data = await transport.request_access_token(self.client_id, self.client_secret)
      except AuthError:
        raise
      except Exception as exchange_error:
        raise AuthError(f"PayPal token exchange failed: {exchange_error}") from exchange_error

      access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
      if not access_token or not isinstance(access_token, str):
        raise AuthError("PayPal token response has no access_token")

      self._access_token = access_token
      logger.info("PayPal OAuth2 token obtained (expires_in=%s)", token_data.get("expires_in"))
      return self._access_token

  def invalidate(self):
    """Forget the token; the next get_token() renews it."""
    self._access_token = None
