"""
Commerce PayPal Checkout API -- PayPal Transport

Direct HTTP calls to the PayPal REST API via httpx. No SDK.

Two modes:
  send(endpoint, payload)        -- bearer-authenticated JSON POST
  request_access_token(id, key)  -- basic-auth, form-encoded token exchange

HTTP error statuses are NOT raised on send(): PayPal returns a JSON error
body and the caller decides from its fields (no `id`, status not
COMPLETED, ...). Connection problems, timeouts and non-JSON bodies raise
TransportError.

With debug on, every request/response pair is written verbatim to the
`commerce.paypal.debug` logger.
"""

import json
import logging

import httpx

from services.payment_errors import AuthError, TransportError

logger = logging.getLogger("commerce.paypal.transport")
debug_logger = logging.getLogger("commerce.paypal.debug")

TOKEN_ENDPOINT = "v1/oauth2/token"


class PayPalTransport:
  """POSTs to the PayPal API with a bounded timeout."""

  def __init__(self, credentials, api_base_url, debug=False, timeout_seconds=30.0, http_transport=None):
    self.credentials = credentials
    self.api_base_url = api_base_url.rstrip("/")
    self.debug = debug
    self.timeout_seconds = timeout_seconds
    # Injected in tests (httpx.MockTransport); None means real network.
    self._http_transport = http_transport

  def _build_url(self, endpoint):
    return f"{self.api_base_url}/{endpoint.lstrip('/')}"

  def _new_http_client(self):
    return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._http_transport)

  # -----------------------------------------------------------------------
  # Authenticated JSON calls
  # -----------------------------------------------------------------------

  async def send(self, endpoint, payload=None):
    """
    POST to an API endpoint with the run's bearer token.

    Returns the decoded JSON body (dict). Raises AuthError if no token can
    be obtained, TransportError on network failure or undecodable body.
    """
    token = await self.credentials.get_token(self)

    headers = {
      "Content-Type": "application/json",
      "Accept": "application/json",
      "Authorization": f"Bearer {token}",
    }
    body = json.dumps(payload) if payload else None

    return await self._post(self._build_url(endpoint), headers=headers, content=body)

  # -----------------------------------------------------------------------
  # Unauthenticated token exchange
  # -----------------------------------------------------------------------

  async def request_access_token(self, client_id, client_secret):
    """
    Client-credentials exchange. Returns the decoded token response.

    Unlike send(), a non-2xx status is a failure here: raises AuthError.
    """
    headers = {
      "Accept": "application/json",
      "Content-Type": "application/x-www-form-urlencoded",
    }
    response_data, status_code = await self._post(
      self._build_url(TOKEN_ENDPOINT),
      headers=headers,
      data={"grant_type": "client_credentials"},
      auth=(client_id, client_secret),
      with_status=True,
    )
    if not 200 <= status_code < 300:
      raise AuthError(
        f"PayPal token exchange returned HTTP {status_code}: "
        f"{response_data.get('error')}"
      )
    return response_data

  # -----------------------------------------------------------------------
  # Shared POST
  # -----------------------------------------------------------------------

  async def _post(self, url, headers, with_status=False, **request_kwargs):
    response = None
    transport_error = None
    try:
      async with self._new_http_client() as http_client:
        response = await http_client.post(url, headers=headers, **request_kwargs)
    except httpx.HTTPError as http_error:
      transport_error = http_error

    if self.debug:
      self._log_exchange(url, headers, request_kwargs, response, transport_error)

    if transport_error is not None:
      logger.error("PayPal request failed: url=%s, error=%s", url, transport_error)
      raise TransportError(f"PayPal request to {url} failed: {transport_error}") from transport_error

    try:
      response_data = response.json()
    except ValueError as decode_error:
      logger.error(
        "PayPal returned a non-JSON body: url=%s, status=%s", url, response.status_code,
      )
      raise TransportError(f"PayPal response from {url} is not JSON") from decode_error

    if not isinstance(response_data, dict):
      raise TransportError(f"PayPal response from {url} is not a JSON object")

    if with_status:
      return response_data, response.status_code
    return response_data

  def _log_exchange(self, url, headers, request_kwargs, response, transport_error):
    """Verbatim request/response dump. Side effect only."""
    request_body = request_kwargs.get("content") or request_kwargs.get("data")
    debug_logger.info(
      "URL: %s\nHeaders: %s\nRequest data: %s\nResponse status: %s\nResponse data: %s%s",
      url,
      headers,
      request_body,
      response.status_code if response is not None else None,
      response.text if response is not None else None,
      f"\nError: {transport_error}" if transport_error is not None else "",
    )
