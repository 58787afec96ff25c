"""
Commerce PayPal Checkout API -- PayPal Checkout Router

Endpoints for paying a shop order with PayPal.

  Start checkout:
    POST /commerce/paypal/orders/{order_id}/payment-link
    Creates a payment for what is due on the order, creates the PayPal
    order, and returns the PayPal approval URL to redirect the payer to.

  Return leg (public, unauthenticated -- PayPal redirects the payer here):
    GET /commerce/paypal/payment-process?token=...&paymentHash=...
    Captures the PayPal order and books it. Redirects to the success or
    the failure page.

  Result pages:
    GET /commerce/paypal/payment-success?paymentHash=...
    GET /commerce/paypal/payment-failed   (also PayPal's cancel_url)
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from services import (
  checkout_orchestrator,
  currency_service,
  payment_callback_handler,
  payment_ledger_service,
  translation_service,
)
from services.payment_errors import CallbackValidationError
from services.paypal_payment_provider import get_paypal_payment_provider
import config

logger = logging.getLogger("commerce.paypal_checkout")

router = APIRouter(prefix="/commerce/paypal", tags=["paypal-checkout"])


def _error_response(http_status_code, error_code, error_message):
  """Build a standard error envelope."""
  return JSONResponse(
    status_code=http_status_code,
    content={
      "ok": False,
      "data": None,
      "error": {"code": error_code, "message": error_message},
    },
  )


def _success_response(data, http_status_code=200):
  """Build a standard success envelope."""
  return JSONResponse(
    status_code=http_status_code,
    content={"ok": True, "data": data, "error": None},
  )


# =========================================================================
# POST /commerce/paypal/orders/{order_id}/payment-link
# =========================================================================

@router.post("/orders/{order_id}/payment-link")
async def create_payment_link(order_id: int, provider=Depends(get_paypal_payment_provider)):
  """
  Start a PayPal checkout for an order.

  Response:
    {
      "ok": true,
      "data": {"order_id": 42, "payment_url": "https://www.paypal.com/checkoutnow?token=..."}
    }

  Any failure (PayPal down, bad credentials, order already paid, ...) is
  reported as the same PAYMENT_INITIATION_FAILED error.
  """
  if not provider.settings.has_client_credentials:
    return _error_response(
      503, "PAYMENT_NOT_CONFIGURED",
      translation_service.render_message("paypal.error.empty_client_credentials"),
    )

  approval_url = await checkout_orchestrator.create_approval_link(
    order_id, provider, vat_code=provider.settings.vat_code,
  )

  if not approval_url:
    return _error_response(
      502, "PAYMENT_INITIATION_FAILED",
      "Could not start the payment. Please try again in a moment.",
    )

  return _success_response({"order_id": order_id, "payment_url": approval_url})


# =========================================================================
# GET /commerce/paypal/payment-process  (PayPal return_url)
# =========================================================================

@router.get("/payment-process")
async def process_paypal_return(request: Request, provider=Depends(get_paypal_payment_provider)):
  """
  Payer is back from PayPal. Capture and book the payment.

  Always answers with a redirect: success page on a completed capture,
  failure page for everything else.
  """
  outcome = await payment_callback_handler.handle_payment_callback(
    request.query_params,
    provider,
    debug=provider.settings.debug,
  )
  return RedirectResponse(url=outcome.redirect_url, status_code=302)


# =========================================================================
# Result pages
# =========================================================================

@router.get("/payment-success")
async def show_payment_success(request: Request):
  """Thank-you page. Shows the booked amount when the hash is known."""
  payment = None
  raw_hash = payment_callback_handler.get_request_payment_hash(request.query_params)
  if raw_hash is not None:
    try:
      payment_hash = payment_callback_handler.validate_payment_hash(raw_hash)
      payment = payment_ledger_service.get_payment_by_hash(payment_hash)
    except CallbackValidationError:
      payment = None
    except Exception as lookup_error:
      logger.error("Success page payment lookup failed: %s", lookup_error)
      payment = None

  if payment is None or payment.get("status") != payment_ledger_service.PAYMENT_STATUS_COMPLETED:
    payment = None

  return HTMLResponse(content=_render_success_page(payment))


@router.get("/payment-failed")
async def show_payment_failed():
  """Generic failure page. Deliberately says nothing about why."""
  return HTMLResponse(content=_render_failed_page())


# =========================================================================
# HTML Templates
# =========================================================================

def _html_escape(text):
  """Escape HTML special characters."""
  if not text:
    return ""
  return (
    str(text)
    .replace("&", "&amp;")
    .replace("<", "&lt;")
    .replace(">", "&gt;")
    .replace('"', "&quot;")
    .replace("'", "&#x27;")
  )


def _base_page_head():
  """Common HTML head for all payment pages."""
  return f"""<!DOCTYPE html>
<html lang="{_html_escape(config.SITE_LANGUAGE)}">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{_html_escape(config.SITE_NAME)} - Payment</title>
  <style>
    * {{ box-sizing: border-box; margin: 0; padding: 0; }}
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
      background: #f5f7fa;
      color: #333;
      min-height: 100vh;
      display: flex;
      justify-content: center;
      align-items: flex-start;
      padding: 40px 20px;
    }}
    .card {{
      background: white;
      border-radius: 12px;
      box-shadow: 0 2px 12px rgba(0,0,0,0.08);
      max-width: 520px;
      width: 100%;
      padding: 40px;
    }}
    h1 {{ font-size: 22px; margin-bottom: 16px; text-align: center; }}
    p {{ line-height: 1.6; margin-bottom: 12px; text-align: center; }}
    .success-icon {{ font-size: 48px; text-align: center; margin-bottom: 20px; color: #27ae60; }}
    .error-icon {{ font-size: 48px; text-align: center; margin-bottom: 20px; color: #c0392b; }}
  </style>
</head>
<body>
<div class="card">
"""


def _base_page_footer():
  """Common HTML footer for all payment pages."""
  return f"""
  <p><a href="{_html_escape(config.SITE_URL)}">{_html_escape(config.SITE_NAME)}</a></p>
</div>
</body>
</html>"""


def _render_success_page(payment=None):
  """Render the payment success page."""
  details = ""
  if payment:
    amount = payment.get("captured_amount") or payment.get("amount")
    currency_code = payment.get("currency") or ""
    details = f"""
  <p>Order <strong>#{_html_escape(payment.get("order_id"))}</strong>:
  {_html_escape(currency_service.format_amount(amount, currency_code))} {_html_escape(currency_code)}</p>
"""
  return f"""{_base_page_head()}
  <div class="success-icon">&#10003;</div>
  <h1>{_html_escape(translation_service.render_message("paypal.page.success_title"))}</h1>
  <p>{_html_escape(translation_service.render_message("paypal.page.success_text"))}</p>
  {details}
{_base_page_footer()}"""


def _render_failed_page():
  """Render the payment failed page."""
  return f"""{_base_page_head()}
  <div class="error-icon">&#9888;</div>
  <h1>{_html_escape(translation_service.render_message("paypal.page.failed_title"))}</h1>
  <p>{_html_escape(translation_service.render_message("paypal.page.failed_text"))}</p>
{_base_page_footer()}"""
