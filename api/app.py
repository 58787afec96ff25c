"""
Commerce PayPal Checkout API

Pays shop orders with PayPal: creates PayPal orders for what is due on an
order, and captures them when the payer returns.
Port 8190 -- see config.API_PORT.

Endpoints:
  /api/health                                     -- health check
  /commerce/paypal/orders/{order_id}/payment-link -- start checkout
  /commerce/paypal/payment-process                -- PayPal return_url
  /commerce/paypal/payment-success                -- thank-you page
  /commerce/paypal/payment-failed                 -- failure / cancel page
  /api/docs                                       -- Swagger UI documentation

Run with:
    uvicorn app:app --host 127.0.0.1 --port 8190
"""

import datetime
import logging

from fastapi import FastAPI
from pydantic import BaseModel

import config
from routers import paypal_checkout

# --- Logging ---
logging.basicConfig(
  level=logging.INFO,
  format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("commerce.api")

# --- FastAPI app ---
app = FastAPI(
  title="Commerce PayPal Checkout API",
  description="PayPal order creation and capture for shop orders.",
  version=config.API_VERSION,
  docs_url="/api/docs",
  redoc_url="/api/redoc",
  openapi_url="/api/openapi.json",
)

# --- Register routers ---
app.include_router(paypal_checkout.router)


# --- Health ---

class HealthResponse(BaseModel):
  status: str
  service: str
  version: str
  timestamp: str
  database: str
  paypal_mode: str


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
  """Health check endpoint for monitoring and load balancers."""
  db_status = "unknown"
  try:
    import database
    row = database.execute_query_returning_one_row("SELECT 1 AS alive")
    if row and row.get("alive") == 1:
      db_status = "connected"
    else:
      db_status = "error"
  except Exception as db_error:
    db_status = f"error: {db_error}"

  return HealthResponse(
    status="healthy",
    service="commerce-paypal-checkout",
    version=config.API_VERSION,
    timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
    database=db_status,
    paypal_mode="sandbox" if config.PAYPAL_DEBUG else "live",
  )


if __name__ == "__main__":
  import uvicorn
  logger.info("Starting Commerce PayPal Checkout API on %s:%d", config.API_HOST, config.API_PORT)
  uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
