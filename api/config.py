"""
Commerce PayPal Checkout API -- Configuration

All configuration values with sensible defaults.
Override via environment variables or the systemd unit's Environment= lines.
"""

import os


def _env_flag(name, default="0"):
  """Read a boolean-ish environment variable ("1", "true", "yes", "on")."""
  return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- MySQL Database ---
MYSQL_HOST = os.environ.get("COMMERCE_DB_HOST", "127.0.0.1")
MYSQL_PORT = int(os.environ.get("COMMERCE_DB_PORT", "3306"))
MYSQL_USER = os.environ.get("COMMERCE_DB_USER", "commerce")
# SECURITY: No hardcoded default -- must be set via environment variable or systemd unit
MYSQL_PASSWORD = os.environ.get("COMMERCE_DB_PASSWORD", "")
MYSQL_DATABASE = os.environ.get("COMMERCE_DB_NAME", "commerce")
MYSQL_POOL_SIZE = int(os.environ.get("COMMERCE_DB_POOL_SIZE", "5"))

# --- API Settings ---
API_VERSION = "0.3.0"
API_HOST = os.environ.get("COMMERCE_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("COMMERCE_API_PORT", "8190"))

# --- Site context (descriptions, return/cancel URLs) ---
# SITE_URL must end with a slash; paths are appended directly.
SITE_NAME = os.environ.get("COMMERCE_SITE_NAME", "Shop")
SITE_URL = os.environ.get("COMMERCE_SITE_URL", "http://127.0.0.1:8190/")
SITE_LANGUAGE = os.environ.get("COMMERCE_SITE_LANGUAGE", "en")

# --- PayPal REST API ---
# SECURITY: No hardcoded defaults -- must be set via environment variable or systemd unit
PAYPAL_CLIENT_ID = os.environ.get("COMMERCE_PAYPAL_CLIENT_ID", "")
PAYPAL_CLIENT_SECRET = os.environ.get("COMMERCE_PAYPAL_CLIENT_SECRET", "")

# debug=on selects the sandbox AND turns on verbose request/response logging.
PAYPAL_DEBUG = _env_flag("COMMERCE_PAYPAL_DEBUG")
PAYPAL_LIVE_API_BASE_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_API_BASE_URL = "https://api-m.sandbox.paypal.com"

# Percentage string ("20", "7.5"); empty disables per-item tax rates.
PAYPAL_VAT_CODE = os.environ.get("COMMERCE_PAYPAL_VAT_CODE", "")

PAYPAL_HTTP_TIMEOUT_SECONDS = float(os.environ.get("COMMERCE_PAYPAL_HTTP_TIMEOUT", "30"))

# PayPal rejects item names longer than this (counted in characters).
PAYPAL_ITEM_NAME_MAX_LENGTH = 127

# --- Return-leg paths (relative to SITE_URL) ---
PAYMENT_PROCESS_PATH = "commerce/paypal/payment-process"
PAYMENT_SUCCESS_PATH = "commerce/paypal/payment-success"
PAYMENT_FAILED_PATH = "commerce/paypal/payment-failed"
