"""
Commerce PayPal Checkout API -- Currency Service

Minor-unit precision per ISO 4217 code, and conversion of Decimal amounts
to the string values PayPal expects ("40.00", "1500", "12.345").

PayPal does not accept fractional amounts for zero-decimal currencies,
so precision here decides both rounding and formatting.
"""

from decimal import Decimal, ROUND_HALF_UP

# Currencies whose minor unit is not 1/100.
_ZERO_DECIMAL_CURRENCIES = frozenset({"HUF", "JPY", "TWD", "KRW", "CLP", "VND", "ISK"})
_THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "KWD", "OMR", "JOD", "TND"})


def get_minor_unit_digits(currency_code):
  """Number of decimal digits for the currency (default 2)."""
  code = (currency_code or "").upper()
  if code in _ZERO_DECIMAL_CURRENCIES:
    return 0
  if code in _THREE_DECIMAL_CURRENCIES:
    return 3
  return 2


def get_minor_unit(currency_code):
  """Smallest representable amount, e.g. Decimal("0.01") for USD, Decimal("1") for JPY."""
  return Decimal(1).scaleb(-get_minor_unit_digits(currency_code))


def to_decimal(value):
  """Convert a DB/JSON value (str, int, float, Decimal) to Decimal without float noise."""
  if isinstance(value, Decimal):
    return value
  return Decimal(str(value))


def quantize_amount(amount, currency_code, rounding=ROUND_HALF_UP):
  """Round an amount to the currency's minor unit."""
  return to_decimal(amount).quantize(get_minor_unit(currency_code), rounding=rounding)


def format_amount(amount, currency_code):
  """Format an amount as a PayPal money value string."""
  return str(quantize_amount(amount, currency_code))
