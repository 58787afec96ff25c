"""
Commerce PayPal Checkout API -- Translation Service

Language-keyed message templates. Placeholders use str.format syntax;
missing placeholders render as empty strings instead of raising.
"""

import logging

import config

logger = logging.getLogger("commerce.translation")

_MESSAGES = {
  "en": {
    "payments.payment_description": "Payment for order #{order_id} on {site_name}",
    "paypal.error.empty_client_credentials": "PayPal client ID and secret are not configured",
    "paypal.page.success_title": "Payment Complete",
    "paypal.page.success_text": "Thank you! Your payment has been received.",
    "paypal.page.failed_title": "Payment Failed",
    "paypal.page.failed_text": "We could not confirm your payment. Please try again, or contact us with your order number if you believe you were charged.",
  },
  "ru": {
    "payments.payment_description": "Оплата заказа #{order_id} на сайте {site_name}",
    "paypal.error.empty_client_credentials": "Не заданы client ID и secret для PayPal",
    "paypal.page.success_title": "Оплата завершена",
    "paypal.page.success_text": "Спасибо! Ваш платёж получен.",
    "paypal.page.failed_title": "Оплата не прошла",
    "paypal.page.failed_text": "Не удалось подтвердить оплату. Попробуйте ещё раз или свяжитесь с нами, указав номер заказа, если деньги были списаны.",
  },
}

_FALLBACK_LANGUAGE = "en"


class _BlankMissing(dict):
  def __missing__(self, key):
    return ""


def get_message(key, language=None):
  """Return the raw template for a key, falling back to English."""
  language = language or config.SITE_LANGUAGE
  messages = _MESSAGES.get(language) or _MESSAGES[_FALLBACK_LANGUAGE]
  if key in messages:
    return messages[key]
  logger.warning("Missing translation: key=%s, language=%s", key, language)
  return _MESSAGES[_FALLBACK_LANGUAGE].get(key, key)


def render_message(key, values=None, language=None):
  """Render a template with placeholders substituted."""
  template = get_message(key, language)
  return template.format_map(_BlankMissing(values or {}))
