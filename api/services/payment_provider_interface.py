"""
Commerce PayPal Checkout API -- Payment Provider Interface

Abstract base class for payment providers. The checkout orchestrator and
the callback handler only talk to this interface, so tests can hand them
a fake provider.
"""

from abc import ABC, abstractmethod


class PaymentProviderInterface(ABC):
  """Abstract base for payment providers."""

  @abstractmethod
  async def create_checkout_order(self, order_request):
    """
    Create a one-time payment order for buyer-approved checkout.

    Args:
      order_request: The provider-specific order body (dict), as built
        by the order request builder.

    Returns: dict with at minimum:
      {
        "provider_order_id": "...",   # provider's order ID, or None
        "approval_url": "...",        # URL for buyer to approve, or None
        "links": [...],               # raw links from the provider
      }

    Raises: AuthError, TransportError.
    """
    ...

  @abstractmethod
  async def capture_order(self, provider_order_id):
    """
    Capture (finalize) a previously approved order.

    Args:
      provider_order_id: The provider's order ID (already validated).

    Returns: dict with at minimum:
      {
        "status": "COMPLETED",          # order status after capture
        "captured_amount": Decimal(..), # sum of all captures
        "capture_ids": ["..."],
      }

    Raises: AuthError, TransportError.
    """
    ...
