"""Order lifecycle and checkout exports."""

from .checkout import CheckoutService, PlacedOrder
from .lifecycle import ALLOWED_TRANSITIONS, OrderLifecycle, build_order, can_transition

__all__ = [
    "CheckoutService",
    "PlacedOrder",
    "ALLOWED_TRANSITIONS",
    "OrderLifecycle",
    "build_order",
    "can_transition",
]
