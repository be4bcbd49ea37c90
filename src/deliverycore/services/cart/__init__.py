"""Cart synchronization exports."""

from .synchronizer import CartSummary, CartSynchronizer, CheckoutResult, make_line_id

__all__ = ["CartSummary", "CartSynchronizer", "CheckoutResult", "make_line_id"]
