"""Route group exports."""

from . import carts, dispatch, health, orders, store

__all__ = ["carts", "orders", "dispatch", "store", "health"]
