"""Exception hierarchy shared by the dispatch, cart and order services."""

from __future__ import annotations


class DeliveryCoreError(Exception):
    """Base class for errors raised by the delivery core."""


class RemoteStoreError(DeliveryCoreError):
    """A read, write or subscription against the document store failed or timed out."""


class CartBusyError(DeliveryCoreError):
    """Another mutation is still in flight for the same cart."""

    def __init__(self, cart_id: str):
        super().__init__(f"Cart '{cart_id}' has a pending update; try again once it completes.")
        self.cart_id = cart_id


class CartItemNotFoundError(DeliveryCoreError, LookupError):
    def __init__(self, cart_id: str, line_id: str):
        super().__init__(f"Line '{line_id}' not found in cart '{cart_id}'.")
        self.cart_id = cart_id
        self.line_id = line_id


class EmptyCartError(DeliveryCoreError, ValueError):
    """Checkout was requested for a cart without any lines."""


class OrderNotFoundError(DeliveryCoreError, LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"Order '{order_id}' not found.")
        self.order_id = order_id


class InvalidTransitionError(DeliveryCoreError, ValueError):
    """Requested status change is not permitted from the order's current status."""

    def __init__(self, order_id: str, current: str, requested: str):
        super().__init__(
            f"Order '{order_id}' cannot move from '{current}' to '{requested}'."
        )
        self.order_id = order_id
        self.current = current
        self.requested = requested


class GeocodingError(DeliveryCoreError):
    """The geocoding service failed or returned no usable match."""


class PickupUnresolvedError(DeliveryCoreError, ValueError):
    """Dispatch needs a resolved pickup location and none was supplied or configured."""


class AgentUnavailableError(DeliveryCoreError, LookupError):
    """The chosen agent is not among the eligible candidates for the order."""

    def __init__(self, agent_id: str, order_id: str):
        super().__init__(f"Agent '{agent_id}' is not available for order '{order_id}'.")
        self.agent_id = agent_id
        self.order_id = order_id
