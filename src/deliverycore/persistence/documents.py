"""Conversion between domain objects and stored documents.

Field names follow the documents the mobile clients and report exports already
read (camelCase, ``position.{lat,lng}``); money is stored as decimal strings and
timestamps as ISO-8601 UTC strings.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from ..models.domain import (
    Cart,
    CartLineItem,
    Coordinate,
    CustomerInfo,
    DeliveryAgent,
    DeliveryAssignment,
    Order,
    OrderStatus,
    PaymentMethod,
    PickupLocation,
    utc_now,
)


def coordinate_to_document(coordinate: Coordinate | None) -> Optional[dict[str, float]]:
    if coordinate is None or not coordinate.is_usable:
        return None
    return {"lat": coordinate.latitude, "lng": coordinate.longitude}


def coordinate_from_document(value: Any) -> Coordinate:
    """Read ``{lat, lng}`` (or ``{latitude, longitude}``); missing or (0, 0) means unresolved."""

    if not isinstance(value, Mapping):
        return Coordinate.unresolved()
    lat = value.get("lat", value.get("latitude"))
    lng = value.get("lng", value.get("longitude"))
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return Coordinate.unresolved()
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)) or (lat_f == 0.0 and lng_f == 0.0):
        return Coordinate.unresolved()
    return Coordinate(lat_f, lng_f)


def money_to_document(value: Decimal) -> str:
    return str(value)


def money_from_document(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def timestamp_to_document(value: datetime | None) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def timestamp_from_document(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def line_item_to_document(item: CartLineItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "productId": item.product_id,
        "name": item.name,
        "price": money_to_document(item.unit_price),
        "quantity": item.quantity,
        "imageUrl": item.image_url,
        "category": item.category,
        "addedAt": timestamp_to_document(item.added_at),
    }


def line_item_from_document(data: Mapping[str, Any]) -> CartLineItem:
    return CartLineItem(
        id=str(data.get("id", "")),
        product_id=str(data.get("productId", "")),
        name=str(data.get("name", "")),
        unit_price=money_from_document(data.get("price")),
        quantity=int(data.get("quantity") or 1),
        image_url=data.get("imageUrl"),
        category=data.get("category"),
        added_at=timestamp_from_document(data.get("addedAt")) or utc_now(),
    )


def cart_to_document(cart: Cart) -> dict[str, Any]:
    return {
        "userId": cart.user_id,
        "items": [line_item_to_document(item) for item in cart.items],
        "createdAt": timestamp_to_document(cart.created_at),
        "updatedAt": timestamp_to_document(cart.updated_at),
    }


def cart_from_document(user_id: str, data: Mapping[str, Any] | None) -> Cart:
    """Absent documents become an empty cart."""

    if data is None:
        return Cart(user_id=user_id)
    return Cart(
        user_id=str(data.get("userId") or user_id),
        items=[line_item_from_document(item) for item in data.get("items") or []],
        created_at=timestamp_from_document(data.get("createdAt")),
        updated_at=timestamp_from_document(data.get("updatedAt")),
    )


def pickup_to_document(location: PickupLocation) -> dict[str, Any]:
    return {"address": location.address, "position": coordinate_to_document(location.position)}


def pickup_from_document(data: Mapping[str, Any] | None) -> Optional[PickupLocation]:
    if not data:
        return None
    return PickupLocation(
        address=str(data.get("address") or ""),
        position=coordinate_from_document(data.get("position")),
    )


def assignment_to_document(assignment: DeliveryAssignment) -> dict[str, Any]:
    return {
        "driverId": assignment.driver_id,
        "driverName": assignment.driver_name,
        "assignedAt": timestamp_to_document(assignment.assigned_at),
        "pickupLocation": assignment.pickup_location,
        "deliveryLocation": assignment.delivery_location,
    }


def assignment_from_document(data: Mapping[str, Any] | None) -> Optional[DeliveryAssignment]:
    if not data:
        return None
    return DeliveryAssignment(
        driver_id=str(data.get("driverId", "")),
        driver_name=str(data.get("driverName", "")),
        assigned_at=timestamp_from_document(data.get("assignedAt")) or utc_now(),
        pickup_location=str(data.get("pickupLocation", "")),
        delivery_location=str(data.get("deliveryLocation", "")),
    )


def order_to_document(order: Order) -> dict[str, Any]:
    customer = order.customer_info
    document: dict[str, Any] = {
        "userId": order.user_id,
        "items": [line_item_to_document(item) for item in order.items],
        "status": order.status.value,
        "subtotal": money_to_document(order.subtotal),
        "deliveryFee": money_to_document(order.delivery_fee),
        "total": money_to_document(order.total),
        "feeDeterminable": order.fee_determinable,
        "paymentMethod": order.payment_method.value,
        "deliveryNote": order.delivery_note,
        "createdAt": timestamp_to_document(order.created_at),
        "updatedAt": timestamp_to_document(order.updated_at),
        "customerInfo": {
            "name": customer.name,
            "address": customer.address,
            "phone": customer.phone,
            "email": customer.email,
            "position": coordinate_to_document(customer.position),
        },
    }
    if order.assignment is not None:
        document["deliveryPersonnelId"] = order.assignment.driver_id
        document["assignedAt"] = timestamp_to_document(order.assignment.assigned_at)
        document["deliveryAssignment"] = assignment_to_document(order.assignment)
    if order.store_location is not None:
        document["storeLocation"] = pickup_to_document(order.store_location)
    return document


def order_from_document(order_id: str, data: Mapping[str, Any]) -> Order:
    customer = data.get("customerInfo") or {}
    try:
        status = OrderStatus(data.get("status", OrderStatus.PENDING.value))
    except ValueError:
        status = OrderStatus.PENDING
    try:
        payment_method = PaymentMethod(data.get("paymentMethod", PaymentMethod.CASH.value))
    except ValueError:
        payment_method = PaymentMethod.CASH
    return Order(
        id=order_id,
        user_id=str(data.get("userId", "")),
        items=tuple(line_item_from_document(item) for item in data.get("items") or []),
        status=status,
        subtotal=money_from_document(data.get("subtotal")),
        delivery_fee=money_from_document(data.get("deliveryFee")),
        total=money_from_document(data.get("total")),
        customer_info=CustomerInfo(
            name=str(customer.get("name", "")),
            address=str(customer.get("address", "")),
            phone=str(customer.get("phone", "")),
            email=customer.get("email"),
            position=coordinate_from_document(customer.get("position")),
        ),
        created_at=timestamp_from_document(data.get("createdAt")) or utc_now(),
        payment_method=payment_method,
        delivery_note=str(data.get("deliveryNote") or ""),
        fee_determinable=bool(data.get("feeDeterminable", True)),
        updated_at=timestamp_from_document(data.get("updatedAt")),
        assignment=assignment_from_document(data.get("deliveryAssignment")),
        store_location=pickup_from_document(data.get("storeLocation")),
    )


def agent_from_document(agent_id: str, data: Mapping[str, Any]) -> DeliveryAgent:
    try:
        capacity = int(data.get("maxConcurrentOrders") or 0)
    except (TypeError, ValueError):
        capacity = 0
    return DeliveryAgent(
        agent_id=agent_id,
        name=str(data.get("name") or "Delivery Driver"),
        position=coordinate_from_document(data.get("position")),
        max_concurrent_orders=max(capacity, 0),
        phone=data.get("phone"),
        available=bool(data.get("available", True)),
    )


def agent_to_document(agent: DeliveryAgent) -> dict[str, Any]:
    return {
        "name": agent.name,
        "phone": agent.phone,
        "position": coordinate_to_document(agent.position),
        "maxConcurrentOrders": agent.max_concurrent_orders,
        "available": agent.available,
    }
