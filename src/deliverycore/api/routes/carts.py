"""Cart endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import DeliveryCoreError
from ...models.domain import Cart, Coordinate
from ...schemas.carts import AddCartItemRequest, CartModel, CartSummaryModel, SetQuantityRequest
from ...schemas.orders import CheckoutRequest, CheckoutResponse, OrderModel
from ..dependencies import Services, get_services
from ..errors import to_http_exception

router = APIRouter(prefix="/carts", tags=["carts"])


def _current(services: Services, user_id: str) -> CartModel:
    return CartModel.from_domain(services.carts.local(user_id) or Cart(user_id=user_id))


@router.get("/{user_id}", response_model=CartModel)
async def get_cart(user_id: str, services: Services = Depends(get_services)) -> CartModel:
    try:
        cart = await services.carts.load(user_id)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return CartModel.from_domain(cart)


@router.post("/{user_id}/items", response_model=CartModel, status_code=status.HTTP_201_CREATED)
async def add_item(
    user_id: str,
    payload: AddCartItemRequest,
    services: Services = Depends(get_services),
) -> CartModel:
    try:
        await services.carts.add_item(
            user_id,
            product_id=payload.product_id,
            name=payload.name,
            unit_price=payload.price,
            quantity=payload.quantity,
            image_url=payload.image_url,
            category=payload.category,
        )
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logging.exception(f"Error adding to cart: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to add item to cart: {str(exc)}",
        ) from exc
    return _current(services, user_id)


@router.patch("/{user_id}/items/{line_id}", response_model=CartModel)
async def set_quantity(
    user_id: str,
    line_id: str,
    payload: SetQuantityRequest,
    services: Services = Depends(get_services),
) -> CartModel:
    try:
        cart = await services.carts.set_quantity(user_id, line_id, payload.quantity)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return CartModel.from_domain(cart)


@router.delete("/{user_id}/items/{line_id}", response_model=CartModel)
async def remove_item(user_id: str, line_id: str, services: Services = Depends(get_services)) -> CartModel:
    try:
        cart = await services.carts.remove_item(user_id, line_id)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return CartModel.from_domain(cart)


@router.get("/{user_id}/summary", response_model=CartSummaryModel)
async def cart_summary(
    user_id: str,
    lat: float | None = Query(default=None, ge=-90, le=90, description="Drop-off latitude"),
    lng: float | None = Query(default=None, ge=-180, le=180, description="Drop-off longitude"),
    services: Services = Depends(get_services),
) -> CartSummaryModel:
    dropoff = Coordinate(lat, lng) if lat is not None and lng is not None else Coordinate.unresolved()
    try:
        summary = await services.carts.summary(user_id, dropoff)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return CartSummaryModel.from_domain(summary)


@router.post("/{user_id}/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    user_id: str,
    payload: CheckoutRequest,
    services: Services = Depends(get_services),
) -> CheckoutResponse:
    try:
        placed = await services.checkout.place_order(
            user_id,
            payload.customer.to_domain(),
            payment_method=payload.payment_method,
            delivery_note=payload.delivery_note,
        )
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logging.exception(f"Error placing order: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to place order: {str(exc)}",
        ) from exc
    return CheckoutResponse(
        order=OrderModel.from_domain(placed.order),
        cart_cleared=placed.cart_cleared,
        distance_km=placed.fee.distance_km,
    )
