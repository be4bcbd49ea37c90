"""Store location and place search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ...errors import DeliveryCoreError
from ...schemas.common import PickupLocationModel
from ..dependencies import Services, get_services
from ..errors import to_http_exception

router = APIRouter(prefix="/store", tags=["store"])


class StoreLocationResponse(BaseModel):
    location: PickupLocationModel
    orders_updated: int


@router.get("/location", response_model=PickupLocationModel)
async def get_store_location(services: Services = Depends(get_services)) -> PickupLocationModel:
    try:
        location = await services.store_location.current_location()
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No store location configured")
    return PickupLocationModel.from_domain(location)


@router.put("/location", response_model=StoreLocationResponse)
async def save_store_location(
    payload: PickupLocationModel,
    services: Services = Depends(get_services),
) -> StoreLocationResponse:
    """Save the default pickup point and copy it onto every active order."""
    location = payload.to_domain()
    try:
        await services.store_location.save(location)
    except (DeliveryCoreError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    updated = await services.orders.stamp_store_location(location)
    return StoreLocationResponse(location=PickupLocationModel.from_domain(location), orders_updated=updated)


@router.get("/geocode", response_model=list[PickupLocationModel])
async def geocode(
    q: str = Query(..., min_length=1, description="Free-text address or place name"),
    limit: int = Query(default=5, gt=0, le=20),
    services: Services = Depends(get_services),
) -> list[PickupLocationModel]:
    try:
        places = await services.geocoder.search(q, limit=limit)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return [PickupLocationModel.from_domain(place) for place in places]
