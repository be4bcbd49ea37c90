"""Shared request/response pieces."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinate, PickupLocation


class PositionModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)

    @classmethod
    def from_domain(cls, coordinate: Coordinate | None) -> Optional["PositionModel"]:
        if coordinate is None or not coordinate.is_usable:
            return None
        return cls(lat=coordinate.latitude, lng=coordinate.longitude)


def position_to_domain(position: PositionModel | None) -> Coordinate:
    return position.to_domain() if position is not None else Coordinate.unresolved()


class PickupLocationModel(BaseModel):
    address: str
    position: Optional[PositionModel] = Field(
        default=None, description="Omit when the address has not been geocoded yet."
    )

    def to_domain(self) -> PickupLocation:
        return PickupLocation(address=self.address, position=position_to_domain(self.position))

    @classmethod
    def from_domain(cls, location: PickupLocation) -> "PickupLocationModel":
        return cls(address=location.address, position=PositionModel.from_domain(location.position))
