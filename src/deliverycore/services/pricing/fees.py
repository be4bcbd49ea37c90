"""Distance based delivery fee calculation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import distance_km

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class FeeQuote:
    """Fee for a pickup/drop-off pair.

    ``determinable`` is False when either side is unresolved (or the distance is
    not finite); ``amount`` is then zero and must not be shown as free delivery.
    """

    amount: Decimal
    distance_km: Optional[float]
    rate_per_km: Decimal
    currency: str
    determinable: bool


def fee_for_distance(distance: float, rate_per_km: Decimal, places: int = 2) -> Decimal:
    """Linear fee for a distance in kilometres, rounded half-up to ``places``."""

    exponent = Decimal(1).scaleb(-places)
    return (Decimal(repr(distance)) * rate_per_km).quantize(exponent, rounding=ROUND_HALF_UP)


class DeliveryFeeCalculator:
    def __init__(
        self,
        rate_per_km: Decimal | None = None,
        currency: str | None = None,
        places: int | None = None,
    ) -> None:
        rate = rate_per_km if rate_per_km is not None else settings.delivery_rate_per_km
        rate = Decimal(str(rate))
        if rate < 0:
            raise ValueError("rate_per_km must be >= 0")
        self.rate_per_km = rate
        self.currency = currency or settings.currency
        self.places = places if places is not None else settings.fee_decimal_places

    def fee(self, pickup: Coordinate, dropoff: Coordinate, rate_per_km: Decimal | None = None) -> Decimal:
        """Raw ``distance * rate`` with no resolution checks."""

        rate = self.rate_per_km if rate_per_km is None else Decimal(str(rate_per_km))
        distance = distance_km(pickup, dropoff)
        if not math.isfinite(distance):
            return ZERO
        return fee_for_distance(distance, rate, self.places)

    def quote(self, pickup: Coordinate, dropoff: Coordinate) -> FeeQuote:
        if not (pickup.is_usable and dropoff.is_usable):
            logger.warning("Delivery fee not determinable: pickup or drop-off location is unresolved")
            return FeeQuote(
                amount=ZERO,
                distance_km=None,
                rate_per_km=self.rate_per_km,
                currency=self.currency,
                determinable=False,
            )
        distance = distance_km(pickup, dropoff)
        if not math.isfinite(distance):
            return FeeQuote(ZERO, None, self.rate_per_km, self.currency, determinable=False)
        return FeeQuote(
            amount=fee_for_distance(distance, self.rate_per_km, self.places),
            distance_km=distance,
            rate_per_km=self.rate_per_km,
            currency=self.currency,
            determinable=True,
        )
