"""HTTP client for the geocoding/places service."""

from __future__ import annotations

import logging

import httpx

from ..config import settings
from ..errors import GeocodingError
from ..models.domain import Coordinate, PickupLocation

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Resolves free text to addresses with coordinates (Nominatim search API).

    Failures are surfaced as :class:`GeocodingError`; there is no retry.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.geocoding_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.geocoding_timeout_seconds
        self.user_agent = user_agent or settings.geocoding_user_agent
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    async def search(self, text: str, limit: int = 5) -> list[PickupLocation]:
        query = text.strip()
        if not query:
            raise GeocodingError("A search text is required.")

        params = {"q": query, "format": "jsonv2", "limit": str(limit)}
        async with self._get_client() as client:
            try:
                response = await client.get("/search", params=params)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as exc:
                raise GeocodingError(
                    f"Geocoding service returned {exc.response.status_code} for '{query}'"
                ) from exc
            except (httpx.HTTPError, ValueError) as exc:
                raise GeocodingError(f"Geocoding request for '{query}' failed: {exc}") from exc

        if not isinstance(payload, list):
            raise GeocodingError("Geocoding response was not a list of places.")

        results = []
        for place in payload:
            try:
                position = Coordinate(float(place["lat"]), float(place["lon"]))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping geocoding result without coordinates: {place!r}")
                continue
            results.append(PickupLocation(address=str(place.get("display_name") or query), position=position))
        return results

    async def resolve(self, text: str) -> PickupLocation:
        results = await self.search(text, limit=1)
        if not results:
            raise GeocodingError(f"No location found for '{text.strip()}'")
        return results[0]
