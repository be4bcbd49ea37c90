"""Location providers injected into the dispatch and cart services."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..config import settings
from ..models.domain import PickupLocation
from ..persistence.documents import pickup_from_document, pickup_to_document
from ..persistence.store import DocumentStore

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def current_location(self) -> Optional[PickupLocation]: ...


class StaticLocationProvider:
    """Always reports the same location (or none)."""

    def __init__(self, location: Optional[PickupLocation] = None) -> None:
        self.location = location

    async def current_location(self) -> Optional[PickupLocation]:
        return self.location


class StoreLocationProvider:
    """Default pickup point kept in the store settings document."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str | None = None,
        document_id: str | None = None,
    ) -> None:
        self.store = store
        self.collection = collection or settings.settings_collection
        self.document_id = document_id or settings.store_location_document

    async def current_location(self) -> Optional[PickupLocation]:
        location = pickup_from_document(await self.store.get(self.collection, self.document_id))
        if location is None:
            logger.warning("No store location configured in store settings")
        return location

    async def save(self, location: PickupLocation) -> None:
        if not location.address.strip():
            raise ValueError("Store location requires an address.")
        await self.store.set(self.collection, self.document_id, pickup_to_document(location))
        logger.info(f"Store location set to '{location.address}'")
