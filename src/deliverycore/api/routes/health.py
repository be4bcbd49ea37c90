"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...config import settings
from ...errors import RemoteStoreError
from ..dependencies import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/store", status_code=status.HTTP_200_OK)
async def health_store(services: Services = Depends(get_services)) -> dict:
    """Check that the document store answers a read."""
    try:
        await services.store.get(settings.settings_collection, settings.store_location_document)
    except RemoteStoreError as exc:
        return {"backend": settings.store_backend, "healthy": False, "error": str(exc)}
    return {"backend": settings.store_backend, "healthy": True}
