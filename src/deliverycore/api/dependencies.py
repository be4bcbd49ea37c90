"""Service wiring shared by the route handlers."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from ..config import settings
from ..db.supabase import get_supabase_client
from ..persistence.agents import AgentRepository
from ..persistence.store import DocumentStore, InMemoryDocumentStore
from ..services.cart.synchronizer import CartSynchronizer
from ..services.dispatch.workflow import DispatchWorkflow
from ..services.geocoding import GeocodingClient
from ..services.location import StoreLocationProvider
from ..services.orders.checkout import CheckoutService
from ..services.orders.lifecycle import OrderLifecycle
from ..services.pricing.fees import DeliveryFeeCalculator


@dataclass(slots=True)
class Services:
    store: DocumentStore
    fees: DeliveryFeeCalculator
    store_location: StoreLocationProvider
    carts: CartSynchronizer
    orders: OrderLifecycle
    agents: AgentRepository
    checkout: CheckoutService
    dispatch: DispatchWorkflow
    geocoder: GeocodingClient


def build_services(store: DocumentStore, *, geocoder: GeocodingClient | None = None) -> Services:
    fees = DeliveryFeeCalculator()
    store_location = StoreLocationProvider(store)
    carts = CartSynchronizer(store, location_provider=store_location, fee_calculator=fees)
    orders = OrderLifecycle(store)
    agents = AgentRepository(store)
    return Services(
        store=store,
        fees=fees,
        store_location=store_location,
        carts=carts,
        orders=orders,
        agents=agents,
        checkout=CheckoutService(carts, orders, location_provider=store_location, fee_calculator=fees),
        dispatch=DispatchWorkflow(orders, agents, location_provider=store_location, fee_calculator=fees),
        geocoder=geocoder or GeocodingClient(),
    )


async def create_store() -> DocumentStore:
    if settings.store_backend == "supabase":
        from ..persistence.supabase_store import SupabaseDocumentStore

        client = await get_supabase_client()
        if client is None:
            raise RuntimeError(
                "Supabase store selected but not configured. Set DELIVERY_SUPABASE_URL and DELIVERY_SUPABASE_KEY."
            )
        return SupabaseDocumentStore(client)
    return InMemoryDocumentStore()


def get_services(request: Request) -> Services:
    return request.app.state.services
