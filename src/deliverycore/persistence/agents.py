"""Read access to the delivery agent pool."""

from __future__ import annotations

from ..config import settings
from ..models.domain import DeliveryAgent
from .documents import agent_from_document, agent_to_document
from .store import DocumentStore


class AgentRepository:
    def __init__(self, store: DocumentStore, *, collection: str | None = None) -> None:
        self.store = store
        self.collection = collection or settings.agents_collection

    async def list_agents(self) -> list[DeliveryAgent]:
        rows = await self.store.query(self.collection)
        return [agent_from_document(agent_id, data) for agent_id, data in rows]

    async def get(self, agent_id: str) -> DeliveryAgent | None:
        data = await self.store.get(self.collection, agent_id)
        return agent_from_document(agent_id, data) if data is not None else None

    async def save(self, agent: DeliveryAgent) -> None:
        """Used for seeding the pool; ranking never writes agents."""

        await self.store.set(self.collection, agent.agent_id, agent_to_document(agent))
