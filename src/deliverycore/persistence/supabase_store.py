"""Supabase backed document store.

Each collection is a table with ``id text primary key`` and a ``data jsonb``
column holding the document; see ``db/supabase.py`` for the DDL.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Mapping, Optional

from supabase import AsyncClient

from ..errors import RemoteStoreError
from ..models.domain import utc_now
from .store import ChangeCallback, Document, Subscription, apply_patch, deliver

logger = logging.getLogger(__name__)


class SupabaseDocumentStore:
    def __init__(self, client: AsyncClient, *, schema: str = "public") -> None:
        self.client = client
        self.schema = schema
        self._tasks: set[asyncio.Task] = set()

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            response = await (
                self.client.table(collection).select("id, data").eq("id", doc_id).limit(1).execute()
            )
        except Exception as exc:
            raise RemoteStoreError(f"Failed to read {collection}/{doc_id}: {exc}") from exc
        rows = response.data or []
        if not rows:
            return None
        return rows[0].get("data") or {}

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        row = {"id": doc_id, "data": apply_patch({}, data), "updated_at": utc_now().isoformat()}
        try:
            await self.client.table(collection).upsert(row).execute()
        except Exception as exc:
            raise RemoteStoreError(f"Failed to write {collection}/{doc_id}: {exc}") from exc

    async def update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> None:
        # jsonb merges happen client side, so concurrent patches are last-write-wins
        current = await self.get(collection, doc_id)
        if current is None:
            raise RemoteStoreError(f"No document to update at {collection}/{doc_id}")
        merged = apply_patch(current, patch)
        try:
            await (
                self.client.table(collection)
                .update({"data": merged, "updated_at": utc_now().isoformat()})
                .eq("id", doc_id)
                .execute()
            )
        except Exception as exc:
            raise RemoteStoreError(f"Failed to update {collection}/{doc_id}: {exc}") from exc

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self.client.table(collection).delete().eq("id", doc_id).execute()
        except Exception as exc:
            raise RemoteStoreError(f"Failed to delete {collection}/{doc_id}: {exc}") from exc

    async def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        await self.set(collection, doc_id, data)
        return doc_id

    async def query(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[tuple[str, Document]]:
        request = self.client.table(collection).select("id, data")
        for key, value in (filters or {}).items():
            if isinstance(value, tuple):
                request = request.in_(f"data->>{key}", [str(item) for item in value])
            else:
                request = request.eq(f"data->>{key}", str(value))
        if order_by:
            request = request.order(f"data->>{order_by}", desc=descending)
        try:
            response = await request.execute()
        except Exception as exc:
            raise RemoteStoreError(f"Failed to query {collection}: {exc}") from exc
        return [(row["id"], row.get("data") or {}) for row in (response.data or [])]

    async def on_change(self, collection: str, doc_id: str, callback: ChangeCallback) -> Subscription:
        """Subscribe to a single document through a realtime channel.

        Change payloads are only used as a trigger; every notification re-reads the
        row so the callback always receives the stored document (or None once deleted).
        """

        loop = asyncio.get_running_loop()
        active = True

        async def refresh() -> None:
            if not active:
                return
            try:
                document = await self.get(collection, doc_id)
            except RemoteStoreError as exc:
                logger.warning(f"Realtime refresh of {collection}/{doc_id} failed: {exc}")
                return
            if active:
                await deliver(callback, document)

        def on_postgres_change(payload: dict) -> None:
            task = loop.create_task(refresh())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        channel = self.client.channel(f"{collection}:{doc_id}")
        try:
            await channel.on_postgres_changes(
                "*",
                schema=self.schema,
                table=collection,
                filter=f"id=eq.{doc_id}",
                callback=on_postgres_change,
            ).subscribe()
        except Exception as exc:
            raise RemoteStoreError(f"Failed to subscribe to {collection}/{doc_id}: {exc}") from exc

        async def release() -> None:
            nonlocal active
            active = False
            try:
                await self.client.remove_channel(channel)
            except Exception as exc:
                logger.warning(f"Failed to remove realtime channel for {collection}/{doc_id}: {exc}")

        await refresh()
        return Subscription(release)
