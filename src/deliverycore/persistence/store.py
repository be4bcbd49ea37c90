"""Document store contract and the in-memory implementation."""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, Union

from ..errors import RemoteStoreError

logger = logging.getLogger(__name__)

Document = dict[str, Any]
ChangeCallback = Callable[[Optional[Document]], Union[Awaitable[None], None]]


@dataclass(frozen=True, slots=True)
class ArrayUnion:
    """Patch value that appends items to a list field, skipping ones already present."""

    items: tuple[Any, ...]

    def merge(self, existing: Any) -> list[Any]:
        merged = list(existing) if isinstance(existing, list) else []
        for item in self.items:
            if item not in merged:
                merged.append(copy.deepcopy(item))
        return merged


class Subscription:
    """Handle returned by ``on_change``; ``cancel`` stops callbacks and releases the channel."""

    def __init__(self, release: Callable[[], Awaitable[None]]) -> None:
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._release()


class DocumentStore(Protocol):
    """Async key-value store with change subscriptions.

    ``query`` filters are equality matches; a tuple value matches any of its members.
    """

    async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None: ...

    async def update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def add(self, collection: str, data: Mapping[str, Any]) -> str: ...

    async def query(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[tuple[str, Document]]: ...

    async def on_change(self, collection: str, doc_id: str, callback: ChangeCallback) -> Subscription: ...


def apply_patch(document: Mapping[str, Any], patch: Mapping[str, Any]) -> Document:
    """Return a copy of ``document`` with ``patch`` applied (ArrayUnion aware)."""

    merged = copy.deepcopy(dict(document))
    for key, value in patch.items():
        if isinstance(value, ArrayUnion):
            merged[key] = value.merge(merged.get(key))
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def matches(document: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        actual = document.get(key)
        if isinstance(expected, tuple):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def sort_documents(
    rows: Sequence[tuple[str, Document]], order_by: str | None, descending: bool
) -> list[tuple[str, Document]]:
    if not order_by:
        return list(rows)
    present = [row for row in rows if row[1].get(order_by) is not None]
    missing = [row for row in rows if row[1].get(order_by) is None]
    present.sort(key=lambda row: row[1][order_by], reverse=descending)
    return present + missing


async def deliver(callback: ChangeCallback, document: Optional[Document]) -> None:
    result = callback(document)
    if inspect.isawaitable(result):
        await result


class InMemoryDocumentStore:
    """Process-local store used for development and tests.

    Every read and write deep-copies so callers never share state with the store.
    ``fail_next_writes`` and ``latency_seconds`` let tests simulate a flaky or slow
    remote.
    """

    def __init__(self, *, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self._collections: dict[str, dict[str, Document]] = {}
        self._listeners: dict[tuple[str, str], list[ChangeCallback]] = {}
        self._failures_remaining = 0
        self._failure_message = "Simulated store failure"
        self.write_count = 0

    def fail_next_writes(self, count: int = 1, message: str = "Simulated store failure") -> None:
        self._failures_remaining = count
        self._failure_message = message

    def listener_count(self, collection: str, doc_id: str) -> int:
        return len(self._listeners.get((collection, doc_id), []))

    async def _before_write(self) -> None:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if self._failures_remaining > 0:
            self._failures_remaining -= 1
            raise RemoteStoreError(self._failure_message)
        self.write_count += 1

    async def _notify(self, collection: str, doc_id: str) -> None:
        document = self._collections.get(collection, {}).get(doc_id)
        for callback in list(self._listeners.get((collection, doc_id), [])):
            try:
                await deliver(callback, copy.deepcopy(document))
            except Exception:
                logger.exception(f"Change listener for {collection}/{doc_id} failed")

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        document = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        await self._before_write()
        self._collections.setdefault(collection, {})[doc_id] = apply_patch({}, data)
        await self._notify(collection, doc_id)

    async def update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> None:
        await self._before_write()
        documents = self._collections.setdefault(collection, {})
        if doc_id not in documents:
            raise RemoteStoreError(f"No document to update at {collection}/{doc_id}")
        documents[doc_id] = apply_patch(documents[doc_id], patch)
        await self._notify(collection, doc_id)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._before_write()
        existed = self._collections.get(collection, {}).pop(doc_id, None) is not None
        if existed:
            await self._notify(collection, doc_id)

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
        rows = [
            (doc_id, copy.deepcopy(document))
            for doc_id, document in self._collections.get(collection, {}).items()
            if matches(document, filters)
        ]
        return sort_documents(rows, order_by, descending)

    async def on_change(self, collection: str, doc_id: str, callback: ChangeCallback) -> Subscription:
        key = (collection, doc_id)
        self._listeners.setdefault(key, []).append(callback)

        async def release() -> None:
            listeners = self._listeners.get(key, [])
            if callback in listeners:
                listeners.remove(callback)
            if not listeners:
                self._listeners.pop(key, None)

        await deliver(callback, await self.get(collection, doc_id))
        return Subscription(release)
