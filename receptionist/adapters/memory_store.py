"""
InMemoryRecordStore: dict-backed RecordStore for tests and simulation.

No persistence.  Transactions snapshot the whole store and restore it if
the block raises, so rollback behaves like the SQLite adapter.
"""

import copy
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

from receptionist.domain.errors import StoreError
from receptionist.domain.store import (
    ChangeEvent,
    ChangeFeed,
    Document,
    Filter,
    Listener,
    RecordStore,
    Subscription,
    TransactionLock,
    matches,
    new_id,
    now_iso,
    sort_documents,
)


class InMemoryRecordStore(RecordStore):

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = TransactionLock()
        self._feed = ChangeFeed()
        self._pending: list[ChangeEvent] | None = None

    # -- reads ---------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> Document | None:
        async with self._lock.hold():
            data = self._collections.get(collection, {}).get(doc_id)
            if data is None:
                return None
            return Document(doc_id, copy.deepcopy(data))

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        async with self._lock.hold():
            docs = [
                Document(doc_id, copy.deepcopy(data))
                for doc_id, data in self._collections.get(collection, {}).items()
                if matches(data, filters)
            ]
        if order_by:
            docs = sort_documents(docs, order_by, descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    # -- writes --------------------------------------------------------------

    async def create(
        self, collection: str, data: dict[str, Any], doc_id: str | None = None
    ) -> str:
        async with self._lock.hold():
            docs = self._collections.setdefault(collection, {})
            doc_id = doc_id or new_id()
            if doc_id in docs:
                raise StoreError(f"{collection}/{doc_id} already exists")
            stamp = now_iso()
            record = copy.deepcopy(data)
            record.setdefault("createdAt", stamp)
            record["updatedAt"] = stamp
            docs[doc_id] = record
            events = self._stage(ChangeEvent(collection, doc_id, "created", copy.deepcopy(record)))
        self._feed.publish(events)
        return doc_id

    async def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None:
        async with self._lock.hold():
            record = self._collections.get(collection, {}).get(doc_id)
            if record is None:
                raise StoreError(f"{collection}/{doc_id} does not exist")
            record.update(copy.deepcopy(changes))
            record["updatedAt"] = now_iso()
            events = self._stage(ChangeEvent(collection, doc_id, "updated", copy.deepcopy(record)))
        self._feed.publish(events)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock.hold():
            removed = self._collections.get(collection, {}).pop(doc_id, None)
            events = self._stage(ChangeEvent(collection, doc_id, "deleted", None)) if removed else []
        self._feed.publish(events)

    # -- transactions and change feed ------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryRecordStore"]:
        async with self._lock.hold() as outermost:
            if not outermost:
                yield self
                return
            snapshot = copy.deepcopy(self._collections)
            self._pending = []
            try:
                yield self
            except BaseException:
                self._collections = snapshot
                self._pending = None
                raise
            events, self._pending = self._pending, None
        self._feed.publish(events)

    def subscribe(
        self, collection: str, callback: Listener, doc_id: str | None = None
    ) -> Subscription:
        return self._feed.subscribe(collection, callback, doc_id)

    def _stage(self, event: ChangeEvent) -> list[ChangeEvent]:
        """Hold events back until commit when a transaction is open."""
        if self._pending is not None:
            self._pending.append(event)
            return []
        return [event]
