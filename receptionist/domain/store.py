"""
RecordStore port: the document database behind the receptionist.

Every record lives in a named collection under a string id.  The engine
only needs single-document reads and writes plus two additions:

- transaction(): an async context manager giving serializable isolation,
  used to make the booking conflict check and the write one atomic step.
- subscribe(): change notifications, used by the session channel and the
  daemon.  Each subscription is a handle its owner must close.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Literal, Sequence

log = logging.getLogger(__name__)

Filter = tuple[str, str, Any]     # (field, op, value)
FILTER_OPS = ("==", "!=", "in", "<", "<=", ">", ">=")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex[:20]


@dataclass
class Document:
    id: str
    data: dict[str, Any]


@dataclass
class ChangeEvent:
    collection: str
    doc_id: str
    kind: Literal["created", "updated", "deleted"]
    data: dict[str, Any] | None   # document after the change, None when deleted


Listener = Callable[[ChangeEvent], None]


class Subscription:
    """Disposable handle returned by RecordStore.subscribe()."""

    def __init__(self, on_close: Callable[["Subscription"], None]):
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self)


class ChangeFeed:
    """Fan-out of change events to subscribers, shared by the store adapters."""

    def __init__(self):
        self._listeners: dict[Subscription, tuple[str, str | None, Listener]] = {}

    def subscribe(self, collection: str, callback: Listener, doc_id: str | None = None) -> Subscription:
        sub = Subscription(self._remove)
        self._listeners[sub] = (collection, doc_id, callback)
        return sub

    def _remove(self, sub: Subscription) -> None:
        self._listeners.pop(sub, None)

    def publish(self, events: Sequence[ChangeEvent]) -> None:
        for event in events:
            for sub, (collection, doc_id, callback) in list(self._listeners.items()):
                if sub.closed or collection != event.collection:
                    continue
                if doc_id is not None and doc_id != event.doc_id:
                    continue
                try:
                    callback(event)
                except Exception as exc:
                    log.error(
                        "listener failed collection=%s doc=%s: %s",
                        event.collection, event.doc_id, exc,
                    )

    def __len__(self) -> int:
        return len(self._listeners)


class TransactionLock:
    """
    Task-reentrant lock serializing store access.

    The task that opened a transaction may keep calling store methods
    without deadlocking; every other task waits until it commits.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """Yield True for the outermost holder, False for a nested one."""
        task = asyncio.current_task()
        if self._owner is not None and self._owner is task:
            yield False
            return
        async with self._lock:
            self._owner = task
            try:
                yield True
            finally:
                self._owner = None


def matches(data: dict[str, Any], filters: Sequence[Filter]) -> bool:
    for field_name, op, value in filters:
        actual = data.get(field_name)
        if op == "==":
            ok = actual == value
        elif op == "!=":
            ok = actual != value
        elif op == "in":
            ok = actual in value
        elif actual is None:
            ok = False
        elif op == "<":
            ok = actual < value
        elif op == "<=":
            ok = actual <= value
        elif op == ">":
            ok = actual > value
        elif op == ">=":
            ok = actual >= value
        else:
            raise ValueError(f"Unsupported filter operator: {op!r}")
        if not ok:
            return False
    return True


def sort_documents(docs: list[Document], order_by: str, descending: bool = False) -> list[Document]:
    # Missing values sort first ascending, last descending (SQLite NULL ordering)
    return sorted(
        docs,
        key=lambda d: (d.data.get(order_by) is not None, d.data.get(order_by)),
        reverse=descending,
    )


class RecordStore(ABC):
    """
    Port: typed-record persistence for rooms, bookings, orders, users, ...

    Implementations: InMemoryRecordStore (tests, simulation) and
    SqliteRecordStore (production).  Both must satisfy the same contract.
    All writes stamp createdAt/updatedAt; change events are delivered
    only after the enclosing transaction commits.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        ...

    @abstractmethod
    async def create(
        self, collection: str, data: dict[str, Any], doc_id: str | None = None
    ) -> str:
        """Insert a document and return its id.  Raises StoreError if doc_id is taken."""
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None:
        """Merge changes into an existing document.  Raises StoreError if it is missing."""
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager; rolls back every write if the block raises."""
        ...

    @abstractmethod
    def subscribe(
        self, collection: str, callback: Listener, doc_id: str | None = None
    ) -> Subscription:
        """Call callback for every committed change in the collection (or one document)."""
        ...
