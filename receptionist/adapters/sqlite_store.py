"""
SQLite adapter for RecordStore.

Every collection shares one table of JSON documents; filters and ordering
go through json_extract().  Use ":memory:" for tests, a file path for
production.
"""

import json
import logging
import re
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

from receptionist.domain.errors import StoreError
from receptionist.domain.store import (
    FILTER_OPS,
    ChangeEvent,
    ChangeFeed,
    Document,
    Filter,
    Listener,
    RecordStore,
    Subscription,
    TransactionLock,
    new_id,
    now_iso,
)

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    data        TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS documents_by_collection ON documents (collection, created_at);
"""

_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _path(field_name: str) -> str:
    if not _FIELD.match(field_name):
        raise StoreError(f"Invalid field name: {field_name!r}")
    return f"$.{field_name}"


def _where(collection: str, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
    clauses = ["collection = ?"]
    params: list[Any] = [collection]
    for field_name, op, value in filters:
        if op not in FILTER_OPS:
            raise StoreError(f"Unsupported filter operator: {op!r}")
        expr = "json_extract(data, ?)"
        params.append(_path(field_name))
        if op == "in":
            values = list(value)
            if not values:
                clauses.append("0")
                params.pop()
                continue
            clauses.append(f"{expr} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        elif value is None and op in ("==", "!="):
            clauses.append(f"{expr} IS {'NOT ' if op == '!=' else ''}NULL")
        elif op == "!=":
            clauses.append(f"({expr} IS NULL OR {expr} != ?)")
            params.extend([_path(field_name), value])
        else:
            sql_op = "=" if op == "==" else op
            clauses.append(f"{expr} {sql_op} ?")
            params.append(value)
    return " AND ".join(clauses), params


class SqliteRecordStore(RecordStore):

    def __init__(self, db_path: str = "hotel.db"):
        # Autocommit mode: transactions are opened explicitly with BEGIN IMMEDIATE
        self._conn = sqlite3.connect(db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._lock = TransactionLock()
        self._feed = ChangeFeed()
        self._pending: list[ChangeEvent] | None = None

    def close(self) -> None:
        self._conn.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            log.error("sqlite failure sql=%.60r: %s", sql, exc)
            raise StoreError(str(exc)) from exc

    # -- reads ---------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> Document | None:
        async with self._lock.hold():
            row = self._execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
        if not row:
            return None
        return self._row_to_document(row)

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        where, params = _where(collection, filters)
        sql = f"SELECT id, data FROM documents WHERE {where}"
        if order_by:
            sql += f" ORDER BY json_extract(data, ?) {'DESC' if descending else 'ASC'}, rowid"
            params.append(_path(order_by))
        else:
            sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        async with self._lock.hold():
            rows = self._execute(sql, params).fetchall()
        return [self._row_to_document(r) for r in rows]

    @staticmethod
    def _row_to_document(row) -> Document:
        return Document(id=row["id"], data=json.loads(row["data"]))

    # -- writes --------------------------------------------------------------

    async def create(
        self, collection: str, data: dict[str, Any], doc_id: str | None = None
    ) -> str:
        doc_id = doc_id or new_id()
        stamp = now_iso()
        record = dict(data)
        record.setdefault("createdAt", stamp)
        record["updatedAt"] = stamp
        async with self._lock.hold():
            try:
                self._conn.execute(
                    "INSERT INTO documents (collection, id, data, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, ?)",
                    (collection, doc_id, json.dumps(record), record["createdAt"], stamp),
                )
            except sqlite3.IntegrityError as exc:
                raise StoreError(f"{collection}/{doc_id} already exists") from exc
            except sqlite3.Error as exc:
                log.error("insert failed collection=%s doc=%s: %s", collection, doc_id, exc)
                raise StoreError(str(exc)) from exc
            events = self._stage(ChangeEvent(collection, doc_id, "created", record))
        self._feed.publish(events)
        return doc_id

    async def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None:
        async with self._lock.hold():
            row = self._execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if not row:
                raise StoreError(f"{collection}/{doc_id} does not exist")
            record = json.loads(row["data"])
            record.update(changes)
            record["updatedAt"] = now_iso()
            self._execute(
                "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (json.dumps(record), record["updatedAt"], collection, doc_id),
            )
            events = self._stage(ChangeEvent(collection, doc_id, "updated", record))
        self._feed.publish(events)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock.hold():
            cur = self._execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            events = self._stage(ChangeEvent(collection, doc_id, "deleted", None)) if cur.rowcount else []
        self._feed.publish(events)

    # -- transactions and change feed ------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqliteRecordStore"]:
        async with self._lock.hold() as outermost:
            if not outermost:
                yield self
                return
            self._execute("BEGIN IMMEDIATE")
            self._pending = []
            try:
                yield self
                self._execute("COMMIT")
            except BaseException:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                self._pending = None
                raise
            events, self._pending = self._pending, None
        self._feed.publish(events)

    def subscribe(
        self, collection: str, callback: Listener, doc_id: str | None = None
    ) -> Subscription:
        return self._feed.subscribe(collection, callback, doc_id)

    def _stage(self, event: ChangeEvent) -> list[ChangeEvent]:
        if self._pending is not None:
            self._pending.append(event)
            return []
        return [event]
