"""
Core dispatch logic for the receptionist daemon.

Extracted from scripts/run.py so it can be imported and tested without
pulling in the Claude adapter.

Two ways in, same pipeline:
  - ReceptionListener reacts to newly created reception documents and
    starts one independent task per document.
  - poll_once() sweeps for unprocessed documents the listener missed
    (written while the daemon was down, or by another process).
"""

import asyncio
import logging

from receptionist.domain.records import RECEPTION
from receptionist.domain.store import ChangeEvent, RecordStore, Subscription
from receptionist.pipeline import DEFAULT_CLAIM_TTL, Pipeline, PipelineResult, claim_is_live

log = logging.getLogger(__name__)


async def process_safely(pipeline: Pipeline, doc_id: str) -> PipelineResult:
    """Run the pipeline for one document; an error here never stops the others."""
    try:
        return await pipeline.process_request(doc_id)
    except Exception as exc:
        log.error("Pipeline error for doc %s: %s", doc_id, exc)
        return PipelineResult(action="failed", details=str(exc), doc_id=doc_id)


async def poll_once(
    pipeline: Pipeline,
    store: RecordStore,
    limit: int = 50,
    claim_ttl: float = DEFAULT_CLAIM_TTL,
) -> list[PipelineResult]:
    """
    Process every unprocessed request, oldest first, concurrently.

    Requests claimed by a live run are left alone; a claim older than
    claim_ttl was abandoned (cancelled task, killed process) and is retried.
    """
    try:
        docs = await store.query(
            RECEPTION, [("processed", "!=", True)], order_by="createdAt", limit=limit
        )
    except Exception as exc:
        log.error("Failed to fetch pending requests: %s", exc)
        return []

    pending = [
        d.id for d in docs
        if d.data.get("role") != "assistant" and not claim_is_live(d.data, claim_ttl)
    ]
    if not pending:
        return []
    log.info("Sweep: %d pending request(s)", len(pending))

    results = await asyncio.gather(*(process_safely(pipeline, doc_id) for doc_id in pending))
    for r in results:
        if r.action not in ("answered", "already_processed"):
            log.debug("doc=%s action=%s: %s", r.doc_id, r.action, r.details[:60])
    return list(results)


class ReceptionListener:
    """Starts a pipeline task for each reception document as it is created."""

    def __init__(self, pipeline: Pipeline, store: RecordStore):
        self._pipeline = pipeline
        self._store = store
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> "ReceptionListener":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def start(self) -> None:
        if self._subscription is None or self._subscription.closed:
            self._subscription = self._store.subscribe(RECEPTION, self._on_change)

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
        await self.drain()

    async def drain(self) -> None:
        """Wait for every task started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _on_change(self, event: ChangeEvent) -> None:
        if event.kind != "created" or not event.data:
            return
        if event.data.get("processed") or event.data.get("role") == "assistant":
            return
        task = asyncio.get_running_loop().create_task(process_safely(self._pipeline, event.doc_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
