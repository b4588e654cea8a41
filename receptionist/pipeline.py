"""
Main processing pipeline: one reception document in, one result out.

A caller writes {transcript, email, sessionId} into the reception
collection; the pipeline answers it in place:

  1. Claim: inside a transaction, skip documents that are processed,
     claimed by a live run, or written by the assistant; otherwise mark
     them as claimed.  This makes duplicate triggers harmless.  A claim
     older than claim_ttl belongs to a run that died and is taken over.
  2. Identify the caller from the email, load the session history.
  3. Resolve the utterance (fast path / slow path / fallback).
  4. Write processed, processedAt, result and the audit fields.

Any failure, cancellation included, still ends with processed=true and
an error field, so a caller listening on the document is never left
waiting forever.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Mapping

from receptionist.domain.records import RECEPTION, USERS, Caller, SessionRequest, User
from receptionist.domain.store import RecordStore, now_iso
from receptionist.resolver import IntentResolver, Turn

log = logging.getLogger(__name__)

GENERIC_FAILURE = "I'm sorry, I encountered an error processing your request. Please try again."
INTERRUPTED = "Processing was interrupted before an answer was written"

# Twice the session channel timeout: nobody is still waiting on the answer
DEFAULT_CLAIM_TTL = 60.0


def claim_is_live(data: Mapping[str, Any], ttl: float = DEFAULT_CLAIM_TTL) -> bool:
    """True while a run that claimed the document may still be working on it."""
    claimed_at = data.get("claimedAt")
    if not claimed_at:
        return False
    try:
        claimed = datetime.fromisoformat(str(claimed_at))
    except ValueError:
        return False
    if claimed.tzinfo is None:
        claimed = claimed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) - claimed < timedelta(seconds=ttl)


@dataclass
class PipelineConfig:
    store: RecordStore
    resolver: IntentResolver
    history_limit: int = 10
    claim_ttl: float = DEFAULT_CLAIM_TTL


@dataclass
class PipelineResult:
    action: Literal[
        "skipped",            # missing document or assistant message
        "already_processed",  # processed or claimed by an earlier run
        "rejected",           # no transcript
        "answered",           # result written
        "failed",             # error written instead of a result
    ]
    details: str = ""
    doc_id: str = ""


class Pipeline:
    """
    Stateless: every call re-reads what it needs from the store, so
    independent documents can be processed concurrently.
    """

    def __init__(self, config: PipelineConfig):
        self._cfg = config

    async def process_request(self, doc_id: str) -> PipelineResult:
        store = self._cfg.store

        async with store.transaction():
            doc = await store.get(RECEPTION, doc_id)
            if doc is None:
                return PipelineResult(action="skipped", details="document not found", doc_id=doc_id)
            request = SessionRequest.from_record(doc.id, doc.data)
            if request.processed or claim_is_live(doc.data, self._cfg.claim_ttl):
                log.info("doc=%s skip: already processed", doc_id)
                return PipelineResult(action="already_processed", doc_id=doc_id)
            if doc.data.get("claimedAt"):
                log.warning("doc=%s taking over stale claim from %s", doc_id, doc.data["claimedAt"])
            if request.role == "assistant":
                return PipelineResult(action="skipped", details="assistant message", doc_id=doc_id)
            if not request.transcript.strip():
                log.error("doc=%s missing transcript", doc_id)
                await store.update(RECEPTION, doc_id, {
                    "processed": True,
                    "processedAt": now_iso(),
                    "error": "Missing transcript in request document",
                })
                return PipelineResult(action="rejected", details="missing transcript", doc_id=doc_id)
            await store.update(RECEPTION, doc_id, {"claimedAt": now_iso()})

        log.debug(
            "doc=%s session=%s email=%s transcript=%.60r",
            doc_id, request.session_id or "-", request.email or "anonymous", request.transcript,
        )

        try:
            caller = await self._identify(request.email)
            history = await self._history(request.session_id, doc_id)
            resolution = await self._cfg.resolver.resolve(request.transcript, caller, history)
            await store.update(RECEPTION, doc_id, {
                "processed": True,
                "processedAt": now_iso(),
                "result": resolution.text,
                "path": resolution.path,
                "userId": caller.user_id,
                "functionCall": resolution.function_call,
                "functionResponse": resolution.function_response,
            })
        except Exception as exc:
            log.error("doc=%s session=%s processing failed: %s", doc_id, request.session_id or "-", exc)
            await self._mark_failed(doc_id, str(exc))
            return PipelineResult(action="failed", details=str(exc), doc_id=doc_id)
        except asyncio.CancelledError:
            log.warning("doc=%s cancelled while resolving", doc_id)
            await self._mark_failed(doc_id, INTERRUPTED)
            raise

        log.info(
            "doc=%s answered via %s fn=%s: %.60s",
            doc_id, resolution.path,
            resolution.function_call["name"] if resolution.function_call else "-",
            resolution.text,
        )
        return PipelineResult(action="answered", details=resolution.text, doc_id=doc_id)

    async def _identify(self, email: str) -> Caller:
        if not email:
            return Caller(user_id=None)
        docs = await self._cfg.store.query(USERS, [("email", "==", email)], limit=1)
        if not docs:
            log.info("no user for email=%s, serving anonymously", email)
            return Caller(user_id=None, email=email)
        return Caller.from_user(User.from_record(docs[0].id, docs[0].data))

    async def _history(self, session_id: str, current_id: str) -> list[Turn]:
        if not session_id:
            return []
        docs = await self._cfg.store.query(
            RECEPTION,
            [("sessionId", "==", session_id), ("processed", "==", True)],
            order_by="createdAt",
        )
        turns = [
            Turn(d.data.get("transcript", ""), d.data.get("result", ""))
            for d in docs
            if d.id != current_id and d.data.get("result")
        ]
        return turns[-self._cfg.history_limit:]

    async def _mark_failed(self, doc_id: str, error: str) -> None:
        try:
            await self._cfg.store.update(RECEPTION, doc_id, {
                "processed": True,
                "processedAt": now_iso(),
                "result": GENERIC_FAILURE,
                "error": error,
            })
        except Exception as exc:
            log.error("doc=%s could not record failure: %s", doc_id, exc)
