"""
Session channel: the caller's side of the reception protocol.

ask() writes a request document and waits, through a store subscription
on that one document, until the pipeline marks it processed.  The wait
is bounded: on timeout the subscription is closed and SessionTimeout is
raised, so a late result is simply never observed.

The channel owns every subscription it opens and closes them all on
close() / context exit.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from receptionist.domain.errors import SessionTimeout
from receptionist.domain.records import RECEPTION, SessionRequest
from receptionist.domain.store import ChangeEvent, RecordStore, Subscription, new_id

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class SessionReply:
    doc_id: str
    text: str
    function_call: dict[str, Any] | None = None
    function_response: dict[str, Any] | None = None
    error: str | None = None


class SessionChannel:

    def __init__(
        self,
        store: RecordStore,
        session_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._store = store
        self.session_id = session_id or uuid.uuid4().hex
        self._timeout = timeout
        self._subscriptions: set[Subscription] = set()

    async def __aenter__(self) -> "SessionChannel":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        for sub in list(self._subscriptions):
            sub.close()
        self._subscriptions.clear()

    @property
    def open_subscriptions(self) -> int:
        return len(self._subscriptions)

    async def ask(self, transcript: str, email: str = "") -> SessionReply:
        """Send one utterance and wait for the receptionist's answer."""
        loop = asyncio.get_running_loop()
        answered: asyncio.Future[SessionRequest] = loop.create_future()
        doc_id = new_id()

        def on_change(event: ChangeEvent) -> None:
            if answered.done() or not event.data or not event.data.get("processed"):
                return
            answered.set_result(SessionRequest.from_record(event.doc_id, event.data))

        # Subscribe before writing so the answer cannot slip past us
        sub = self._store.subscribe(RECEPTION, on_change, doc_id=doc_id)
        self._subscriptions.add(sub)
        try:
            await self._store.create(RECEPTION, {
                "transcript": transcript,
                "email": email,
                "sessionId": self.session_id,
                "role": "user",
                "processed": False,
            }, doc_id=doc_id)
            try:
                request = await asyncio.wait_for(answered, timeout=self._timeout)
            except asyncio.TimeoutError:
                log.warning("doc=%s session=%s no answer after %.0fs", doc_id, self.session_id, self._timeout)
                raise SessionTimeout(
                    "The receptionist did not respond in time. Please try again."
                ) from None
        finally:
            sub.close()
            self._subscriptions.discard(sub)

        return SessionReply(
            doc_id=doc_id,
            text=request.result or "",
            function_call=request.function_call,
            function_response=request.function_response,
            error=request.error,
        )
