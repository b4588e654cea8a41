"""
Intent resolver: turns one utterance into a reply and at most one operation.

  1. Fast path: deterministic matchers (FastPathMatcher).  A match either
     runs its operation directly or asks for the missing fields.
  2. Slow path: retrieved context + caller profile go into a prompt; the
     model's answer is parsed leniently (reply_parser) and a recognised
     function call is dispatched to HotelOperations.
  3. Fallback: if the model call raises, a keyword FAQ answers instead.

Model output is untrusted: unknown function names are logged and
dropped, and parameters are validated by the operations themselves.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Literal, Sequence

from receptionist.domain.language_model import LanguageModel
from receptionist.domain.records import Caller
from receptionist.domain.store import RecordStore
from receptionist.faq import fallback_answer, gather_facts
from receptionist.fast_path import FastPathMatch, FastPathMatcher
from receptionist.operations import FUNCTION_SCHEMAS, FunctionName, HotelOperations
from receptionist.prompts import render_prompt
from receptionist.reply_parser import (
    CANNED_APOLOGY,
    FunctionCallReply,
    PlainText,
    parse_model_reply,
)
from receptionist.retrieval import ContextRetriever, RetrievedRecord
from receptionist.settings import HotelProfile

log = logging.getLogger(__name__)

_READ_PREFIX = {
    FunctionName.GET_ROOM_AVAILABILITY: "\n\nHere's the current availability: ",
    FunctionName.GET_BOOKING_DETAILS: "\n\nHere are your booking details: ",
    FunctionName.GET_USER_BOOKINGS: "\n\nHere are your booking details: ",
}


@dataclass
class Turn:
    """A previous exchange in the same session."""
    transcript: str
    reply: str


@dataclass
class Resolution:
    text: str
    path: Literal["fast", "clarify", "slow", "fallback"]
    function_call: dict[str, Any] | None = None       # {"name": ..., "parameters": ...}
    function_response: dict[str, Any] | None = None   # OperationResult.to_record()


class IntentResolver:

    def __init__(
        self,
        store: RecordStore,
        model: LanguageModel,
        operations: HotelOperations,
        retriever: ContextRetriever,
        fast_path: FastPathMatcher,
        hotel: HotelProfile | None = None,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._model = model
        self._operations = operations
        self._retriever = retriever
        self._fast_path = fast_path
        self._hotel = hotel or HotelProfile()
        self._today = today

    async def resolve(
        self, transcript: str, caller: Caller, history: Sequence[Turn] = ()
    ) -> Resolution:
        match = await self._fast_path.match(transcript, caller)
        if match is not None:
            return await self._run_fast_path(match, caller)
        return await self._run_slow_path(transcript, caller, history)

    # -- fast path -------------------------------------------------------------

    async def _run_fast_path(self, match: FastPathMatch, caller: Caller) -> Resolution:
        if match.missing:
            return Resolution(match.clarification(), "clarify")
        result = await self._operations.execute(match.function, match.parameters, caller)
        return Resolution(
            text=match.reply_for(result),
            path="fast",
            function_call={"name": match.function.value, "parameters": match.parameters},
            function_response=result.to_record(),
        )

    # -- slow path -------------------------------------------------------------

    async def _run_slow_path(
        self, transcript: str, caller: Caller, history: Sequence[Turn]
    ) -> Resolution:
        records = await self._retriever.retrieve(transcript, user_id=caller.user_id)
        prompt = self.build_prompt(transcript, caller, history, records)

        try:
            output = await self._model.generate(prompt, FUNCTION_SCHEMAS)
        except Exception as exc:
            log.warning("user=%s model call failed, answering from FAQ: %s", caller.user_id, exc)
            return await self._fallback(transcript, caller)

        if output.function_call is not None:
            reply = FunctionCallReply(
                output.function_call.name,
                output.function_call.parameters,
                (output.text or "").strip(),
            )
        else:
            reply = parse_model_reply(output.text)

        if isinstance(reply, PlainText):
            return Resolution(reply.text or CANNED_APOLOGY, "slow")
        return await self._dispatch(reply, caller)

    async def _dispatch(self, reply: FunctionCallReply, caller: Caller) -> Resolution:
        call = {"name": reply.name, "parameters": reply.parameters}
        try:
            function = FunctionName(reply.name)
        except ValueError:
            log.warning("user=%s model called unknown function %r, ignored", caller.user_id, reply.name)
            return Resolution(
                reply.user_response or CANNED_APOLOGY,
                "slow",
                call,
                {"success": False, "error": f"Unknown function: {reply.name}"},
            )

        result = await self._operations.execute(function, reply.parameters, caller)
        log.info(
            "user=%s slow path %s → success=%s", caller.user_id, function.value, result.success
        )
        if not result.success:
            # Never let the model's optimistic wording stand in for a refusal
            text = result.message
        elif result.is_read and reply.user_response:
            text = reply.user_response + _READ_PREFIX[function] + result.message
        else:
            text = reply.user_response or result.message
        return Resolution(text, "slow", call, result.to_record())

    def build_prompt(
        self,
        transcript: str,
        caller: Caller,
        history: Sequence[Turn],
        records: Sequence[RetrievedRecord],
    ) -> str:
        if caller.identified:
            caller_text = (
                f"- Name: {caller.name or 'Guest'}\n"
                f"- Email: {caller.email}\n"
                f"- User ID: {caller.user_id}"
            )
            if caller.is_admin:
                caller_text += "\n- Role: hotel staff"
        else:
            caller_text = f"The guest is not logged in (email: {caller.email or 'unknown'})."

        history_text = "\n".join(
            f"Guest: {turn.transcript}\nLaura: {turn.reply}" for turn in history
        ) or "(new conversation)"

        return render_prompt(
            "receptionist",
            hotel_name=self._hotel.name,
            caller=caller_text,
            today=self._today().isoformat(),
            check_in_time=self._hotel.check_in_time,
            check_out_time=self._hotel.check_out_time,
            address=self._hotel.address,
            records=json.dumps([r.to_prompt_record() for r in records], default=str),
            history=history_text,
            functions=json.dumps([s.to_prompt_record() for s in FUNCTION_SCHEMAS], indent=2),
            guest_name=caller.name or "Guest",
            guest_email=caller.email or "guest@example.com",
            transcript=transcript,
        )

    # -- degraded mode ---------------------------------------------------------

    async def _fallback(self, transcript: str, caller: Caller) -> Resolution:
        bookings = await self._operations.bookings_for(caller.user_id)
        facts = await gather_facts(self._store, bookings)
        return Resolution(fallback_answer(transcript, self._hotel, facts), "fallback")
