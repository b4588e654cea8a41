"""
Full pipeline tests using the simulator model.

No network, no credentials, no LLM API calls.
A request document goes in; the same document comes out processed.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from receptionist.adapters.simulator_model import DEFAULT_ANSWER, SimulatorLanguageModel
from receptionist.domain.records import BOOKINGS, RECEPTION
from receptionist.domain.store import now_iso
from receptionist.pipeline import GENERIC_FAILURE, INTERRUPTED, Pipeline, PipelineConfig, claim_is_live
from tests.hotel_fixtures import build_hotel


@pytest_asyncio.fixture
async def hotel():
    return await build_hotel()


async def _request(store, transcript, email="guest@example.com", session_id="s1", **extra):
    data = {"transcript": transcript, "email": email, "sessionId": session_id, "role": "user", "processed": False}
    data.update(extra)
    return await store.create(RECEPTION, data)


# ---------------------------------------------------------------------------
# Answering
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_request_is_answered_in_place(hotel):
    doc_id = await _request(hotel.store, "Hello there")
    result = await hotel.pipeline.process_request(doc_id)
    assert result.action == "answered"

    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["processed"] is True
    assert data["processedAt"]
    assert data["result"] == DEFAULT_ANSWER
    assert data["path"] == "slow"
    assert data["userId"] == "user-guest"


@pytest.mark.asyncio
async def test_function_call_is_recorded(hotel):
    doc_id = await _request(hotel.store, "Show me my bookings")
    await hotel.pipeline.process_request(doc_id)
    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["functionCall"] == {"name": "getUserBookings", "parameters": {}}
    assert data["functionResponse"]["success"] is True


@pytest.mark.asyncio
async def test_unknown_email_is_served_anonymously(hotel):
    doc_id = await _request(hotel.store, "book a room", email="stranger@example.com")
    await hotel.pipeline.process_request(doc_id)
    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["processed"] is True
    assert data["userId"] is None
    assert await hotel.store.query(BOOKINGS) == []


# ---------------------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_second_run_is_a_no_op(hotel):
    doc_id = await _request(hotel.store, "book a room, garden standard, 2024-06-01 to 2024-06-03")
    first = await hotel.pipeline.process_request(doc_id)
    second = await hotel.pipeline.process_request(doc_id)
    assert first.action == "answered"
    assert second.action == "already_processed"
    assert len(await hotel.store.query(BOOKINGS)) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_triggers_book_once(hotel):
    doc_id = await _request(hotel.store, "book a room, garden standard, 2024-06-01 to 2024-06-03")
    results = await asyncio.gather(
        hotel.pipeline.process_request(doc_id),
        hotel.pipeline.process_request(doc_id),
    )
    assert sorted(r.action for r in results) == ["already_processed", "answered"]
    assert len(await hotel.store.query(BOOKINGS)) == 1


@pytest.mark.asyncio
async def test_assistant_messages_are_skipped(hotel):
    doc_id = await _request(hotel.store, "Welcome!", role="assistant")
    result = await hotel.pipeline.process_request(doc_id)
    assert result.action == "skipped"
    assert (await hotel.store.get(RECEPTION, doc_id)).data["processed"] is False


@pytest.mark.asyncio
async def test_missing_document(hotel):
    result = await hotel.pipeline.process_request("ghost")
    assert result.action == "skipped"


@pytest.mark.asyncio
async def test_missing_transcript_is_rejected(hotel):
    doc_id = await _request(hotel.store, "   ")
    result = await hotel.pipeline.process_request(doc_id)
    assert result.action == "rejected"
    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["processed"] is True
    assert data["error"] == "Missing transcript in request document"


# ---------------------------------------------------------------------------
# Session history and failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_from_same_session_reaches_the_model():
    model = SimulatorLanguageModel(["First answer.", "Second answer."])
    hotel = await build_hotel(model)
    first = await _request(hotel.store, "Where is the pool?", session_id="s1")
    await hotel.pipeline.process_request(first)
    await _request(hotel.store, "Unrelated", session_id="s2", processed=True, result="Other session")
    second = await _request(hotel.store, "And the spa?", session_id="s1")
    await hotel.pipeline.process_request(second)

    prompt = model.prompts[-1]
    assert "Guest: Where is the pool?\nLaura: First answer." in prompt
    assert "Other session" not in prompt


class _BrokenResolver:

    async def resolve(self, transcript, caller, history=()):
        raise RuntimeError("resolver exploded")


@pytest.mark.asyncio
async def test_failure_still_marks_processed(hotel):
    pipeline = Pipeline(PipelineConfig(store=hotel.store, resolver=_BrokenResolver()))
    doc_id = await _request(hotel.store, "Hello")
    result = await pipeline.process_request(doc_id)
    assert result.action == "failed"
    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["processed"] is True
    assert data["result"] == GENERIC_FAILURE
    assert data["error"] == "resolver exploded"


class _CancelledResolver:

    async def resolve(self, transcript, caller, history=()):
        raise asyncio.CancelledError()


@pytest.mark.asyncio
async def test_cancelled_resolution_still_marks_processed(hotel):
    pipeline = Pipeline(PipelineConfig(store=hotel.store, resolver=_CancelledResolver()))
    doc_id = await _request(hotel.store, "Hello")
    with pytest.raises(asyncio.CancelledError):
        await pipeline.process_request(doc_id)
    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["processed"] is True
    assert data["result"] == GENERIC_FAILURE
    assert data["error"] == INTERRUPTED


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_live_claim_is_respected(hotel):
    doc_id = await _request(hotel.store, "Hello", claimedAt=now_iso())
    result = await hotel.pipeline.process_request(doc_id)
    assert result.action == "already_processed"
    assert (await hotel.store.get(RECEPTION, doc_id)).data["processed"] is False


@pytest.mark.asyncio
async def test_stale_claim_is_taken_over(hotel):
    stale = (datetime.now(timezone.utc) - timedelta(seconds=120)).isoformat()
    doc_id = await _request(hotel.store, "Hello", claimedAt=stale)
    result = await hotel.pipeline.process_request(doc_id)
    assert result.action == "answered"
    data = (await hotel.store.get(RECEPTION, doc_id)).data
    assert data["processed"] is True
    assert data["claimedAt"] != stale


def test_claim_is_live():
    assert not claim_is_live({})
    assert claim_is_live({"claimedAt": now_iso()}, ttl=60)
    assert not claim_is_live({"claimedAt": "2024-05-01T10:00:00+00:00"}, ttl=60)
    assert not claim_is_live({"claimedAt": "not a timestamp"})
