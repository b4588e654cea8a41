"""
Fast-path matcher tests.

The matcher only extracts; nothing here runs an operation except the
last section, which goes through the resolver.
"""

import pytest
import pytest_asyncio

from receptionist.domain.records import BOOKINGS
from receptionist.operations import FunctionName
from tests.hotel_fixtures import ADMIN, ANONYMOUS, DELUXE, GUEST, STANDARD, SUITE, add_booking, build_hotel


@pytest_asyncio.fixture
async def hotel():
    return await build_hotel()


@pytest.mark.asyncio
async def test_anonymous_callers_skip_fast_path(hotel):
    assert await hotel.fast_path.match("book a room", ANONYMOUS) is None


@pytest.mark.asyncio
async def test_unrelated_utterance_not_matched(hotel):
    assert await hotel.fast_path.match("What time is breakfast served?", GUEST) is None


@pytest.mark.asyncio
async def test_view_bookings(hotel):
    match = await hotel.fast_path.match("Show me my bookings please", GUEST)
    assert match.function is FunctionName.GET_USER_BOOKINGS
    assert match.missing == []


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_book_named_room_with_dates_and_guests(hotel):
    match = await hotel.fast_path.match(
        "I'd like to book a room, the Ocean Suite, from 2024-06-10 to 2024-06-12 for 3 guests",
        GUEST,
    )
    assert match.function is FunctionName.BOOK_ROOM
    assert match.parameters["roomId"] == SUITE
    assert match.parameters["checkInDate"] == "2024-06-10"
    assert match.parameters["checkOutDate"] == "2024-06-12"
    assert match.parameters["numberOfGuests"] == 3
    assert match.parameters["guestEmail"] == "guest@example.com"
    assert match.missing == []


@pytest.mark.asyncio
async def test_book_defaults_to_tomorrow_for_two_nights(hotel):
    match = await hotel.fast_path.match("Please book a room for me", GUEST)
    assert match.parameters["checkInDate"] == "2024-05-02"
    assert match.parameters["checkOutDate"] == "2024-05-04"
    assert match.parameters["numberOfGuests"] == 1
    # First available room by name
    assert match.parameters["roomId"] == STANDARD


@pytest.mark.asyncio
async def test_book_single_date_stays_two_nights(hotel):
    match = await hotel.fast_path.match("book a room in the harbour deluxe on 2024-06-20", GUEST)
    assert match.parameters["roomId"] == DELUXE
    assert match.parameters["checkInDate"] == "2024-06-20"
    assert match.parameters["checkOutDate"] == "2024-06-22"


@pytest.mark.asyncio
async def test_book_asks_for_room_when_none_available(hotel):
    for room_id in ("room-101", "room-204", "room-301"):
        await hotel.store.update("rooms", room_id, {"status": "booked"})
    match = await hotel.fast_path.match("book a room", GUEST)
    assert match.missing == ["room"]
    assert match.clarification() == (
        "To book a room, I need the following information: room. Could you please provide it?"
    )


# ---------------------------------------------------------------------------
# Cancel / check-in / check-out
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_with_spoken_booking_id(hotel):
    match = await hotel.fast_path.match("Cancel my booking b7x2 please", GUEST)
    assert match.function is FunctionName.CANCEL_BOOKING
    assert match.parameters["bookingId"] == "b7x2"


@pytest.mark.asyncio
async def test_booking_number_phrase(hotel):
    match = await hotel.fast_path.match("cancel booking number 42", GUEST)
    assert match.parameters["bookingId"] == "42"


@pytest.mark.asyncio
async def test_cancel_defaults_to_latest_booking_the_guest_may_cancel(hotel):
    await add_booking(hotel.store, "early", check_in="2024-06-01", check_out="2024-06-03")
    await add_booking(hotel.store, "late", DELUXE, "2024-07-01", "2024-07-03", "confirmed")
    await add_booking(hotel.store, "gone", SUITE, "2024-08-01", "2024-08-03", "cancelled")
    await add_booking(hotel.store, "started", SUITE, "2024-04-20", "2024-04-22")
    match = await hotel.fast_path.match("cancel my booking for the summer", GUEST)
    assert match.parameters["bookingId"] == "early"
    assert match.missing == []


@pytest.mark.asyncio
async def test_cancel_default_for_staff_includes_confirmed(hotel):
    await add_booking(hotel.store, "early", check_in="2024-06-01", check_out="2024-06-03", user_id="user-admin")
    await add_booking(hotel.store, "late", DELUXE, "2024-07-01", "2024-07-03", "confirmed", user_id="user-admin")
    match = await hotel.fast_path.match("cancel my booking", ADMIN)
    assert match.parameters["bookingId"] == "late"


@pytest.mark.asyncio
async def test_cancel_without_id_cancels_the_pending_stay(hotel):
    await add_booking(hotel.store, "early", check_in="2024-06-01", check_out="2024-06-03")
    await add_booking(hotel.store, "late", DELUXE, "2024-07-01", "2024-07-03", "confirmed")
    resolution = await hotel.resolver.resolve("please cancel my booking", GUEST)
    assert resolution.function_response["success"] is True
    assert (await hotel.store.get(BOOKINGS, "early")).data["status"] == "cancelled"
    assert (await hotel.store.get(BOOKINGS, "late")).data["status"] == "confirmed"


@pytest.mark.asyncio
async def test_cancel_without_bookings_asks_for_id(hotel):
    match = await hotel.fast_path.match("cancel my reservation", GUEST)
    assert match.missing == ["booking ID"]
    assert "cancel your booking" in match.clarification()


@pytest.mark.asyncio
async def test_check_in_picks_confirmed_arrival(hotel):
    await add_booking(hotel.store, "future", check_in="2024-06-01", check_out="2024-06-03", status="confirmed")
    await add_booking(hotel.store, "today", DELUXE, "2024-05-01", "2024-05-03", "confirmed")
    match = await hotel.fast_path.match("I'd like to check in", GUEST)
    assert match.parameters == {"bookingId": "today", "action": "check-in"}


@pytest.mark.asyncio
async def test_check_out_picks_current_stay(hotel):
    await add_booking(hotel.store, "stay", check_in="2024-04-29", check_out="2024-05-01", status="checked-in")
    match = await hotel.fast_path.match("I'm checking out now", GUEST)
    assert match.parameters == {"bookingId": "stay", "action": "check-out"}


@pytest.mark.asyncio
async def test_check_in_question_is_not_an_action(hotel):
    await add_booking(hotel.store, "today", DELUXE, "2024-05-01", "2024-05-03", "confirmed")
    assert await hotel.fast_path.match("What time is check in?", GUEST) is None
    assert await hotel.fast_path.match("when is check out", GUEST) is None
    assert (await hotel.store.get(BOOKINGS, "today")).data["status"] == "confirmed"


@pytest.mark.asyncio
async def test_food_order_keywords(hotel):
    match = await hotel.fast_path.match("Room service: a pizza and a salad", GUEST)
    assert match.function is FunctionName.ORDER_FOOD
    assert match.parameters["items"] == ["pizza", "salad"]

    plain = await hotel.fast_path.match("I'm hungry", GUEST)
    assert plain.parameters["items"] == ["room service meal"]


# ---------------------------------------------------------------------------
# Through the resolver
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_clarification_runs_no_operation(hotel):
    resolution = await hotel.resolver.resolve("cancel my reservation", GUEST)
    assert resolution.path == "clarify"
    assert resolution.function_call is None
    assert "booking ID" in resolution.text


@pytest.mark.asyncio
async def test_fast_booking_creates_pending_booking(hotel):
    resolution = await hotel.resolver.resolve(
        "book a room, garden standard, 2024-06-01 to 2024-06-03", GUEST
    )
    assert resolution.path == "fast"
    assert resolution.function_response["success"] is True
    assert "$200" in resolution.text
    [doc] = await hotel.store.query(BOOKINGS)
    assert doc.data["status"] == "pending"


@pytest.mark.asyncio
async def test_fast_failure_is_prefixed(hotel):
    resolution = await hotel.resolver.resolve("cancel booking number 42", GUEST)
    assert resolution.path == "fast"
    assert resolution.text.startswith("I couldn't cancel the booking. I could not find that booking.")
