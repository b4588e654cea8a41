"""
Booking state machine tests.

Each transition must move the booking and its room together and leave a
notification for the guest, except when guests cancel their own booking.
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from receptionist.adapters.memory_store import InMemoryRecordStore
from receptionist.domain.errors import (
    AlreadyCancelled,
    ConflictError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from receptionist.domain.records import BOOKINGS, NOTIFICATIONS, ORDERS, ROOMS
from receptionist.lifecycle import BookingLifecycle
from receptionist.pricing import BookingEngine
from tests.hotel_fixtures import (
    ADMIN,
    DELUXE,
    GUEST,
    LOFT,
    OTHER,
    STANDARD,
    SUITE,
    add_booking,
    seed_hotel,
    today,
)


@pytest_asyncio.fixture
async def store():
    return await seed_hotel(InMemoryRecordStore())


@pytest.fixture
def lifecycle(store):
    return BookingLifecycle(store, BookingEngine(store, today=today), today=today)


async def _status(store, booking_id):
    return (await store.get(BOOKINGS, booking_id)).data["status"]


async def _room_status(store, room_id):
    return (await store.get(ROOMS, room_id)).data["status"]


async def _notices(store, user_id="user-guest"):
    docs = await store.query(NOTIFICATIONS, [("userId", "==", user_id)], order_by="createdAt")
    return [d.data for d in docs]


# ---------------------------------------------------------------------------
# Happy path: pending → confirmed → checked-in → completed
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_full_stay(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-05-01", "2024-05-03")

    await lifecycle.confirm("b1", ADMIN)
    assert await _status(store, "b1") == "confirmed"
    assert await _room_status(store, STANDARD) == "available"

    await lifecycle.check_in("b1", GUEST)
    assert await _status(store, "b1") == "checked-in"
    assert await _room_status(store, STANDARD) == "booked"
    assert (await store.get(BOOKINGS, "b1")).data["checkedInAt"]

    await lifecycle.check_out("b1", GUEST)
    assert await _status(store, "b1") == "completed"
    assert await _room_status(store, STANDARD) == "available"

    titles = [n["title"] for n in await _notices(store)]
    assert titles == ["Booking Confirmed", "Check-in Completed", "Stay Completed"]


@pytest.mark.asyncio
async def test_notification_points_at_booking(store, lifecycle):
    await add_booking(store, "b1")
    await lifecycle.confirm("b1", ADMIN)
    [notice] = await _notices(store)
    assert notice["referenceId"] == "b1"
    assert notice["read"] is False
    assert "Garden Standard" in notice["message"]


@pytest.mark.asyncio
async def test_only_staff_confirm(store, lifecycle):
    await add_booking(store, "b1")
    with pytest.raises(PermissionDenied):
        await lifecycle.confirm("b1", GUEST)
    assert await _status(store, "b1") == "pending"


@pytest.mark.asyncio
async def test_illegal_transition_refused(store, lifecycle):
    await add_booking(store, "b1")
    with pytest.raises(InvalidTransition):
        await lifecycle.complete("b1", ADMIN)
    assert await _status(store, "b1") == "pending"
    assert await _notices(store) == []


@pytest.mark.asyncio
async def test_unknown_booking(lifecycle):
    with pytest.raises(NotFound):
        await lifecycle.confirm("nope", ADMIN)


# ---------------------------------------------------------------------------
# Check-in / check-out preconditions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_pending_booking_cannot_check_in(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-05-01", "2024-05-03")
    with pytest.raises(InvalidTransition, match="Only confirmed bookings"):
        await lifecycle.check_in("b1", GUEST)


@pytest.mark.asyncio
async def test_check_in_not_before_arrival_date(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-05-10", "2024-05-12", "confirmed")
    with pytest.raises(InvalidTransition, match="10 May 2024"):
        await lifecycle.check_in("b1", GUEST)
    assert await _room_status(store, STANDARD) == "available"


@pytest.mark.asyncio
async def test_check_out_requires_check_in(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-05-01", "2024-05-03", "confirmed")
    with pytest.raises(InvalidTransition, match="check in"):
        await lifecycle.check_out("b1", GUEST)


@pytest.mark.asyncio
async def test_strangers_cannot_check_in(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-05-01", "2024-05-03", "confirmed")
    with pytest.raises(PermissionDenied):
        await lifecycle.check_in("b1", OTHER)


@pytest.mark.asyncio
async def test_maintenance_room_keeps_its_status(store, lifecycle):
    await add_booking(store, "b1", LOFT, "2024-05-01", "2024-05-03", "confirmed")
    await lifecycle.check_in("b1", ADMIN)
    assert await _room_status(store, LOFT) == "maintenance"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_guest_cancels_own_pending_booking(store, lifecycle):
    await add_booking(store, "b1")
    booking = await lifecycle.cancel("b1", GUEST)
    assert booking.status == "cancelled"
    doc = await store.get(BOOKINGS, "b1")
    assert doc.data["status"] == "cancelled"
    assert doc.data["cancelledBy"] == "guest"
    assert await _room_status(store, STANDARD) == "available"
    assert await _notices(store) == []


@pytest.mark.asyncio
async def test_cancel_twice(store, lifecycle):
    await add_booking(store, "b1")
    await lifecycle.cancel("b1", GUEST)
    with pytest.raises(AlreadyCancelled):
        await lifecycle.cancel("b1", GUEST)


@pytest.mark.asyncio
async def test_cannot_cancel_someone_elses_booking(store, lifecycle):
    await add_booking(store, "b1")
    with pytest.raises(PermissionDenied):
        await lifecycle.cancel("b1", OTHER)
    assert await _status(store, "b1") == "pending"


@pytest.mark.asyncio
async def test_guest_cannot_cancel_confirmed_booking(store, lifecycle):
    await add_booking(store, "b1", status="confirmed")
    with pytest.raises(InvalidTransition, match="front desk"):
        await lifecycle.cancel("b1", GUEST)


@pytest.mark.asyncio
async def test_guest_cannot_cancel_after_arrival_date(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-04-28", "2024-05-03")
    with pytest.raises(InvalidTransition, match="check-in date has passed"):
        await lifecycle.cancel("b1", GUEST)


@pytest.mark.asyncio
async def test_staff_cancel_frees_room_and_notifies(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-05-01", "2024-05-03", "confirmed")
    await lifecycle.check_in("b1", GUEST)
    assert await _room_status(store, STANDARD) == "booked"

    await lifecycle.cancel("b1", ADMIN)
    assert await _status(store, "b1") == "cancelled"
    assert await _room_status(store, STANDARD) == "available"
    assert (await store.get(BOOKINGS, "b1")).data["cancelledBy"] == "staff"
    assert (await _notices(store))[-1]["title"] == "Booking Cancelled"


@pytest.mark.asyncio
async def test_completed_stay_cannot_be_cancelled(store, lifecycle):
    await add_booking(store, "b1", status="completed")
    with pytest.raises(InvalidTransition):
        await lifecycle.cancel("b1", ADMIN)


# ---------------------------------------------------------------------------
# Room moves, deletes and food orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_move_to_room_reprices(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-06-01", "2024-06-03")
    booking, quote = await lifecycle.move_to_room("b1", SUITE, GUEST)
    assert booking.room_id == SUITE
    assert quote.total_price == Decimal("640")
    data = (await store.get(BOOKINGS, "b1")).data
    assert data["roomId"] == SUITE
    assert data["roomName"] == "Ocean Suite"
    assert data["totalPrice"] == 640.0
    assert data["status"] == "pending"


@pytest.mark.asyncio
async def test_move_refused_when_target_taken(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-06-01", "2024-06-03")
    await add_booking(store, "b2", DELUXE, "2024-06-02", "2024-06-04", user_id="user-other")
    with pytest.raises(ConflictError):
        await lifecycle.move_to_room("b1", DELUXE, GUEST)
    assert (await store.get(BOOKINGS, "b1")).data["roomId"] == STANDARD


@pytest.mark.asyncio
async def test_checked_in_guest_moves_occupancy(store, lifecycle):
    await add_booking(store, "b1", STANDARD, "2024-04-30", "2024-05-03", "checked-in")
    await store.update(ROOMS, STANDARD, {"status": "booked"})
    await lifecycle.move_to_room("b1", DELUXE, GUEST)
    assert await _room_status(store, STANDARD) == "available"
    assert await _room_status(store, DELUXE) == "booked"


@pytest.mark.asyncio
async def test_delete_is_staff_only_and_notifies(store, lifecycle):
    await add_booking(store, "b1", status="confirmed")
    with pytest.raises(PermissionDenied):
        await lifecycle.delete("b1", GUEST)
    await lifecycle.delete("b1", ADMIN)
    assert await store.get(BOOKINGS, "b1") is None
    assert (await _notices(store))[-1]["title"] == "Booking Deleted"


@pytest.mark.asyncio
async def test_order_food(store, lifecycle):
    order = await lifecycle.order_food("user-guest", "club sandwich, orange juice")
    assert order.items == ["club sandwich", "orange juice"]
    doc = await store.get(ORDERS, order.id)
    assert doc.data["status"] == "pending"
    assert doc.data["userId"] == "user-guest"


@pytest.mark.asyncio
async def test_empty_food_order_refused(store, lifecycle):
    with pytest.raises(ValidationError, match="at least one food item"):
        await lifecycle.order_food("user-guest", [])
    assert await store.query(ORDERS) == []
