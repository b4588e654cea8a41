"""
Booking state machine.

    pending ──► confirmed ──► checked-in ──► completed
       │            │              │
       └────────────┴──────────────┴──► cancelled

Every transition is dual: the booking's status changes and the paired
room's status is re-derived from the bookings that occupy it.
`BookingLifecycle.transition()` is the only code path that writes a
booking's status, and `_sync_room()` the only one that writes a room's.
The guest-facing operations (cancel, check-in, check-out) check their
preconditions and then go through transition().
"""

import logging
from datetime import date
from typing import Any, Callable

from receptionist.domain.errors import (
    AlreadyCancelled,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from receptionist.domain.records import (
    ACTIVE_STATUSES,
    BOOKINGS,
    NOTIFICATIONS,
    ORDERS,
    ROOMS,
    Booking,
    Caller,
    Notification,
    Order,
)
from receptionist.domain.store import RecordStore, now_iso
from receptionist.pricing import BookingEngine, Quote, parse_date
from receptionist.speech import spoken_date

log = logging.getLogger(__name__)

TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("checked-in", "cancelled"),
    "checked-in": ("completed", "cancelled"),
}

# Room value while a guest is checked in
OCCUPIED = "booked"

_NOTICES = {
    "confirmed": ("Booking Confirmed", "Your booking for {room} has been confirmed."),
    "checked-in": ("Check-in Completed", "You have been checked in to {room}. Enjoy your stay!"),
    "completed": (
        "Stay Completed",
        "Your stay at {room} has been marked as completed. We hope you enjoyed your stay!",
    ),
    "cancelled": ("Booking Cancelled", "Your booking for {room} has been cancelled by the hotel."),
}

_NOT_FOUND = "I could not find that booking. Please check the booking ID and try again."
_CANCEL_DENIED = (
    "You do not have permission to cancel this booking. "
    "Only the person who made the booking can cancel it."
)
_MANAGE_DENIED = (
    "You do not have permission to manage this booking. "
    "Only the person who made the booking can perform this action."
)
_STAFF_ONLY = "Only hotel staff can perform this action."


class BookingLifecycle:

    def __init__(
        self,
        store: RecordStore,
        engine: BookingEngine,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._engine = engine
        self._today = today

    # -- core transition -----------------------------------------------------

    async def transition(self, booking_id: str, target: str, actor: Caller) -> Booking:
        """Move a booking to `target`, re-sync its room and notify the guest."""
        async with self._store.transaction():
            booking = await self.load(booking_id)
            if target not in TRANSITIONS.get(booking.status, ()):
                raise InvalidTransition(
                    f"A booking that is {booking.status} cannot be changed to {target}."
                )
            by_staff = actor.is_admin and not actor.owns(booking)
            changes: dict[str, Any] = {"status": target}
            if target == "checked-in":
                changes["checkedInAt"] = now_iso()
            elif target == "completed":
                changes["checkedOutAt"] = now_iso()
            elif target == "cancelled":
                changes["cancelledBy"] = "staff" if by_staff else "guest"
            await self._store.update(BOOKINGS, booking.id, changes)
            previous, booking.status = booking.status, target

            await self._sync_room(booking.room_id)
            # Guests are told about their own cancellations directly, not by notification
            if target != "cancelled" or by_staff:
                title, template = _NOTICES[target]
                await self._notify(booking, title, template.format(room=booking.room_name))

        log.info(
            "booking=%s %s → %s room=%s actor=%s",
            booking.id, previous, target, booking.room_id, actor.user_id or "anonymous",
        )
        return booking

    async def _sync_room(self, room_id: str) -> None:
        """Room is OCCUPIED while any booking on it is checked in, else available."""
        doc = await self._store.get(ROOMS, room_id)
        if doc is None:
            log.warning("room=%s missing while syncing status", room_id)
            return
        current = doc.data.get("status")
        if current == "maintenance":
            return
        occupied = await self._store.query(
            BOOKINGS, [("roomId", "==", room_id), ("status", "==", "checked-in")], limit=1
        )
        status = OCCUPIED if occupied else "available"
        if current != status:
            await self._store.update(ROOMS, room_id, {"status": status})
            log.debug("room=%s status %s → %s", room_id, current, status)

    async def _notify(self, booking: Booking, title: str, message: str) -> None:
        notice = Notification(
            user_id=booking.user_id,
            title=title,
            message=message,
            reference_id=booking.id,
        )
        await self._store.create(NOTIFICATIONS, notice.to_record())

    async def load(self, booking_id: str) -> Booking:
        doc = await self._store.get(BOOKINGS, booking_id) if booking_id else None
        if doc is None:
            raise NotFound(_NOT_FOUND)
        return Booking.from_record(doc.id, doc.data)

    # -- guest operations ----------------------------------------------------

    async def cancel(self, booking_id: str, caller: Caller) -> Booking:
        """
        Guests may cancel their own pending bookings before the check-in
        date.  Staff may cancel any booking that is not finished.
        """
        async with self._store.transaction():
            booking = await self.load(booking_id)
            if not (caller.owns(booking) or caller.is_admin):
                raise PermissionDenied(_CANCEL_DENIED)
            if booking.status == "cancelled":
                raise AlreadyCancelled("This booking has already been cancelled. No further action is needed.")
            if booking.status == "completed":
                raise InvalidTransition(
                    "This stay has already been completed, so the booking can no longer be cancelled."
                )
            if not caller.is_admin:
                if parse_date(booking.check_in_date) < self._today():
                    raise InvalidTransition(
                        "I cannot cancel a booking after the check-in date has passed. "
                        "Please contact the front desk for assistance."
                    )
                if booking.status != "pending":
                    raise InvalidTransition(
                        f"Your booking is already {booking.status}, so I cannot cancel it directly. "
                        "Please contact the front desk for assistance."
                    )
            return await self.transition(booking.id, "cancelled", caller)

    async def check_in(self, booking_id: str, caller: Caller) -> Booking:
        async with self._store.transaction():
            booking = await self.load(booking_id)
            if not (caller.owns(booking) or caller.is_admin):
                raise PermissionDenied(_MANAGE_DENIED)
            if booking.status != "confirmed":
                raise InvalidTransition(
                    f"I cannot check you in because your booking status is {booking.status}. "
                    "Only confirmed bookings can be checked in."
                )
            if self._today() < parse_date(booking.check_in_date):
                raise InvalidTransition(
                    f"Check-in is only available from {spoken_date(booking.check_in_date)}."
                )
            return await self.transition(booking.id, "checked-in", caller)

    async def check_out(self, booking_id: str, caller: Caller) -> Booking:
        async with self._store.transaction():
            booking = await self.load(booking_id)
            if not (caller.owns(booking) or caller.is_admin):
                raise PermissionDenied(_MANAGE_DENIED)
            if booking.status != "checked-in":
                raise InvalidTransition("You need to check in before you can check out. Please check in first.")
            return await self.transition(booking.id, "completed", caller)

    async def move_to_room(
        self, booking_id: str, new_room_id: str, caller: Caller
    ) -> tuple[Booking, Quote]:
        """Upgrade: same dates and guests in another room, price recomputed."""
        async with self._store.transaction():
            booking = await self.load(booking_id)
            if not (caller.owns(booking) or caller.is_admin):
                raise PermissionDenied(_MANAGE_DENIED)
            if booking.status not in ACTIVE_STATUSES:
                raise InvalidTransition(f"A {booking.status} booking cannot be moved to another room.")
            if new_room_id == booking.room_id:
                raise ValidationError("Your booking is already for that room.")

            quote = await self._engine.quote(
                new_room_id,
                booking.check_in_date,
                booking.check_out_date,
                booking.guest_count,
                exclude_booking_id=booking.id,
                allow_past=booking.status == "checked-in",
            )
            old_room_id = booking.room_id
            await self._store.update(BOOKINGS, booking.id, {
                "roomId": quote.room.id,
                "roomName": quote.room.name,
                "totalPrice": float(quote.total_price),
            })
            booking.room_id = quote.room.id
            booking.room_name = quote.room.name
            booking.total_price = quote.total_price

            await self._sync_room(old_room_id)
            await self._sync_room(quote.room.id)

        log.info("booking=%s moved room %s → %s price=%s", booking.id, old_room_id, booking.room_id, booking.total_price)
        return booking, quote

    async def order_food(self, user_id: str, items: Any) -> Order:
        """Food orders are independent of bookings: validate, persist, done."""
        if isinstance(items, str):
            items = items.split(",")
        if not isinstance(items, (list, tuple)):
            raise ValidationError("Please specify at least one food item to order.")
        cleaned = [str(item).strip() for item in items if str(item).strip()]
        if not cleaned:
            raise ValidationError("Please specify at least one food item to order.")

        order = Order(user_id=user_id, items=cleaned, ordered_at=now_iso())
        order.id = await self._store.create(ORDERS, order.to_record())
        log.info("order=%s user=%s items=%d", order.id, user_id, len(cleaned))
        return order

    # -- staff operations ----------------------------------------------------

    async def confirm(self, booking_id: str, actor: Caller) -> Booking:
        if not actor.is_admin:
            raise PermissionDenied(_STAFF_ONLY)
        return await self.transition(booking_id, "confirmed", actor)

    async def complete(self, booking_id: str, actor: Caller) -> Booking:
        if not actor.is_admin:
            raise PermissionDenied(_STAFF_ONLY)
        return await self.transition(booking_id, "completed", actor)

    async def delete(self, booking_id: str, actor: Caller) -> Booking:
        """Remove a booking outright, freeing its room if it held one."""
        if not actor.is_admin:
            raise PermissionDenied(_STAFF_ONLY)
        async with self._store.transaction():
            booking = await self.load(booking_id)
            await self._store.delete(BOOKINGS, booking.id)
            if booking.status in ("confirmed", "checked-in"):
                await self._sync_room(booking.room_id)
            await self._notify(
                booking,
                "Booking Deleted",
                f"Your booking for {booking.room_name} from {spoken_date(booking.check_in_date)} "
                f"to {spoken_date(booking.check_out_date)} has been removed by the hotel.",
            )
        log.info("booking=%s deleted by=%s", booking.id, actor.user_id)
        return booking
