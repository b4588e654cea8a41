"""
Conflict & pricing engine.

Pure date/price rules at the top, the store-backed BookingEngine below.
A stay occupies the half-open window [check-in, check-out): a guest
leaving on the 3rd does not collide with one arriving on the 3rd.

Pricing policy: every guest beyond the first adds 50% of the nightly
rate for each night of the stay.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable

from receptionist.domain.errors import ConflictError, NotFound, ValidationError
from receptionist.domain.records import ACTIVE_STATUSES, BOOKINGS, ROOMS, Booking, Room
from receptionist.domain.store import RecordStore
from receptionist.speech import plural, spoken_date

log = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EXTRA_GUEST_RATE = Decimal("0.5")


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _ISO_DATE.match(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError("Invalid date format. Please use YYYY-MM-DD format.")


def parse_guest_count(value: Any) -> int:
    if value is None or value == "":
        return 1
    try:
        if isinstance(value, bool):
            raise ValueError(value)
        count = int(value)
        if count != float(value):
            raise ValueError(value)
    except (TypeError, ValueError):
        raise ValidationError("The number of guests must be a whole number.") from None
    if count < 1:
        raise ValidationError("The number of guests must be at least one.")
    return count


def nights_between(check_in: date, check_out: date) -> int:
    return max(1, (check_out - check_in).days)


def stay_price(nights: int, price_per_night: Decimal, guests: int) -> Decimal:
    base = price_per_night * nights
    if guests > 1:
        base += price_per_night * nights * _EXTRA_GUEST_RATE * (guests - 1)
    return base


def overlaps(start: date, end: date, other_start: date, other_end: date) -> bool:
    return start < other_end and end > other_start


@dataclass
class Quote:
    """An accepted stay: the engine found no reason to refuse it."""
    room: Room
    check_in: date
    check_out: date
    guests: int
    nights: int
    total_price: Decimal


class BookingEngine:
    """
    Decides whether a stay can be booked and what it costs.

    `today` is injectable so tests can pin the calendar.
    """

    def __init__(self, store: RecordStore, today: Callable[[], date] = date.today):
        self._store = store
        self._today = today

    async def quote(
        self,
        room_id: str,
        check_in: Any,
        check_out: Any,
        guests: Any = 1,
        exclude_booking_id: str | None = None,
        allow_past: bool = False,
    ) -> Quote:
        """Validate a stay and price it.  Raises a ReceptionError subclass on refusal."""
        start = parse_date(check_in)
        end = parse_date(check_out)
        if start >= end:
            raise ValidationError("Check-out date must be after check-in date.")
        if not allow_past and start < self._today():
            raise ValidationError("Check-in date cannot be in the past.")
        guest_count = parse_guest_count(guests)

        doc = await self._store.get(ROOMS, room_id) if room_id else None
        if doc is None:
            raise NotFound("I could not find that room. Please choose one of our rooms and try again.")
        room = Room.from_record(doc.id, doc.data)
        if room.status == "maintenance":
            raise ValidationError(f"{room.name} is closed for maintenance and cannot be booked right now.")
        if guest_count > room.capacity:
            raise ValidationError(f"{room.name} can accommodate at most {plural(room.capacity, 'guest')}.")

        conflict = await self.find_conflict(room.id, start, end, exclude_booking_id)
        if conflict is not None:
            raise ConflictError(
                "Room is not available for the requested dates. It is already booked from "
                f"{spoken_date(conflict.check_in_date)} to {spoken_date(conflict.check_out_date)}."
            )

        nights = nights_between(start, end)
        return Quote(
            room=room,
            check_in=start,
            check_out=end,
            guests=guest_count,
            nights=nights,
            total_price=stay_price(nights, room.price_per_night, guest_count),
        )

    async def find_conflict(
        self,
        room_id: str,
        start: date,
        end: date,
        exclude_booking_id: str | None = None,
    ) -> Booking | None:
        """First active booking on the room whose window overlaps [start, end)."""
        docs = await self._store.query(
            BOOKINGS,
            [("roomId", "==", room_id), ("status", "in", list(ACTIVE_STATUSES))],
            order_by="checkInDate",
        )
        for doc in docs:
            if doc.id == exclude_booking_id:
                continue
            existing = Booking.from_record(doc.id, doc.data)
            try:
                existing_start = parse_date(existing.check_in_date)
                existing_end = parse_date(existing.check_out_date)
            except ValidationError:
                log.warning("booking=%s has unreadable dates, ignored in conflict check", doc.id)
                continue
            if overlaps(start, end, existing_start, existing_end):
                return existing
        return None

    async def book(
        self,
        user_id: str,
        room_id: str,
        check_in: Any,
        check_out: Any,
        guests: Any = 1,
        guest_name: str = "",
        guest_email: str = "",
        special_requests: str = "",
    ) -> tuple[Booking, Quote]:
        """
        Create a pending booking.

        The conflict check and the insert run in one store transaction so
        two concurrent requests for the same dates cannot both succeed.
        Room status is left alone: a pending booking does not occupy it.
        """
        async with self._store.transaction():
            quote = await self.quote(room_id, check_in, check_out, guests)
            booking = Booking(
                id="",
                room_id=quote.room.id,
                user_id=user_id,
                check_in_date=quote.check_in.isoformat(),
                check_out_date=quote.check_out.isoformat(),
                guest_count=quote.guests,
                total_price=quote.total_price,
                status="pending",
                room_name=quote.room.name,
                guest_name=guest_name,
                guest_email=guest_email,
                special_requests=special_requests or "",
            )
            booking.id = await self._store.create(BOOKINGS, booking.to_record())

        log.info(
            "booking=%s room=%s user=%s %s→%s guests=%d price=%s",
            booking.id, booking.room_id, user_id,
            booking.check_in_date, booking.check_out_date, booking.guest_count, booking.total_price,
        )
        return booking, quote
