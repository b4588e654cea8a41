"""
Fast path: deterministic intent matching that bypasses the model.

Matchers run in a fixed order against the lowercased utterance and the
first one whose trigger phrase appears wins.  Parameters are pulled out
of the utterance with simple rules and defaulted where a sensible
default exists; whatever is still missing turns into a clarification
question instead of an operation.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Awaitable, Callable

from receptionist.domain.records import BOOKINGS, ROOMS, Booking, Caller, Room
from receptionist.domain.store import RecordStore
from receptionist.operations import FunctionName, HotelOperations, OperationResult
from receptionist.speech import join_naturally

log = logging.getLogger(__name__)

VIEW_BOOKINGS_TRIGGERS = ("my bookings", "show me my bookings", "view my bookings", "see my bookings")
BOOK_ROOM_TRIGGERS = ("book a room", "reserve a room", "i need a room", "get me a room")
CANCEL_TRIGGERS = ("cancel booking", "cancel my booking", "cancel reservation", "cancel my reservation")
FOOD_TRIGGERS = ("order food", "room service", "i'm hungry", "food delivery")
CHECK_IN_TRIGGERS = ("check in", "checking in")
CHECK_OUT_TRIGGERS = ("check out", "checking out")

FOOD_KEYWORDS = ("pizza", "burger", "sandwich", "salad", "pasta", "breakfast", "lunch", "dinner", "meal")
DEFAULT_FOOD_ITEM = "room service meal"

# "what time is check in?" asks about the policy, it does not request the action
_QUESTION = re.compile(r"\?|^\s*(?:what|when|how|where|until|is|are|does|do)\b")
_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")
_GUESTS = re.compile(r"(\d+)\s+guests?", re.IGNORECASE)
_BOOKING_REF = re.compile(
    r"booking\s+(?:id\s+)?([a-zA-Z0-9]+)|(?:id|number)\s+([a-zA-Z0-9]+)", re.IGNORECASE
)

_PURPOSE = {
    "book_room": "book a room",
    "cancel_booking": "cancel your booking",
    "check_in": "check you in",
    "check_out": "check you out",
}

_FAILURE_PREFIX = {
    "book_room": "I couldn't book the room.",
    "cancel_booking": "I couldn't cancel the booking.",
    "order_food": "I couldn't place your food order.",
    "check_in": "I couldn't process your check-in.",
    "check_out": "I couldn't process your check-out.",
}


@dataclass
class FastPathMatch:
    intent: str                    # "view_bookings", "book_room", "cancel_booking", ...
    function: FunctionName
    parameters: dict[str, Any] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)   # readable names of unresolved fields

    def clarification(self) -> str:
        purpose = _PURPOSE.get(self.intent, "help you")
        return (
            f"To {purpose}, I need the following information: {join_naturally(self.missing)}. "
            "Could you please provide it?"
        )

    def reply_for(self, result: OperationResult) -> str:
        if result.success or self.intent not in _FAILURE_PREFIX:
            return result.message
        return f"{_FAILURE_PREFIX[self.intent]} {result.message}"


def _normalize(text: str) -> str:
    return text.lower().replace("’", "'")


class FastPathMatcher:

    def __init__(
        self,
        store: RecordStore,
        operations: HotelOperations,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._operations = operations
        self._today = today
        self._matchers: list[tuple[tuple[str, ...], Callable[[str, str, Caller], Awaitable[FastPathMatch | None]]]] = [
            (VIEW_BOOKINGS_TRIGGERS, self._view_bookings),
            (BOOK_ROOM_TRIGGERS, self._book_room),
            (CANCEL_TRIGGERS, self._cancel_booking),
            (FOOD_TRIGGERS, self._order_food),
            (CHECK_IN_TRIGGERS + CHECK_OUT_TRIGGERS, self._check_in_out),
        ]

    async def match(self, transcript: str, caller: Caller) -> FastPathMatch | None:
        """Return the first matching intent, or None to defer to the slow path."""
        # Every fast-path intent acts on the caller's own records
        if not caller.identified:
            return None
        text = _normalize(transcript)
        for triggers, extract in self._matchers:
            if any(trigger in text for trigger in triggers):
                found = await extract(text, transcript, caller)
                if found is None:
                    continue
                log.info(
                    "fast path user=%s intent=%s missing=%s",
                    caller.user_id, found.intent, found.missing or "-",
                )
                return found
        return None

    # -- extractors ------------------------------------------------------------

    async def _view_bookings(self, text: str, transcript: str, caller: Caller) -> FastPathMatch:
        return FastPathMatch("view_bookings", FunctionName.GET_USER_BOOKINGS)

    async def _book_room(self, text: str, transcript: str, caller: Caller) -> FastPathMatch:
        room = await self._find_room(text)
        check_in, check_out = self._stay_dates(text)
        guests_match = _GUESTS.search(text)
        guests = int(guests_match.group(1)) if guests_match else 1

        missing = [
            label
            for label, value in (("room", room), ("check-in date", check_in), ("check-out date", check_out))
            if not value
        ]
        return FastPathMatch(
            "book_room",
            FunctionName.BOOK_ROOM,
            {
                "roomId": room.id if room else None,
                "checkInDate": check_in,
                "checkOutDate": check_out,
                "numberOfGuests": guests,
                "guestName": caller.name,
                "guestEmail": caller.email,
            },
            missing,
        )

    async def _cancel_booking(self, text: str, transcript: str, caller: Caller) -> FastPathMatch:
        booking_id = await self._booking_reference(transcript)
        if booking_id is None:
            # Most recent stay this caller is still allowed to cancel
            candidates = [
                b for b in await self._operations.bookings_for(caller.user_id)
                if self._cancellable_by(b, caller)
            ]
            candidates.sort(key=lambda b: b.check_in_date, reverse=True)
            booking_id = candidates[0].id if candidates else None
        return self._with_booking("cancel_booking", FunctionName.CANCEL_BOOKING, booking_id, {})

    async def _order_food(self, text: str, transcript: str, caller: Caller) -> FastPathMatch:
        items = [keyword for keyword in FOOD_KEYWORDS if keyword in text]
        return FastPathMatch("order_food", FunctionName.ORDER_FOOD, {"items": items or [DEFAULT_FOOD_ITEM]})

    async def _check_in_out(self, text: str, transcript: str, caller: Caller) -> FastPathMatch | None:
        if _QUESTION.search(text):
            return None
        checking_in = any(trigger in text for trigger in CHECK_IN_TRIGGERS)
        action = "check-in" if checking_in else "check-out"
        booking_id = await self._booking_reference(transcript)
        if booking_id is None:
            bookings = await self._operations.bookings_for(caller.user_id)
            booking_id = self._nearest_arrival(bookings) if checking_in else self._current_stay(bookings)
        return self._with_booking(
            "check_in" if checking_in else "check_out",
            FunctionName.PROCESS_CHECK_IN_OUT,
            booking_id,
            {"action": action},
        )

    # -- helpers ---------------------------------------------------------------

    @staticmethod
    def _with_booking(
        intent: str, function: FunctionName, booking_id: str | None, params: dict[str, Any]
    ) -> FastPathMatch:
        return FastPathMatch(
            intent,
            function,
            {"bookingId": booking_id, **params},
            [] if booking_id else ["booking ID"],
        )

    async def _find_room(self, text: str) -> Room | None:
        """A room named in the utterance (longest name wins), else the first available room."""
        docs = await self._store.query(ROOMS, order_by="name")
        rooms = [Room.from_record(d.id, d.data) for d in docs]
        named = [r for r in rooms if r.name and r.name.lower() in text]
        if named:
            return max(named, key=lambda r: len(r.name))
        for room in rooms:
            if room.status == "available":
                return room
        return None

    def _stay_dates(self, text: str) -> tuple[str | None, str | None]:
        found = _DATE.findall(text)
        if len(found) >= 2:
            return found[0], found[1]
        if len(found) == 1:
            try:
                check_out = date.fromisoformat(found[0]) + timedelta(days=2)
            except ValueError:
                return found[0], None
            return found[0], check_out.isoformat()
        tomorrow = self._today() + timedelta(days=1)
        return tomorrow.isoformat(), (tomorrow + timedelta(days=2)).isoformat()

    async def _booking_reference(self, transcript: str) -> str | None:
        """
        A booking id spoken after "booking", "id" or "number".

        The pattern also catches ordinary words ("cancel my booking for
        Friday"), so a candidate only counts if it contains a digit or
        names an existing booking.
        """
        # Overlapping scan: in "booking number 5" the first hit is "number"
        m = _BOOKING_REF.search(transcript)
        while m:
            candidate = m.group(1) or m.group(2)
            if any(ch.isdigit() for ch in candidate):
                return candidate
            if await self._store.get(BOOKINGS, candidate) is not None:
                return candidate
            m = _BOOKING_REF.search(transcript, m.start() + 1)
        return None

    def _cancellable_by(self, booking: Booking, caller: Caller) -> bool:
        """Mirrors BookingLifecycle.cancel: guests only pending stays not yet begun."""
        if caller.is_admin:
            return booking.status in ("pending", "confirmed", "checked-in")
        if booking.status != "pending":
            return False
        try:
            return date.fromisoformat(booking.check_in_date) >= self._today()
        except ValueError:
            return False

    def _nearest_arrival(self, bookings: list[Booking]) -> str | None:
        today = self._today()
        eligible = []
        for b in bookings:
            try:
                arrival = date.fromisoformat(b.check_in_date)
            except ValueError:
                continue
            if b.status == "confirmed" and arrival <= today:
                eligible.append((abs((today - arrival).days), b.id))
        return min(eligible)[1] if eligible else None

    @staticmethod
    def _current_stay(bookings: list[Booking]) -> str | None:
        for b in bookings:
            if b.status == "checked-in":
                return b.id
        return None
