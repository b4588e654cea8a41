"""
Hotel operations: the fixed set of functions the receptionist can call.

Both tiers of the resolver end up here: the fast path builds the call
itself, the slow path gets it from the language model.  Each operation
returns an OperationResult whose message is a complete sentence; guest
mistakes (ReceptionError) become failed results, store failures propagate.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable

from receptionist.domain.errors import PermissionDenied, ReceptionError, ValidationError
from receptionist.domain.language_model import FunctionSchema
from receptionist.domain.records import (
    BOOKINGS,
    COMPLAINTS,
    ROOM_TYPES,
    ROOMS,
    Booking,
    Caller,
    Complaint,
    Room,
)
from receptionist.domain.store import RecordStore
from receptionist.lifecycle import BookingLifecycle
from receptionist.pricing import BookingEngine, parse_date
from receptionist.speech import join_naturally, money, plural, spoken_date

log = logging.getLogger(__name__)


class FunctionName(str, Enum):
    BOOK_ROOM = "bookRoom"
    UPGRADE_ROOM = "upgradeRoom"
    GET_ROOM_AVAILABILITY = "getRoomAvailability"
    SUBMIT_COMPLAINT = "submitComplaint"
    GET_BOOKING_DETAILS = "getBookingDetails"
    CANCEL_BOOKING = "cancelBooking"
    ORDER_FOOD = "orderFood"
    PROCESS_CHECK_IN_OUT = "processCheckInOut"
    GET_USER_BOOKINGS = "getUserBookings"


READ_FUNCTIONS = frozenset({
    FunctionName.GET_ROOM_AVAILABILITY,
    FunctionName.GET_BOOKING_DETAILS,
    FunctionName.GET_USER_BOOKINGS,
})

FUNCTION_SCHEMAS = [
    FunctionSchema(
        name=FunctionName.BOOK_ROOM.value,
        description="Book a room for a guest",
        parameters={
            "roomId": "ID of the room to book",
            "checkInDate": "Check-in date in YYYY-MM-DD format",
            "checkOutDate": "Check-out date in YYYY-MM-DD format",
            "guestName": "Name of the guest",
            "guestEmail": "Email of the guest",
            "specialRequests": "Any special requests (optional)",
            "numberOfGuests": "Number of guests staying (optional, default 1)",
        },
        required=["roomId", "checkInDate", "checkOutDate", "guestName", "guestEmail"],
    ),
    FunctionSchema(
        name=FunctionName.UPGRADE_ROOM.value,
        description="Upgrade a guest's room to a better category",
        parameters={
            "bookingId": "ID of the current booking",
            "newRoomId": "ID of the room to upgrade to",
        },
        required=["bookingId", "newRoomId"],
    ),
    FunctionSchema(
        name=FunctionName.GET_ROOM_AVAILABILITY.value,
        description="Get real-time availability of rooms",
        parameters={
            "roomType": "Type of room: standard, deluxe, suite or executive (optional)",
            "checkInDate": "Check-in date in YYYY-MM-DD format (optional)",
            "checkOutDate": "Check-out date in YYYY-MM-DD format (optional)",
        },
    ),
    FunctionSchema(
        name=FunctionName.SUBMIT_COMPLAINT.value,
        description="Submit a complaint or feedback",
        parameters={
            "subject": "Subject of the complaint",
            "description": "Detailed description of the complaint",
            "category": "Category of complaint (e.g., room, service, food)",
            "priority": "Priority level (low, medium, high)",
        },
        required=["subject", "description"],
    ),
    FunctionSchema(
        name=FunctionName.GET_BOOKING_DETAILS.value,
        description="Get details of a specific booking, or all of the guest's bookings",
        parameters={"bookingId": "ID of the booking (optional)"},
    ),
    FunctionSchema(
        name=FunctionName.CANCEL_BOOKING.value,
        description="Cancel a booking",
        parameters={"bookingId": "ID of the booking to cancel"},
        required=["bookingId"],
    ),
    FunctionSchema(
        name=FunctionName.ORDER_FOOD.value,
        description="Order food items to the guest's room",
        parameters={"items": "List of food items to order"},
        required=["items"],
        array_parameters=["items"],
    ),
    FunctionSchema(
        name=FunctionName.PROCESS_CHECK_IN_OUT.value,
        description="Process check-in or check-out for a booking",
        parameters={
            "bookingId": "ID of the booking",
            "action": "Action to perform: check-in or check-out",
        },
        required=["bookingId", "action"],
    ),
    FunctionSchema(
        name=FunctionName.GET_USER_BOOKINGS.value,
        description="List the current guest's bookings",
        parameters={},
    ),
]

_LOGIN_REQUIRED = "You need to be logged in to do that. Please log in and try again."

# Readable names for missing-parameter messages
_PARAM_LABELS = {
    "roomId": "room",
    "checkInDate": "check-in date",
    "checkOutDate": "check-out date",
    "bookingId": "booking ID",
    "newRoomId": "new room",
    "description": "complaint description",
    "action": "check-in or check-out action",
}


@dataclass
class OperationResult:
    success: bool
    message: str                                          # complete sentence for the guest
    data: dict[str, Any] = field(default_factory=dict)    # machine-readable details
    is_read: bool = False

    def to_record(self) -> dict[str, Any]:
        return {"success": self.success, "result": self.message, **self.data}


def _require(params: dict[str, Any], *names: str) -> None:
    missing = [n for n in names if params.get(n) in (None, "")]
    if missing:
        labels = [_PARAM_LABELS.get(n, n) for n in missing]
        raise ValidationError(f"I still need the following information: {join_naturally(labels)}.")


class HotelOperations:

    def __init__(
        self,
        store: RecordStore,
        engine: BookingEngine,
        lifecycle: BookingLifecycle,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._engine = engine
        self._lifecycle = lifecycle
        self._today = today
        self._handlers = {
            FunctionName.BOOK_ROOM: self._book_room,
            FunctionName.UPGRADE_ROOM: self._upgrade_room,
            FunctionName.GET_ROOM_AVAILABILITY: self._room_availability,
            FunctionName.SUBMIT_COMPLAINT: self._submit_complaint,
            FunctionName.GET_BOOKING_DETAILS: self._booking_details,
            FunctionName.CANCEL_BOOKING: self._cancel_booking,
            FunctionName.ORDER_FOOD: self._order_food,
            FunctionName.PROCESS_CHECK_IN_OUT: self._check_in_out,
            FunctionName.GET_USER_BOOKINGS: self._user_bookings,
        }

    async def execute(
        self, name: FunctionName, params: dict[str, Any] | None, caller: Caller
    ) -> OperationResult:
        params = dict(params or {})
        is_read = name in READ_FUNCTIONS
        log.debug("execute %s user=%s params=%s", name.value, caller.user_id, params)
        try:
            if name is not FunctionName.GET_ROOM_AVAILABILITY and not caller.identified:
                raise PermissionDenied(_LOGIN_REQUIRED)
            result = await self._handlers[name](params, caller)
        except ReceptionError as exc:
            log.info("%s refused user=%s: %s", name.value, caller.user_id, exc)
            return OperationResult(False, exc.message, is_read=is_read)
        result.is_read = is_read
        return result

    # -- writes --------------------------------------------------------------

    async def _book_room(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        _require(params, "roomId", "checkInDate", "checkOutDate")
        booking, quote = await self._engine.book(
            user_id=caller.user_id,
            room_id=str(params["roomId"]),
            check_in=params["checkInDate"],
            check_out=params["checkOutDate"],
            guests=params.get("numberOfGuests"),
            guest_name=params.get("guestName") or caller.name,
            guest_email=params.get("guestEmail") or caller.email,
            special_requests=params.get("specialRequests") or "",
        )
        message = (
            f"Room {quote.room.name} has been booked from {spoken_date(quote.check_in)} "
            f"to {spoken_date(quote.check_out)} for {plural(quote.guests, 'guest')}. "
            f"Your booking is pending confirmation. Total price: {money(quote.total_price)} "
            f"for {plural(quote.nights, 'night')}. Your booking ID is {booking.id}."
        )
        return OperationResult(True, message, {
            "bookingId": booking.id,
            "roomId": booking.room_id,
            "checkInDate": booking.check_in_date,
            "checkOutDate": booking.check_out_date,
            "nights": quote.nights,
            "totalPrice": float(booking.total_price),
        })

    async def _upgrade_room(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        _require(params, "bookingId", "newRoomId")
        booking, quote = await self._lifecycle.move_to_room(
            str(params["bookingId"]), str(params["newRoomId"]), caller
        )
        message = (
            f"Your booking has been moved to {quote.room.name}. The new total price is "
            f"{money(quote.total_price)} for {plural(quote.nights, 'night')}."
        )
        return OperationResult(True, message, {
            "bookingId": booking.id,
            "roomId": booking.room_id,
            "totalPrice": float(booking.total_price),
        })

    async def _submit_complaint(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        _require(params, "description")
        priority = str(params.get("priority") or "medium").lower()
        if priority not in ("low", "medium", "high"):
            raise ValidationError("Priority must be low, medium, or high.")
        complaint = Complaint(
            user_id=caller.user_id,
            subject=str(params.get("subject") or "General feedback"),
            description=str(params["description"]),
            category=str(params.get("category") or "general").lower(),
            priority=priority,
        )
        complaint.id = await self._store.create(COMPLAINTS, complaint.to_record())
        hours = 24 if priority == "high" else 48
        log.info("complaint=%s user=%s priority=%s", complaint.id, caller.user_id, priority)
        return OperationResult(
            True,
            f"Your complaint has been submitted. Our staff will respond within {hours} hours.",
            {"complaintId": complaint.id, "estimatedResponseHours": hours},
        )

    async def _cancel_booking(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        _require(params, "bookingId")
        booking = await self._lifecycle.cancel(str(params["bookingId"]), caller)
        return OperationResult(
            True,
            f"Your booking for {booking.room_name} from {spoken_date(booking.check_in_date)} "
            f"to {spoken_date(booking.check_out_date)} has been successfully cancelled.",
            {"bookingId": booking.id, "status": booking.status},
        )

    async def _order_food(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        order = await self._lifecycle.order_food(caller.user_id, params.get("items"))
        return OperationResult(
            True,
            f"Your food order with {join_naturally(order.items)} has been placed successfully. "
            f"Your order ID is {order.id}.",
            {"orderId": order.id, "items": order.items},
        )

    async def _check_in_out(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        _require(params, "bookingId", "action")
        action = str(params["action"]).lower().replace("_", "-").replace(" ", "-")
        booking_id = str(params["bookingId"])
        if action in ("check-in", "checkin"):
            booking = await self._lifecycle.check_in(booking_id, caller)
            message = f"You have successfully checked in to {booking.room_name}. Enjoy your stay!"
        elif action in ("check-out", "checkout"):
            booking = await self._lifecycle.check_out(booking_id, caller)
            message = (
                f"You have successfully checked out from {booking.room_name}. "
                "Thank you for staying with us!"
            )
        else:
            raise ValidationError("Invalid action. Please specify either check-in or check-out.")
        return OperationResult(True, message, {"bookingId": booking.id, "status": booking.status})

    # -- reads ---------------------------------------------------------------

    async def _room_availability(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        room_type = str(params.get("roomType") or "").strip().lower() or None
        if room_type and room_type not in ROOM_TYPES:
            raise ValidationError(f"We offer {join_naturally(list(ROOM_TYPES))} rooms.")

        window = None
        if params.get("checkInDate") or params.get("checkOutDate"):
            _require(params, "checkInDate", "checkOutDate")
            window = (parse_date(params["checkInDate"]), parse_date(params["checkOutDate"]))
            if window[0] >= window[1]:
                raise ValidationError("Check-out date must be after check-in date.")

        filters = [("type", "==", room_type)] if room_type else []
        docs = await self._store.query(ROOMS, filters, order_by="name")
        rooms = [Room.from_record(d.id, d.data) for d in docs]
        available = []
        for room in rooms:
            if room.status == "maintenance":
                continue
            if window is None:
                if room.status == "available":
                    available.append(room)
            elif await self._engine.find_conflict(room.id, *window) is None:
                available.append(room)

        if not available:
            return OperationResult(True, "No rooms available for the specified criteria.", {"rooms": []})
        lines = [
            f"{r.name} ({r.type}): {money(r.price_per_night)}/night. "
            f"Room ID: {r.id} | Max Guests: {r.capacity} | "
            f"Amenities: {', '.join(r.amenities) or 'Standard'}"
            for r in available
        ]
        return OperationResult(True, "\n\n".join(lines), {"rooms": [r.id for r in available]})

    async def _booking_details(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        booking_id = params.get("bookingId")
        if not booking_id:
            return await self._user_bookings(params, caller)

        booking = await self._lifecycle.load(str(booking_id))
        if not (caller.owns(booking) or caller.is_admin):
            raise PermissionDenied("You can only view details of your own bookings.")
        message = "\n".join([
            f"Booking ID: {booking.id}",
            f"Room: {booking.room_name or booking.room_id}",
            f"Total Price: {money(booking.total_price)}",
            f"Number of Guests: {booking.guest_count}",
            f"Check-in: {booking.check_in_date}",
            f"Check-out: {booking.check_out_date}",
            f"Status: {booking.status}",
            f"Special Requests: {booking.special_requests or 'None'}",
        ])
        return OperationResult(True, message, {
            "bookingId": booking.id,
            "roomId": booking.room_id,
            "checkInDate": booking.check_in_date,
            "checkOutDate": booking.check_out_date,
            "guestCount": booking.guest_count,
            "totalPrice": float(booking.total_price),
            "status": booking.status,
        })

    async def _user_bookings(self, params: dict[str, Any], caller: Caller) -> OperationResult:
        bookings = await self.bookings_for(caller.user_id)
        if not bookings:
            return OperationResult(True, "You don't have any bookings at the moment.", {"bookings": []})
        parts = [f"You have {plural(len(bookings), 'booking')}."]
        for index, b in enumerate(bookings, start=1):
            parts.append(
                f"{index}. {b.room_name} from {spoken_date(b.check_in_date)} "
                f"to {spoken_date(b.check_out_date)}. Status is {b.status}."
            )
        return OperationResult(True, " ".join(parts), {"bookings": [b.id for b in bookings]})

    async def bookings_for(self, user_id: str | None) -> list[Booking]:
        """The caller's bookings, newest first."""
        if not user_id:
            return []
        docs = await self._store.query(
            BOOKINGS, [("userId", "==", user_id)], order_by="createdAt", descending=True
        )
        return [Booking.from_record(d.id, d.data) for d in docs]
