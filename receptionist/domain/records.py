"""
Typed views over the documents kept in the record store.

Documents use camelCase keys (the wire shape shared with the mobile
clients); the dataclasses use snake_case.  `from_record` / `to_record`
are the only places that know about the mapping.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

RoomType = Literal["standard", "deluxe", "suite", "executive"]
RoomStatus = Literal["available", "booked", "maintenance"]
BookingStatus = Literal["pending", "confirmed", "checked-in", "completed", "cancelled"]

ROOM_TYPES = ("standard", "deluxe", "suite", "executive")

# Bookings in these states hold their date range on the room
ACTIVE_STATUSES = ("pending", "confirmed", "checked-in")
TERMINAL_STATUSES = ("cancelled", "completed")

ROOMS = "rooms"
BOOKINGS = "bookings"
ORDERS = "orders"
COMPLAINTS = "complaints"
NOTIFICATIONS = "notifications"
USERS = "users"
FAQS = "faqs"
RECEPTION = "reception"


def to_decimal(value: Any) -> Decimal:
    """Documents hold prices as JSON numbers; go through str to keep them exact."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


@dataclass
class Room:
    id: str
    name: str
    type: str                    # one of ROOM_TYPES
    price_per_night: Decimal
    capacity: int
    amenities: list[str] = field(default_factory=list)
    status: RoomStatus = "available"
    description: str = ""

    @classmethod
    def from_record(cls, doc_id: str, data: dict[str, Any]) -> "Room":
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            type=data.get("type", "standard"),
            price_per_night=to_decimal(data.get("pricePerNight")),
            capacity=int(data.get("capacity") or 1),
            amenities=list(data.get("amenities") or []),
            status=data.get("status", "available"),
            description=data.get("description", ""),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "pricePerNight": float(self.price_per_night),
            "capacity": self.capacity,
            "amenities": list(self.amenities),
            "status": self.status,
            "description": self.description,
        }


@dataclass
class Booking:
    id: str
    room_id: str
    user_id: str
    check_in_date: str           # ISO "2026-04-01"
    check_out_date: str          # ISO, strictly after check_in_date
    guest_count: int
    total_price: Decimal
    status: BookingStatus = "pending"
    room_name: str = ""
    guest_name: str = ""
    guest_email: str = ""
    special_requests: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @classmethod
    def from_record(cls, doc_id: str, data: dict[str, Any]) -> "Booking":
        return cls(
            id=doc_id,
            room_id=data.get("roomId", ""),
            user_id=data.get("userId", ""),
            check_in_date=data.get("checkInDate", ""),
            check_out_date=data.get("checkOutDate", ""),
            guest_count=int(data.get("guestCount") or 1),
            total_price=to_decimal(data.get("totalPrice")),
            status=data.get("status", "pending"),
            room_name=data.get("roomName", ""),
            guest_name=data.get("guestName", ""),
            guest_email=data.get("guestEmail", ""),
            special_requests=data.get("specialRequests", ""),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "roomId": self.room_id,
            "userId": self.user_id,
            "checkInDate": self.check_in_date,
            "checkOutDate": self.check_out_date,
            "guestCount": self.guest_count,
            "totalPrice": float(self.total_price),
            "status": self.status,
            "roomName": self.room_name,
            "guestName": self.guest_name,
            "guestEmail": self.guest_email,
            "specialRequests": self.special_requests,
        }


@dataclass
class Order:
    user_id: str
    items: list[str]
    status: str = "pending"
    ordered_at: str = ""
    id: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "items": list(self.items),
            "status": self.status,
            "orderedAt": self.ordered_at,
        }


@dataclass
class Complaint:
    user_id: str
    subject: str
    description: str
    category: str = "general"
    priority: Literal["low", "medium", "high"] = "medium"
    status: str = "pending"
    id: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "subject": self.subject,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
        }


@dataclass
class Notification:
    user_id: str
    title: str
    message: str
    reference_id: str
    type: str = "booking"
    read: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "referenceId": self.reference_id,
            "read": self.read,
        }


@dataclass
class User:
    id: str
    email: str
    name: str = ""
    role: Literal["guest", "admin"] = "guest"
    phone: str = ""

    @classmethod
    def from_record(cls, doc_id: str, data: dict[str, Any]) -> "User":
        return cls(
            id=doc_id,
            email=data.get("email", ""),
            name=data.get("name", ""),
            role=data.get("role", "guest"),
            phone=data.get("phoneNumber", ""),
        )


@dataclass
class Caller:
    """Who is speaking to the receptionist.  user_id is None for anonymous callers."""
    user_id: str | None
    email: str = ""
    name: str = ""
    is_admin: bool = False

    @property
    def identified(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(user_id=user.id, email=user.email, name=user.name, is_admin=user.role == "admin")

    def owns(self, booking: Booking) -> bool:
        return self.identified and booking.user_id == self.user_id


@dataclass
class SessionRequest:
    """One utterance written to the reception collection by a caller."""
    id: str
    transcript: str
    email: str = ""
    session_id: str = ""
    role: str = "user"
    processed: bool = False
    result: str | None = None
    error: str | None = None
    function_call: dict[str, Any] | None = None
    function_response: dict[str, Any] | None = None

    @classmethod
    def from_record(cls, doc_id: str, data: dict[str, Any]) -> "SessionRequest":
        return cls(
            id=doc_id,
            transcript=data.get("transcript") or "",
            email=data.get("email") or "",
            session_id=data.get("sessionId") or "",
            role=data.get("role") or "user",
            processed=bool(data.get("processed")),
            result=data.get("result"),
            error=data.get("error"),
            function_call=data.get("functionCall"),
            function_response=data.get("functionResponse"),
        )
