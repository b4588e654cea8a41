"""
Degraded-mode answers used when the language model is unavailable.

A keyword table, checked in order, first hit wins.  Answers are built
from live store facts where that is cheap (room counts, amenities, the
caller's bookings) and from the hotel profile otherwise.
"""

from dataclasses import dataclass, field

from receptionist.domain.records import ROOMS, Booking, Room
from receptionist.domain.store import RecordStore
from receptionist.settings import HotelProfile
from receptionist.speech import join_naturally, plural, spoken_date


@dataclass
class FaqFacts:
    available_rooms: list[Room] = field(default_factory=list)
    amenities: list[str] = field(default_factory=list)
    bookings: list[Booking] = field(default_factory=list)   # caller's, newest first


async def gather_facts(store: RecordStore, bookings: list[Booking]) -> FaqFacts:
    docs = await store.query(ROOMS, order_by="name")
    rooms = [Room.from_record(d.id, d.data) for d in docs]
    amenities: list[str] = []
    for room in rooms:
        for amenity in room.amenities:
            if amenity not in amenities:
                amenities.append(amenity)
    return FaqFacts(
        available_rooms=[r for r in rooms if r.status == "available"],
        amenities=amenities,
        bookings=bookings,
    )


def _has(query: str, *words: str) -> bool:
    return any(w in query for w in words)


def fallback_answer(query: str, hotel: HotelProfile, facts: FaqFacts) -> str:
    q = query.lower()

    if _has(q, "available room", "vacancy", "free room"):
        count = len(facts.available_rooms)
        answer = f"Welcome to {hotel.name}! We currently have {plural(count, 'room')} available. "
        if count:
            types = sorted({r.type for r in facts.available_rooms})
            answer += f"Our available room types include {join_naturally(types)}. "
        return answer + "Would you like me to provide more details about any specific room type?"

    if _has(q, "book", "reservation", "reserve"):
        return (
            "Thank you for your interest in staying with us! Tell me which room you would like, "
            "your check-in and check-out dates, and how many guests are coming, and I will "
            "reserve it for you."
        )

    if _has(q, "check in", "check out", "arrival", "departure"):
        return (
            f"At {hotel.name}, our standard check-in time is {hotel.check_in_time} and check-out time "
            f"is {hotel.check_out_time}. If you need early check-in or late check-out, please let us "
            "know in advance and we'll do our best to accommodate your request."
        )

    if _has(q, "amenities", "facilities", "feature", "service"):
        offered = join_naturally(facts.amenities) if facts.amenities else "a range of comforts"
        return (
            f"We're proud to offer premium amenities to enhance your stay, including {offered}. "
            "Is there a specific amenity you'd like to know more about?"
        )

    if _has(q, "my booking", "my reservation", "my stay"):
        if facts.bookings:
            latest = facts.bookings[0]
            return (
                f"Welcome back! You have {plural(len(facts.bookings), 'booking')} with us. "
                f"Your most recent reservation is for {latest.room_name} from "
                f"{spoken_date(latest.check_in_date)} to {spoken_date(latest.check_out_date)}. "
                "Is there anything specific about your booking you'd like to know?"
            )
        return (
            "I don't see any active bookings associated with your account. Would you like to make "
            "a new reservation?"
        )

    if _has(q, "cancel", "refund"):
        return (
            "Pending bookings can be cancelled free of charge before the check-in date. Tell me "
            "your booking ID and I will cancel it for you."
        )

    if _has(q, "location", "address", "direction"):
        return (
            f"{hotel.name} is located at {hotel.address}. Would you like directions or "
            "transportation recommendations?"
        )

    if _has(q, "wifi", "internet"):
        return (
            "We offer complimentary high-speed WiFi throughout the hotel for all our guests. "
            "The network name and password will be provided during check-in."
        )

    if _has(q, "restaurant", "food", "breakfast", "dinner"):
        return (
            "Our in-house restaurant serves breakfast from 6:30 AM to 10:30 AM, lunch from "
            "12:00 PM to 2:30 PM, and dinner from 6:30 PM to 10:30 PM. Room service is also "
            "available 24/7."
        )

    return (
        f"Welcome to {hotel.name}! I'm your AI receptionist, here to help with rooms, bookings, "
        "amenities, and services. How may I help make your stay exceptional today?"
    )
