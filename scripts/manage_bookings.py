#!/usr/bin/env python3
"""
Front-desk CLI: list bookings and move them through their lifecycle.

Usage (from project root):
    python scripts/manage_bookings.py                      # list active bookings
    python scripts/manage_bookings.py all                  # list every booking
    python scripts/manage_bookings.py show <id>            # full booking details
    python scripts/manage_bookings.py confirm <id>         # pending -> confirmed
    python scripts/manage_bookings.py checkin <id>         # confirmed -> checked-in
    python scripts/manage_bookings.py complete <id>        # checked-in -> completed
    python scripts/manage_bookings.py cancel <id>          # any unfinished -> cancelled
    python scripts/manage_bookings.py delete <id>          # remove the booking

Staff actions run as the admin user given by STAFF_EMAIL
(default: desk@example.com); the guest is notified of each change.
"""

import asyncio
import os
import sys

# Allow running as `python scripts/manage_bookings.py` from project root.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from receptionist.domain.errors import ReceptionError
from receptionist.domain.records import ACTIVE_STATUSES, BOOKINGS, USERS, Booking, Caller, User
from receptionist.domain.store import RecordStore
from receptionist.factory import create_store
from receptionist.lifecycle import BookingLifecycle
from receptionist.pricing import BookingEngine
from receptionist.speech import money


async def _staff(store: RecordStore) -> Caller | None:
    email = os.environ.get("STAFF_EMAIL", "desk@example.com")
    docs = await store.query(USERS, [("email", "==", email)], limit=1)
    if not docs:
        print(f"No user with email {email!r}.")
        return None
    caller = Caller.from_user(User.from_record(docs[0].id, docs[0].data))
    if not caller.is_admin:
        print(f"{email} is not an admin.")
        return None
    return caller


async def list_bookings(store: RecordStore, include_finished: bool = False) -> None:
    filters = [] if include_finished else [("status", "in", list(ACTIVE_STATUSES))]
    docs = await store.query(BOOKINGS, filters, order_by="checkInDate")
    if not docs:
        print("No bookings.")
        return

    print(f"\n{'ID':<20}  {'Status':<10}  {'Room':<18}  {'Check-in':<10}  {'Check-out':<10}  {'Total':>8}")
    print("-" * 86)
    for d in docs:
        b = Booking.from_record(d.id, d.data)
        print(
            f"{b.id:<20}  {b.status:<10}  {b.room_name[:18]:<18}  "
            f"{b.check_in_date:<10}  {b.check_out_date:<10}  {money(b.total_price):>8}"
        )
    print()


async def show_booking(store: RecordStore, booking_id: str) -> None:
    doc = await store.get(BOOKINGS, booking_id)
    if not doc:
        print(f"Booking {booking_id} not found.")
        return

    b = Booking.from_record(doc.id, doc.data)
    print(f"\n{'=' * 60}")
    print(f"  Booking {b.id}  |  {b.status}")
    print(f"  Room: {b.room_name} ({b.room_id})")
    print(f"  Guest: {b.guest_name or '-'} <{b.guest_email or '-'}>  user={b.user_id}")
    print(f"  Stay: {b.check_in_date} -> {b.check_out_date}, {b.guest_count} guest(s)")
    print(f"  Total: {money(b.total_price)}")
    print(f"  Created: {b.created_at}")
    print(f"{'=' * 60}")
    if b.special_requests:
        print(f"\n  Special requests: {b.special_requests}\n")


async def run_action(lifecycle: BookingLifecycle, action: str, booking_id: str, staff: Caller) -> None:
    handlers = {
        "confirm": lifecycle.confirm,
        "checkin": lifecycle.check_in,
        "complete": lifecycle.complete,
        "cancel": lifecycle.cancel,
        "delete": lifecycle.delete,
    }
    try:
        booking = await handlers[action](booking_id, staff)
    except ReceptionError as exc:
        print(f"Booking {booking_id}: {exc.message}")
        return
    if action == "delete":
        print(f"Booking {booking.id} deleted.")
    else:
        print(f"Booking {booking.id} is now {booking.status}.")


async def main() -> None:
    store = create_store()

    if len(sys.argv) < 2:
        await list_bookings(store)
        return

    cmd = sys.argv[1]

    if cmd == "all":
        await list_bookings(store, include_finished=True)
    elif cmd == "show" and len(sys.argv) >= 3:
        await show_booking(store, sys.argv[2])
    elif cmd in ("confirm", "checkin", "complete", "cancel", "delete") and len(sys.argv) >= 3:
        staff = await _staff(store)
        if staff is None:
            return
        lifecycle = BookingLifecycle(store, BookingEngine(store))
        await run_action(lifecycle, cmd, sys.argv[2], staff)
    else:
        print(__doc__)


if __name__ == "__main__":
    asyncio.run(main())
