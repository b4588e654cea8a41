#!/usr/bin/env python3
"""
Load a small demo hotel into the record store.

Usage (from project root):
    python scripts/seed.py               # rooms, users and FAQs into DB_PATH
    DB_PATH=data/demo.db python scripts/seed.py

Existing documents with the same ids are left untouched, so the script
can be run repeatedly.
"""

import asyncio
import os
import sys

# Allow running as `python scripts/seed.py` from project root.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from receptionist.domain.records import FAQS, ROOMS, USERS
from receptionist.domain.store import RecordStore
from receptionist.factory import create_store

ROOMS_SEED = {
    "room-101": {
        "name": "Garden Standard",
        "type": "standard",
        "pricePerNight": 100,
        "capacity": 2,
        "amenities": ["WiFi", "TV", "Air Conditioning"],
        "status": "available",
        "description": "Quiet standard room overlooking the garden.",
    },
    "room-204": {
        "name": "Harbour Deluxe",
        "type": "deluxe",
        "pricePerNight": 180,
        "capacity": 3,
        "amenities": ["WiFi", "TV", "Mini Bar", "Balcony"],
        "status": "available",
        "description": "Deluxe room with a balcony facing the harbour.",
    },
    "room-301": {
        "name": "Ocean Suite",
        "type": "suite",
        "pricePerNight": 320,
        "capacity": 4,
        "amenities": ["WiFi", "TV", "Mini Bar", "Ocean View", "Room Service"],
        "status": "available",
        "description": "Corner suite with a separate lounge and ocean view.",
    },
    "room-402": {
        "name": "Executive Loft",
        "type": "executive",
        "pricePerNight": 450,
        "capacity": 2,
        "amenities": ["WiFi", "TV", "Breakfast", "Room Service"],
        "status": "maintenance",
        "description": "Top-floor loft with a work area, currently being refurbished.",
    },
}

USERS_SEED = {
    "user-guest": {"email": "guest@example.com", "name": "Alex Guest", "role": "guest", "phoneNumber": ""},
    "user-admin": {"email": "desk@example.com", "name": "Front Desk", "role": "admin", "phoneNumber": ""},
}

FAQS_SEED = {
    "faq-parking": {
        "question": "Is there parking at the hotel?",
        "answer": "Guests can park in the underground garage for free.",
    },
    "faq-breakfast": {
        "question": "When is breakfast served?",
        "answer": "Breakfast is served in the lobby restaurant from 7:00 to 10:30.",
    },
    "faq-pets": {
        "question": "Are pets allowed?",
        "answer": "Small pets are welcome in standard and deluxe rooms.",
    },
}


async def _seed(store: RecordStore, collection: str, documents: dict[str, dict]) -> int:
    created = 0
    for doc_id, data in documents.items():
        if await store.get(collection, doc_id) is not None:
            continue
        await store.create(collection, data, doc_id=doc_id)
        created += 1
    return created


async def main() -> None:
    store = create_store()
    for collection, documents in ((ROOMS, ROOMS_SEED), (USERS, USERS_SEED), (FAQS, FAQS_SEED)):
        created = await _seed(store, collection, documents)
        print(f"{collection:<8} {created} created, {len(documents) - created} already present")


if __name__ == "__main__":
    asyncio.run(main())
