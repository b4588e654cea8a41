"""
Context retriever: lexical relevance over store collections.

Each record is reduced to the set of lowercase words in its string
fields, and scored against the query's word set with cosine similarity
over 0/1 presence vectors:

    score = |Q ∩ D| / sqrt(|Q| * |D|)

Records at or below the threshold are dropped; the rest are ranked and
truncated.  Deterministic: ties keep collection order, then store order.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Sequence

from receptionist.domain.records import BOOKINGS, COMPLAINTS, FAQS, ROOMS
from receptionist.domain.store import RecordStore

log = logging.getLogger(__name__)

DEFAULT_COLLECTIONS = (ROOMS, BOOKINGS, COMPLAINTS, FAQS)

# Collections holding guest data: only the caller's own records are searched
PERSONAL_COLLECTIONS = (BOOKINGS, COMPLAINTS)

_SPLIT = re.compile(r"\W+")


def tokenize(text: str) -> set[str]:
    return {word for word in _SPLIT.split(text.lower()) if word}


def record_text(data: dict[str, Any]) -> str:
    return " ".join(value for value in data.values() if isinstance(value, str))


def similarity(query_tokens: set[str], doc_tokens: set[str]) -> float:
    if not query_tokens or not doc_tokens:
        return 0.0
    common = len(query_tokens & doc_tokens)
    return common / math.sqrt(len(query_tokens) * len(doc_tokens))


@dataclass
class RetrievedRecord:
    id: str
    collection: str
    data: dict[str, Any]
    relevance_score: float

    def to_prompt_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "collection": self.collection,
            "data": self.data,
            "relevanceScore": round(self.relevance_score, 3),
        }


class ContextRetriever:

    def __init__(self, store: RecordStore, threshold: float = 0.1, top_k: int = 5):
        self._store = store
        self._threshold = threshold
        self._top_k = top_k

    async def retrieve(
        self,
        query: str,
        collections: Sequence[str] = DEFAULT_COLLECTIONS,
        user_id: str | None = None,
    ) -> list[RetrievedRecord]:
        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        scored: list[RetrievedRecord] = []
        for collection in collections:
            if collection in PERSONAL_COLLECTIONS:
                if not user_id:
                    continue
                docs = await self._store.query(collection, [("userId", "==", user_id)])
            else:
                docs = await self._store.query(collection)
            for doc in docs:
                score = similarity(query_tokens, tokenize(record_text(doc.data)))
                if score > self._threshold:
                    scored.append(RetrievedRecord(doc.id, collection, doc.data, score))

        scored.sort(key=lambda r: r.relevance_score, reverse=True)
        log.debug("retrieved %d record(s) above %.2f for %.40r", len(scored), self._threshold, query)
        return scored[: self._top_k]
