import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Callable

from receptionist.domain.language_model import LanguageModel
from receptionist.domain.store import RecordStore
from receptionist.fast_path import FastPathMatcher
from receptionist.lifecycle import BookingLifecycle
from receptionist.operations import HotelOperations
from receptionist.pipeline import Pipeline, PipelineConfig
from receptionist.pricing import BookingEngine
from receptionist.resolver import IntentResolver
from receptionist.retrieval import ContextRetriever
from receptionist.settings import Settings

log = logging.getLogger(__name__)


def create_store(kind: str | None = None, db_path: str | None = None) -> RecordStore:
    """
    Factory: create the record store adapter.

    The kind can be passed explicitly or read from the RECORD_STORE env
    var ("sqlite" or "memory"). Defaults to "sqlite".
    """
    kind = kind or os.environ.get("RECORD_STORE", "sqlite")

    if kind == "sqlite":
        from receptionist.adapters.sqlite_store import SqliteRecordStore

        db_path = db_path or os.environ.get("DB_PATH", "data/hotel.db")
        if db_path != ":memory:" and os.path.dirname(db_path):
            os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return SqliteRecordStore(db_path=db_path)

    if kind == "memory":
        from receptionist.adapters.memory_store import InMemoryRecordStore

        return InMemoryRecordStore()

    raise ValueError(f"Unknown record store: {kind!r}")


def create_language_model(kind: str | None = None, model: str | None = None) -> LanguageModel:
    """
    Factory: create the language model adapter.

    The kind can be passed explicitly or read from the LANGUAGE_MODEL env
    var ("claude" or "simulator"). Defaults to "claude".
    """
    kind = kind or os.environ.get("LANGUAGE_MODEL", "claude")

    if kind == "claude":
        from receptionist.adapters.claude_model import ClaudeLanguageModel

        return ClaudeLanguageModel(
            api_key=os.environ["ANTHROPIC_API_KEY"],
            model=model or os.environ.get("CLAUDE_MODEL", "claude-haiku-4-5-20251001"),
        )

    if kind == "simulator":
        from receptionist.adapters.simulator_model import SimulatorLanguageModel

        return SimulatorLanguageModel()

    raise ValueError(f"Unknown language model: {kind!r}")


@dataclass
class Receptionist:
    """Everything one process needs, wired against a single store."""
    store: RecordStore
    engine: BookingEngine
    lifecycle: BookingLifecycle
    operations: HotelOperations
    retriever: ContextRetriever
    fast_path: FastPathMatcher
    resolver: IntentResolver
    pipeline: Pipeline


def build_receptionist(
    settings: Settings,
    store: RecordStore | None = None,
    model: LanguageModel | None = None,
    today: Callable[[], date] = date.today,
) -> Receptionist:
    store = store or create_store(settings.record_store, settings.db_path)
    model = model or create_language_model(settings.language_model, settings.claude_model)

    engine = BookingEngine(store, today=today)
    lifecycle = BookingLifecycle(store, engine, today=today)
    operations = HotelOperations(store, engine, lifecycle, today=today)
    retriever = ContextRetriever(store)
    fast_path = FastPathMatcher(store, operations, today=today)
    resolver = IntentResolver(
        store, model, operations, retriever, fast_path, hotel=settings.hotel, today=today
    )
    pipeline = Pipeline(PipelineConfig(
        store=store, resolver=resolver, claim_ttl=2 * settings.session_timeout
    ))
    log.debug("receptionist wired: store=%s model=%s", type(store).__name__, type(model).__name__)

    return Receptionist(
        store=store,
        engine=engine,
        lifecycle=lifecycle,
        operations=operations,
        retriever=retriever,
        fast_path=fast_path,
        resolver=resolver,
        pipeline=pipeline,
    )
