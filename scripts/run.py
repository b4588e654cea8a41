"""
Local process runner for the hotel receptionist.

Listens for new reception documents and answers each one in its own task.
Every POLL_INTERVAL seconds it also sweeps for requests the listener
missed (written while the daemon was down).

Usage:
    source .env && python scripts/run.py

Environment variables:
    ANTHROPIC_API_KEY   - Anthropic/Claude API key (when LANGUAGE_MODEL=claude)
    LANGUAGE_MODEL      - "claude" or "simulator" (default: claude)
    CLAUDE_MODEL        - model name (default: claude-haiku-4-5-20251001)
    RECORD_STORE        - "sqlite" or "memory" (default: sqlite)
    DB_PATH             - SQLite database path (default: data/hotel.db)
    POLL_INTERVAL       - seconds between sweeps (default: 5)
    HOTEL_NAME, HOTEL_ADDRESS, CHECK_IN_TIME, CHECK_OUT_TIME
"""

import asyncio
import logging
import os
import sys

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from receptionist.daemon import ReceptionListener, poll_once
from receptionist.factory import build_receptionist
from receptionist.settings import Settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        print(f"ERROR: environment variable {name!r} is not set.", file=sys.stderr)
        sys.exit(1)
    return value


async def main() -> None:
    settings = Settings.from_env()
    if settings.language_model == "claude":
        _require_env("ANTHROPIC_API_KEY")

    app = build_receptionist(settings)

    log.info(
        "Daemon started: hotel=%r  store=%s  model=%s  interval=%.0fs",
        settings.hotel.name,
        settings.record_store,
        settings.language_model,
        settings.poll_interval,
    )

    async with ReceptionListener(app.pipeline, app.store):
        while True:
            await poll_once(app.pipeline, app.store, claim_ttl=2 * settings.session_timeout)
            await asyncio.sleep(settings.poll_interval)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Daemon stopped.")
