#!/usr/bin/env python3
"""
Talk to the receptionist from a terminal.

Runs the listener in this process and sends each line you type through a
session channel, exactly as a voice client would.

Usage (from project root):
    python scripts/ask.py                          # anonymous caller
    python scripts/ask.py guest@example.com        # identified caller
    LANGUAGE_MODEL=simulator python scripts/ask.py  # no API key needed

Type "quit" or press Ctrl-D to leave.
"""

import asyncio
import logging
import os
import sys

# Allow running as `python scripts/ask.py` from project root.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from receptionist.channel import SessionChannel
from receptionist.daemon import ReceptionListener
from receptionist.domain.errors import SessionTimeout
from receptionist.factory import build_receptionist
from receptionist.settings import Settings

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


async def main() -> None:
    email = sys.argv[1] if len(sys.argv) > 1 else ""
    settings = Settings.from_env()
    app = build_receptionist(settings)

    print(f"\n{settings.hotel.name} receptionist  ({email or 'anonymous'})")
    print("-" * 60)

    async with ReceptionListener(app.pipeline, app.store):
        async with SessionChannel(app.store, timeout=settings.session_timeout) as channel:
            while True:
                try:
                    line = await asyncio.to_thread(input, "you> ")
                except EOFError:
                    print()
                    break
                line = line.strip()
                if not line:
                    continue
                if line.lower() in ("quit", "exit"):
                    break
                try:
                    reply = await channel.ask(line, email=email)
                except SessionTimeout as exc:
                    print(f"  ({exc})")
                    continue
                print(f"desk> {reply.text}")
                if reply.function_call:
                    print(f"  [{reply.function_call['name']}]")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
