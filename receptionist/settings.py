"""
Runtime settings, read from environment variables.

Only the factory and the scripts call Settings.from_env(); everything
else receives plain values.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping


@dataclass
class HotelProfile:
    """Static facts the receptionist may quote."""
    name: str = "YB Hotels"
    address: str = "123 Main Street, City, Country"
    check_in_time: str = "14:00"
    check_out_time: str = "11:00"


@dataclass
class Settings:
    record_store: str = "sqlite"          # "sqlite" or "memory"
    db_path: str = "data/hotel.db"
    language_model: str = "claude"        # "claude" or "simulator"
    claude_model: str = "claude-haiku-4-5-20251001"
    session_timeout: float = 30.0         # seconds the session channel waits for a result
    poll_interval: float = 5.0            # seconds between sweeps for missed requests
    hotel: HotelProfile = field(default_factory=HotelProfile)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        profile = HotelProfile()
        return cls(
            record_store=env.get("RECORD_STORE", defaults.record_store),
            db_path=env.get("DB_PATH", defaults.db_path),
            language_model=env.get("LANGUAGE_MODEL", defaults.language_model),
            claude_model=env.get("CLAUDE_MODEL", defaults.claude_model),
            session_timeout=float(env.get("SESSION_TIMEOUT", defaults.session_timeout)),
            poll_interval=float(env.get("POLL_INTERVAL", defaults.poll_interval)),
            hotel=HotelProfile(
                name=env.get("HOTEL_NAME", profile.name),
                address=env.get("HOTEL_ADDRESS", profile.address),
                check_in_time=env.get("CHECK_IN_TIME", profile.check_in_time),
                check_out_time=env.get("CHECK_OUT_TIME", profile.check_out_time),
            ),
        )
