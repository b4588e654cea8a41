"""
SimulatorLanguageModel: deterministic stand-in for the hosted model.

No network.  Two modes:
  - scripted: replies are served in order; an Exception in the script is
    raised instead of returned, to exercise the resolver's fallback.
  - keyword (no script): a few phrases map to function calls written as
    the JSON envelope the prompt asks for, everything else gets a short
    plain-text answer.
"""

import json
import re

from receptionist.domain.errors import UpstreamError
from receptionist.domain.language_model import FunctionSchema, LanguageModel, ModelOutput
from receptionist.domain.records import ROOM_TYPES

_UTTERANCE_MARKER = "GUEST SAYS:"
_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_UPGRADE = re.compile(r"booking\s+([a-zA-Z0-9]+)\s+to\s+(?:room\s+)?([a-zA-Z0-9]+)", re.IGNORECASE)
_COMPLAINT_WORDS = ("complain", "complaint", "broken", "dirty", "noisy", "not working")

DEFAULT_ANSWER = "Thank you for reaching out. How can I help you with your stay today?"


def guest_utterance(prompt: str) -> str:
    """The guest's words, taken from the end of an assembled prompt."""
    if _UTTERANCE_MARKER in prompt:
        return prompt.rsplit(_UTTERANCE_MARKER, 1)[1].strip()
    return prompt.strip()


def _envelope(name: str, parameters: dict, user_response: str) -> str:
    return json.dumps({
        "functionCall": {"name": name, "parameters": parameters},
        "userResponse": user_response,
    })


class SimulatorLanguageModel(LanguageModel):

    def __init__(self, script: list[str | ModelOutput | Exception] | None = None):
        self._script = list(script) if script is not None else None
        self.prompts: list[str] = []

    async def generate(self, prompt: str, functions: list[FunctionSchema]) -> ModelOutput:
        self.prompts.append(prompt)
        if self._script is not None:
            if not self._script:
                raise UpstreamError("simulator script exhausted")
            item = self._script.pop(0)
            if isinstance(item, Exception):
                raise item
            if isinstance(item, ModelOutput):
                return item
            return ModelOutput(text=item)
        offered = {f.name for f in functions}
        return ModelOutput(text=self._answer(guest_utterance(prompt), offered))

    @staticmethod
    def _answer(utterance: str, offered: set[str]) -> str:
        lower = utterance.lower()

        if ("availab" in lower or "vacan" in lower) and "getRoomAvailability" in offered:
            params = {}
            for room_type in ROOM_TYPES:
                if room_type in lower:
                    params["roomType"] = room_type
                    break
            dates = _DATE.findall(utterance)
            if len(dates) >= 2:
                params["checkInDate"], params["checkOutDate"] = dates[0], dates[1]
            return _envelope("getRoomAvailability", params, "Let me check our availability for you.")

        upgrade = _UPGRADE.search(utterance)
        if "upgrade" in lower and upgrade and "upgradeRoom" in offered:
            return _envelope(
                "upgradeRoom",
                {"bookingId": upgrade.group(1), "newRoomId": upgrade.group(2)},
                "I'm upgrading your room now.",
            )

        if any(word in lower for word in _COMPLAINT_WORDS) and "submitComplaint" in offered:
            return _envelope(
                "submitComplaint",
                {
                    "subject": "Guest complaint",
                    "description": utterance,
                    "category": "room",
                    "priority": "high" if "urgent" in lower else "medium",
                },
                "I'm sorry to hear that. I've passed your complaint on to our staff.",
            )

        if "booking details" in lower and "getBookingDetails" in offered:
            return _envelope("getBookingDetails", {}, "Here is what I found.")

        return DEFAULT_ANSWER
