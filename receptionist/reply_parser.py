"""
Parse raw language-model output into a Reply.

The model is asked to answer either in plain text or with exactly one
JSON object:

    {"functionCall": {"name": ..., "parameters": {...}}, "userResponse": "..."}

It does not always comply: JSON arrives wrapped in prose or code fences,
truncated, or half-formed.  parse_model_reply() never raises; whatever
it cannot read becomes plain text, and plain text that still looks like
the JSON envelope is replaced by CANNED_APOLOGY so no raw structure
reaches the guest.
"""

import json
from dataclasses import dataclass, field
from typing import Any

CANNED_APOLOGY = (
    "I apologize, but I encountered an issue while processing your request. "
    "Please try again with a more specific request."
)

_ENVELOPE_MARKERS = ('"functionCall"', '"userResponse"')


@dataclass
class PlainText:
    text: str


@dataclass
class FunctionCallReply:
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    user_response: str = ""


Reply = PlainText | FunctionCallReply


def _extract_object(raw: str) -> str | None:
    """Substring from the first '{' to the last '}', or None if there is none."""
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        return None
    return raw[start:end + 1]


def parse_model_reply(raw: str) -> Reply:
    raw = raw or ""
    # Code fences around the object need no special handling
    candidate = _extract_object(raw)

    data = None
    if candidate is not None:
        try:
            data = json.loads(candidate)
        except ValueError:
            data = None

    if isinstance(data, dict):
        call = data.get("functionCall")
        user_response = data.get("userResponse")
        user_response = user_response if isinstance(user_response, str) else ""
        if isinstance(call, dict) and isinstance(call.get("name"), str) and call["name"]:
            parameters = call.get("parameters")
            return FunctionCallReply(
                name=call["name"],
                parameters=parameters if isinstance(parameters, dict) else {},
                user_response=user_response,
            )
        if user_response:
            return PlainText(user_response)

    text = raw.strip()
    if any(marker in text for marker in _ENVELOPE_MARKERS):
        return PlainText(CANNED_APOLOGY)
    return PlainText(text)
