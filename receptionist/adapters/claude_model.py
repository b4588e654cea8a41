"""
ClaudeLanguageModel: slow-path generation through the Claude API.

Uses the async client so a session waiting on the model never blocks the
others.  The function schemas are offered as tools: a tool_use block in
the answer becomes ModelOutput.function_call, while text answers
(including JSON the model chose to write inline) are left for the reply
parser.
"""

import logging
import os
from typing import Any

import anthropic

from receptionist.domain.errors import UpstreamError
from receptionist.domain.language_model import (
    FunctionCall,
    FunctionSchema,
    LanguageModel,
    ModelOutput,
)

log = logging.getLogger(__name__)


def _to_tool(schema: FunctionSchema) -> dict[str, Any]:
    properties = {}
    for name, description in schema.parameters.items():
        if name in schema.array_parameters:
            properties[name] = {"type": "array", "items": {"type": "string"}, "description": description}
        else:
            properties[name] = {"type": "string", "description": description}
    return {
        "name": schema.name,
        "description": schema.description,
        "input_schema": {"type": "object", "properties": properties, "required": schema.required},
    }


class ClaudeLanguageModel(LanguageModel):
    """Language model backed by Claude claude-haiku-4-5-20251001 (fast + cheap)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 1024,
    ):
        self._client = anthropic.AsyncAnthropic(api_key=api_key or os.environ["ANTHROPIC_API_KEY"])
        self._model = model
        self._max_tokens = max_tokens

    async def generate(self, prompt: str, functions: list[FunctionSchema]) -> ModelOutput:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
                tools=[_to_tool(f) for f in functions],
            )
        except anthropic.APIError as exc:
            raise UpstreamError(f"Claude request failed: {exc}") from exc

        texts: list[str] = []
        call = None
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use" and call is None:
                call = FunctionCall(name=block.name, parameters=dict(block.input or {}))

        text = "".join(texts).strip()
        if not text and call is None:
            raise UpstreamError("Claude returned an empty response")
        log.debug("claude stop=%s tool=%s text=%.60r", response.stop_reason, call and call.name, text)
        return ModelOutput(text=text, function_call=call)
