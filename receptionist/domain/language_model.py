"""
LanguageModel port: the generative tier behind the slow path.

The engine owns the prompt and owns parsing of whatever comes back; the
model only turns a prompt plus a list of callable functions into text,
optionally with a native function call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FunctionSchema:
    """One callable function offered to the model."""
    name: str
    description: str
    parameters: dict[str, str]               # parameter name -> description
    required: list[str] = field(default_factory=list)
    array_parameters: list[str] = field(default_factory=list)  # list-valued parameters

    def to_prompt_record(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass
class FunctionCall:
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {"name": self.name, "parameters": self.parameters}


@dataclass
class ModelOutput:
    text: str
    function_call: FunctionCall | None = None   # set when the model used native tool calling


class LanguageModel(ABC):
    """
    Port: generate a reply for a fully assembled prompt.

    Implementations may call a hosted model (ClaudeLanguageModel) or be
    deterministic (SimulatorLanguageModel).  Any exception raised here is
    treated by the resolver as an upstream failure.
    """

    @abstractmethod
    async def generate(self, prompt: str, functions: list[FunctionSchema]) -> ModelOutput:
        ...
