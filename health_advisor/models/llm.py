"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class TextBlock(BaseModel):
    """Text content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["text"] = "text"
    text: str


class LLMMessage(BaseModel):
    """A role/content pair sent to the LLM."""

    role: Literal["user", "assistant", "system"]
    content: str


@dataclass
class LLMUsage:
    """Token usage information from the LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMResponse:
    """Provider-agnostic, normalized reply from an LLM gateway."""

    content: str
    model: str | None = None
    usage: LLMUsage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
