"""Prompt construction for a chat turn."""

from collections.abc import Sequence

from health_advisor.models.chat import Message
from health_advisor.models.llm import LLMMessage


def build_prompt(history: Sequence[Message], context: str) -> list[LLMMessage]:
    """Build the ordered prompt for one chat turn.

    Pure and deterministic: no I/O, no truncation and no de-duplication. The
    caller bounds the history length.

    Args:
        history: Recent conversation messages, oldest first, ending with the
            user message of this turn
        context: Rendered health context; omitted when empty

    Returns:
        Role/content pairs, led by a system entry carrying the context if any
    """
    prompt: list[LLMMessage] = []

    if context and context.strip():
        prompt.append(LLMMessage(role="system", content=context))

    prompt.extend(LLMMessage(role=message.role, content=message.content) for message in history)
    return prompt
