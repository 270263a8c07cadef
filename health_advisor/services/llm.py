"""LLM gateway interface and the Anthropic-backed implementation."""

import re
from datetime import UTC, datetime
from typing import Protocol

from health_advisor.clients.anthropic import (
    AnthropicClient,
    AnthropicMessage,
    AnthropicResponse,
    get_anthropic_client,
)
from health_advisor.errors import LLMGatewayError
from health_advisor.models.llm import LLMMessage, LLMResponse, LLMUsage
from health_advisor.utils.logging import get_logger

logger = get_logger(__name__)

BASE_SYSTEM_PROMPT = """You are a helpful health advisor that provides general wellness information based on \
the user's health data.
You must NOT provide medical diagnosis, prescribe medication, or give treatment advice.
Always encourage users to consult healthcare professionals for medical concerns.
Use the provided health context to give personalized wellness advice, but be clear about your limitations.
Be conversational, empathetic, and focus on evidence-based information."""

NO_CONTEXT_SYSTEM_PROMPT = """You are a helpful health advisor that provides general wellness information.
You do not have access to the user's specific health information, so your responses are general in nature.
You must NOT provide medical diagnosis, prescribe medication, or give treatment advice.
Always encourage users to consult healthcare professionals for medical concerns."""

HEALTH_DISCLAIMER = (
    "IMPORTANT: This information is for general wellness purposes only and not a substitute for "
    "professional medical advice, diagnosis, or treatment. Always consult qualified healthcare "
    "providers with questions about your health conditions."
)

# Phrases that already amount to a disclaimer
DISCLAIMER_MARKERS = (
    "not a substitute for professional medical advice",
    "not medical advice",
    "consult healthcare professionals",
)

SAFETY_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(diagnose|diagnosis|diagnoses|diagnosing)\b", re.IGNORECASE), "potentially indicate"),
    (re.compile(r"\b(prescribe|prescription|treatment plan)\b", re.IGNORECASE), "consider discussing with your doctor"),
    (re.compile(r"\b(cure|treat|heal)\b", re.IGNORECASE), "potentially help with"),
    (
        re.compile(r"\b(should take|must take|need to take)\b", re.IGNORECASE),
        "might consider discussing with your doctor",
    ),
]


class LLMGateway(Protocol):
    """Sends a prompt to an LLM provider and returns a normalized reply."""

    async def send(self, messages: list[LLMMessage], user_id: str, max_tokens: int) -> LLMResponse:
        """Send a prompt.

        Args:
            messages: Role/content pairs; system entries carry context
            user_id: Caller, for provider-side tracking and rate limiting
            max_tokens: Reply token budget

        Returns:
            Normalized reply

        Raises:
            Exception: Any provider failure, including timeouts
        """
        ...


def apply_safety_filters(content: str) -> str:
    """Rewrite medical-claim phrasing into more cautious language."""
    for pattern, replacement in SAFETY_RULES:
        content = pattern.sub(replacement, content)
    return content


def add_health_disclaimer(content: str) -> str:
    """Append the wellness disclaimer unless the reply already carries one."""
    lowered = content.lower()
    if HEALTH_DISCLAIMER in content or any(marker in lowered for marker in DISCLAIMER_MARKERS):
        return content
    return f"{content}\n\n{HEALTH_DISCLAIMER}"


class AnthropicGateway:
    """LLM gateway backed by the Anthropic messages API."""

    def __init__(self, client: AnthropicClient | None = None):
        """Initialize the gateway.

        Args:
            client: Anthropic client (defaults to the shared instance)
        """
        self.client = client or get_anthropic_client()

    async def send(self, messages: list[LLMMessage], user_id: str, max_tokens: int) -> LLMResponse:
        system_prompt, conversation = self.split_system_prompt(messages)
        if not conversation:
            raise LLMGatewayError("Prompt contains no user or assistant messages")

        logger.info(f"Sending {len(conversation)} messages to Anthropic for user {user_id}")
        response = await self.client.create_message(
            messages=conversation,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
        )
        return self.process_response(response)

    @staticmethod
    def split_system_prompt(messages: list[LLMMessage]) -> tuple[str, list[AnthropicMessage]]:
        """Move system entries into the separate system prompt Anthropic expects."""
        context = [m.content for m in messages if m.role == "system" and m.content.strip()]
        conversation = [AnthropicMessage(role=m.role, content=m.content) for m in messages if m.role != "system"]

        base = BASE_SYSTEM_PROMPT if context else NO_CONTEXT_SYSTEM_PROMPT
        return "\n\n".join([base, *context]), conversation

    @staticmethod
    def process_response(response: AnthropicResponse) -> LLMResponse:
        """Normalize an Anthropic reply into an ``LLMResponse``."""
        content = response.text
        if not content:
            logger.error(f"Empty reply from Anthropic, stop reason: {response.stop_reason}")
            raise LLMGatewayError("Invalid response format from LLM provider")

        content = add_health_disclaimer(apply_safety_filters(content))

        return LLMResponse(
            content=content,
            model=response.model,
            usage=LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.total_tokens,
            ),
            metadata={
                "provider": "anthropic",
                "stop_reason": response.stop_reason,
                "processed_at": datetime.now(UTC).isoformat(),
            },
        )
