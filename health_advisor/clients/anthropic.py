"""Anthropic API client with rate limiting and error handling."""

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Literal, TypeVar

import tiktoken
from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel

from health_advisor.models.llm import TextBlock
from health_advisor.utils.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str


@dataclass
class TokenUsage:
    """Token usage information from Anthropic API."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class AnthropicResponse:
    """Structured response from Anthropic API."""

    content: list[TextBlock]
    stop_reason: str | None
    usage: TokenUsage
    model: str

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content).strip()


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = field(default_factory=lambda: os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022"))
    max_tokens: int = 1500
    temperature: float = 0.5
    max_retries: int = 3
    retry_delay: float = 1.0
    max_retry_delay: float = 10.0
    timeout: float = 30.0

    # Token limits for truncation
    max_conversation_tokens: int = 200000
    token_headroom: int = 2000


class AnthropicRateLimiter:
    """Moving-window rate limiter for requests and tokens."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits within the request and token windows."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_window(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if not self.limiter.hit(self.token_limit, token_identifier, cost=max(estimated_tokens, 1)):
            await self._wait_for_window(self.token_limit, token_identifier, "Token")

    async def _wait_for_window(self, limit, identifier: str, kind: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            wait_time = max(0.0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{kind} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


class AnthropicClient:
    """Low-level Anthropic API client with rate limiting and error handling."""

    tokenizer: tiktoken.Encoding | None = None
    api_key: str
    client: AsyncAnthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter = AnthropicRateLimiter()

    def __init__(self, api_key: str | None = None, config: AnthropicConfig | None = None):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key
        self.config = config or AnthropicConfig()

        # Retries are handled here, not by the SDK
        self.client = AsyncAnthropic(api_key=self.api_key, timeout=self.config.timeout, max_retries=0)

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    async def create_message(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        **kwargs,
    ) -> AnthropicResponse:
        """Create a message with Claude API.

        Args:
            messages: Conversation history, oldest first
            system_prompt: System prompt for Claude
            **kwargs: Overrides for model, max_tokens and temperature

        Returns:
            Structured Anthropic response
        """
        truncated_messages = self.truncate_conversation(messages, system_prompt)

        estimated_tokens = self._estimate_tokens(truncated_messages, system_prompt)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        await self.rate_limiter.check_rate_limit(estimated_tokens)

        request_params = {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens") or self.config.max_tokens,
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt,
            "messages": [msg.model_dump() for msg in truncated_messages],
        }

        logger.debug(
            f"Making Anthropic API call with model: {request_params['model']}, messages: {len(truncated_messages)}"
        )
        response: Message = await self._request_with_retries(lambda: self.client.messages.create(**request_params))

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        return AnthropicResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    async def _request_with_retries(self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute Anthropic API request with retry logic."""
        for attempt in range(self.config.max_retries):
            last_attempt = attempt == self.config.max_retries - 1
            try:
                return await call()

            except APIStatusError as e:
                if e.status_code == 429 and not last_attempt:
                    retry_after = int(e.response.headers.get("retry-after", 60))
                    if retry_after < 120:
                        logger.warning(f"Rate limited by Anthropic, retrying in {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                elif e.status_code >= 500 and not last_attempt:
                    await asyncio.sleep(self._backoff(attempt))
                    continue

                raise

            except APIConnectionError as e:
                # Includes request timeouts
                if not last_attempt:
                    logger.warning(f"Anthropic connection error (attempt {attempt + 1}): {e}")
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                raise

        raise RuntimeError(f"Failed to complete request after {self.config.max_retries} attempts")

    def _backoff(self, attempt: int) -> float:
        return min(self.config.retry_delay * (2**attempt), self.config.max_retry_delay)

    def _convert_content_blocks(self, anthropic_content: list) -> list[TextBlock]:
        """Keep the text blocks of an Anthropic response."""
        converted_blocks: list[TextBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)

            if block_dict.get("type") == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            else:
                logger.warning(f"Ignoring content block of type: {block_dict.get('type')}")

        return converted_blocks

    def _estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting."""
        text_content = system_prompt + "".join(message.content for message in messages)
        return self.estimate_message_tokens(text_content)

    def estimate_message_tokens(self, message: str) -> int:
        """Estimate token count for a single message.

        Args:
            message: Message content

        Returns:
            Estimated token count
        """
        try:
            return len(self.tokenizer.encode(message)) if self.tokenizer else len(message) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(message) // 4

    def truncate_conversation(self, messages: list[AnthropicMessage], system_prompt: str) -> list[AnthropicMessage]:
        """Drop the oldest messages until the conversation fits the context window.

        The result always starts with a user message, as the API requires.

        Args:
            messages: Conversation messages, oldest first
            system_prompt: System prompt

        Returns:
            Truncated message list that fits within limits
        """
        if not messages:
            return messages

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        available_tokens -= self.estimate_message_tokens(system_prompt)

        truncated_messages: list[AnthropicMessage] = []
        current_tokens = 0

        for message in reversed(messages):
            message_tokens = self.estimate_message_tokens(message.content)
            if current_tokens + message_tokens > available_tokens:
                break
            truncated_messages.insert(0, message)
            current_tokens += message_tokens

        while truncated_messages and truncated_messages[0].role != "user":
            truncated_messages.pop(0)

        if len(truncated_messages) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated_messages)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated_messages


_anthropic_client: AnthropicClient | None = None


def get_anthropic_client() -> AnthropicClient:
    """Get or create the shared Anthropic client."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = AnthropicClient()
    return _anthropic_client
