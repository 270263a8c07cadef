"""Shared fakes and fixtures for the test suite."""

import pytest

from health_advisor.models.health import HealthDataType, HealthRecord
from health_advisor.models.llm import LLMMessage, LLMResponse
from health_advisor.services.chat import ChatConfig, ChatService
from health_advisor.services.conversation_store import InMemoryConversationStore
from health_advisor.services.health_data import InMemoryHealthDataProvider


class StubGateway:
    """Gateway that returns a fixed reply and records every prompt it receives."""

    def __init__(self, content: str = "Hi! How can I help?", model: str | None = "claude-test"):
        self.content = content
        self.model = model
        self.prompts: list[list[LLMMessage]] = []
        self.calls: list[tuple[str, int]] = []

    async def send(self, messages: list[LLMMessage], user_id: str, max_tokens: int) -> LLMResponse:
        self.prompts.append(list(messages))
        self.calls.append((user_id, max_tokens))
        return LLMResponse(content=self.content, model=self.model)


class FailingGateway:
    """Gateway whose provider always times out."""

    def __init__(self):
        self.calls = 0

    async def send(self, messages: list[LLMMessage], user_id: str, max_tokens: int) -> LLMResponse:
        self.calls += 1
        raise TimeoutError("LLM provider timed out")


class FailingHealthDataProvider:
    """Provider whose backing store is unreachable."""

    async def get_recent_records(self, user_id: str, record_type: HealthDataType, limit: int) -> list[HealthRecord]:
        raise ConnectionError("health data store unreachable")


class CountingConversationStore(InMemoryConversationStore):
    """In-memory store that counts write operations."""

    def __init__(self):
        super().__init__()
        self.writes = 0

    async def create_conversation(self, user_id, title):
        self.writes += 1
        return await super().create_conversation(user_id, title)

    async def append_message(self, conversation_id, user_id, role, content, metadata):
        self.writes += 1
        return await super().append_message(conversation_id, user_id, role, content, metadata)


@pytest.fixture
def store():
    """Create an empty conversation store."""
    return CountingConversationStore()


@pytest.fixture
def health_provider():
    """Create an empty health data provider."""
    return InMemoryHealthDataProvider()


@pytest.fixture
def gateway():
    """Create a stub gateway."""
    return StubGateway()


@pytest.fixture
def chat_service(store, health_provider, gateway):
    """Create a chat service wired to in-memory fakes."""
    return ChatService(store=store, health_provider=health_provider, gateway=gateway, config=ChatConfig())
