"""Conversation and message business models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

ChatRole = Literal["user", "assistant", "system"]


@dataclass
class Conversation:
    """A user-owned thread of chat messages."""

    id: str
    user_id: str
    title: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_message_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def touch(self, at: datetime | None = None) -> None:
        """Record activity on the conversation."""
        self.last_message_at = at or datetime.now(UTC)

    def as_dict(self) -> dict[str, Any]:
        """Return the conversation as a dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "last_message_at": self.last_message_at.isoformat(),
        }


@dataclass
class Message:
    """A single message in a conversation."""

    id: str
    conversation_id: str
    user_id: str
    role: ChatRole
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)
    sequence: int = 0  # store-assigned, breaks ties between equal timestamps


@dataclass
class Page(Generic[T]):
    """One page of a paginated query. Pages are 1-based."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        """Total number of pages for the query."""
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass
class SendMessageRequest:
    """A chat message addressed to an optional existing conversation."""

    message: str
    conversation_id: str | None = None


@dataclass
class SendMessageResult:
    """Assistant reply and the conversation that was actually used."""

    response: str
    conversation_id: str


@dataclass
class CreateConversationResult:
    """Newly created conversation and the reply to its first message."""

    conversation_id: str
    response: str
