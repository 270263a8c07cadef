"""Request and response models for the chat API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from health_advisor.models.chat import Conversation, Message


class SendMessageBody(BaseModel):
    """Request model for sending a chat message."""

    message: str
    conversation_id: str | None = None


class SendMessageResponse(BaseModel):
    """Response model for a chat message."""

    response: str
    conversation_id: str


class CreateConversationBody(BaseModel):
    """Request model for starting a conversation."""

    message: str


class CreateConversationResponse(BaseModel):
    """Response model for a newly started conversation."""

    conversation_id: str
    response: str


class ConversationOut(BaseModel):
    """Conversation summary returned to clients."""

    id: str
    title: str
    created_at: datetime
    last_message_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationOut":
        return cls(
            id=conversation.id,
            title=conversation.title,
            created_at=conversation.created_at,
            last_message_at=conversation.last_message_at,
        )


class MessageOut(BaseModel):
    """Message returned to clients."""

    id: str
    role: Literal["user", "assistant", "system"]
    content: str
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            created_at=message.created_at,
            metadata=message.metadata,
        )


class ConversationListResponse(BaseModel):
    """One page of a user's conversations."""

    items: list[ConversationOut]
    total: int
    page: int
    limit: int


class MessageListResponse(BaseModel):
    """One page of a conversation's messages."""

    conversation_id: str
    items: list[MessageOut]
    total: int
    page: int
    limit: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
