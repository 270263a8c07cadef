"""Conversation store interface and in-memory implementation."""

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar

from cuid2 import cuid_wrapper

from health_advisor.models.chat import ChatRole, Conversation, Message, Page

cuid = cuid_wrapper()

T = TypeVar("T")


class ConversationStore(Protocol):
    """Durable, user-scoped storage for conversations and their messages.

    Messages are append-only per conversation.
    """

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        """Create a conversation owned by ``user_id``."""
        ...

    async def get_conversation_by_id(self, conversation_id: str, user_id: str) -> Conversation | None:
        """Get a conversation, or None if it does not exist or is not owned by the user."""
        ...

    async def get_conversations_for_user(self, user_id: str, page: int, limit: int) -> Page[Conversation]:
        """List a user's conversations, most recently active first."""
        ...

    async def get_messages_for_conversation(self, conversation_id: str, page: int, limit: int) -> Page[Message]:
        """List a conversation's messages, oldest first."""
        ...

    async def append_message(
        self,
        conversation_id: str,
        user_id: str,
        role: ChatRole,
        content: str,
        metadata: dict[str, Any],
    ) -> Message:
        """Append a message and bump the conversation's last activity."""
        ...

    async def get_recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        """Get the last ``limit`` messages of a conversation, oldest first."""
        ...


class InMemoryConversationStore:
    """In-memory conversation store.

    Keeps everything in process memory; used for local runs and tests.
    """

    def __init__(self):
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, list[Message]] = {}
        self._sequence = 0
        self._lock = asyncio.Lock()

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        conversation = Conversation(id=cuid(), user_id=user_id, title=title)
        async with self._lock:
            self.conversations[conversation.id] = conversation
            self.messages[conversation.id] = []
        return conversation

    async def get_conversation_by_id(self, conversation_id: str, user_id: str) -> Conversation | None:
        conversation = self.conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            return None
        return conversation

    async def get_conversations_for_user(self, user_id: str, page: int, limit: int) -> Page[Conversation]:
        owned = [c for c in self.conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.last_message_at, reverse=True)
        return self._paginate(owned, page, limit)

    async def get_messages_for_conversation(self, conversation_id: str, page: int, limit: int) -> Page[Message]:
        return self._paginate(self.messages.get(conversation_id, []), page, limit)

    async def append_message(
        self,
        conversation_id: str,
        user_id: str,
        role: ChatRole,
        content: str,
        metadata: dict[str, Any],
    ) -> Message:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")

        async with self._lock:
            self._sequence += 1
            message = Message(
                id=cuid(),
                conversation_id=conversation_id,
                user_id=user_id,
                role=role,
                content=content,
                created_at=datetime.now(UTC),
                metadata=dict(metadata),
                sequence=self._sequence,
            )
            self.messages[conversation_id].append(message)
            conversation.touch(message.created_at)
        return message

    async def get_recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        return list(self.messages.get(conversation_id, [])[-limit:])

    def _paginate(self, items: list[T], page: int, limit: int) -> Page[T]:
        page = max(page, 1)
        start = (page - 1) * limit
        return Page(items=list(items[start : start + limit]), total=len(items), page=page, limit=limit)
