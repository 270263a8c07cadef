"""Tests for data models."""

import json
import logging
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from health_advisor.errors import (
    ChatServiceError,
    ConversationNotFoundError,
    InvalidInputError,
    ServiceUnavailableError,
)
from health_advisor.models.chat import Conversation, Message, Page
from health_advisor.models.conversation import (
    ConversationOut,
    CreateConversationBody,
    MessageOut,
    SendMessageBody,
)
from health_advisor.models.health import HealthContextSnapshot, HealthDataType, HealthRecord, MealData, MealType
from health_advisor.models.llm import LLMMessage, TextBlock
from health_advisor.utils.logging import ContextAdapter


class TestRequestModels:
    """Tests for API request models."""

    def test_send_message_body(self):
        """Test valid send message body."""
        body = SendMessageBody(message="Hello")
        assert body.message == "Hello"
        assert body.conversation_id is None

    def test_send_message_body_from_json(self):
        """Test send message body parsing from JSON."""
        data = json.loads('{"message": "Hello, I need help", "conversation_id": "clhqxrisp0001s67w2qccjhqr"}')
        body = SendMessageBody.model_validate(data)
        assert body.conversation_id == "clhqxrisp0001s67w2qccjhqr"

    def test_message_required(self):
        """Test that message is required."""
        with pytest.raises(ValidationError):
            SendMessageBody()
        with pytest.raises(ValidationError):
            CreateConversationBody()


class TestResponseModels:
    """Tests for API response models."""

    def test_conversation_out(self):
        """Test conversion from a stored conversation."""
        created = datetime(2024, 5, 1, tzinfo=UTC)
        conversation = Conversation(
            id="c1", user_id="user-1", title="Hi - 2024-05-01", created_at=created, last_message_at=created
        )

        out = ConversationOut.from_conversation(conversation)

        assert out.id == "c1"
        assert out.title == "Hi - 2024-05-01"
        assert "user_id" not in out.model_dump()

    def test_message_out(self):
        """Test conversion from a stored message."""
        message = Message(
            id="m1", conversation_id="c1", user_id="user-1", role="assistant", content="Hi", metadata={"model": "m"}
        )

        out = MessageOut.from_message(message)

        assert out.role == "assistant"
        assert out.metadata == {"model": "m"}


class TestChatModels:
    """Tests for conversation business models."""

    def test_touch(self):
        """Test that touch updates last activity."""
        conversation = Conversation(id="c1", user_id="user-1", title="t")
        at = datetime(2030, 1, 1, tzinfo=UTC)

        conversation.touch(at)

        assert conversation.last_message_at == at
        assert conversation.as_dict()["last_message_at"] == at.isoformat()

    @pytest.mark.parametrize(("total", "limit", "pages"), [(0, 10, 0), (10, 10, 1), (11, 10, 2), (5, 0, 0)])
    def test_page_count(self, total, limit, pages):
        """Test page count computation."""
        assert Page(items=[], total=total, page=1, limit=limit).pages == pages


class TestHealthModels:
    """Tests for health record models."""

    def test_snapshot_is_empty(self):
        """Test snapshot emptiness."""
        assert HealthContextSnapshot().is_empty()

        record = HealthRecord(
            id="r1",
            user_id="user-1",
            type=HealthDataType.MEAL,
            data=MealData(description="Toast", meal_type=MealType.BREAKFAST),
        )
        assert not HealthContextSnapshot(meals=[record]).is_empty()

    def test_record_type_values(self):
        """Test record type wire values."""
        assert HealthDataType.LAB_RESULT == "labResult"
        assert str(MealType.SNACK) == "snack"


class TestLLMModels:
    """Tests for LLM models."""

    def test_llm_message_role_validated(self):
        """Test that only known roles are accepted."""
        assert LLMMessage(role="system", content="ctx").role == "system"
        with pytest.raises(ValidationError):
            LLMMessage(role="tool", content="x")

    def test_text_block_ignores_extra_fields(self):
        """Test that provider extras such as citations are ignored."""
        block = TextBlock.model_validate({"type": "text", "text": "Hi", "citations": None})
        assert block.text == "Hi"


class TestErrors:
    """Tests for the error taxonomy."""

    def test_status_codes(self):
        """Test that each error carries its HTTP status."""
        assert InvalidInputError("MESSAGE_EMPTY").status_code == 400
        assert ConversationNotFoundError("c1").status_code == 404
        assert ServiceUnavailableError("LLM Service").status_code == 503
        assert ChatServiceError("boom").status_code == 500

    def test_to_response(self):
        """Test the error body."""
        body = InvalidInputError("MESSAGE_TOO_LONG").to_response()
        assert body.model_dump(exclude_none=True) == {
            "error": "MESSAGE_TOO_LONG",
            "message": "Invalid message content",
            "code": 400,
        }


class TestContextLogging:
    """Tests for context-tagged logging."""

    def test_fields_appended(self):
        """Test that bound fields are rendered after the message."""
        adapter = ContextAdapter(logging.getLogger("test"), {"user_id": "user-1", "conversation_id": None})

        msg, _ = adapter.process("Processing", {})

        assert msg == "Processing [user_id=user-1]"

    def test_bind(self):
        """Test that bind adds fields without changing the parent adapter."""
        adapter = ContextAdapter(logging.getLogger("test"), {"user_id": "user-1"})

        bound = adapter.bind(conversation_id="c1")

        assert bound.process("x", {})[0] == "x [user_id=user-1 conversation_id=c1]"
        assert adapter.process("x", {})[0] == "x [user_id=user-1]"
