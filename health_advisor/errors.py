"""Error types surfaced by the chat service."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned to API clients."""

    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: dict[str, Any] | None = None


class ChatServiceError(Exception):
    """Base class for errors the chat service reports to its callers."""

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code

    def to_response(self) -> ErrorResponse:
        """Render the error as an API error body."""
        return ErrorResponse(error=self.error_code, message=self.message, code=self.status_code)


class InvalidInputError(ChatServiceError):
    """Message content failed validation (empty or too long)."""

    status_code = 400
    error_code = "INVALID_MESSAGE"

    def __init__(self, error_code: str, message: str = "Invalid message content"):
        super().__init__(message, error_code)


class ConversationNotFoundError(ChatServiceError):
    """Conversation does not exist or belongs to another user."""

    status_code = 404
    error_code = "CONVERSATION_NOT_FOUND"

    def __init__(self, conversation_id: str, message: str = "Conversation not found"):
        super().__init__(message)
        self.conversation_id = conversation_id


class ServiceUnavailableError(ChatServiceError):
    """An upstream service (the LLM provider) failed or timed out."""

    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"

    def __init__(self, service_name: str, message: str = "Error communicating with LLM service"):
        super().__init__(message)
        self.service_name = service_name


class LLMGatewayError(Exception):
    """Raised by gateway implementations when no usable reply was produced."""


MESSAGE_EMPTY = "MESSAGE_EMPTY"
MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
