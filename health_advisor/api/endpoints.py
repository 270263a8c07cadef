"""API endpoints for the health advisor chat service."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, status
from fastapi.responses import JSONResponse

from health_advisor import __version__
from health_advisor.errors import ChatServiceError, ErrorResponse
from health_advisor.models.chat import SendMessageRequest
from health_advisor.models.conversation import (
    ConversationListResponse,
    ConversationOut,
    CreateConversationBody,
    CreateConversationResponse,
    HealthResponse,
    MessageListResponse,
    MessageOut,
    SendMessageBody,
    SendMessageResponse,
)
from health_advisor.services.chat import ChatConfig, ChatService
from health_advisor.services.conversation_store import InMemoryConversationStore
from health_advisor.services.health_data import InMemoryHealthDataProvider
from health_advisor.services.llm import AnthropicGateway
from health_advisor.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

_chat_service: ChatService | None = None


def get_chat_service() -> ChatService:
    """Get or create the shared chat service."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(
            store=InMemoryConversationStore(),
            health_provider=InMemoryHealthDataProvider(),
            gateway=AnthropicGateway(),
            config=ChatConfig.from_env(),
        )
    return _chat_service


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
UserId = Annotated[str, Header(alias="X-User-Id", min_length=1)]


@router.post("/chat/messages", response_model=SendMessageResponse, tags=["Chat"])
async def send_message(body: SendMessageBody, user_id: UserId, chat_service: ChatServiceDep) -> SendMessageResponse:
    """Send a message, continuing the given conversation or starting a new one.

    The returned ``conversation_id`` may differ from the one sent when that
    conversation does not exist or belongs to someone else.
    """
    result = await chat_service.send_message(
        SendMessageRequest(message=body.message, conversation_id=body.conversation_id), user_id
    )
    return SendMessageResponse(response=result.response, conversation_id=result.conversation_id)


@router.post(
    "/chat/conversations",
    response_model=CreateConversationResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Chat"],
)
async def create_conversation(
    body: CreateConversationBody, user_id: UserId, chat_service: ChatServiceDep
) -> CreateConversationResponse:
    """Start a conversation with its first message."""
    result = await chat_service.create_new_conversation(user_id, body.message)
    return CreateConversationResponse(conversation_id=result.conversation_id, response=result.response)


@router.get("/chat/conversations", response_model=ConversationListResponse, tags=["Chat"])
async def list_conversations(
    user_id: UserId,
    chat_service: ChatServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> ConversationListResponse:
    """List the caller's conversations, most recently active first."""
    result = await chat_service.get_user_conversations(user_id, page, limit)
    return ConversationListResponse(
        items=[ConversationOut.from_conversation(c) for c in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get("/chat/conversations/{conversation_id}/messages", response_model=MessageListResponse, tags=["Chat"])
async def list_messages(
    conversation_id: str,
    user_id: UserId,
    chat_service: ChatServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> MessageListResponse:
    """List the messages of one of the caller's conversations, oldest first."""
    result = await chat_service.get_conversation_messages(conversation_id, user_id, page, limit)
    return MessageListResponse(
        conversation_id=conversation_id,
        items=[MessageOut.from_message(m) for m in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )


async def chat_service_error_handler(request: Request, exc: ChatServiceError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc.error_code} ({exc.status_code})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump(exclude_none=True))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    body = ErrorResponse(
        error="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return JSONResponse(status_code=body.code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    """Map chat service errors to JSON error bodies."""
    app.add_exception_handler(ChatServiceError, chat_service_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
