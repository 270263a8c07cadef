"""Chat service: turns user messages into context-aware LLM exchanges.

The service resolves (or creates) the conversation a message belongs to,
persists the user message, gathers recent history and the user's health
context, asks the LLM gateway for a reply and persists that reply. Message
writes are strictly ordered around the gateway call: the user message is
durable before the call is issued and the assistant message is written only
after it returns, so a crash can leave an unanswered question but never an
answer without its question.
"""

import asyncio
import os
import unicodedata
from dataclasses import dataclass
from datetime import UTC, datetime

from health_advisor.errors import (
    MESSAGE_EMPTY,
    MESSAGE_TOO_LONG,
    ConversationNotFoundError,
    InvalidInputError,
    ServiceUnavailableError,
)
from health_advisor.models.chat import (
    Conversation,
    CreateConversationResult,
    Message,
    Page,
    SendMessageRequest,
    SendMessageResult,
)
from health_advisor.models.llm import LLMResponse
from health_advisor.services.conversation_store import ConversationStore
from health_advisor.services.health_context import HealthContextAssembler
from health_advisor.services.health_data import HealthDataProvider
from health_advisor.services.llm import LLMGateway
from health_advisor.services.prompt_builder import build_prompt
from health_advisor.utils.logging import get_context_logger, get_logger

logger = get_logger(__name__)

LLM_SERVICE_NAME = "LLM Service"

ZERO_WIDTH_JOINER = "\u200d"

# Grapheme cluster prepend characters (Arabic number signs, Brahmic repha and similar)
PREPEND_CHARS = frozenset(
    {0x06DD, 0x070F, 0x08E2, 0x0D4E, 0x110BD, 0x110CD, 0x1193F, 0x11941, 0x11A3A, 0x11D46, 0x11F02}
)
PREPEND_RANGES = ((0x0600, 0x0605), (0x0890, 0x0891), (0x111C2, 0x111C3), (0x11A84, 0x11A89))

# Hangul syllable type pairs that must not be split
HANGUL_JOINS = frozenset(
    {
        ("L", "L"),
        ("L", "V"),
        ("L", "LV"),
        ("L", "LVT"),
        ("LV", "V"),
        ("LV", "T"),
        ("V", "V"),
        ("V", "T"),
        ("LVT", "T"),
        ("T", "T"),
    }
)


@dataclass
class ChatConfig:
    """Tunables for the chat service."""

    history_limit: int = 10
    health_context_limit: int = 5
    max_message_length: int = 2000
    max_tokens: int = 1500
    title_length: int = 30
    title_word_slack: int = 10
    fallback_model: str = "unknown"
    default_page_size: int = 20
    default_conversation_page_size: int = 10

    @classmethod
    def from_env(cls) -> "ChatConfig":
        """Build a config, overriding defaults from environment variables."""
        defaults = cls()
        return cls(
            history_limit=int(os.getenv("CHAT_HISTORY_LIMIT", defaults.history_limit)),
            health_context_limit=int(os.getenv("CHAT_HEALTH_CONTEXT_LIMIT", defaults.health_context_limit)),
            max_message_length=int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", defaults.max_message_length)),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", defaults.max_tokens)),
            fallback_model=os.getenv("ANTHROPIC_MODEL", defaults.fallback_model),
        )


class ChatService:
    """Orchestrates chat turns between users, their health data and the LLM.

    All collaborators are injected, so tests can substitute fakes for the
    store, the health data provider and the gateway.
    """

    def __init__(
        self,
        store: ConversationStore,
        health_provider: HealthDataProvider,
        gateway: LLMGateway,
        config: ChatConfig | None = None,
    ):
        """Initialize chat service.

        Args:
            store: Conversation and message persistence
            health_provider: Source of the user's recent health records
            gateway: LLM gateway used to generate replies
            config: Service tunables
        """
        self.store = store
        self.gateway = gateway
        self.config = config or ChatConfig()
        self.context_assembler = HealthContextAssembler(health_provider, limit=self.config.health_context_limit)

        logger.info("ChatService initialized")

    async def get_user_conversations(self, user_id: str, page: int = 1, limit: int | None = None) -> Page[Conversation]:
        """List a user's conversations, most recently active first."""
        limit = limit or self.config.default_conversation_page_size
        log = get_context_logger(__name__, user_id=user_id)
        log.debug(f"Getting conversations page={page} limit={limit}")

        return await self.store.get_conversations_for_user(user_id, page, limit)

    async def get_conversation_messages(
        self, conversation_id: str, user_id: str, page: int = 1, limit: int | None = None
    ) -> Page[Message]:
        """List the messages of a conversation the user owns.

        Raises:
            ConversationNotFoundError: If the conversation does not exist or
                belongs to another user. No message query is made in that case.
        """
        limit = limit or self.config.default_page_size
        log = get_context_logger(__name__, user_id=user_id, conversation_id=conversation_id)
        log.debug(f"Getting messages page={page} limit={limit}")

        conversation = await self.store.get_conversation_by_id(conversation_id, user_id)
        if conversation is None:
            log.warning("Conversation not found or unauthorized access")
            raise ConversationNotFoundError(conversation_id)

        return await self.store.get_messages_for_conversation(conversation_id, page, limit)

    async def create_new_conversation(self, user_id: str, initial_message: str) -> CreateConversationResult:
        """Start a conversation with its first message.

        Raises:
            InvalidInputError: If the message is empty
            ServiceUnavailableError: If the LLM gateway fails
        """
        if not initial_message or not initial_message.strip():
            raise InvalidInputError(MESSAGE_EMPTY)

        log = get_context_logger(__name__, user_id=user_id)
        log.info("Creating new conversation")

        conversation = await self.store.create_conversation(user_id, self.generate_title(initial_message))
        response = await self._process_turn(conversation.id, user_id, initial_message)

        log.bind(conversation_id=conversation.id).info("New conversation created")
        return CreateConversationResult(conversation_id=conversation.id, response=response)

    async def send_message(self, request: SendMessageRequest, user_id: str) -> SendMessageResult:
        """Send a message, continuing or starting a conversation.

        A conversation id that is unknown or owned by someone else does not
        fail the request: a new conversation is started instead and its id is
        returned. Clients must use the returned ``conversation_id``.

        Raises:
            InvalidInputError: If the message is empty or too long
            ServiceUnavailableError: If the LLM gateway fails
        """
        log = get_context_logger(__name__, user_id=user_id, conversation_id=request.conversation_id or "new")
        log.info("Processing message request")

        self.validate_message(request.message)

        conversation = await self._resolve_conversation(request, user_id)
        response = await self._process_turn(conversation.id, user_id, request.message)

        return SendMessageResult(response=response, conversation_id=conversation.id)

    def validate_message(self, message: str | None) -> None:
        """Check message presence and length before anything is written."""
        if not message or not message.strip():
            raise InvalidInputError(MESSAGE_EMPTY)
        if len(message) > self.config.max_message_length:
            raise InvalidInputError(MESSAGE_TOO_LONG)

    async def _resolve_conversation(self, request: SendMessageRequest, user_id: str) -> Conversation:
        log = get_context_logger(__name__, user_id=user_id, conversation_id=request.conversation_id)

        if request.conversation_id:
            conversation = await self.store.get_conversation_by_id(request.conversation_id, user_id)
            if conversation is not None:
                return conversation
            log.warning("Conversation not found or not owned by user, starting a new one")
        else:
            log.info("No conversation id supplied, starting a new one")

        return await self.store.create_conversation(user_id, self.generate_title(request.message))

    async def _process_turn(self, conversation_id: str, user_id: str, message: str) -> str:
        """Run one chat turn and return the assistant's reply.

        Store failures propagate unchanged; gateway failures become
        ``ServiceUnavailableError`` after the user message is already stored.
        """
        log = get_context_logger(__name__, user_id=user_id, conversation_id=conversation_id)

        await self.store.append_message(conversation_id, user_id, "user", message, {})

        history, context = await asyncio.gather(
            self.store.get_recent_messages(conversation_id, self.config.history_limit),
            self.context_assembler.build_context(user_id, self.config.health_context_limit),
        )

        prompt = build_prompt(history, context)
        log.debug(f"Prompt built: {len(prompt)} messages, context {len(context)} chars")

        try:
            llm_response: LLMResponse = await self.gateway.send(prompt, user_id, self.config.max_tokens)
        except Exception as e:
            log.error(f"LLM service error: {e}", exc_info=True)
            raise ServiceUnavailableError(LLM_SERVICE_NAME) from e

        await self.store.append_message(
            conversation_id,
            user_id,
            "assistant",
            llm_response.content,
            {
                "model": llm_response.model or self.config.fallback_model,
                "processed_at": datetime.now(UTC).isoformat(),
            },
        )

        log.info(f"Turn completed, reply {len(llm_response.content)} chars")
        return llm_response.content

    def generate_title(self, message: str, today: datetime | None = None) -> str:
        """Derive a display title from a conversation's first message.

        The title is about ``title_length`` characters of the message, with
        "..." when cut short, followed by the date. It is for display only.
        """
        text = " ".join(message.split())
        cut = _title_cut(text, self.config.title_length, self.config.title_word_slack)

        title = text[:cut].rstrip()
        if cut < len(text):
            title = f"{title}..."

        date = (today or datetime.now(UTC)).date().isoformat()
        return f"{title} - {date}"


def _title_cut(text: str, length: int, word_slack: int) -> int:
    """Index to cut a title at: near ``length``, on a word end when one is close."""
    if len(text) <= length:
        return len(text)

    cut = length
    if not text[cut - 1].isspace() and not text[cut].isspace():
        word_end = cut
        while word_end < len(text) and not text[word_end].isspace():
            word_end += 1
        if word_end - length <= word_slack:
            cut = word_end

    while 0 < cut < len(text) and not _is_cluster_boundary(text, cut):
        cut -= 1

    if cut == 0:
        cut = length
        while cut < len(text) and not _is_cluster_boundary(text, cut):
            cut += 1

    return cut


def _is_cluster_boundary(text: str, index: int) -> bool:
    """Whether cutting ``text`` at ``index`` keeps grapheme clusters whole.

    Covers combining and spacing marks, variation selectors, emoji modifiers
    and tags, zero-width-joiner sequences, regional-indicator (flag) pairs,
    prepend characters and Hangul syllable sequences.
    """
    current = text[index]
    previous = text[index - 1]

    if previous == ZERO_WIDTH_JOINER or _extends_cluster(current) or _is_prepend(previous):
        return False

    if _is_regional_indicator(current):
        run = 0
        i = index - 1
        while i >= 0 and _is_regional_indicator(text[i]):
            run += 1
            i -= 1
        return run % 2 == 0

    return (_hangul_type(previous), _hangul_type(current)) not in HANGUL_JOINS


def _extends_cluster(char: str) -> bool:
    code = ord(char)
    return (
        char == ZERO_WIDTH_JOINER
        or unicodedata.category(char) in ("Mn", "Me", "Mc")
        or 0xFE00 <= code <= 0xFE0F  # variation selectors
        or 0x1F3FB <= code <= 0x1F3FF  # skin tone modifiers
        or 0xE0020 <= code <= 0xE007F  # tag characters
    )


def _is_regional_indicator(char: str) -> bool:
    return 0x1F1E6 <= ord(char) <= 0x1F1FF


def _is_prepend(char: str) -> bool:
    code = ord(char)
    return code in PREPEND_CHARS or any(low <= code <= high for low, high in PREPEND_RANGES)


def _hangul_type(char: str) -> str | None:
    """Hangul syllable type: leading (L), vowel (V), trailing (T), LV or LVT."""
    code = ord(char)
    if 0x1100 <= code <= 0x115F or 0xA960 <= code <= 0xA97C:
        return "L"
    if 0x1160 <= code <= 0x11A7 or 0xD7B0 <= code <= 0xD7C6:
        return "V"
    if 0x11A8 <= code <= 0x11FF or 0xD7CB <= code <= 0xD7FB:
        return "T"
    if 0xAC00 <= code <= 0xD7A3:
        return "LV" if (code - 0xAC00) % 28 == 0 else "LVT"
    return None
