"""Chat Session Manager - per-document transcript with serialized turns.

A document has at most one Conversation. It is created on the first turn
and replaced wholesale (messages + language) on every later turn. Turns on
the same document are single-flight: a second ``send_turn`` while one is
pending is rejected instead of interleaving with it.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from app.models.conversation import Conversation, Message, MessageRole, utc_now
from app.models.document import Document, Language
from core.chat.prompts import FALLBACK_REPLY, format_chat_prompt
from core.errors import EmptyMessageError, TurnInProgressError
from core.gateway.contracts import ModelInvoker
from core.stores.base import ConversationStore

logger = logging.getLogger("simplidoc.chat")

DEFAULT_LANGUAGE = Language.ENGLISH


@dataclass
class ChatTurnResult:
    """Transcript and conversation record after a completed turn."""
    messages: list[Message]
    session: Conversation | None
    used_fallback: bool = False


class ChatSessionManager:
    """Loads and advances chat sessions.

    One manager serves every document in the process; the single-flight
    guard is keyed by document id.
    """

    def __init__(self, model: ModelInvoker, conversations: ConversationStore) -> None:
        self.model = model
        self.conversations = conversations
        self._locks: dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, document_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = self._locks[document_id] = asyncio.Lock()
        return lock

    def is_turn_in_flight(self, document_id: UUID) -> bool:
        lock = self._locks.get(document_id)
        return lock is not None and lock.locked()

    async def load_session(self, document_id: UUID) -> Conversation | None:
        """Fetch the newest conversation for a document, or None for a fresh session."""
        conversations = await self.conversations.filter(document_id, "-created_date", 1)
        if not conversations:
            return None
        if len(conversations) > 1:
            logger.warning(f"Multiple conversations for document {document_id}, using newest")
        return conversations[0]

    async def send_turn(
        self,
        session: Conversation | None,
        document: Document,
        user_text: str,
        language: Language,
        prior_messages: list[Message],
    ) -> ChatTurnResult:
        """Append one user message and its assistant reply, then persist.

        Raises:
            EmptyMessageError: If ``user_text`` is blank.
            TurnInProgressError: If a turn for this document is still pending.
        """
        question = self._require_text(user_text)
        async with self._acquire(document.id):
            return await self._run_turn(session, document, question, language, prior_messages)

    async def send_message(
        self,
        document: Document,
        user_text: str,
        language: Language | None = None,
    ) -> ChatTurnResult:
        """Load the stored session and send a turn against it.

        The session is read inside the single-flight guard, so the turn
        always builds on the transcript written by the previous one. Without
        an explicit ``language`` the session's language is kept.
        """
        question = self._require_text(user_text)
        async with self._acquire(document.id):
            session = await self.load_session(document.id)
            prior_messages = list(session.messages) if session else []
            if language is None:
                language = session.language if session else DEFAULT_LANGUAGE
            return await self._run_turn(session, document, question, language, prior_messages)

    @staticmethod
    def _require_text(user_text: str) -> str:
        question = user_text.strip()
        if not question:
            raise EmptyMessageError("Message must not be empty")
        return question

    def _acquire(self, document_id: UUID) -> asyncio.Lock:
        lock = self._lock_for(document_id)
        if lock.locked():
            raise TurnInProgressError(f"A reply for document {document_id} is still pending")
        return lock

    async def _run_turn(
        self,
        session: Conversation | None,
        document: Document,
        question: str,
        language: Language,
        prior_messages: list[Message],
    ) -> ChatTurnResult:
        user_message = Message(role=MessageRole.USER, content=question, timestamp=utc_now())
        messages = [*prior_messages, user_message]

        used_fallback = False
        try:
            prompt = format_chat_prompt(document, prior_messages, question, language)
            reply = await self.model.invoke_model(
                prompt, operation="CHAT_TURN", reference=str(document.id)
            )
            if not isinstance(reply, str) or not reply.strip():
                raise ValueError("Model returned no text")
            content = reply.strip()
        except Exception as e:
            logger.error(f"Chat turn failed for document {document.id}: {e}", exc_info=True)
            content = FALLBACK_REPLY
            used_fallback = True

        messages.append(Message(role=MessageRole.ASSISTANT, content=content, timestamp=utc_now()))
        session = await self._persist(session, document.id, messages, language)
        logger.info(f"Turn completed for document {document.id} (messages={len(messages)})")
        return ChatTurnResult(messages=messages, session=session, used_fallback=used_fallback)

    async def _persist(
        self,
        session: Conversation | None,
        document_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation | None:
        """Create or replace the conversation. Store errors are logged, not raised."""
        try:
            if session is None:
                return await self.conversations.create(document_id, messages, language)
            return await self.conversations.update(session.id, messages, language)
        except Exception as e:
            logger.error(f"Failed to persist conversation for document {document_id}: {e}", exc_info=True)
            return session
