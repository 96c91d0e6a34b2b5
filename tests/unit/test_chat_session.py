"""Unit tests for the Chat Session Manager."""

import asyncio
from uuid import uuid4

import pytest

from app.models.conversation import Message, MessageRole
from app.models.document import Category, Document, DocumentStatus, Language
from core.chat.prompts import FALLBACK_REPLY, format_chat_prompt, format_transcript
from core.chat.session import ChatSessionManager
from core.errors import EmptyMessageError, ModelInvocationError, TurnInProgressError


@pytest.fixture
def document() -> Document:
    return Document(
        title="lease.pdf",
        category=Category.LEGAL,
        file_url="http://testserver/files/lease.pdf",
        original_text="The tenant shall pay rent on the first of each month.",
        processing_status=DocumentStatus.COMPLETED,
        simplified_summary="You pay rent monthly.",
    )


@pytest.fixture
def manager(model, conversation_store) -> ChatSessionManager:
    return ChatSessionManager(model, conversation_store)


class TestChatPrompt:
    """Tests for chat prompt formatting."""

    def test_transcript_lines(self) -> None:
        """Test the transcript is serialized as role: content lines."""
        messages = [
            Message(role=MessageRole.USER, content="When is rent due?"),
            Message(role=MessageRole.ASSISTANT, content="On the first."),
        ]
        assert format_transcript(messages) == "user: When is rent due?\nassistant: On the first."

    def test_prompt_contains_context(self, document: Document) -> None:
        """Test the prompt carries document, history, question and language."""
        prior = [Message(role=MessageRole.USER, content="Hi")]
        prompt = format_chat_prompt(document, prior, "Can I pay late?", Language.TAMIL)

        assert 'legal document titled "lease.pdf"' in prompt
        assert document.original_text in prompt
        assert "user: Hi" in prompt
        assert "User question: Can I pay late?" in prompt
        assert "response in Tamil" in prompt

    def test_prompt_falls_back_to_summary(self, document: Document) -> None:
        """Test a document with no extracted text is discussed from its summary."""
        document = document.model_copy(update={"original_text": ""})
        prompt = format_chat_prompt(document, [], "What is this?", Language.ENGLISH)

        assert "You pay rent monthly." in prompt


class TestSendTurn:
    """Tests for appending turns to a transcript."""

    @pytest.mark.asyncio
    async def test_fresh_session_loads_empty(self, manager, document) -> None:
        """Test a document with no conversation has no session."""
        assert await manager.load_session(document.id) is None

    @pytest.mark.asyncio
    async def test_turn_appends_user_then_assistant(self, manager, model, document) -> None:
        """Test one turn adds exactly a user message and an assistant reply."""
        model.responses = ["Rent is due on the first."]

        result = await manager.send_turn(None, document, "  When is rent due? ", Language.ENGLISH, [])

        assert [m.role for m in result.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert result.messages[0].content == "When is rent due?"
        assert result.messages[1].content == "Rent is due on the first."
        assert result.used_fallback is False
        assert model.calls[0]["operation"] == "CHAT_TURN"
        assert model.calls[0]["schema"] is None

    @pytest.mark.asyncio
    async def test_transcript_grows_by_two_per_turn(self, manager, model, conversation_store, document) -> None:
        """Test N turns on top of existing messages give existing + 2N."""
        existing = [
            Message(role=MessageRole.USER, content="Hello"),
            Message(role=MessageRole.ASSISTANT, content="Hi there"),
        ]
        session = await conversation_store.create(document.id, existing, Language.ENGLISH)
        messages = list(existing)

        for i in range(3):
            result = await manager.send_turn(session, document, f"question {i}", Language.ENGLISH, messages)
            session, messages = result.session, result.messages

        assert len(messages) == len(existing) + 2 * 3
        stored = await manager.load_session(document.id)
        assert len(stored.messages) == 8

    @pytest.mark.asyncio
    async def test_first_turn_creates_single_conversation(self, manager, conversation_store, document) -> None:
        """Test the first turn creates the conversation and later turns update it."""
        result = await manager.send_message(document, "First question", Language.HINDI)
        assert len(conversation_store.conversations) == 1
        conversation_id = result.session.id

        await manager.send_message(document, "Second question")
        await manager.send_message(document, "Third question")

        assert list(conversation_store.conversations) == [conversation_id]
        stored = conversation_store.conversations[conversation_id]
        assert len(stored.messages) == 6
        assert stored.language == Language.HINDI

    @pytest.mark.asyncio
    async def test_language_change_replaces_session_language(self, manager, conversation_store, document) -> None:
        """Test a turn in a new language replaces the stored language."""
        await manager.send_message(document, "Hello", Language.ENGLISH)
        result = await manager.send_message(document, "வணக்கம்", Language.TAMIL)

        assert result.session.language == Language.TAMIL

    @pytest.mark.asyncio
    async def test_model_failure_appends_fallback(self, manager, model, conversation_store, document) -> None:
        """Test a failed model call still completes the turn with the fallback reply."""
        model.responses = [ModelInvocationError("timeout")]

        result = await manager.send_message(document, "Anything?", Language.ENGLISH)

        assert len(result.messages) == 2
        assert result.messages[1].role == MessageRole.ASSISTANT
        assert result.messages[1].content == FALLBACK_REPLY
        assert result.used_fallback is True
        assert len(conversation_store.conversations) == 1

    @pytest.mark.asyncio
    async def test_blank_reply_uses_fallback(self, manager, model, document) -> None:
        """Test an empty model answer is treated as a failure."""
        model.responses = ["   "]

        result = await manager.send_message(document, "Anything?")

        assert result.messages[-1].content == FALLBACK_REPLY

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_message_rejected(self, manager, model, conversation_store, document, text: str) -> None:
        """Test blank input is rejected without calling the model."""
        with pytest.raises(EmptyMessageError):
            await manager.send_message(document, text)

        assert model.calls == []
        assert conversation_store.conversations == {}

    @pytest.mark.asyncio
    async def test_store_failure_keeps_transcript(self, manager, conversation_store, document) -> None:
        """Test a persistence error is logged and the in-memory transcript returned."""
        async def failing_create(document_id, messages, language):
            raise ConnectionError("database down")

        conversation_store.create = failing_create

        result = await manager.send_message(document, "Hello")

        assert len(result.messages) == 2
        assert result.session is None


class TestSingleFlight:
    """Tests for the one-pending-turn-per-document guard."""

    @pytest.mark.asyncio
    async def test_second_turn_rejected_while_pending(self, manager, model, conversation_store, document) -> None:
        """Test a concurrent turn on the same document is rejected, not interleaved."""
        model.gate = asyncio.Event()
        first = asyncio.create_task(manager.send_message(document, "First"))
        await model.entered.wait()

        assert manager.is_turn_in_flight(document.id)
        with pytest.raises(TurnInProgressError):
            await manager.send_message(document, "Second")

        model.gate.set()
        result = await first

        assert [m.content for m in result.messages if m.role == MessageRole.USER] == ["First"]
        assert len(model.calls) == 1
        assert not manager.is_turn_in_flight(document.id)
        stored = await manager.load_session(document.id)
        assert len(stored.messages) == 2

    @pytest.mark.asyncio
    async def test_turn_allowed_after_previous_resolves(self, manager, model, document) -> None:
        """Test the guard is released once a turn completes."""
        await manager.send_message(document, "First")
        result = await manager.send_message(document, "Second")

        assert len(result.messages) == 4

    @pytest.mark.asyncio
    async def test_other_documents_not_blocked(self, manager, model, document) -> None:
        """Test a pending turn only blocks its own document."""
        other = document.model_copy(update={"id": uuid4()})
        model.gate = asyncio.Event()
        first = asyncio.create_task(manager.send_message(document, "First"))
        await model.entered.wait()

        second = asyncio.create_task(manager.send_message(other, "Other"))
        await asyncio.sleep(0)
        model.gate.set()

        await first
        result = await second
        assert len(result.messages) == 2
