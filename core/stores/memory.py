"""In-process stores used in development and tests."""

import logging
from uuid import UUID

from app.models.conversation import Conversation, Message
from app.models.document import Document, DocumentCreate, Language, utc_now
from core.stores.base import parse_order_by

logger = logging.getLogger("simplidoc.stores")


class InMemoryDocumentStore:
    """Dict-backed DocumentStore."""

    def __init__(self) -> None:
        self.documents: dict[UUID, Document] = {}

    async def create(self, fields: DocumentCreate) -> Document:
        document = Document(**fields.model_dump(), created_date=utc_now())
        self.documents[document.id] = document
        logger.info(f"Created document {document.id} ({document.category.value})")
        return document

    async def get(self, document_id: UUID) -> Document | None:
        return self.documents.get(document_id)

    async def list(self, order_by: str = "-created_date", limit: int | None = None) -> list[Document]:
        field_name, descending = parse_order_by(order_by)
        docs = sorted(
            self.documents.values(),
            key=lambda d: getattr(d, field_name),
            reverse=descending,
        )
        return docs[:limit] if limit is not None else docs


class InMemoryConversationStore:
    """Dict-backed ConversationStore."""

    def __init__(self) -> None:
        self.conversations: dict[UUID, Conversation] = {}

    async def filter(
        self,
        document_id: UUID,
        order_by: str = "-created_date",
        limit: int | None = None,
    ) -> list[Conversation]:
        field_name, descending = parse_order_by(order_by)
        matches = sorted(
            (c for c in self.conversations.values() if c.document_id == document_id),
            key=lambda c: getattr(c, field_name),
            reverse=descending,
        )
        return matches[:limit] if limit is not None else matches

    async def create(
        self,
        document_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation:
        conversation = Conversation(
            document_id=document_id,
            messages=list(messages),
            language=language,
        )
        self.conversations[conversation.id] = conversation
        logger.info(f"Created conversation {conversation.id} for document {document_id}")
        return conversation

    async def update(
        self,
        conversation_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation:
        existing = self.conversations.get(conversation_id)
        if existing is None:
            raise KeyError(f"Conversation {conversation_id} not found")
        updated = existing.model_copy(update={"messages": list(messages), "language": language})
        self.conversations[conversation_id] = updated
        return updated
