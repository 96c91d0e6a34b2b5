"""Store contracts consumed by the pipeline and chat session manager."""

from typing import Protocol
from uuid import UUID

from app.models.conversation import Conversation, Message
from app.models.document import Document, DocumentCreate, Language

ORDERABLE_FIELDS = ("created_date", "title")


def parse_order_by(order_by: str) -> tuple[str, bool]:
    """Split "-created_date" style ordering into (field, descending)."""
    descending = order_by.startswith("-")
    field_name = order_by.lstrip("-")
    if field_name not in ORDERABLE_FIELDS:
        raise ValueError(f"Unsupported ordering field: {field_name}")
    return field_name, descending


class DocumentStore(Protocol):
    """Persists and queries Document records."""

    async def create(self, fields: DocumentCreate) -> Document: ...

    async def get(self, document_id: UUID) -> Document | None: ...

    async def list(self, order_by: str = "-created_date", limit: int | None = None) -> list[Document]: ...


class ConversationStore(Protocol):
    """Persists and queries Conversation records (one per document by convention)."""

    async def filter(
        self,
        document_id: UUID,
        order_by: str = "-created_date",
        limit: int | None = None,
    ) -> list[Conversation]: ...

    async def create(
        self,
        document_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation: ...

    async def update(
        self,
        conversation_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation: ...
