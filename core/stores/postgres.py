"""PostgreSQL stores backed by an asyncpg connection pool."""

import json
import logging
from typing import Any
from uuid import UUID

from app.models.conversation import Conversation, Message
from app.models.document import Document, DocumentCreate, Language
from core.stores.base import parse_order_by

logger = logging.getLogger("simplidoc.stores")


class PostgresDocumentStore:
    """Repository for Document records."""

    def __init__(self, pool: Any) -> None:
        """Initialize with a database connection pool.

        Args:
            pool: asyncpg connection pool.
        """
        self.pool = pool

    async def ensure_tables(self) -> None:
        """Ensure required database tables exist."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    title TEXT NOT NULL,
                    category VARCHAR(32) NOT NULL,
                    file_url TEXT NOT NULL,
                    file_type VARCHAR(64),
                    original_text TEXT NOT NULL DEFAULT '',
                    language VARCHAR(32) NOT NULL,
                    processing_status VARCHAR(32) NOT NULL,
                    simplified_summary TEXT,
                    key_points JSONB NOT NULL DEFAULT '[]',
                    medical_severity TEXT,
                    legal_rights_summary TEXT,
                    suggested_next_steps TEXT,
                    created_date TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_created_date
                ON documents(created_date DESC)
            """)

    @staticmethod
    def _row_to_document(row: Any) -> Document:
        data = dict(row)
        key_points = data.get("key_points")
        if isinstance(key_points, str):
            data["key_points"] = json.loads(key_points)
        return Document(**data)

    async def create(self, fields: DocumentCreate) -> Document:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO documents (
                    title, category, file_url, file_type, original_text,
                    language, processing_status, simplified_summary, key_points,
                    medical_severity, legal_rights_summary, suggested_next_steps
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                RETURNING *
                """,
                fields.title,
                fields.category.value,
                fields.file_url,
                fields.file_type,
                fields.original_text,
                fields.language.value,
                fields.processing_status.value,
                fields.simplified_summary,
                json.dumps(fields.key_points),
                fields.medical_severity,
                fields.legal_rights_summary,
                fields.suggested_next_steps,
            )
        document = self._row_to_document(row)
        logger.info(f"Created document {document.id} ({document.category.value})")
        return document

    async def get(self, document_id: UUID) -> Document | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM documents WHERE id = $1", document_id)
        return self._row_to_document(row) if row else None

    async def list(self, order_by: str = "-created_date", limit: int | None = None) -> list[Document]:
        field_name, descending = parse_order_by(order_by)
        query = f"SELECT * FROM documents ORDER BY {field_name} {'DESC' if descending else 'ASC'}"
        params: list[Any] = []
        if limit is not None:
            query += " LIMIT $1"
            params.append(limit)

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [self._row_to_document(row) for row in rows]


class PostgresConversationStore:
    """Repository for Conversation records. Messages are stored as one JSONB array."""

    def __init__(self, pool: Any) -> None:
        self.pool = pool

    async def ensure_tables(self) -> None:
        """Ensure required database tables exist."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    document_id UUID NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
                    messages JSONB NOT NULL DEFAULT '[]',
                    language VARCHAR(32) NOT NULL,
                    created_date TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_conversations_document_id
                ON conversations(document_id, created_date DESC)
            """)

    @staticmethod
    def _dump_messages(messages: list[Message]) -> str:
        return json.dumps([m.model_dump(mode="json") for m in messages])

    @staticmethod
    def _row_to_conversation(row: Any) -> Conversation:
        data = dict(row)
        messages = data.get("messages")
        if isinstance(messages, str):
            data["messages"] = json.loads(messages)
        return Conversation(**data)

    async def filter(
        self,
        document_id: UUID,
        order_by: str = "-created_date",
        limit: int | None = None,
    ) -> list[Conversation]:
        field_name, descending = parse_order_by(order_by)
        query = (
            "SELECT * FROM conversations WHERE document_id = $1 "
            f"ORDER BY {field_name} {'DESC' if descending else 'ASC'}"
        )
        params: list[Any] = [document_id]
        if limit is not None:
            query += " LIMIT $2"
            params.append(limit)

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [self._row_to_conversation(row) for row in rows]

    async def create(
        self,
        document_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO conversations (document_id, messages, language)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                document_id,
                self._dump_messages(messages),
                language.value,
            )
        conversation = self._row_to_conversation(row)
        logger.info(f"Created conversation {conversation.id} for document {document_id}")
        return conversation

    async def update(
        self,
        conversation_id: UUID,
        messages: list[Message],
        language: Language,
    ) -> Conversation:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE conversations
                SET messages = $2, language = $3
                WHERE id = $1
                RETURNING *
                """,
                conversation_id,
                self._dump_messages(messages),
                language.value,
            )
        if row is None:
            raise KeyError(f"Conversation {conversation_id} not found")
        return self._row_to_conversation(row)
