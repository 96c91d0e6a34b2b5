"""Document and Conversation stores.

Two interchangeable backends: in-memory (development, tests) and
PostgreSQL via asyncpg. Selected by ``settings.storage_backend``.
"""

from core.stores.base import ConversationStore, DocumentStore
from core.stores.memory import InMemoryConversationStore, InMemoryDocumentStore
from core.stores.postgres import PostgresConversationStore, PostgresDocumentStore

__all__ = [
    "ConversationStore",
    "DocumentStore",
    "InMemoryConversationStore",
    "InMemoryDocumentStore",
    "PostgresConversationStore",
    "PostgresDocumentStore",
]
