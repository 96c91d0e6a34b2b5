"""Conversation data models."""

from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from app.models.document import Language, UTCDateTime, utc_now


class MessageRole(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single transcript entry. The timestamp doubles as its key."""
    role: MessageRole
    content: str
    timestamp: UTCDateTime = Field(default_factory=utc_now)


class Conversation(BaseModel):
    """Chat transcript attached to one document."""
    id: UUID = Field(default_factory=uuid4)
    document_id: UUID
    messages: list[Message] = Field(default_factory=list)
    language: Language = Language.ENGLISH
    created_date: UTCDateTime = Field(default_factory=utc_now)


class ChatMessageRequest(BaseModel):
    """Request body for sending a chat turn."""
    message: str
    language: Language | None = None


class SpeakRequest(BaseModel):
    """Request body for reading a message aloud."""
    timestamp: UTCDateTime


class ChatSessionResponse(BaseModel):
    """Transcript state returned to the client."""
    document_id: UUID
    conversation_id: UUID | None
    language: Language
    messages: list[Message]


class TranscriptionResponse(BaseModel):
    """Text recognised from a voice recording."""
    text: str
    language: Language
