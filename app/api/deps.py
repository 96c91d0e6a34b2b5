"""Request-scoped accessors for services wired onto ``app.state`` at startup."""

from uuid import UUID

from fastapi import HTTPException, Request

from app.models.document import Document, DocumentStatus
from core.analysis import AnalysisPipeline
from core.chat import ChatSessionManager
from core.speech import VoiceSessionRegistry
from core.stores import DocumentStore


def get_pipeline(request: Request) -> AnalysisPipeline:
    return request.app.state.pipeline


def get_documents(request: Request) -> DocumentStore:
    return request.app.state.documents


def get_chat(request: Request) -> ChatSessionManager:
    return request.app.state.chat


def get_voice(request: Request) -> VoiceSessionRegistry:
    return request.app.state.voice


async def get_chat_document(document_id: UUID, request: Request) -> Document:
    """Resolve the document a chat route operates on.

    Raises:
        HTTPException: 404 if the document is unknown or not yet completed.
    """
    document = await get_documents(request).get(document_id)
    if document is None or document.processing_status != DocumentStatus.COMPLETED:
        raise HTTPException(status_code=404, detail="Document not found")
    return document
