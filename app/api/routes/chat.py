"""Document chat routes, including voice input and read-aloud."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile

from app.api.deps import get_chat, get_chat_document, get_documents, get_voice
from app.api.routes.documents import to_response
from app.models.conversation import (
    ChatMessageRequest,
    ChatSessionResponse,
    SpeakRequest,
    TranscriptionResponse,
)
from app.models.document import Document, DocumentResponse, Language
from core.chat import ChatSessionManager
from core.chat.session import DEFAULT_LANGUAGE
from core.errors import EmptyMessageError, GatewayError, SpeechUnavailableError, TurnInProgressError
from core.library import completed_documents
from core.speech import VoiceSessionRegistry
from core.stores import DocumentStore

logger = logging.getLogger("simplidoc.api.chat")

router = APIRouter()


@router.get("/documents", response_model=list[DocumentResponse])
async def list_chat_documents(
    documents: DocumentStore = Depends(get_documents),
) -> list[DocumentResponse]:
    """Documents that can be discussed in chat, newest first."""
    return [to_response(doc) for doc in completed_documents(await documents.list("-created_date"))]


@router.get("/{document_id}", response_model=ChatSessionResponse)
async def get_session(
    document: Document = Depends(get_chat_document),
    chat: ChatSessionManager = Depends(get_chat),
    voice: VoiceSessionRegistry = Depends(get_voice),
) -> ChatSessionResponse:
    """Open the chat view for a document and return its transcript."""
    session = await chat.load_session(document.id)
    language = session.language if session else DEFAULT_LANGUAGE
    if voice.enabled:
        voice.open(document.id, language).set_language(language)

    return ChatSessionResponse(
        document_id=document.id,
        conversation_id=session.id if session else None,
        language=language,
        messages=session.messages if session else [],
    )


@router.post("/{document_id}/messages", response_model=ChatSessionResponse)
async def send_message(
    body: ChatMessageRequest,
    document: Document = Depends(get_chat_document),
    chat: ChatSessionManager = Depends(get_chat),
    voice: VoiceSessionRegistry = Depends(get_voice),
) -> ChatSessionResponse:
    """Send one user message and return the transcript with the reply appended."""
    try:
        result = await chat.send_message(document, body.message, body.language)
    except EmptyMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TurnInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    language = result.session.language if result.session else body.language or DEFAULT_LANGUAGE
    voice_session = voice.get(document.id)
    if voice_session is not None:
        voice_session.set_language(language)

    return ChatSessionResponse(
        document_id=document.id,
        conversation_id=result.session.id if result.session else None,
        language=language,
        messages=result.messages,
    )


@router.post("/{document_id}/transcribe", response_model=TranscriptionResponse)
async def transcribe(
    audio: UploadFile = File(...),
    language: Language | None = Form(None),
    document: Document = Depends(get_chat_document),
    chat: ChatSessionManager = Depends(get_chat),
    voice: VoiceSessionRegistry = Depends(get_voice),
) -> TranscriptionResponse:
    """Turn a voice recording into message text.

    A voice session opened here without an explicit language starts in the
    language of the stored conversation.
    """
    initial_language = language
    if initial_language is None and voice.get(document.id) is None:
        stored = await chat.load_session(document.id)
        initial_language = stored.language if stored else None

    try:
        session = voice.open(document.id, initial_language or DEFAULT_LANGUAGE)
        text = await session.transcribe(
            await audio.read(), audio.filename or "recording.webm", language
        )
    except SpeechUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except GatewayError as e:
        logger.error(f"Transcription failed for document {document.id}: {e}")
        raise HTTPException(status_code=502, detail="Speech recognition failed. Please try again.")

    return TranscriptionResponse(text=text, language=session.language)


@router.post("/{document_id}/speak")
async def speak(
    body: SpeakRequest,
    document: Document = Depends(get_chat_document),
    chat: ChatSessionManager = Depends(get_chat),
    voice: VoiceSessionRegistry = Depends(get_voice),
) -> Response:
    """Read a message aloud, or stop it if it is the one currently playing."""
    session = await chat.load_session(document.id)
    message = None
    if session is not None:
        message = next((m for m in session.messages if m.timestamp == body.timestamp), None)
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")

    try:
        voice_session = voice.open(document.id, session.language)
        audio = await voice_session.speak(message)
    except SpeechUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except GatewayError as e:
        logger.error(f"Speech synthesis failed for document {document.id}: {e}")
        raise HTTPException(status_code=502, detail="Could not read the message aloud.")

    if audio is None:
        return Response(status_code=204)
    return Response(content=audio, media_type="audio/mpeg")


@router.delete("/{document_id}/voice", status_code=204)
async def close_voice(
    document_id: UUID,
    voice: VoiceSessionRegistry = Depends(get_voice),
) -> Response:
    """Close the chat view: stop listening and cancel playback."""
    voice.close(document_id)
    return Response(status_code=204)
