"""FastAPI application entry point for Simplidoc."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import Settings, get_settings
from app.database import db
from core.analysis import AnalysisPipeline
from core.chat import ChatSessionManager
from core.gateway import AudioClient, LLMClient, LocalFileStorage, TextExtractor
from core.speech import VoiceSessionRegistry
from core.stores import (
    ConversationStore,
    DocumentStore,
    InMemoryConversationStore,
    InMemoryDocumentStore,
    PostgresConversationStore,
    PostgresDocumentStore,
)

logger = logging.getLogger("simplidoc.app")


async def build_stores(settings: Settings) -> tuple[DocumentStore, ConversationStore]:
    """Create the document and conversation stores for the configured backend."""
    if settings.storage_backend == "postgres":
        await db.connect()
        documents = PostgresDocumentStore(db.pool)
        conversations = PostgresConversationStore(db.pool)
        await documents.ensure_tables()
        await conversations.ensure_tables()
        return documents, conversations

    if settings.storage_backend != "memory":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    return InMemoryDocumentStore(), InMemoryConversationStore()


def configure_services(
    app: FastAPI,
    settings: Settings,
    documents: DocumentStore,
    conversations: ConversationStore,
) -> None:
    """Wire gateways and core services onto ``app.state``."""
    storage = LocalFileStorage(settings.upload_dir, settings.files_base_url)
    summary_llm = LLMClient(model=settings.summary_model)
    chat_llm = LLMClient(model=settings.chat_model)

    app.state.documents = documents
    app.state.conversations = conversations
    app.state.pipeline = AnalysisPipeline(
        uploader=storage,
        extractor=TextExtractor(storage, vision_model=settings.vision_model),
        model=summary_llm,
        documents=documents,
        max_file_size=settings.max_upload_bytes,
    )
    app.state.chat = ChatSessionManager(chat_llm, conversations)
    app.state.voice = VoiceSessionRegistry(AudioClient(), enabled=settings.voice_enabled)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.app_env}, storage: {settings.storage_backend}")
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; model calls will fail")

    documents, conversations = await build_stores(settings)
    configure_services(app, settings, documents, conversations)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    app.state.voice.close_all()
    await db.disconnect()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Plain-language summaries and document-grounded chat for legal, medical and government paperwork",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded originals, addressed by Document.file_url
app.mount("/files", StaticFiles(directory=settings.upload_dir, check_dir=False), name="files")


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from app.api.routes import chat, documents
app.include_router(documents.router, prefix="/api/v1/documents", tags=["documents"])
app.include_router(chat.router, prefix="/api/v1/chat", tags=["chat"])
