"""Shared fakes and fixtures.

The fakes satisfy the gateway protocols in ``core.gateway.contracts`` and
record every call, so tests can assert on what reached the network layer.
"""

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.gateway.extraction import ExtractionResult
from core.gateway.storage import StoredFile
from core.stores import InMemoryConversationStore, InMemoryDocumentStore


class AsyncContextManagerMock:
    """Helper class to create async context manager mocks."""

    def __init__(self, return_value: Any) -> None:
        self.return_value = return_value

    async def __aenter__(self) -> Any:
        return self.return_value

    async def __aexit__(self, *args: Any) -> None:
        pass


class FakeUploader:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def upload_file(self, content: bytes, mime_type: str, size: int, filename: str = "") -> StoredFile:
        self.calls.append({"mime_type": mime_type, "size": size, "filename": filename})
        if self.error:
            raise self.error
        name = f"file{len(self.calls)}{Path(filename).suffix}"
        return StoredFile(
            file_url=f"http://testserver/files/{name}",
            path=Path("/tmp") / name,
            mime_type=mime_type,
            size=size,
        )


class FakeExtractor:
    def __init__(self, text: str = "") -> None:
        self.result = ExtractionResult(status="success", output={"text_content": text})
        self.calls: list[tuple[str, dict[str, Any], str | None]] = []

    async def extract_structured(
        self, file_url: str, schema: dict[str, Any], mime_type: str | None = None
    ) -> ExtractionResult:
        self.calls.append((file_url, schema, mime_type))
        return self.result


class FakeModel:
    """Returns queued responses in order. An Exception in the queue is raised."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def invoke_model(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        operation: str = "INVOKE_MODEL",
        reference: str = "-",
    ) -> str | dict[str, Any]:
        self.calls.append({"prompt": prompt, "schema": schema, "operation": operation})
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.pop(0) if self.responses else "OK"
        if isinstance(response, Exception):
            raise response
        return response


class FakeSpeechEngine:
    def __init__(self) -> None:
        self.transcriptions: list[tuple[str, str]] = []
        self.syntheses: list[str] = []

    async def transcribe_async(self, audio: bytes, filename: str, language_code: str) -> str:
        self.transcriptions.append((filename, language_code))
        return "what does this mean"

    async def synthesize_async(self, text: str) -> bytes:
        self.syntheses.append(text)
        return b"ID3-fake-mp3"


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor("Patient has mild fever and a sore throat.")


@pytest.fixture
def model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def speech_engine() -> FakeSpeechEngine:
    return FakeSpeechEngine()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def conversation_store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def mock_pool() -> MagicMock:
    """asyncpg pool whose ``acquire()`` yields a single AsyncMock connection."""
    pool = MagicMock()
    conn = AsyncMock()
    pool.acquire.return_value = AsyncContextManagerMock(conn)
    return pool
