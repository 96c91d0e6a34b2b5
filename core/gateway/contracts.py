"""Capability contracts the core depends on. Gateways and test fakes both satisfy these."""

from typing import Any, Protocol

from core.gateway.extraction import ExtractionResult
from core.gateway.storage import StoredFile


class FileUploader(Protocol):
    async def upload_file(self, content: bytes, mime_type: str, size: int, filename: str = "") -> StoredFile: ...


class StructuredExtractor(Protocol):
    async def extract_structured(
        self, file_url: str, schema: dict[str, Any], mime_type: str | None = None
    ) -> ExtractionResult: ...


class ModelInvoker(Protocol):
    async def invoke_model(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        operation: str = "INVOKE_MODEL",
        reference: str = "-",
    ) -> str | dict[str, Any]: ...


class SpeechEngine(Protocol):
    async def transcribe_async(self, audio: bytes, filename: str, language_code: str) -> str: ...

    async def synthesize_async(self, text: str) -> bytes: ...
