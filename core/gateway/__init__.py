"""Model Gateway - hosted storage, extraction, language and speech models.

- storage: stores uploaded originals and issues file URLs
- extraction: schema-driven text extraction (PyMuPDF, OpenAI vision)
- llm: prompt in, free text or structured JSON out
- audio: speech-to-text and text-to-speech
"""

from core.gateway.audio import AudioClient
from core.gateway.extraction import TEXT_CONTENT_SCHEMA, ExtractionResult, TextExtractor
from core.gateway.llm import LLMClient
from core.gateway.storage import LocalFileStorage, StoredFile

__all__ = [
    "AudioClient",
    "ExtractionResult",
    "LLMClient",
    "LocalFileStorage",
    "StoredFile",
    "TEXT_CONTENT_SCHEMA",
    "TextExtractor",
]
