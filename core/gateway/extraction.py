"""Text extraction gateway.

Given the URL of a stored upload and a JSON schema, returns structured fields
pulled from the file. PDFs with an embedded text layer are read locally with
PyMuPDF; images (and scanned PDFs with no text layer) go through the OpenAI
vision model. Every string property in the schema receives the extracted
text for the PDF path; the vision path asks the model to fill the schema.
"""

import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Literal

import fitz  # PyMuPDF
from openai import OpenAI

from app.config import get_settings
from core.errors import ExtractionError
from core.gateway.base import OpenAIGateway
from core.gateway.llm import parse_json_object
from core.gateway.storage import LocalFileStorage
from core.usage_tracker import CallStatus, UsageTracker

logger = logging.getLogger("simplidoc.gateway.extraction")

TEXT_CONTENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "text_content": {
            "type": "string",
            "description": "Extracted text content from the document",
        }
    },
}

VISION_PROMPT = """Read the attached document image and transcribe all of its text.

Return a JSON object following this schema:
{schema}

Keep the original reading order and line breaks. Do not summarise."""


@dataclass
class PageText:
    """Text pulled from a single PDF page."""
    page_number: int
    text: str
    word_count: int


@dataclass
class PdfText:
    """Text pulled from an entire PDF."""
    page_count: int
    pages: list[PageText]
    raw_text: str

    @property
    def is_empty(self) -> bool:
        """True when the PDF has no text layer (e.g. a scan)."""
        return sum(p.word_count for p in self.pages) == 0


@dataclass
class ExtractionResult:
    """Outcome of ``extract_structured``. ``output`` is set only on success."""
    status: Literal["success", "failure"]
    output: dict[str, Any] | None = None
    details: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class PDFTextReader:
    """Reads the text layer of PDF documents."""

    def read_bytes(self, pdf_bytes: bytes) -> PdfText:
        """Extract text from PDF bytes, page by page."""
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        pages: list[PageText] = []
        try:
            for page_num in range(len(doc)):
                text = self._clean_text(doc[page_num].get_text("text"))
                pages.append(PageText(
                    page_number=page_num + 1,
                    text=text,
                    word_count=len(text.split()),
                ))
        finally:
            doc.close()

        return PdfText(
            page_count=len(pages),
            pages=pages,
            raw_text="\n\n".join(p.text for p in pages if p.text),
        )

    def _clean_text(self, text: str) -> str:
        """Normalize whitespace in extracted text."""
        text = re.sub(r'\n{3,}', '\n\n', text)
        text = re.sub(r' {2,}', ' ', text)
        return text.strip()


class TextExtractor(OpenAIGateway):
    """Gateway turning a stored file into schema-shaped fields."""

    def __init__(
        self,
        storage: LocalFileStorage,
        client: OpenAI | None = None,
        tracker: UsageTracker | None = None,
        vision_model: str | None = None,
        pdf_reader: PDFTextReader | None = None,
    ) -> None:
        super().__init__(client=client, tracker=tracker)
        self.storage = storage
        self.vision_model = vision_model or get_settings().vision_model
        self.pdf_reader = pdf_reader or PDFTextReader()

    async def extract_structured(
        self, file_url: str, schema: dict[str, Any], mime_type: str | None = None
    ) -> ExtractionResult:
        """Extract fields described by ``schema`` from a stored file.

        ``mime_type`` is the validated upload type. When omitted it is guessed
        from the stored URL. Never raises: any failure is reported as
        ``status="failure"``.
        """
        try:
            output = await self._run_blocking(self._extract, file_url, schema, mime_type)
        except Exception as e:
            logger.warning(f"Extraction failed for {file_url}: {e}")
            return ExtractionResult(status="failure", details=str(e))
        return ExtractionResult(status="success", output=output)

    def _extract(self, file_url: str, schema: dict[str, Any], mime_type: str | None) -> dict[str, Any]:
        content = self.storage.read_bytes(file_url)
        mime_type = mime_type or self.storage.guess_mime_type(file_url)

        if mime_type == "application/pdf":
            pdf_text = self.pdf_reader.read_bytes(content)
            if not pdf_text.is_empty:
                logger.info(f"Read text layer of {file_url} ({pdf_text.page_count} pages)")
                return self._fill_string_properties(schema, pdf_text.raw_text)
            logger.info(f"{file_url} has no text layer, falling back to vision")
            content, mime_type = self._render_first_page(content), "image/png"
        elif not mime_type.startswith("image/"):
            raise ExtractionError(f"Unsupported file type for extraction: {mime_type}")

        return self._extract_with_vision(file_url, content, mime_type, schema)

    def _fill_string_properties(self, schema: dict[str, Any], text: str) -> dict[str, Any]:
        properties = schema.get("properties", {})
        return {
            name: text
            for name, prop in properties.items()
            if prop.get("type") == "string"
        }

    def _render_first_page(self, pdf_bytes: bytes) -> bytes:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            if len(doc) == 0:
                raise ExtractionError("PDF has no pages")
            return doc[0].get_pixmap(dpi=150).tobytes("png")
        finally:
            doc.close()

    def _extract_with_vision(
        self,
        file_url: str,
        content: bytes,
        mime_type: str,
        schema: dict[str, Any],
    ) -> dict[str, Any]:
        start_time = time.time()
        data_url = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
        try:
            response = self.client.chat.completions.create(
                model=self.vision_model,
                response_format={"type": "json_object"},
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": VISION_PROMPT.format(schema=json.dumps(schema, indent=2))},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }],
            )
            output = parse_json_object(response.choices[0].message.content or "")
        except Exception as e:
            self.tracker.log_call(self.tracker.create_record(
                operation="TEXT_EXTRACTION",
                reference=file_url,
                model=self.vision_model,
                input_tokens=0,
                output_tokens=0,
                latency_ms=int((time.time() - start_time) * 1000),
                status=CallStatus.FAILURE,
                error_message=str(e),
            ))
            raise ExtractionError(f"Vision extraction failed: {e}") from e

        usage = response.usage
        self.tracker.log_call(self.tracker.create_record(
            operation="TEXT_EXTRACTION",
            reference=file_url,
            model=self.vision_model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            latency_ms=int((time.time() - start_time) * 1000),
            status=CallStatus.SUCCESS,
        ))
        return output
