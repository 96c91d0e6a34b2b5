"""Analysis Pipeline - turns one uploaded file into a persisted Document.

Steps run strictly in order: upload, extract, prompt-select, invoke, persist.
Extraction failures are absorbed (the document is analysed with empty text);
any other failure aborts the run and nothing is persisted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from app.models.document import Category, DocumentCreate, Document, DocumentStatus, Language
from core.analysis.prompts import format_analysis_prompt, get_prompt_spec
from core.errors import DocumentProcessingError, DocumentValidationError
from core.gateway.contracts import FileUploader, ModelInvoker, StructuredExtractor
from core.gateway.extraction import TEXT_CONTENT_SCHEMA
from core.stores.base import DocumentStore

logger = logging.getLogger("simplidoc.pipeline")

ACCEPTED_MIME_TYPES = frozenset({"application/pdf", "image/jpeg", "image/jpg", "image/png"})
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

INVALID_TYPE_MESSAGE = "Please upload a PDF, JPEG, or PNG file"
TOO_LARGE_MESSAGE = "File size must be less than 10MB"
MISSING_INPUT_MESSAGE = "Please select a file and category"


@dataclass
class UploadedFile:
    """A file as received from the client."""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_extractable(self) -> bool:
        """PDFs and images go through text extraction."""
        return self.content_type == "application/pdf" or self.content_type.startswith("image/")


def validate_upload(
    upload: UploadedFile | None,
    category: str | Category | None,
    max_size: int = MAX_FILE_SIZE,
) -> Category:
    """Check an upload before any network call is made.

    Returns:
        The parsed category.

    Raises:
        DocumentValidationError: With a user-facing message.
    """
    if upload is None or not category:
        raise DocumentValidationError(MISSING_INPUT_MESSAGE)

    if upload.content_type not in ACCEPTED_MIME_TYPES:
        raise DocumentValidationError(INVALID_TYPE_MESSAGE)

    if upload.size > max_size:
        raise DocumentValidationError(TOO_LARGE_MESSAGE)

    try:
        return Category(category)
    except ValueError:
        raise DocumentValidationError(MISSING_INPUT_MESSAGE) from None


def build_document_fields(
    upload: UploadedFile,
    category: Category,
    language: Language,
    file_url: str,
    original_text: str,
    model_output: dict[str, Any],
) -> DocumentCreate:
    """Merge file metadata, extracted text and model output into a record.

    Only fields named by the category's output schema are taken from the
    model output; anything else the model volunteers is dropped, so
    ``medical_severity`` can only appear on medical documents and
    ``legal_rights_summary`` only on legal ones.
    """
    allowed = get_prompt_spec(category).output_fields

    def pick(name: str) -> Any:
        return model_output.get(name) if name in allowed else None

    key_points = pick("key_points") or []
    if not isinstance(key_points, list):
        key_points = [str(key_points)]

    return DocumentCreate(
        title=upload.filename,
        category=category,
        file_url=file_url,
        file_type=upload.content_type,
        original_text=original_text,
        language=language,
        processing_status=DocumentStatus.COMPLETED,
        simplified_summary=pick("simplified_summary"),
        key_points=[str(p) for p in key_points],
        medical_severity=pick("medical_severity") or None,
        legal_rights_summary=pick("legal_rights_summary") or None,
        suggested_next_steps=pick("suggested_next_steps") or None,
    )


class AnalysisPipeline:
    """Orchestrates a single pipeline run per call.

    Example:
        pipeline = AnalysisPipeline(storage, extractor, llm, document_store)
        document = await pipeline.process_document(
            UploadedFile("report.pdf", "application/pdf", data),
            category="medical",
            language=Language.HINDI,
        )
    """

    def __init__(
        self,
        uploader: FileUploader,
        extractor: StructuredExtractor,
        model: ModelInvoker,
        documents: DocumentStore,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self.uploader = uploader
        self.extractor = extractor
        self.model = model
        self.documents = documents
        self.max_file_size = max_file_size

    async def _extract_text(self, upload: UploadedFile, file_url: str) -> str:
        """Step 2. Never fails the run: any problem yields empty text."""
        if not upload.is_extractable:
            return ""
        try:
            result = await self.extractor.extract_structured(
                file_url, TEXT_CONTENT_SCHEMA, mime_type=upload.content_type
            )
        except Exception as e:
            logger.warning(f"Extraction raised for {upload.filename}: {e}")
            return ""
        if result.status != "success" or not result.output:
            logger.warning(f"Extraction returned {result.status} for {upload.filename}")
            return ""
        return result.output.get("text_content") or ""

    async def process_document(
        self,
        upload: UploadedFile | None,
        category: str | Category | None,
        language: str | Language = Language.ENGLISH,
    ) -> Document:
        """Run the full pipeline for one file.

        Raises:
            DocumentValidationError: Bad file type/size or missing category.
            DocumentProcessingError: Upload, model or store failure.
        """
        parsed_category = validate_upload(upload, category, self.max_file_size)
        try:
            parsed_language = Language(language)
        except ValueError:
            raise DocumentValidationError(f"Unsupported language: {language}") from None

        start_time = time.time()
        logger.info(
            f"Processing {upload.filename} ({upload.content_type}, {upload.size} bytes) "
            f"as {parsed_category.value} in {parsed_language.value}"
        )

        try:
            stored = await self.uploader.upload_file(
                upload.content, upload.content_type, upload.size, upload.filename
            )
            file_url = stored.file_url
        except Exception as e:
            logger.error(f"Upload failed for {upload.filename}: {e}", exc_info=True)
            raise DocumentProcessingError() from e

        original_text = await self._extract_text(upload, file_url)

        try:
            spec = get_prompt_spec(parsed_category)
            prompt = format_analysis_prompt(parsed_category, parsed_language, original_text)
            output = await self.model.invoke_model(
                prompt,
                spec.output_schema,
                operation="DOCUMENT_SUMMARY",
                reference=upload.filename,
            )
            if not isinstance(output, dict):
                raise TypeError(f"Expected structured output, got {type(output).__name__}")

            fields = build_document_fields(
                upload, parsed_category, parsed_language, file_url, original_text, output
            )
            document = await self.documents.create(fields)
        except Exception as e:
            logger.error(f"Processing failed for {upload.filename}: {e}", exc_info=True)
            raise DocumentProcessingError() from e

        logger.info(
            f"Document {document.id} completed in {int((time.time() - start_time) * 1000)} ms "
            f"(text_chars={len(original_text)}, key_points={len(document.key_points)})"
        )
        return document
