"""Unit tests for the model gateway.

Tests cover:
- JSON repair strategies for structured model output
- LLMClient request shape, usage logging and error wrapping
- Local file storage URLs and paths
- Text extraction for text-layer PDFs, scanned PDFs and images
- Audio transcription and synthesis
"""

import json
from pathlib import Path
from unittest.mock import MagicMock

import fitz  # PyMuPDF
import pytest

from core.errors import GatewayError, ModelInvocationError, UploadError
from core.gateway.audio import AudioClient
from core.gateway.extraction import TEXT_CONTENT_SCHEMA, PDFTextReader, TextExtractor
from core.gateway.llm import LLMClient, parse_json_object
from core.gateway.storage import LocalFileStorage
from core.usage_tracker import CallStatus, UsageTracker


def make_completion(content: str | None, prompt_tokens: int = 120, completion_tokens: int = 40) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


def make_pdf_bytes(text: str | None) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def tracker() -> UsageTracker:
    return UsageTracker(logger_name="simplidoc.usage.test")


@pytest.fixture
def mock_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path, "http://testserver/files/")


class TestParseJsonObject:
    """Tests for JSON recovery from model output."""

    def test_plain_json(self) -> None:
        assert parse_json_object('{"simplified_summary": "ok"}') == {"simplified_summary": "ok"}

    def test_markdown_fence(self) -> None:
        """Test JSON wrapped in a ```json fence."""
        text = 'Here you go:\n```json\n{"key_points": ["a", "b"]}\n```'
        assert parse_json_object(text) == {"key_points": ["a", "b"]}

    def test_bare_fence(self) -> None:
        text = '```\n{"a": 1}\n```'
        assert parse_json_object(text) == {"a": 1}

    def test_surrounding_prose(self) -> None:
        """Test the outermost braces are used when prose surrounds the object."""
        text = 'Sure! {"simplified_summary": "x", "key_points": []} Hope this helps.'
        assert parse_json_object(text) == {"simplified_summary": "x", "key_points": []}

    def test_trailing_commas_repaired(self) -> None:
        text = '{"key_points": ["a", "b",], "simplified_summary": "s",}'
        assert parse_json_object(text) == {"key_points": ["a", "b"], "simplified_summary": "s"}

    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]", "{broken"])
    def test_unrecoverable_raises(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_json_object(text)


class TestLLMClient:
    """Tests for LLMClient against a mocked OpenAI client."""

    def test_structured_invoke(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        """Test a schema call requests JSON mode and returns a dict."""
        mock_client.chat.completions.create.return_value = make_completion('{"simplified_summary": "s"}')
        llm = LLMClient(client=mock_client, tracker=tracker, model="gpt-4o-mini")
        schema = {"type": "object", "properties": {"simplified_summary": {"type": "string"}}}

        result = llm.invoke("Summarise this", schema, operation="DOCUMENT_SUMMARY", reference="a.pdf")

        assert result == {"simplified_summary": "s"}
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert json.dumps(schema, indent=2) in kwargs["messages"][0]["content"]
        assert kwargs["messages"][1] == {"role": "user", "content": "Summarise this"}

    def test_text_invoke(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        """Test a call without schema returns stripped text and no JSON mode."""
        mock_client.chat.completions.create.return_value = make_completion("  Rent is due monthly.\n")
        llm = LLMClient(client=mock_client, tracker=tracker, model="gpt-4o-mini")

        assert llm.invoke("When is rent due?") == "Rent is due monthly."
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert "response_format" not in kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "When is rent due?"}]

    def test_usage_logged_on_success(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        mock_client.chat.completions.create.return_value = make_completion("hi", 1000, 500)
        llm = LLMClient(client=mock_client, tracker=tracker, model="gpt-4o-mini")

        llm.invoke("hello", operation="CHAT_TURN", reference="doc-1")

        records = tracker.get_all_records()
        assert len(records) == 1
        assert records[0].operation == "CHAT_TURN"
        assert records[0].reference == "doc-1"
        assert records[0].input_tokens == 1000
        assert records[0].output_tokens == 500
        assert records[0].status == CallStatus.SUCCESS

    def test_api_error_wrapped(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        """Test SDK exceptions surface as ModelInvocationError and are logged as failures."""
        mock_client.chat.completions.create.side_effect = RuntimeError("429 rate limited")
        llm = LLMClient(client=mock_client, tracker=tracker, model="gpt-4o-mini")

        with pytest.raises(ModelInvocationError, match="rate limited"):
            llm.invoke("hello")

        assert tracker.get_summary().failed_calls == 1

    def test_empty_reply_is_error(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        mock_client.chat.completions.create.return_value = make_completion(None)
        llm = LLMClient(client=mock_client, tracker=tracker)

        with pytest.raises(ModelInvocationError):
            llm.invoke("hello")

    def test_unparseable_structured_reply_is_error(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        mock_client.chat.completions.create.return_value = make_completion("I cannot do that.")
        llm = LLMClient(client=mock_client, tracker=tracker)

        with pytest.raises(ModelInvocationError):
            llm.invoke("hello", {"type": "object", "properties": {}})

    @pytest.mark.asyncio
    async def test_invoke_model_async(self, mock_client: MagicMock, tracker: UsageTracker) -> None:
        mock_client.chat.completions.create.return_value = make_completion('{"a": 1}')
        llm = LLMClient(client=mock_client, tracker=tracker)

        assert await llm.invoke_model("p", {"type": "object", "properties": {}}) == {"a": 1}


class TestLocalFileStorage:
    """Tests for disk-backed upload storage."""

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, storage: LocalFileStorage, tmp_path: Path) -> None:
        stored = await storage.upload_file(b"%PDF-1.4", "application/pdf", 8, "Lease Agreement.PDF")

        assert stored.file_url.startswith("http://testserver/files/")
        assert stored.file_url.endswith(".pdf")
        assert stored.path.parent == tmp_path
        assert stored.path.read_bytes() == b"%PDF-1.4"
        assert storage.resolve_path(stored.file_url) == stored.path

    @pytest.mark.asyncio
    async def test_suffix_from_mime_type(self, storage: LocalFileStorage) -> None:
        """Test a file name without extension gets one from its MIME type."""
        stored = await storage.upload_file(b"img", "image/png", 3, "")
        assert stored.file_url.endswith(".png")
        assert storage.guess_mime_type(stored.file_url) == "image/png"

    @pytest.mark.asyncio
    async def test_names_are_unique(self, storage: LocalFileStorage) -> None:
        first = await storage.upload_file(b"a", "image/jpeg", 1, "scan.jpg")
        second = await storage.upload_file(b"b", "image/jpeg", 1, "scan.jpg")
        assert first.file_url != second.file_url

    @pytest.mark.asyncio
    async def test_client_file_name_never_sets_suffix(self, storage: LocalFileStorage) -> None:
        """Test the served extension follows the validated MIME type, not the client file name."""
        stored = await storage.upload_file(b"<script>alert(1)</script>", "image/png", 25, "x.html")

        assert stored.file_url.endswith(".png")
        assert stored.path.suffix == ".png"
        assert storage.guess_mime_type(stored.file_url) == "image/png"

    @pytest.mark.asyncio
    async def test_unsupported_mime_type_rejected(self, storage: LocalFileStorage, tmp_path: Path) -> None:
        with pytest.raises(UploadError):
            await storage.upload_file(b"<html></html>", "text/html", 13, "page.html")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_write_failure_raises_upload_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        storage = LocalFileStorage(blocker, "http://testserver/files")

        with pytest.raises(UploadError):
            await storage.upload_file(b"a", "application/pdf", 1, "a.pdf")


class TestTextExtractor:
    """Tests for schema-driven text extraction."""

    def test_pdf_reader_reads_text_layer(self) -> None:
        pdf_text = PDFTextReader().read_bytes(make_pdf_bytes("Patient has mild fever"))

        assert pdf_text.page_count == 1
        assert not pdf_text.is_empty
        assert "Patient has mild fever" in pdf_text.raw_text

    def test_pdf_reader_blank_page_is_empty(self) -> None:
        assert PDFTextReader().read_bytes(make_pdf_bytes(None)).is_empty

    @pytest.mark.asyncio
    async def test_text_pdf_read_locally(self, storage, mock_client, tracker) -> None:
        """Test a PDF with a text layer never calls the vision model."""
        stored = await storage.upload_file(make_pdf_bytes("Rent is due monthly"), "application/pdf", 0, "a.pdf")
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker)

        result = await extractor.extract_structured(stored.file_url, TEXT_CONTENT_SCHEMA)

        assert result.ok
        assert "Rent is due monthly" in result.output["text_content"]
        mock_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_pdf_named_with_other_extension_read_locally(self, storage, mock_client, tracker) -> None:
        """Test the validated MIME type drives extraction even when the URL suffix disagrees."""
        stored = await storage.upload_file(make_pdf_bytes("Rent is due monthly"), "application/pdf", 0, "report.docx")
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker)

        result = await extractor.extract_structured(stored.file_url, TEXT_CONTENT_SCHEMA, mime_type="application/pdf")

        assert stored.file_url.endswith(".pdf")
        assert result.ok
        assert "Rent is due monthly" in result.output["text_content"]

    @pytest.mark.asyncio
    async def test_explicit_mime_type_overrides_url_guess(self, storage, mock_client, tracker, tmp_path) -> None:
        (tmp_path / "legacy.docx").write_bytes(make_pdf_bytes("Clinic visit on Monday"))
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker)
        file_url = "http://testserver/files/legacy.docx"

        guessed = await extractor.extract_structured(file_url, TEXT_CONTENT_SCHEMA)
        declared = await extractor.extract_structured(file_url, TEXT_CONTENT_SCHEMA, mime_type="application/pdf")

        assert guessed.status == "failure"
        assert declared.ok
        assert "Clinic visit on Monday" in declared.output["text_content"]
        mock_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_scanned_pdf_uses_vision(self, storage, mock_client, tracker) -> None:
        """Test a PDF without a text layer is rendered and sent to the vision model."""
        mock_client.chat.completions.create.return_value = make_completion('{"text_content": "scanned text"}')
        stored = await storage.upload_file(make_pdf_bytes(None), "application/pdf", 0, "scan.pdf")
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker, vision_model="gpt-4o")

        result = await extractor.extract_structured(stored.file_url, TEXT_CONTENT_SCHEMA)

        assert result.output == {"text_content": "scanned text"}
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        image_part = kwargs["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")
        assert tracker.get_all_records()[0].operation == "TEXT_EXTRACTION"

    @pytest.mark.asyncio
    async def test_image_uses_vision(self, storage, mock_client, tracker) -> None:
        mock_client.chat.completions.create.return_value = make_completion('{"text_content": "prescription"}')
        stored = await storage.upload_file(b"\xff\xd8\xff", "image/jpeg", 3, "rx.jpg")
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker)

        result = await extractor.extract_structured(stored.file_url, TEXT_CONTENT_SCHEMA)

        assert result.output == {"text_content": "prescription"}
        url = mock_client.chat.completions.create.call_args.kwargs["messages"][0]["content"][1]["image_url"]["url"]
        assert url.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_vision_error_reported_as_failure(self, storage, mock_client, tracker) -> None:
        """Test extraction never raises; errors become a failure result."""
        mock_client.chat.completions.create.side_effect = RuntimeError("timeout")
        stored = await storage.upload_file(b"png", "image/png", 3, "x.png")
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker)

        result = await extractor.extract_structured(stored.file_url, TEXT_CONTENT_SCHEMA)

        assert result.status == "failure"
        assert result.output is None
        assert "timeout" in result.details

    @pytest.mark.asyncio
    async def test_missing_file_reported_as_failure(self, storage, mock_client, tracker) -> None:
        extractor = TextExtractor(storage, client=mock_client, tracker=tracker)

        result = await extractor.extract_structured("http://testserver/files/missing.pdf", TEXT_CONTENT_SCHEMA)

        assert not result.ok


class TestAudioClient:
    """Tests for speech gateway calls."""

    def test_transcribe_sends_primary_language_subtag(self, mock_client, tracker) -> None:
        mock_client.audio.transcriptions.create.return_value = MagicMock(text=" नमस्ते ")
        audio = AudioClient(client=mock_client, tracker=tracker, transcription_model="whisper-1")

        assert audio.transcribe(b"webm", "clip.webm", "hi-IN") == "नमस्ते"
        kwargs = mock_client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["language"] == "hi"
        assert kwargs["model"] == "whisper-1"
        assert kwargs["file"].name == "clip.webm"

    def test_synthesize_returns_audio(self, mock_client, tracker) -> None:
        mock_client.audio.speech.create.return_value = MagicMock(content=b"mp3")
        audio = AudioClient(client=mock_client, tracker=tracker, speech_model="tts-1", voice="alloy")

        assert audio.synthesize("Hello") == b"mp3"
        kwargs = mock_client.audio.speech.create.call_args.kwargs
        assert kwargs == {"model": "tts-1", "voice": "alloy", "input": "Hello"}

    def test_transcription_error_wrapped(self, mock_client, tracker) -> None:
        mock_client.audio.transcriptions.create.side_effect = RuntimeError("bad audio")
        audio = AudioClient(client=mock_client, tracker=tracker)

        with pytest.raises(GatewayError):
            audio.transcribe(b"x", "clip.webm", "en-US")
        assert tracker.get_summary().failed_calls == 1
