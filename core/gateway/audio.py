"""Speech gateway: transcription (voice input) and synthesis (voice output)."""

import io
import logging
import time

from openai import OpenAI

from app.config import get_settings
from core.errors import GatewayError
from core.gateway.base import OpenAIGateway
from core.usage_tracker import CallStatus, UsageTracker

logger = logging.getLogger("simplidoc.gateway.audio")


class AudioClient(OpenAIGateway):
    """Wraps the OpenAI audio endpoints."""

    def __init__(
        self,
        client: OpenAI | None = None,
        tracker: UsageTracker | None = None,
        transcription_model: str | None = None,
        speech_model: str | None = None,
        voice: str | None = None,
    ) -> None:
        super().__init__(client=client, tracker=tracker)
        settings = get_settings()
        self.transcription_model = transcription_model or settings.transcription_model
        self.speech_model = speech_model or settings.speech_model
        self.voice = voice or settings.speech_voice

    def _record(self, operation: str, model: str, start_time: float, error: str | None = None) -> None:
        self.tracker.log_call(self.tracker.create_record(
            operation=operation,
            reference="-",
            model=model,
            input_tokens=0,
            output_tokens=0,
            latency_ms=int((time.time() - start_time) * 1000),
            status=CallStatus.FAILURE if error else CallStatus.SUCCESS,
            error_message=error,
        ))

    def transcribe(self, audio: bytes, filename: str, language_code: str) -> str:
        """Convert recorded speech to text.

        Args:
            audio: Raw audio bytes (webm, mp3, wav, ...).
            filename: Original file name; the API sniffs the format from it.
            language_code: BCP-47 tag such as "hi-IN". Only the primary
                subtag is sent to the API.
        """
        start_time = time.time()
        buffer = io.BytesIO(audio)
        buffer.name = filename or "recording.webm"
        try:
            result = self.client.audio.transcriptions.create(
                model=self.transcription_model,
                file=buffer,
                language=language_code.split("-")[0],
            )
        except Exception as e:
            self._record("TRANSCRIPTION", self.transcription_model, start_time, str(e))
            raise GatewayError(f"Transcription failed: {e}") from e
        self._record("TRANSCRIPTION", self.transcription_model, start_time)
        return (result.text or "").strip()

    def synthesize(self, text: str) -> bytes:
        """Render text to MP3 audio."""
        start_time = time.time()
        try:
            response = self.client.audio.speech.create(
                model=self.speech_model,
                voice=self.voice,
                input=text,
            )
            audio = response.content
        except Exception as e:
            self._record("SPEECH", self.speech_model, start_time, str(e))
            raise GatewayError(f"Speech synthesis failed: {e}") from e
        self._record("SPEECH", self.speech_model, start_time)
        return audio

    async def transcribe_async(self, audio: bytes, filename: str, language_code: str) -> str:
        return await self._run_blocking(self.transcribe, audio, filename, language_code)

    async def synthesize_async(self, text: str) -> bytes:
        return await self._run_blocking(self.synthesize, text)
