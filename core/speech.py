"""Voice input/output for a chat view.

A ``VoiceSession`` is created per chat view and owns its own
listening/speaking state, so nothing leaks between views. ``start()`` must
be called before use and ``stop()`` releases everything (cancels playback,
ends listening).
"""

import logging
from datetime import datetime
from uuid import UUID

from app.models.conversation import Message
from app.models.document import Language
from core.errors import SpeechUnavailableError
from core.gateway.contracts import SpeechEngine

logger = logging.getLogger("simplidoc.speech")

RECOGNITION_ERROR_MESSAGES: dict[str, str] = {
    "no-speech": "I didn't hear anything. Please try again.",
    "audio-capture": "Couldn't capture audio. Please check your microphone.",
    "not-allowed": "Microphone access denied. Please allow it in browser settings.",
    "aborted": "Speech recognition aborted.",
    "network": "Network error during speech recognition.",
    "bad-grammar": "Bad grammar in speech recognition.",
    "language-not-supported": "Selected language not supported for speech recognition.",
}
DEFAULT_RECOGNITION_ERROR = "An error occurred with speech recognition."


def recognition_error_message(code: str) -> str:
    """User-facing text for a speech recognition error code."""
    return RECOGNITION_ERROR_MESSAGES.get(code, DEFAULT_RECOGNITION_ERROR)


class VoiceSession:
    """Speech capability scoped to one chat view."""

    def __init__(self, engine: SpeechEngine, language: Language = Language.ENGLISH) -> None:
        self.engine = engine
        self.language = language
        self.active = False
        self.listening = False
        self.speaking_key: datetime | None = None

    def start(self) -> None:
        self.active = True
        logger.debug(f"Voice session started ({self.language.speech_code})")

    def stop(self) -> None:
        """End the session: stop listening and cancel any playback."""
        self.active = False
        self.listening = False
        self.speaking_key = None
        logger.debug("Voice session stopped")

    def _require_active(self) -> None:
        if not self.active:
            raise SpeechUnavailableError("Voice session is not started")

    def set_language(self, language: Language) -> None:
        """Switch recognition/synthesis language. Ongoing speech is cancelled."""
        if language != self.language:
            self.language = language
            self.cancel_speech()

    def cancel_speech(self) -> None:
        self.speaking_key = None

    def is_speaking(self, message: Message) -> bool:
        return self.speaking_key is not None and self.speaking_key == message.timestamp

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        language: Language | None = None,
    ) -> str:
        """Recognise speech in the session language.

        Passing ``language`` switches the session language first.

        Raises:
            SpeechUnavailableError: If the session is stopped or the audio is empty.
        """
        self._require_active()
        if language is not None:
            self.set_language(language)
        if not audio:
            raise SpeechUnavailableError(recognition_error_message("no-speech"))

        self.listening = True
        try:
            return await self.engine.transcribe_async(audio, filename, self.language.speech_code)
        finally:
            self.listening = False

    async def speak(self, message: Message) -> bytes | None:
        """Toggle playback of a message.

        Returns:
            MP3 audio for the message, or None when the same message was
            already speaking and playback was stopped instead.
        """
        self._require_active()
        if not message.content:
            raise SpeechUnavailableError("Message has no content to read aloud")

        if self.is_speaking(message):
            self.cancel_speech()
            return None

        self.cancel_speech()
        audio = await self.engine.synthesize_async(message.content)
        self.speaking_key = message.timestamp
        return audio


class VoiceSessionRegistry:
    """Open voice sessions keyed by the document whose chat view owns them."""

    def __init__(self, engine: SpeechEngine, enabled: bool = True) -> None:
        self.engine = engine
        self.enabled = enabled
        self._sessions: dict[UUID, VoiceSession] = {}

    def open(self, document_id: UUID, language: Language) -> VoiceSession:
        """Return the started session for a view, creating it on first use.

        Raises:
            SpeechUnavailableError: If voice is disabled.
        """
        if not self.enabled:
            raise SpeechUnavailableError("Voice features are disabled")
        session = self._sessions.get(document_id)
        if session is None:
            session = self._sessions[document_id] = VoiceSession(self.engine, language)
            session.start()
        return session

    def get(self, document_id: UUID) -> VoiceSession | None:
        return self._sessions.get(document_id)

    def close(self, document_id: UUID) -> bool:
        """Stop and forget a view's session. Returns False if none was open."""
        session = self._sessions.pop(document_id, None)
        if session is None:
            return False
        session.stop()
        return True

    def close_all(self) -> None:
        for document_id in list(self._sessions):
            self.close(document_id)
