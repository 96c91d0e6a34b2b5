"""Exception hierarchy shared by the pipeline, chat and gateway layers."""


class SimplidocError(Exception):
    """Base class for all Simplidoc errors."""


class DocumentValidationError(SimplidocError):
    """Upload rejected before any network call. The message is user-facing."""


class DocumentProcessingError(SimplidocError):
    """Pipeline run aborted. No document was persisted."""

    DEFAULT_MESSAGE = "Failed to process document. Please try again."

    def __init__(self, message: str = DEFAULT_MESSAGE) -> None:
        super().__init__(message)


class GatewayError(SimplidocError):
    """A hosted model or storage call failed."""


class UploadError(GatewayError):
    """The raw file could not be stored."""


class ExtractionError(GatewayError):
    """Text could not be extracted from a stored file."""


class ModelInvocationError(GatewayError):
    """The language model call failed or returned unusable output."""


class EmptyMessageError(SimplidocError):
    """A chat turn was submitted with no text."""


class TurnInProgressError(SimplidocError):
    """A chat turn for the same document has not resolved yet."""


class SpeechUnavailableError(SimplidocError):
    """Voice input/output is disabled or the voice session is stopped."""
