"""Exception taxonomy for extraction and completion errors.

Transport failures propagate as exceptions; conversion problems never do
(the converter degrades to plain paragraphs instead).
"""


class LecternError(Exception):
    """Base class for application errors."""

    pass


class ExtractionError(LecternError):
    """Base class for document extraction errors."""

    pass


class TranscriptionError(ExtractionError):
    """The transcription backend answered non-2xx or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionFailedError(ExtractionError):
    """An extraction session was aborted; nothing was committed."""

    pass


class ExtractionInProgressError(ExtractionError):
    """An extraction is already running for this target."""

    pass


class CompletionError(LecternError):
    """Base class for ghost-text completion errors."""

    pass


class CompletionRequestError(CompletionError):
    """The completion backend answered with a failure status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderNotConfiguredError(CompletionError):
    """Neither AI provider has a credential configured.

    Surfaced as HTTP 401 before any backend call is attempted.
    """

    pass
