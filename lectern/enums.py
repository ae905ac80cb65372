"""Enums for status values used throughout the application."""

from enum import StrEnum


class ServiceType(StrEnum):
    """AI service a backend call was made for."""

    COPILOT = "copilot"
    EXTRACTION = "extraction"


class Provider(StrEnum):
    """AI provider addressed by a backend call."""

    OPENAI = "openai"
    GEMINI = "gemini"


class UsageStatus(StrEnum):
    """Outcome of an AI backend invocation."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class PageClassification(StrEnum):
    """Whether a source page already carries a usable text layer."""

    BORN_DIGITAL = "born_digital"
    SCANNED = "scanned"


class ExtractionState(StrEnum):
    """State of an extraction session."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    COMMITTED = "committed"
    ABORTED = "aborted"


class EngineState(StrEnum):
    """State of the ghost-text completion engine."""

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    REQUESTING = "requesting"
    SHOWN = "shown"


class SuggestionState(StrEnum):
    """Lifecycle of a single ghost-text suggestion."""

    PENDING = "pending"
    SHOWN = "shown"
    ACCEPTED = "accepted"
    PARTIALLY_ACCEPTED = "partially_accepted"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"
