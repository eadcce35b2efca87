"""Centralized exception hierarchy for the chapter script pipeline.

Usage:
    from exceptions import CreditInsufficientError, GenerationError

    raise GenerationError("Scene call returned an empty response")
"""


class ScriptPipelineError(Exception):
    """Base exception for all script pipeline errors."""
    pass


class ConfigurationError(ScriptPipelineError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Missing API key
        - Malformed numeric environment variable
    """
    pass


class ValidationError(ScriptPipelineError):
    """Raised when input validation fails.

    Examples:
        - Requested segment count below 1
        - Narration requested for zero segments
    """
    pass


class GenerationError(ScriptPipelineError):
    """Raised when an external generative call fails.

    Examples:
        - Network failure while streaming
        - Timeout (call cancelled)
        - Empty response payload

    Always absorbed inside the pipeline with a deterministic fallback.
    """
    pass


class ChapterGenerationError(ScriptPipelineError):
    """Raised when a chapter cannot be processed at all (e.g. empty content)."""

    def __init__(self, chapter_number: int, message: str):
        super().__init__(f"Chapter {chapter_number}: {message}")
        self.chapter_number = chapter_number


class CreditInsufficientError(ScriptPipelineError):
    """Raised when the credit gate rejects a chapter. Fatal to the whole batch."""

    def __init__(self, chapter_number: int, reason: str = "insufficient credit", balance=None):
        super().__init__(f"Credit check failed for chapter {chapter_number}: {reason}")
        self.chapter_number = chapter_number
        self.reason = reason
        self.balance = balance


class ScriptPersistenceError(ScriptPipelineError):
    """Raised when generated script documents could not be saved.

    Carries the batch result so generated documents are never lost and the
    caller can retry persistence.
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result
