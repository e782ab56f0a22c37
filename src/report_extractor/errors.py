"""Error taxonomy for document extraction.

Every error carries a stable ``kind`` (used as the prefix of result error
strings so callers can match on it) and a machine-readable ``code``.
Errors are raised inside a single attempt, chunk or stage and converted to
failed ExtractionResult records by the component that owns that unit of work;
nothing escapes ExtractionPipeline.process().
"""

from __future__ import annotations

from typing import Any


class DocumentProcessingError(Exception):
    """Base class for all extraction failures."""

    kind = "DocumentProcessingError"
    retryable = True

    def __init__(
        self,
        message: str,
        code: str = "DOCUMENT_PROCESSING_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def describe(self) -> str:
        """Return ``"<Kind>: <message>"`` for result error strings."""
        return f"{self.kind}: {self.message}"


class UnsupportedFileTypeError(DocumentProcessingError):
    kind = "UnsupportedFileType"
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "UNSUPPORTED_FILE_TYPE", details)


class NoTextExtractedError(DocumentProcessingError):
    kind = "NoTextExtracted"

    def __init__(self, method: str, text_length: int = 0) -> None:
        super().__init__(
            f"No text could be extracted using method: {method}",
            "NO_TEXT_EXTRACTED",
            {"method": method, "text_length": text_length},
        )


class ExtractionTimeoutError(DocumentProcessingError):
    kind = "ExtractionTimeout"

    def __init__(self, timeout_ms: int, operation: str = "Document extraction") -> None:
        super().__init__(
            f"{operation} timed out after {timeout_ms}ms",
            "EXTRACTION_TIMEOUT",
            {"timeout_ms": timeout_ms},
        )


class PageExtractionError(DocumentProcessingError):
    kind = "PageExtractionFailed"
    retryable = False

    def __init__(self, message: str, start_page: int, end_page: int) -> None:
        super().__init__(
            message,
            "PAGE_EXTRACTION_FAILED",
            {"start_page": start_page, "end_page": end_page},
        )


class ChunkingError(DocumentProcessingError):
    kind = "ChunkingFailed"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message, "CHUNKING_FAILED")


class ExtractorNotFoundError(DocumentProcessingError):
    kind = "ExtractorNotFound"
    retryable = False

    def __init__(self, method: str) -> None:
        super().__init__(
            f"No extractor available for method: {method}",
            "EXTRACTOR_NOT_FOUND",
            {"method": method},
        )


class MissingCredentialsError(DocumentProcessingError):
    kind = "MissingCredentials"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message, "MISSING_CREDENTIALS")


class PayloadTooLargeError(DocumentProcessingError):
    kind = "PayloadTooLarge"
    retryable = False

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"File size {size_bytes / 1024 / 1024:.2f}MB exceeds "
            f"{limit_bytes / 1024 / 1024:.0f}MB limit",
            "FILE_TOO_LARGE",
            {"size_bytes": size_bytes, "limit_bytes": limit_bytes},
        )


# Remote-service error messages that will not change on retry
_NON_RETRYABLE_MARKERS = (
    "pages exceed the limit",
    "invalid_argument",
    "permission_denied",
    "not_found",
)

# Client-library exception class names with the same meaning
# (google.api_core.exceptions, anthropic)
_NON_RETRYABLE_TYPES = frozenset(
    {
        "InvalidArgument",
        "PermissionDenied",
        "NotFound",
        "BadRequestError",
        "AuthenticationError",
        "PermissionDeniedError",
        "NotFoundError",
    }
)


def is_retryable(exc: BaseException) -> bool:
    """Decide whether an attempt failure is worth another try."""
    if isinstance(exc, DocumentProcessingError):
        return exc.retryable
    if type(exc).__name__ in _NON_RETRYABLE_TYPES:
        return False
    message = str(exc).lower().replace(" ", "_")
    # Normalize both "INVALID_ARGUMENT" and "invalid argument" spellings
    for marker in _NON_RETRYABLE_MARKERS:
        if marker.replace(" ", "_") in message:
            return False
    return True


def describe_error(exc: BaseException) -> str:
    """Render any exception as a result error string."""
    if isinstance(exc, DocumentProcessingError):
        return exc.describe()
    return str(exc) or exc.__class__.__name__
