"""File type detection and size validation by magic bytes.

Classifies a buffer by its leading signature bytes rather than by file name
or declared MIME type -- uploaded inspection reports frequently arrive with
misleading extensions. Validation collects every violated rule so callers can
report all problems at once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from report_extractor.types import (
    DocumentBuffer,
    FileMetadata,
    SupportedFileType,
)

logger = logging.getLogger(__name__)

# (signature bytes, type, human-readable description)
_FILE_SIGNATURES: tuple[tuple[bytes, SupportedFileType, str], ...] = (
    (b"%PDF", SupportedFileType.PDF, "PDF Document"),
    (b"\xff\xd8\xff", SupportedFileType.JPEG, "JPEG Image"),
    (b"\x89PNG", SupportedFileType.PNG, "PNG Image"),
)

MIN_FILE_SIZE = 100  # bytes
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB


@dataclass
class ValidationReport:
    """Outcome of validating one upload."""

    file_type: SupportedFileType
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def detect(buffer: bytes | None) -> SupportedFileType:
    """Classify *buffer* by its first four bytes.

    Returns UNKNOWN for buffers shorter than four bytes or with no matching
    signature. Never raises.
    """
    if not buffer or len(buffer) < 4:
        return SupportedFileType.UNKNOWN

    header = bytes(buffer[:4])
    for signature, file_type, _ in _FILE_SIGNATURES:
        if header.startswith(signature):
            return file_type

    return SupportedFileType.UNKNOWN


def is_supported(file_type: SupportedFileType) -> bool:
    return file_type is not SupportedFileType.UNKNOWN


def describe(file_type: SupportedFileType) -> str:
    for _, sig_type, description in _FILE_SIGNATURES:
        if sig_type is file_type:
            return description
    return "Unknown file type"


def is_image(buffer: bytes) -> bool:
    return detect(buffer).is_image


def looks_like_text_pdf(buffer: bytes) -> bool:
    """Return True if *buffer* is a PDF whose header area mentions page objects."""
    if detect(buffer) is not SupportedFileType.PDF:
        return False
    head = bytes(buffer[:2048]).decode("latin-1")
    return "/Type" in head and "/Page" in head


def validate(
    buffer: bytes,
    file_name: str,
    size: int | None = None,
    min_size: int = MIN_FILE_SIZE,
    max_size: int = MAX_FILE_SIZE,
) -> ValidationReport:
    """Validate size bounds and file type, collecting every violation.

    Args:
        buffer: Raw document bytes.
        file_name: Name used in error messages.
        size: Declared size in bytes; defaults to ``len(buffer)``.
        min_size: Smallest acceptable size in bytes.
        max_size: Largest acceptable size in bytes.

    Returns:
        ValidationReport with one error string per violated rule.
    """
    size = len(buffer) if size is None else size
    errors: list[str] = []

    if size < min_size:
        errors.append(
            f"File too small: {size} bytes (minimum size is {min_size} bytes)"
        )
    if size > max_size:
        errors.append(
            f"File too large: {size} bytes. Maximum allowed: {max_size} bytes"
        )

    file_type = detect(buffer)
    if not is_supported(file_type):
        errors.append(f"Unsupported file type detected for: {file_name}")

    return ValidationReport(
        file_type=file_type,
        is_valid=not errors,
        errors=errors,
    )


def make_document_buffer(
    data: bytes,
    file_name: str,
    file_size: int | None = None,
    last_modified: float | None = None,
) -> DocumentBuffer:
    """Wrap raw bytes in a DocumentBuffer with the detected file type."""
    return DocumentBuffer(
        data=data,
        metadata=FileMetadata(
            file_name=file_name,
            file_size=len(data) if file_size is None else file_size,
            file_type=detect(data),
            last_modified=time.time() if last_modified is None else last_modified,
        ),
    )
