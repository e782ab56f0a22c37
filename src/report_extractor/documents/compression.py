"""Best-effort payload compression for the vision model's size ceiling.

Images are re-encoded as progressively smaller JPEGs with Pillow. PDFs are
rewritten by PyMuPDF with garbage collection and stream deflation. When
compression fails or cannot help, the original buffer is returned and the
caller decides whether the payload is still sendable.
"""

from __future__ import annotations

import io
import logging

import pymupdf
from PIL import Image

from report_extractor.types import (
    CompressionInfo,
    DocumentBuffer,
    FileMetadata,
    SupportedFileType,
)

logger = logging.getLogger(__name__)

VISION_PAYLOAD_LIMIT = 5 * 1024 * 1024  # 5MB
TARGET_SIZE_RATIO = 0.8

_JPEG_QUALITIES = (85, 70, 55, 40)
_MAX_DOWNSCALE_STEPS = 4
_DOWNSCALE_FACTOR = 0.75


def target_size(
    limit_bytes: int = VISION_PAYLOAD_LIMIT, ratio: float = TARGET_SIZE_RATIO
) -> int:
    return int(limit_bytes * ratio)


def needs_compression(data: bytes, target_bytes: int | None = None) -> bool:
    return len(data) > (target_size() if target_bytes is None else target_bytes)


def _compress_pdf(data: bytes) -> bytes:
    doc = pymupdf.open(stream=data, filetype="pdf")
    try:
        return doc.tobytes(
            garbage=4,
            deflate=True,
            deflate_images=True,
            deflate_fonts=True,
            clean=True,
        )
    finally:
        doc.close()


def _compress_image(data: bytes, target_bytes: int) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img = img.convert("RGB")
        best = data
        for _ in range(_MAX_DOWNSCALE_STEPS + 1):
            for quality in _JPEG_QUALITIES:
                out = io.BytesIO()
                img.save(out, format="JPEG", quality=quality, optimize=True)
                encoded = out.getvalue()
                if len(encoded) < len(best):
                    best = encoded
                if len(encoded) <= target_bytes:
                    return encoded
            width, height = img.size
            img = img.resize(
                (max(1, int(width * _DOWNSCALE_FACTOR)), max(1, int(height * _DOWNSCALE_FACTOR))),
                Image.LANCZOS,
            )
        return best


def compress_for_vision(
    document: DocumentBuffer,
    limit_bytes: int = VISION_PAYLOAD_LIMIT,
    ratio: float = TARGET_SIZE_RATIO,
    log: logging.Logger | None = None,
) -> tuple[DocumentBuffer, CompressionInfo | None]:
    """Shrink *document* toward ``ratio * limit_bytes`` if it is larger.

    Returns:
        Tuple of (possibly compressed document, CompressionInfo or None when
        no compression was applied).
    """
    log = log or logger
    target_bytes = target_size(limit_bytes, ratio)
    original = document.data

    if not needs_compression(original, target_bytes):
        return document, None

    log.info(
        "File size %.2fMB exceeds vision target, compressing %s",
        len(original) / 1024 / 1024,
        document.file_name,
    )

    file_type = document.file_type
    try:
        if file_type is SupportedFileType.PDF:
            compressed = _compress_pdf(original)
        else:
            compressed = _compress_image(original, target_bytes)
            file_type = SupportedFileType.JPEG
    except Exception:
        log.warning(
            "Compression failed for %s, keeping original payload",
            document.file_name,
            exc_info=True,
        )
        return document, None

    if len(compressed) >= len(original):
        log.info("Compression did not reduce %s, keeping original", document.file_name)
        return document, None

    info = CompressionInfo(original_size=len(original), compressed_size=len(compressed))
    log.info("%s: %s", document.file_name, info.summary)

    return (
        DocumentBuffer(
            data=compressed,
            metadata=FileMetadata(
                file_name=document.file_name,
                file_size=len(compressed),
                file_type=file_type,
                last_modified=document.metadata.last_modified,
            ),
        ),
        info,
    )
