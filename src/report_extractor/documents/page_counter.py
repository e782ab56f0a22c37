"""Heuristic PDF page counting and chunk planning.

Counts pages straight from the raw bytes without rendering or building an
object graph -- malformed and linearized PDFs are common in uploaded
inspection reports, and only a number good enough to decide on chunking is
needed. Heuristics are tried in order:

1. Maximum ``/Count N`` in the page tree (the root node holds the total).
2. Number of ``/Type /Page`` object markers.
3. Number of ``N 0 obj << ... /Type /Page`` object headers.
4. Indirect references in the first ``/Kids [...]`` array.
5. File-size estimate (~50KB per page, minimum 1).

Chunk planning uses fixed limits: the OCR service rejects documents over
``OCR_PAGE_LIMIT`` pages, and chunks of ``MAX_CHUNK_SIZE`` pages leave
headroom under that ceiling.
"""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field

from report_extractor.types import PageRange

logger = logging.getLogger(__name__)

OCR_PAGE_LIMIT = 30
MAX_CHUNK_SIZE = 15
BYTES_PER_PAGE_ESTIMATE = 50_000

_COUNT_PATTERN = re.compile(rb"/Count\s+(\d+)")
_PAGE_TYPE_PATTERN = re.compile(rb"/Type\s*/Page(?![A-Za-z])")
_PAGE_OBJ_PATTERN = re.compile(rb"\d+\s+0\s+obj\s*<<[^>]*/Type\s*/Page(?![A-Za-z])")
_KIDS_PATTERN = re.compile(rb"/Kids\s*\[([^\]]+)\]")
_REF_PATTERN = re.compile(rb"\d+\s+\d+\s+R")


@dataclass
class PageCountResult:
    page_count: int
    success: bool
    error: str | None = None
    processing_time_ms: int = 0
    method: str = ""


@dataclass
class ChunkPlan:
    needs_chunking: bool
    chunk_size: int
    chunk_count: int
    ranges: list[PageRange] = field(default_factory=list)


def _parse_page_count(buffer: bytes) -> tuple[int, str]:
    counts = [int(m) for m in _COUNT_PATTERN.findall(buffer)]
    if counts and max(counts) > 0:
        return max(counts), "count"

    page_markers = _PAGE_TYPE_PATTERN.findall(buffer)
    if page_markers:
        return len(page_markers), "type-page"

    page_objects = _PAGE_OBJ_PATTERN.findall(buffer)
    if page_objects:
        return len(page_objects), "page-object"

    kids = _KIDS_PATTERN.search(buffer)
    if kids:
        refs = _REF_PATTERN.findall(kids.group(1))
        if refs:
            return len(refs), "kids"

    return max(1, len(buffer) // BYTES_PER_PAGE_ESTIMATE), "size-estimation"


def count_pages(
    pdf_buffer: bytes,
    file_name: str | None = None,
    log: logging.Logger | None = None,
) -> PageCountResult:
    """Estimate the number of pages in *pdf_buffer*.

    Always returns a positive best-effort count for non-empty input;
    ``success=False`` only when the buffer is empty.
    """
    log = log or logger
    start = time.monotonic()

    if not pdf_buffer:
        log.warning("Page count failed for %s: empty buffer", file_name)
        return PageCountResult(
            page_count=0,
            success=False,
            error="Empty PDF buffer",
            processing_time_ms=int((time.monotonic() - start) * 1000),
        )

    page_count, method = _parse_page_count(bytes(pdf_buffer))
    elapsed_ms = int((time.monotonic() - start) * 1000)

    if method == "size-estimation":
        log.info(
            "Using estimated page count for %s: %d (%d bytes)",
            file_name,
            page_count,
            len(pdf_buffer),
        )
    else:
        log.debug(
            "PDF %s contains %d pages (method=%s, %dms)",
            file_name,
            page_count,
            method,
            elapsed_ms,
        )

    return PageCountResult(
        page_count=page_count,
        success=True,
        processing_time_ms=elapsed_ms,
        method=method,
    )


def needs_chunking(page_count: int, page_limit: int = OCR_PAGE_LIMIT) -> bool:
    return page_count > page_limit


def calculate_chunks(
    page_count: int,
    chunk_size: int = MAX_CHUNK_SIZE,
    page_limit: int = OCR_PAGE_LIMIT,
) -> ChunkPlan:
    """Plan contiguous, non-overlapping 1-indexed ranges covering every page."""
    if not needs_chunking(page_count, page_limit):
        return ChunkPlan(
            needs_chunking=False,
            chunk_size=page_count,
            chunk_count=1,
            ranges=[PageRange(1, page_count)],
        )

    chunk_count = math.ceil(page_count / chunk_size)
    ranges = [
        PageRange(
            start_page=i * chunk_size + 1,
            end_page=min((i + 1) * chunk_size, page_count),
        )
        for i in range(chunk_count)
    ]
    return ChunkPlan(
        needs_chunking=True,
        chunk_size=chunk_size,
        chunk_count=chunk_count,
        ranges=ranges,
    )


def validate_page_count(page_count: int, file_size: int) -> tuple[bool, str | None]:
    """Flag page counts whose average page size looks implausible.

    Returns:
        Tuple of (is_plausible, warning).
    """
    if page_count <= 0:
        return False, f"Non-positive page count: {page_count}"

    avg_page_size = file_size / page_count
    if avg_page_size < 1000:
        return False, f"Suspiciously small average page size: {round(avg_page_size)} bytes"
    if avg_page_size > 10 * 1024 * 1024:
        return (
            False,
            f"Suspiciously large average page size: "
            f"{round(avg_page_size / 1024 / 1024)}MB",
        )
    return True, None
