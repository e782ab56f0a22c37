"""Document utilities -- type detection, page counting, splitting, compression."""

from .detection import ValidationReport, detect, make_document_buffer, validate
from .page_counter import (
    ChunkPlan,
    PageCountResult,
    calculate_chunks,
    count_pages,
    needs_chunking,
)
from .splitter import split

__all__ = [
    "ChunkPlan",
    "PageCountResult",
    "ValidationReport",
    "calculate_chunks",
    "count_pages",
    "detect",
    "make_document_buffer",
    "needs_chunking",
    "split",
    "validate",
]
