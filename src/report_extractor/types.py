"""Shared types for the extraction pipeline.

Defines the document buffer, result records, chunk records and the tagged
diagnostic variants used across the detectors, extractors, orchestrators and
the top-level pipeline.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar, Union


class SupportedFileType(Enum):
    """Closed set of document kinds the pipeline accepts, keyed by MIME type."""

    PDF = "application/pdf"
    JPEG = "image/jpeg"
    PNG = "image/png"
    UNKNOWN = "unknown"

    @property
    def mime_type(self) -> str:
        return self.value

    @property
    def is_image(self) -> bool:
        return self in (SupportedFileType.JPEG, SupportedFileType.PNG)


class ExtractionMethod(Enum):
    """Strategy that produced a transcript."""

    OCR = "ocr"
    VISION = "vision"
    HYBRID = "hybrid"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class FileMetadata:
    """Descriptive metadata travelling with a document buffer."""

    file_name: str
    file_size: int
    file_type: SupportedFileType
    last_modified: float | None = None


@dataclass(frozen=True)
class DocumentBuffer:
    """Raw document bytes plus metadata. Never mutated, only re-sliced."""

    data: bytes
    metadata: FileMetadata

    @property
    def file_name(self) -> str:
        return self.metadata.file_name

    @property
    def file_type(self) -> SupportedFileType:
        return self.metadata.file_type

    def derive(self, data: bytes, file_name: str) -> DocumentBuffer:
        """Return a sibling buffer (e.g. a chunk) sharing this file type."""
        return DocumentBuffer(
            data=data,
            metadata=FileMetadata(
                file_name=file_name,
                file_size=len(data),
                file_type=self.metadata.file_type,
                last_modified=self.metadata.last_modified,
            ),
        )


# ---------------------------------------------------------------------------
# Diagnostic variants (processing_details)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkingStats:
    total_chunks: int
    successful_chunks: int
    failed_chunks: int
    original_page_count: int
    kind: str = field(default="chunking", init=False)


@dataclass(frozen=True)
class CostEstimate:
    """Estimated OCR spend at a flat per-1000-pages rate."""

    pages: int
    usd: float
    kind: str = field(default="cost", init=False)

    @classmethod
    def for_pages(cls, pages: int, usd_per_thousand: float = 1.50) -> CostEstimate:
        return cls(pages=pages, usd=round(pages / 1000 * usd_per_thousand, 6))

    @property
    def display(self) -> str:
        return f"${self.usd:.4f}"


@dataclass(frozen=True)
class FailureReason:
    reason: str
    file_name: str | None = None
    kind: str = field(default="failure", init=False)


@dataclass(frozen=True)
class TextStats:
    total_length: int
    trimmed_length: int
    line_count: int
    kind: str = field(default="text_stats", init=False)

    @classmethod
    def from_text(cls, text: str) -> TextStats:
        return cls(
            total_length=len(text),
            trimmed_length=len(text.strip()),
            line_count=len(text.split("\n")),
        )


@dataclass(frozen=True)
class HybridStats:
    ocr_success: bool
    ocr_text_length: int
    analysis_success: bool
    ocr_error: str | None = None
    analysis_error: str | None = None
    ocr_confidence: float | None = None
    kind: str = field(default="hybrid", init=False)


@dataclass(frozen=True)
class ModelInfo:
    client: str
    model: str
    max_tokens: int | None = None
    kind: str = field(default="model", init=False)


@dataclass(frozen=True)
class CompressionInfo:
    original_size: int
    compressed_size: int
    kind: str = field(default="compression", init=False)

    @property
    def summary(self) -> str:
        ratio = (self.original_size - self.compressed_size) / self.original_size * 100
        return (
            f"Compressed from {self.original_size / 1024 / 1024:.2f}MB to "
            f"{self.compressed_size / 1024 / 1024:.2f}MB ({ratio:.1f}% reduction)"
        )


ProcessingDetail = Union[
    ChunkingStats,
    CostEstimate,
    FailureReason,
    TextStats,
    HybridStats,
    ModelInfo,
    CompressionInfo,
]

_D = TypeVar("_D", bound=ProcessingDetail)


@dataclass
class DocumentMetadata:
    """How a transcript was obtained.

    ``processing_details`` is an ordered list of tagged diagnostic variants;
    use :meth:`detail` to look one up by type.
    """

    page_count: int = 0
    file_type: SupportedFileType = SupportedFileType.UNKNOWN
    extraction_method: ExtractionMethod = ExtractionMethod.FALLBACK
    # 0-100; set from OCR output, None when a vision model produced the text
    confidence: float | None = None
    processing_details: list[ProcessingDetail] = field(default_factory=list)

    def detail(self, detail_type: type[_D]) -> _D | None:
        for item in self.processing_details:
            if isinstance(item, detail_type):
                return item
        return None


@dataclass
class ExtractionResult:
    """Result of one extraction attempt, stage, or whole pipeline run.

    Attributes:
        success: Whether extraction produced usable text.
        extracted_text: The transcript; empty whenever success is False.
        method: Which strategy produced this result.
        metadata: Page count, file type and diagnostic variants.
        processing_time_ms: Wall-clock time spent producing the result.
        error: Error description if extraction failed (or a note on a
            partial success).
    """

    success: bool
    extracted_text: str = ""
    method: ExtractionMethod = ExtractionMethod.FALLBACK
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    processing_time_ms: int = 0
    error: str | None = None

    @classmethod
    def failed(
        cls,
        error: str,
        method: ExtractionMethod,
        file_type: SupportedFileType,
        processing_time_ms: int,
        file_name: str | None = None,
        details: list[ProcessingDetail] | None = None,
    ) -> ExtractionResult:
        return cls(
            success=False,
            extracted_text="",
            method=method,
            metadata=DocumentMetadata(
                page_count=0,
                file_type=file_type,
                extraction_method=method,
                processing_details=[
                    FailureReason(reason=error, file_name=file_name),
                    *(details or []),
                ],
            ),
            processing_time_ms=processing_time_ms,
            error=error,
        )

    def to_dict(self) -> dict:
        """JSON-ready view with enums flattened to their values."""
        return {
            "success": self.success,
            "extracted_text": self.extracted_text,
            "method": self.method.value,
            "processing_time_ms": self.processing_time_ms,
            "error": self.error,
            "metadata": {
                "page_count": self.metadata.page_count,
                "file_type": self.metadata.file_type.value,
                "extraction_method": self.metadata.extraction_method.value,
                "confidence": self.metadata.confidence,
                "processing_details": [
                    dataclasses.asdict(item)
                    for item in self.metadata.processing_details
                ],
            },
        }


# ---------------------------------------------------------------------------
# Chunking records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PageRange:
    """1-indexed inclusive page range."""

    start_page: int
    end_page: int

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1


@dataclass(frozen=True)
class Chunk:
    buffer: DocumentBuffer
    index: int
    start_page: int
    end_page: int
    total_chunks: int

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1


@dataclass(frozen=True)
class ChunkResult:
    chunk_index: int
    start_page: int
    end_page: int
    text: str
    success: bool
    error: str | None = None
    processing_time_ms: int = 0


@dataclass
class ChunkingResult:
    """Outcome of splitting one document into chunks."""

    success: bool
    chunks: list[Chunk] = field(default_factory=list)
    original_page_count: int = 0
    processing_time_ms: int = 0
    error: str | None = None
    # Ranges that could not be materialized, with the reason
    failed_ranges: list[tuple[int, PageRange, str]] = field(default_factory=list)


@dataclass
class CombinedChunks:
    combined_text: str
    total_chunks: int
    successful_chunks: int
    failed_chunks: int
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Per-call configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractorConfig:
    """Per-extractor tuning. ``None`` fields defer to the extractor default."""

    max_tokens: int | None = None
    model: str | None = None
    timeout_ms: int | None = None
    retries: int | None = None

    def over(self, defaults: ExtractorConfig) -> ExtractorConfig:
        """Layer this config's explicit values over *defaults*."""
        overrides = {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }
        return dataclasses.replace(defaults, **overrides)


@dataclass(frozen=True)
class ProcessorOptions:
    """Options for one pipeline run.

    ``preferred_method=None`` lets the pipeline choose by file type.
    """

    preferred_method: ExtractionMethod | None = None
    fallback_enabled: bool = True
    timeout_ms: int = 180_000
    extractor_config: ExtractorConfig | None = None
