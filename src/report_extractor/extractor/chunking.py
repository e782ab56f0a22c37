"""Chunked OCR for documents over the OCR service's page limit.

Orchestrates OCR for one document:

1. **Plan** -- images and PDFs within the page limit are one chunk; larger
   PDFs are planned into fixed-size page ranges.
2. **Split** -- each range is materialized as its own PDF. A range that
   cannot be split is recorded as a failed slot; its siblings continue.
3. **OCR** -- chunks run sequentially with a fixed delay between calls to
   stay under upstream rate limits.
4. **Combine** -- chunk texts are joined in page order under
   ``--- Pages A-B ---`` markers, with an ``[Error: ...]`` placeholder in the
   slot of every failed chunk.

The overall result succeeds if at least one chunk succeeded and the combined
text passes the chunked minimum length. Partial text beats no text.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Callable, Iterable

from report_extractor.documents.page_counter import (
    MAX_CHUNK_SIZE,
    OCR_PAGE_LIMIT,
    calculate_chunks,
    count_pages,
)
from report_extractor.documents.splitter import split
from report_extractor.errors import (
    ChunkingError,
    NoTextExtractedError,
    PageExtractionError,
)
from report_extractor.extractor.ocr import USD_PER_THOUSAND_PAGES, OcrExtractor
from report_extractor.extractor.quality import MIN_CHUNKED_TEXT_LENGTH, passes_text_check
from report_extractor.extractor.retry import SleepFn
from report_extractor.types import (
    Chunk,
    ChunkingResult,
    ChunkingStats,
    ChunkResult,
    CombinedChunks,
    CostEstimate,
    DocumentBuffer,
    DocumentMetadata,
    ExtractionMethod,
    ExtractionResult,
    ExtractorConfig,
    ModelInfo,
    PageRange,
    SupportedFileType,
    TextStats,
)

logger = logging.getLogger(__name__)

INTER_CHUNK_DELAY_SECONDS = 1.0
CHUNKED_TIMEOUT_FACTOR = 3

CANCELLED = "cancelled"

SplitFn = Callable[[bytes, int, int], bytes]


def combine_chunk_results(results: Iterable[ChunkResult]) -> CombinedChunks:
    """Join chunk texts in chunk-index order, whatever order they arrive in.

    A chunk counts as successful only if it succeeded with non-blank text.
    """
    ordered = sorted(results, key=lambda r: r.chunk_index)
    sections: list[str] = []
    errors: list[str] = []
    successful = 0

    for r in ordered:
        pages = f"{r.start_page}-{r.end_page}"
        if r.success and r.text.strip():
            sections.append(f"--- Pages {pages} ---\n{r.text.strip()}")
            successful += 1
        else:
            reason = r.error or "No text extracted"
            sections.append(f"--- Pages {pages} (FAILED) ---\n[Error: {reason}]")
            errors.append(f"Chunk {r.chunk_index + 1} (pages {pages}) failed: {reason}")

    return CombinedChunks(
        combined_text="\n\n".join(sections),
        total_chunks=len(ordered),
        successful_chunks=successful,
        failed_chunks=len(ordered) - successful,
        errors=errors,
    )


class ChunkOrchestrator:
    """Plans, splits, OCRs and recombines one document.

    Args:
        ocr: Extractor used for every chunk.
        sleep: Inter-chunk delay function, injectable for tests.
        logger: Logger for planning and per-chunk messages.
        splitter: Page-range splitter; defaults to the PyMuPDF splitter.
        page_limit: Page count above which a PDF is chunked.
        chunk_size: Pages per chunk.
        inter_chunk_delay: Seconds to wait between chunk OCR calls.
    """

    method = ExtractionMethod.OCR

    def __init__(
        self,
        ocr: OcrExtractor,
        sleep: SleepFn = time.sleep,
        logger: logging.Logger | None = None,
        splitter: SplitFn = split,
        page_limit: int = OCR_PAGE_LIMIT,
        chunk_size: int = MAX_CHUNK_SIZE,
        inter_chunk_delay: float = INTER_CHUNK_DELAY_SECONDS,
    ) -> None:
        self.ocr = ocr
        self.sleep = sleep
        self.log = logger or logging.getLogger(__name__)
        self.splitter = splitter
        self.page_limit = page_limit
        self.chunk_size = chunk_size
        self.inter_chunk_delay = inter_chunk_delay

    # ------------------------------------------------------------------
    # Planning and splitting
    # ------------------------------------------------------------------

    def _whole_document(self, document: DocumentBuffer, page_count: int) -> Chunk:
        return Chunk(
            buffer=document,
            index=0,
            start_page=1,
            end_page=max(1, page_count),
            total_chunks=1,
        )

    def chunk_document(self, document: DocumentBuffer) -> ChunkingResult:
        """Split *document* into chunks that fit under the page limit."""
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        if document.file_type is not SupportedFileType.PDF:
            return ChunkingResult(
                success=True,
                chunks=[self._whole_document(document, 1)],
                original_page_count=1,
                processing_time_ms=elapsed(),
            )

        counted = count_pages(document.data, document.file_name, self.log)
        if not counted.success:
            error = ChunkingError(f"Page count failed: {counted.error}").describe()
            self.log.warning("Chunking failed for %s: %s", document.file_name, error)
            return ChunkingResult(success=False, processing_time_ms=elapsed(), error=error)

        page_count = counted.page_count
        plan = calculate_chunks(page_count, self.chunk_size, self.page_limit)

        if not plan.needs_chunking:
            self.log.debug(
                "%s has %d pages, no chunking needed", document.file_name, page_count
            )
            return ChunkingResult(
                success=True,
                chunks=[self._whole_document(document, page_count)],
                original_page_count=page_count,
                processing_time_ms=elapsed(),
            )

        self.log.info(
            "Chunking %s: %d pages into %d chunks of up to %d pages",
            document.file_name,
            page_count,
            plan.chunk_count,
            plan.chunk_size,
        )

        chunks: list[Chunk] = []
        failed: list[tuple[int, PageRange, str]] = []

        for index, page_range in enumerate(plan.ranges):
            try:
                data = self.splitter(
                    document.data, page_range.start_page, page_range.end_page
                )
            except PageExtractionError as e:
                self.log.warning(
                    "Could not split pages %d-%d of %s: %s",
                    page_range.start_page,
                    page_range.end_page,
                    document.file_name,
                    e.message,
                )
                failed.append((index, page_range, e.describe()))
                continue

            chunks.append(
                Chunk(
                    buffer=document.derive(
                        data, f"{document.file_name}_chunk_{index + 1}"
                    ),
                    index=index,
                    start_page=page_range.start_page,
                    end_page=page_range.end_page,
                    total_chunks=plan.chunk_count,
                )
            )

        if not chunks:
            error = ChunkingError(
                f"Could not split any of {plan.chunk_count} page ranges"
            ).describe()
            self.log.warning("Chunking failed for %s: %s", document.file_name, error)
            return ChunkingResult(
                success=False,
                original_page_count=page_count,
                processing_time_ms=elapsed(),
                error=error,
                failed_ranges=failed,
            )

        return ChunkingResult(
            success=True,
            chunks=chunks,
            original_page_count=page_count,
            processing_time_ms=elapsed(),
            failed_ranges=failed,
        )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract(
        self,
        document: DocumentBuffer,
        config: ExtractorConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionResult:
        """OCR *document*, chunking it first if it is over the page limit.

        Never raises. A document that fits in one chunk is OCRed directly and
        its text returned without page markers.
        """
        start = time.monotonic()
        cfg = (config or ExtractorConfig()).over(self.ocr.defaults)
        chunking = self.chunk_document(document)

        if not chunking.success:
            # Treat the whole document as one (possibly oversized) attempt
            self.log.warning(
                "Processing %s as a single chunk after chunking failure",
                document.file_name,
            )
            chunking = ChunkingResult(
                success=True,
                chunks=[self._whole_document(document, chunking.original_page_count)],
                original_page_count=chunking.original_page_count,
                error=chunking.error,
            )

        if len(chunking.chunks) == 1 and not chunking.failed_ranges:
            return self._extract_single(document, chunking, cfg, start)

        # --- Chunked path: sequential OCR with inter-chunk delay ---

        cfg = dataclasses.replace(cfg, timeout_ms=cfg.timeout_ms * CHUNKED_TIMEOUT_FACTOR)
        results = [
            ChunkResult(
                chunk_index=index,
                start_page=page_range.start_page,
                end_page=page_range.end_page,
                text="",
                success=False,
                error=reason,
            )
            for index, page_range, reason in chunking.failed_ranges
        ]

        confidences: list[float] = []
        chunks = chunking.chunks
        for position, chunk in enumerate(chunks):
            if cancel_event is not None and cancel_event.is_set():
                self.log.info(
                    "Cancelled before chunk %d/%d of %s",
                    chunk.index + 1,
                    chunk.total_chunks,
                    document.file_name,
                )
                results.append(
                    ChunkResult(
                        chunk_index=chunk.index,
                        start_page=chunk.start_page,
                        end_page=chunk.end_page,
                        text="",
                        success=False,
                        error=CANCELLED,
                    )
                )
                continue

            self.log.info(
                "Processing chunk %d/%d (pages %d-%d) of %s",
                chunk.index + 1,
                chunk.total_chunks,
                chunk.start_page,
                chunk.end_page,
                document.file_name,
            )
            result = self.ocr.extract(chunk.buffer, cfg)
            results.append(
                ChunkResult(
                    chunk_index=chunk.index,
                    start_page=chunk.start_page,
                    end_page=chunk.end_page,
                    text=result.extracted_text,
                    success=result.success,
                    error=result.error,
                    processing_time_ms=result.processing_time_ms,
                )
            )
            if result.success and result.metadata.confidence is not None:
                confidences.append(result.metadata.confidence)
            if not result.success:
                self.log.warning(
                    "Chunk %d/%d of %s failed: %s",
                    chunk.index + 1,
                    chunk.total_chunks,
                    document.file_name,
                    result.error,
                )

            if position < len(chunks) - 1:
                self.sleep(self.inter_chunk_delay)

        combined = combine_chunk_results(results)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        page_count = chunking.original_page_count
        stats = ChunkingStats(
            total_chunks=combined.total_chunks,
            successful_chunks=combined.successful_chunks,
            failed_chunks=combined.failed_chunks,
            original_page_count=page_count,
        )

        self.log.info(
            "Chunked OCR for %s: %d/%d chunks succeeded (%dms)",
            document.file_name,
            combined.successful_chunks,
            combined.total_chunks,
            elapsed_ms,
        )

        if combined.successful_chunks == 0 or not passes_text_check(
            combined.combined_text, MIN_CHUNKED_TEXT_LENGTH, self.log
        ):
            error = NoTextExtractedError(self.method.value).describe()
            if combined.errors:
                error = f"{error} ({'; '.join(combined.errors)})"
            return ExtractionResult.failed(
                error,
                self.method,
                document.file_type,
                elapsed_ms,
                document.file_name,
                [stats],
            )

        return ExtractionResult(
            success=True,
            extracted_text=combined.combined_text,
            method=self.method,
            metadata=DocumentMetadata(
                page_count=page_count,
                file_type=document.file_type,
                extraction_method=self.method,
                confidence=(
                    round(sum(confidences) / len(confidences), 1) if confidences else None
                ),
                processing_details=[
                    ModelInfo(client=self.ocr.name, model=f"{cfg.model}-chunked"),
                    stats,
                    CostEstimate.for_pages(page_count, USD_PER_THOUSAND_PAGES),
                    TextStats.from_text(combined.combined_text),
                ],
            ),
            processing_time_ms=elapsed_ms,
        )

    def _extract_single(
        self,
        document: DocumentBuffer,
        chunking: ChunkingResult,
        cfg: ExtractorConfig,
        start: float,
    ) -> ExtractionResult:
        result = self.ocr.extract(document, cfg)
        result.processing_time_ms = int((time.monotonic() - start) * 1000)
        if result.success and chunking.original_page_count:
            result.metadata.page_count = max(
                result.metadata.page_count, chunking.original_page_count
            )
        result.metadata.processing_details.append(
            ChunkingStats(
                total_chunks=1,
                successful_chunks=1 if result.success else 0,
                failed_chunks=0 if result.success else 1,
                original_page_count=chunking.original_page_count,
            )
        )
        return result
