"""Two-stage hybrid extraction: OCR for context, then the vision model.

Stage 1 runs chunked OCR. Stage 2 sends the original, un-chunked document
to the vision model with a prompt that embeds the start of the OCR text as
grounding. The stages are sequential because stage 2 consumes stage 1's
output.

Combination rules:

- Vision succeeded: its text is authoritative (OCR was only context).
- Vision failed (or no vision client is configured), OCR produced usable
  text: OCR text with a note appended.
- Both failed: failure carrying the more informative error.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time

from report_extractor.errors import ExtractorNotFoundError
from report_extractor.extractor.chunking import ChunkOrchestrator
from report_extractor.extractor.quality import MIN_OCR_FALLBACK_LENGTH
from report_extractor.extractor.vision import EXTRACTION_PROMPT, VisionExtractor
from report_extractor.types import (
    DocumentBuffer,
    DocumentMetadata,
    ExtractionMethod,
    ExtractionResult,
    ExtractorConfig,
    HybridStats,
)

logger = logging.getLogger(__name__)

OCR_CONTEXT_CHARS = 2000
MIN_OCR_CONTEXT_LENGTH = 100
OCR_ONLY_NOTE = "[Note: Advanced analysis failed, showing OCR text only]"
OCR_ONLY_CONFIDENCE = 70.0


def build_hybrid_prompt(ocr_text: str, ocr_success: bool) -> str:
    """Extend the transcription prompt with OCR text as grounding context."""
    if ocr_success and len(ocr_text) > MIN_OCR_CONTEXT_LENGTH:
        excerpt = ocr_text[:OCR_CONTEXT_CHARS]
        if len(ocr_text) > OCR_CONTEXT_CHARS:
            excerpt += "..."
        return (
            f"{EXTRACTION_PROMPT}\n\n"
            f"OCR EXTRACTED TEXT (for reference):\n"
            f'"{excerpt}"\n\n'
            "Using the OCR text above as context, read the visual document and "
            "produce the complete transcript. Cross-reference the visual elements "
            "with the extracted text to ensure accuracy."
        )
    return (
        f"{EXTRACTION_PROMPT}\n\n"
        "Note: OCR text extraction was not available or successful. "
        "Please read the visual document directly."
    )


class HybridOrchestrator:
    """Runs the OCR stage, then the vision stage, then combines them.

    With *vision* set to None the vision stage is recorded as an
    ExtractorNotFound failure and the OCR text is returned on its own.
    """

    method = ExtractionMethod.HYBRID

    def __init__(
        self,
        chunker: ChunkOrchestrator,
        vision: VisionExtractor | None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.chunker = chunker
        self.vision = vision
        self.log = logger or logging.getLogger(__name__)

    def extract(
        self,
        document: DocumentBuffer,
        config: ExtractorConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionResult:
        """Run both stages on *document*. Never raises."""
        start = time.monotonic()
        name = document.file_name

        # --- Stage 1: OCR (possibly chunked) ---

        self.log.info("Hybrid stage 1 (OCR) starting for %s", name)
        ocr_result = self.chunker.extract(document, config, cancel_event)
        self.log.info(
            "Hybrid stage 1 %s for %s (%d chars)",
            "succeeded" if ocr_result.success else "failed",
            name,
            len(ocr_result.extracted_text),
        )

        if cancel_event is not None and cancel_event.is_set():
            self.log.info("Hybrid extraction cancelled after OCR stage: %s", name)
            analysis_result = ExtractionResult.failed(
                "cancelled", ExtractionMethod.VISION, document.file_type, 0, name
            )
        elif self.vision is None:
            analysis_result = ExtractionResult.failed(
                ExtractorNotFoundError(ExtractionMethod.VISION.value).describe(),
                ExtractionMethod.VISION,
                document.file_type,
                0,
                name,
            )
            self.log.warning("No vision client for %s, skipping hybrid stage 2", name)
        else:
            # --- Stage 2: vision with OCR context ---

            self.log.info("Hybrid stage 2 (vision) starting for %s", name)
            prompt = build_hybrid_prompt(ocr_result.extracted_text, ocr_result.success)
            analysis_result = self.vision.extract(document, config, instruction=prompt)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = self.combine(ocr_result, analysis_result, elapsed_ms)

        self.log.info(
            "Hybrid extraction for %s: success=%s, %d chars, %dms "
            "(ocr_success=%s, analysis_success=%s)",
            name,
            result.success,
            len(result.extracted_text),
            elapsed_ms,
            ocr_result.success,
            analysis_result.success,
        )
        return result

    def combine(
        self,
        ocr_result: ExtractionResult,
        analysis_result: ExtractionResult,
        processing_time_ms: int,
    ) -> ExtractionResult:
        """Merge the two stage results into one HYBRID result."""
        ocr_text = ocr_result.extracted_text
        stats = HybridStats(
            ocr_success=ocr_result.success,
            ocr_text_length=len(ocr_text),
            analysis_success=analysis_result.success,
            ocr_error=ocr_result.error,
            analysis_error=analysis_result.error,
            ocr_confidence=ocr_result.metadata.confidence,
        )

        if analysis_result.success:
            metadata = dataclasses.replace(
                analysis_result.metadata,
                extraction_method=self.method,
                processing_details=[*analysis_result.metadata.processing_details, stats],
            )
            return dataclasses.replace(
                analysis_result,
                method=self.method,
                metadata=metadata,
                processing_time_ms=processing_time_ms,
            )

        if ocr_result.success and len(ocr_text) >= MIN_OCR_FALLBACK_LENGTH:
            self.log.warning("Vision stage failed, returning OCR text only")
            return ExtractionResult(
                success=True,
                extracted_text=f"{ocr_text}\n\n{OCR_ONLY_NOTE}",
                method=self.method,
                metadata=DocumentMetadata(
                    page_count=ocr_result.metadata.page_count,
                    file_type=ocr_result.metadata.file_type,
                    extraction_method=self.method,
                    confidence=ocr_result.metadata.confidence or OCR_ONLY_CONFIDENCE,
                    processing_details=[*ocr_result.metadata.processing_details, stats],
                ),
                processing_time_ms=processing_time_ms,
                error="Analysis failed, OCR text only",
            )

        summary = (
            f"Hybrid extraction failed: OCR "
            f"{'succeeded' if ocr_result.success else 'failed'}, Analysis failed"
        )
        detail = analysis_result.error or ocr_result.error
        error = f"{summary}: {detail}" if detail else summary
        return ExtractionResult.failed(
            error,
            self.method,
            analysis_result.metadata.file_type,
            processing_time_ms,
            details=[stats],
        )
