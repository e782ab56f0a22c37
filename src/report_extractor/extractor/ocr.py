"""OCR extraction over an injected OCR client.

The client does the recognition (local Tesseract, Google Document AI, or a
test double); this module adds the per-attempt timeout, retry with backoff,
minimum-viable-text validation and result diagnostics.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol

from report_extractor.errors import (
    NoTextExtractedError,
    UnsupportedFileTypeError,
    describe_error,
)
from report_extractor.extractor.quality import MIN_TEXT_LENGTH, passes_text_check
from report_extractor.extractor.retry import SleepFn, call_with_timeout, run_with_retry
from report_extractor.types import (
    CostEstimate,
    DocumentBuffer,
    DocumentMetadata,
    ExtractionMethod,
    ExtractionResult,
    ExtractorConfig,
    ModelInfo,
    SupportedFileType,
    TextStats,
)

logger = logging.getLogger(__name__)

DEFAULT_OCR_CONFIG = ExtractorConfig(
    max_tokens=None,
    model="document-ocr",
    timeout_ms=30_000,
    retries=2,
)

USD_PER_THOUSAND_PAGES = 1.50

# Used when the backend reports no recognition confidence
DEFAULT_OCR_CONFIDENCE = 85.0


@dataclass
class OcrResponse:
    """Raw client output: full text, pages recognized and mean confidence (0-100)."""

    text: str
    page_count: int = 0
    confidence: float | None = None


class OcrClient(Protocol):
    name: str

    def process(self, content: bytes, mime_type: str) -> OcrResponse: ...


class OcrExtractor:
    """Retrying OCR adapter.

    Args:
        client: The OCR backend.
        sleep: Backoff sleep function, injectable for tests.
        logger: Logger for attempt and outcome messages.
        defaults: Config used where a per-call config leaves a field unset.
    """

    method = ExtractionMethod.OCR

    def __init__(
        self,
        client: OcrClient,
        sleep: SleepFn = time.sleep,
        logger: logging.Logger | None = None,
        defaults: ExtractorConfig = DEFAULT_OCR_CONFIG,
    ) -> None:
        self.client = client
        self.sleep = sleep
        self.log = logger or logging.getLogger(__name__)
        self.defaults = defaults

    @property
    def name(self) -> str:
        return getattr(self.client, "name", type(self.client).__name__)

    def extract(
        self,
        document: DocumentBuffer,
        config: ExtractorConfig | None = None,
    ) -> ExtractionResult:
        """OCR *document*, returning a result record. Never raises."""
        start = time.monotonic()
        cfg = (config or ExtractorConfig()).over(self.defaults)
        file_type = document.file_type

        self.log.info(
            "OCR extraction (%s) starting for %s", self.name, document.file_name
        )

        def attempt() -> OcrResponse:
            response = call_with_timeout(
                lambda: self.client.process(document.data, file_type.mime_type),
                cfg.timeout_ms,
                "OCR extraction",
            )
            if not passes_text_check(response.text, MIN_TEXT_LENGTH, self.log):
                raise NoTextExtractedError(
                    self.method.value, len((response.text or "").strip())
                )
            return response

        try:
            if file_type is SupportedFileType.UNKNOWN:
                raise UnsupportedFileTypeError(
                    f"OCR cannot process file type: {file_type.value}"
                )
            response = run_with_retry(
                attempt, cfg.retries, "OCR extraction", self.sleep, self.log
            )
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            error = describe_error(e)
            self.log.warning(
                "OCR extraction failed for %s: %s", document.file_name, error
            )
            return ExtractionResult.failed(
                error, self.method, file_type, elapsed_ms, document.file_name
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        page_count = response.page_count or 1
        text = response.text
        confidence = (
            DEFAULT_OCR_CONFIDENCE if response.confidence is None else response.confidence
        )

        self.log.info(
            "OCR extracted %d chars from %s (%d pages, %dms)",
            len(text),
            document.file_name,
            page_count,
            elapsed_ms,
        )

        return ExtractionResult(
            success=True,
            extracted_text=text,
            method=self.method,
            metadata=DocumentMetadata(
                page_count=page_count,
                file_type=file_type,
                extraction_method=self.method,
                confidence=confidence,
                processing_details=[
                    ModelInfo(client=self.name, model=cfg.model or self.name),
                    CostEstimate.for_pages(page_count, USD_PER_THOUSAND_PAGES),
                    TextStats.from_text(text),
                ],
            ),
            processing_time_ms=elapsed_ms,
        )
