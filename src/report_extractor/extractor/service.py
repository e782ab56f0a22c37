"""Per-document extraction pipeline with strategy selection and fallback.

Orchestrates one extraction run:

1. **Validate** -- size bounds and magic-byte type check. Invalid input is
   rejected before any extractor is called.
2. **Select** -- a primary strategy and an optional fallback. Without a
   preference, PDFs and images run HYBRID with VISION as fallback.
3. **Execute** -- primary first; on failure, the fallback (when enabled and
   within the overall deadline). The first success wins.

``process()`` never raises: every failure, including unexpected ones, comes
back as an ExtractionResult with ``success=False`` and a populated error.
Pipeline-level failures are tagged with the FALLBACK method.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from report_extractor.config.settings import ExtractionSettings
from report_extractor.documents.detection import make_document_buffer, validate
from report_extractor.documents.page_counter import count_pages, validate_page_count
from report_extractor.errors import (
    ExtractorNotFoundError,
    NoTextExtractedError,
    UnsupportedFileTypeError,
    describe_error,
)
from report_extractor.extractor.chunking import ChunkOrchestrator
from report_extractor.extractor.hybrid import HybridOrchestrator
from report_extractor.extractor.ocr import DEFAULT_OCR_CONFIG, OcrClient, OcrExtractor
from report_extractor.extractor.retry import SleepFn
from report_extractor.extractor.vision import (
    DEFAULT_VISION_CONFIG,
    VisionClient,
    VisionExtractor,
)
from report_extractor.logging import document_context
from report_extractor.types import (
    DocumentBuffer,
    ExtractionMethod,
    ExtractionResult,
    ExtractorConfig,
    ProcessorOptions,
    SupportedFileType,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ExtractionPipeline",
    "ExtractionResult",
    "ProcessorOptions",
]

_SUPPORTED_FILE_TYPES = (
    SupportedFileType.PDF,
    SupportedFileType.JPEG,
    SupportedFileType.PNG,
)


class ExtractionPipeline:
    """Top-level entry point: one document in, one ExtractionResult out.

    Clients are constructed once by the caller and injected. A missing client
    leaves the strategies that need it unavailable; selecting one of them
    produces an ExtractorNotFound failure for that attempt. HYBRID only needs
    the OCR client: without a vision client it returns the OCR text.

    Args:
        ocr_client: OCR backend, or None.
        vision_client: Vision model backend, or None.
        settings: Size bounds, chunking limits and pipeline defaults.
        sleep: Sleep function for backoff and inter-chunk delays.
        logger: Logger passed down to every component.
        ocr_defaults: Per-attempt OCR defaults (timeout, retries, model label).
        vision_defaults: Per-attempt vision defaults (model, max_tokens,
            timeout, retries).
    """

    def __init__(
        self,
        ocr_client: OcrClient | None = None,
        vision_client: VisionClient | None = None,
        settings: ExtractionSettings | None = None,
        sleep: SleepFn = time.sleep,
        logger: logging.Logger | None = None,
        ocr_defaults: ExtractorConfig = DEFAULT_OCR_CONFIG,
        vision_defaults: ExtractorConfig = DEFAULT_VISION_CONFIG,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.log = logger or logging.getLogger(__name__)
        self.ocr_client = ocr_client
        self.vision_client = vision_client
        self._extractors: dict = {}

        chunker = None
        vision = None

        if ocr_client is not None:
            ocr = OcrExtractor(ocr_client, sleep, self.log, ocr_defaults)
            chunker = ChunkOrchestrator(
                ocr,
                sleep,
                self.log,
                page_limit=self.settings.ocr_page_limit,
                chunk_size=self.settings.chunk_size_pages,
                inter_chunk_delay=self.settings.inter_chunk_delay_seconds,
            )
            self._extractors[ExtractionMethod.OCR] = chunker

        if vision_client is not None:
            vision = VisionExtractor(
                vision_client,
                sleep,
                self.log,
                vision_defaults,
                payload_limit_bytes=self.settings.vision_payload_limit_bytes,
                target_ratio=self.settings.vision_target_ratio,
            )
            self._extractors[ExtractionMethod.VISION] = vision

        # Without a vision client, hybrid still returns the OCR text with a note
        if chunker is not None:
            self._extractors[ExtractionMethod.HYBRID] = HybridOrchestrator(
                chunker, vision, self.log
            )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @staticmethod
    def supported_file_types() -> tuple[SupportedFileType, ...]:
        return _SUPPORTED_FILE_TYPES

    @staticmethod
    def estimate_processing_time_ms(file_size: int, file_type: SupportedFileType) -> int:
        """Rough wall-clock estimate: 5s base, scaled per MB and by file type."""
        base_ms = 5000
        size_multiplier = max(1.0, file_size / (1024 * 1024))
        type_multiplier = 1.5 if file_type is SupportedFileType.PDF else 2.0
        return round(base_ms * size_multiplier * type_multiplier)

    def is_configured(self) -> bool:
        """True when both clients are present, so every strategy is available."""
        return self.ocr_client is not None and self.vision_client is not None

    def default_options(self) -> ProcessorOptions:
        return ProcessorOptions(
            fallback_enabled=self.settings.fallback_enabled,
            timeout_ms=self.settings.timeout_ms,
        )

    def select_strategy(
        self, preferred: ExtractionMethod | None
    ) -> tuple[ExtractionMethod, ExtractionMethod | None]:
        """Return (primary, fallback) methods.

        Every supported type (PDF, JPEG, PNG) defaults to HYBRID with VISION as
        fallback. An explicit preference becomes the primary, keeping VISION as
        the fallback unless VISION itself was preferred.
        """
        if preferred is None or preferred is ExtractionMethod.FALLBACK:
            return ExtractionMethod.HYBRID, ExtractionMethod.VISION
        if preferred is ExtractionMethod.VISION:
            return ExtractionMethod.VISION, None
        return preferred, ExtractionMethod.VISION

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process(
        self,
        buffer: bytes,
        file_name: str,
        options: ProcessorOptions | None = None,
        cancel_event: threading.Event | None = None,
        file_size: int | None = None,
    ) -> ExtractionResult:
        """Extract text from raw document bytes.

        Args:
            buffer: Document bytes.
            file_name: Name used in logs and diagnostics.
            options: Strategy, fallback and deadline options; settings
                defaults when omitted.
            cancel_event: Set to stop at the next chunk or stage boundary.
            file_size: Declared size in bytes, if different from the buffer.

        Returns:
            ExtractionResult -- always, never raises.
        """
        start = time.monotonic()
        try:
            document = make_document_buffer(bytes(buffer), file_name, file_size)
        except Exception as e:
            self.log.exception("Could not read document %s", file_name)
            return self._failure(describe_error(e), start, file_name)
        return self._run(document, options, cancel_event, start)

    def process_document(
        self,
        document: DocumentBuffer,
        options: ProcessorOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionResult:
        return self._run(document, options, cancel_event, time.monotonic())

    def process_file(
        self,
        path: Path | str,
        options: ProcessorOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionResult:
        """Read *path* from disk and extract it."""
        start = time.monotonic()
        path = Path(path)
        try:
            data = path.read_bytes()
            last_modified = path.stat().st_mtime
        except OSError as e:
            self.log.error("Cannot read %s: %s", path, e)
            return self._failure(f"Cannot read file: {e}", start, path.name)

        document = make_document_buffer(data, path.name, len(data), last_modified)
        return self._run(document, options, cancel_event, start)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        document: DocumentBuffer,
        options: ProcessorOptions | None,
        cancel_event: threading.Event | None,
        start: float,
    ) -> ExtractionResult:
        options = options or self.default_options()
        name = document.file_name
        with document_context(name):
            try:
                result = self._execute(document, options, cancel_event, start)
            except Exception as e:
                if isinstance(e, UnsupportedFileTypeError):
                    self.log.warning("Rejected %s: %s", name, e.message)
                else:
                    self.log.exception("Unexpected error processing %s", name)
                return self._failure(
                    describe_error(e), start, name, document.file_type
                )

            result.processing_time_ms = int((time.monotonic() - start) * 1000)
            self.log.info(
                "Processing complete for %s: success=%s, method=%s, %d chars, %dms",
                name,
                result.success,
                result.method.value,
                len(result.extracted_text),
                result.processing_time_ms,
            )
        return result

    def _execute(
        self,
        document: DocumentBuffer,
        options: ProcessorOptions,
        cancel_event: threading.Event | None,
        start: float,
    ) -> ExtractionResult:
        name = document.file_name

        # --- Validation ---

        report = validate(
            document.data,
            name,
            document.metadata.file_size,
            self.settings.min_file_size_bytes,
            self.settings.max_file_size_bytes,
        )
        if not report.is_valid:
            raise UnsupportedFileTypeError(
                f"File validation failed: {', '.join(report.errors)}",
                {"file_name": name, "errors": report.errors},
            )

        self.log.info(
            "Processing %s (%d bytes, %s)",
            name,
            document.metadata.file_size,
            document.file_type.value,
        )
        if document.file_type is SupportedFileType.PDF:
            counted = count_pages(document.data, name, self.log)
            plausible, warning = validate_page_count(
                counted.page_count, document.metadata.file_size
            )
            if not plausible:
                self.log.warning("Page count for %s looks off: %s", name, warning)

        # --- Strategy ---

        primary, fallback = self.select_strategy(options.preferred_method)
        deadline = start + options.timeout_ms / 1000
        self.log.info(
            "Strategy for %s: primary=%s, fallback=%s",
            name,
            primary.value,
            fallback.value if fallback else None,
        )

        if cancel_event is not None and cancel_event.is_set():
            return self._failure("Processing cancelled", start, name, document.file_type)

        # --- Primary ---

        primary_result = self._attempt(primary, document, options, cancel_event)
        if primary_result.success:
            return primary_result

        self.log.warning(
            "Primary method %s failed for %s: %s",
            primary.value,
            name,
            primary_result.error,
        )
        errors = [f"{primary.value}: {primary_result.error}"]

        # --- Fallback ---

        if fallback is not None and options.fallback_enabled:
            if cancel_event is not None and cancel_event.is_set():
                self.log.info("Skipping fallback for %s: cancelled", name)
            elif time.monotonic() >= deadline:
                self.log.warning(
                    "Skipping fallback for %s: %dms deadline passed",
                    name,
                    options.timeout_ms,
                )
                errors.append(f"deadline of {options.timeout_ms}ms exceeded")
            else:
                self.log.info(
                    "Falling back from %s to %s for %s",
                    primary.value,
                    fallback.value,
                    name,
                )
                fallback_result = self._attempt(fallback, document, options, cancel_event)
                if fallback_result.success:
                    return fallback_result
                errors.append(f"{fallback.value}: {fallback_result.error}")

        error = f"{NoTextExtractedError(primary.value).describe()} ({'; '.join(errors)})"
        self.log.error("All extraction methods failed for %s", name)
        return self._failure(error, start, name, document.file_type)

    def _attempt(
        self,
        method: ExtractionMethod,
        document: DocumentBuffer,
        options: ProcessorOptions,
        cancel_event: threading.Event | None,
    ) -> ExtractionResult:
        extractor = self._extractors.get(method)
        if extractor is None:
            error = ExtractorNotFoundError(method.value).describe()
            self.log.error("%s", error)
            return ExtractionResult.failed(
                error, method, document.file_type, 0, document.file_name
            )

        config = options.extractor_config
        if method is ExtractionMethod.VISION:
            return extractor.extract(document, config)
        return extractor.extract(document, config, cancel_event)

    def _failure(
        self,
        error: str,
        start: float,
        file_name: str | None = None,
        file_type: SupportedFileType = SupportedFileType.UNKNOWN,
    ) -> ExtractionResult:
        return ExtractionResult.failed(
            error,
            ExtractionMethod.FALLBACK,
            file_type,
            int((time.monotonic() - start) * 1000),
            file_name,
        )
