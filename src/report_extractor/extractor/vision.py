"""Vision-model extraction over an injected vision client.

Sends the whole document (PDF or image) to a multimodal model with a
transcription instruction. Payloads over the model's size ceiling are
compressed once before the first attempt; anything still too large fails
without calling the client.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol

from report_extractor.documents.compression import (
    TARGET_SIZE_RATIO,
    VISION_PAYLOAD_LIMIT,
    compress_for_vision,
)
from report_extractor.documents.page_counter import count_pages
from report_extractor.errors import (
    NoTextExtractedError,
    PayloadTooLargeError,
    UnsupportedFileTypeError,
    describe_error,
)
from report_extractor.extractor.quality import MIN_TEXT_LENGTH, passes_text_check
from report_extractor.extractor.retry import SleepFn, call_with_timeout, run_with_retry
from report_extractor.types import (
    DocumentBuffer,
    DocumentMetadata,
    ExtractionMethod,
    ExtractionResult,
    ExtractorConfig,
    ModelInfo,
    ProcessingDetail,
    SupportedFileType,
    TextStats,
)

logger = logging.getLogger(__name__)

DEFAULT_VISION_CONFIG = ExtractorConfig(
    max_tokens=8192,
    model="claude-sonnet-4-5",
    timeout_ms=60_000,
    retries=2,
)

EXTRACTION_PROMPT = """\
Please extract ALL text from this inspection report document. Read every page carefully and include:

- All findings and issues mentioned
- All recommendations and notes
- All cost estimates and pricing
- All table data and measurements
- Headers, footers, and fine print
- Every detail from every page

Be extremely thorough - this is a complete inspection report that should have extensive findings. \
Extract the complete text content, do not summarize."""


class VisionClient(Protocol):
    name: str

    def complete(
        self,
        payload: bytes,
        media_type: str,
        instruction: str,
        model: str,
        max_tokens: int,
    ) -> str: ...


class VisionExtractor:
    """Retrying vision-model adapter with a payload-size ceiling."""

    method = ExtractionMethod.VISION

    def __init__(
        self,
        client: VisionClient,
        sleep: SleepFn = time.sleep,
        logger: logging.Logger | None = None,
        defaults: ExtractorConfig = DEFAULT_VISION_CONFIG,
        payload_limit_bytes: int = VISION_PAYLOAD_LIMIT,
        target_ratio: float = TARGET_SIZE_RATIO,
    ) -> None:
        self.client = client
        self.sleep = sleep
        self.log = logger or logging.getLogger(__name__)
        self.defaults = defaults
        self.payload_limit_bytes = payload_limit_bytes
        self.target_ratio = target_ratio

    @property
    def name(self) -> str:
        return getattr(self.client, "name", type(self.client).__name__)

    def extract(
        self,
        document: DocumentBuffer,
        config: ExtractorConfig | None = None,
        instruction: str | None = None,
    ) -> ExtractionResult:
        """Transcribe *document* with the vision model. Never raises.

        Args:
            document: The whole, un-chunked document.
            config: Per-call overrides of model, max_tokens, timeout, retries.
            instruction: Prompt to send instead of the default transcription
                prompt.

        Returns:
            ExtractionResult with method VISION.
        """
        start = time.monotonic()
        cfg = (config or ExtractorConfig()).over(self.defaults)
        prompt = instruction or EXTRACTION_PROMPT
        details: list[ProcessingDetail] = []

        self.log.info(
            "Vision extraction (%s, model=%s) starting for %s",
            self.name,
            cfg.model,
            document.file_name,
        )

        try:
            if document.file_type is SupportedFileType.UNKNOWN:
                raise UnsupportedFileTypeError(
                    f"Vision extraction cannot process file type: "
                    f"{document.file_type.value}"
                )

            payload, compression = compress_for_vision(
                document, self.payload_limit_bytes, self.target_ratio, self.log
            )
            if compression is not None:
                details.append(compression)
            if len(payload.data) > self.payload_limit_bytes:
                raise PayloadTooLargeError(len(payload.data), self.payload_limit_bytes)

            media_type = payload.file_type.mime_type

            def attempt() -> str:
                text = call_with_timeout(
                    lambda: self.client.complete(
                        payload.data, media_type, prompt, cfg.model, cfg.max_tokens
                    ),
                    cfg.timeout_ms,
                    "Vision extraction",
                )
                if not passes_text_check(text, MIN_TEXT_LENGTH, self.log):
                    raise NoTextExtractedError(
                        self.method.value, len((text or "").strip())
                    )
                return text

            text = run_with_retry(
                attempt, cfg.retries, "Vision extraction", self.sleep, self.log
            )

        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            error = describe_error(e)
            self.log.warning(
                "Vision extraction failed for %s: %s", document.file_name, error
            )
            return ExtractionResult.failed(
                error,
                self.method,
                document.file_type,
                elapsed_ms,
                document.file_name,
                details,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if document.file_type is SupportedFileType.PDF:
            page_count = count_pages(document.data, document.file_name, self.log).page_count
        else:
            page_count = 1

        self.log.info(
            "Vision extracted %d chars from %s (%dms)",
            len(text),
            document.file_name,
            elapsed_ms,
        )

        return ExtractionResult(
            success=True,
            extracted_text=text,
            method=self.method,
            metadata=DocumentMetadata(
                page_count=page_count,
                file_type=document.file_type,
                extraction_method=self.method,
                processing_details=[
                    ModelInfo(
                        client=self.name, model=cfg.model, max_tokens=cfg.max_tokens
                    ),
                    TextStats.from_text(text),
                    *details,
                ],
            ),
            processing_time_ms=elapsed_ms,
        )
