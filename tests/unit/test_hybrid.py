"""Hybrid OCR-then-vision extraction and its combination rules."""

import threading

import pytest

from doubles import StubOcrClient, StubVisionClient, build_pdf, page_text
from report_extractor.documents.detection import make_document_buffer
from report_extractor.extractor.chunking import ChunkOrchestrator
from report_extractor.extractor.hybrid import (
    OCR_ONLY_CONFIDENCE,
    OCR_ONLY_NOTE,
    HybridOrchestrator,
    build_hybrid_prompt,
)
from report_extractor.extractor.ocr import OcrExtractor
from report_extractor.extractor.vision import EXTRACTION_PROMPT, VisionExtractor
from report_extractor.types import (
    DocumentMetadata,
    ExtractionMethod,
    ExtractionResult,
    HybridStats,
    SupportedFileType,
)


def always_fail(_):
    return ValueError("invalid_argument: rejected")


def make_hybrid(ocr_client, vision_client, sleep):
    chunker = ChunkOrchestrator(OcrExtractor(ocr_client, sleep), sleep)
    return HybridOrchestrator(chunker, VisionExtractor(vision_client, sleep))


@pytest.fixture
def report():
    return make_document_buffer(build_pdf(3), "three_pages.pdf")


def test_vision_text_wins(report, sleep):
    vision = StubVisionClient()
    result = make_hybrid(StubOcrClient(), vision, sleep).extract(report)

    assert result.success
    assert result.method is ExtractionMethod.HYBRID
    assert result.metadata.extraction_method is ExtractionMethod.HYBRID
    assert result.extracted_text == vision.text
    stats = result.metadata.detail(HybridStats)
    assert stats.ocr_success and stats.analysis_success


def test_vision_prompt_carries_ocr_context(report, sleep):
    vision = StubVisionClient()
    make_hybrid(StubOcrClient(), vision, sleep).extract(report)

    prompt = vision.instructions[0]
    assert prompt.startswith(EXTRACTION_PROMPT)
    assert "OCR EXTRACTED TEXT (for reference):" in prompt
    assert page_text(2) in prompt


def test_vision_failure_falls_back_to_ocr_text(report, sleep):
    vision = StubVisionClient(fail_when=always_fail)
    result = make_hybrid(StubOcrClient(), vision, sleep).extract(report)

    assert result.success
    assert result.method is ExtractionMethod.HYBRID
    assert result.extracted_text.endswith(f"\n\n{OCR_ONLY_NOTE}")
    assert page_text(1) in result.extracted_text
    assert result.error == "Analysis failed, OCR text only"
    assert not result.metadata.detail(HybridStats).analysis_success
    assert result.metadata.confidence == 85.0
    assert result.metadata.detail(HybridStats).ocr_confidence == 85.0


def test_both_stages_failing(report, sleep):
    ocr = StubOcrClient(fail_when=always_fail)
    vision = StubVisionClient(fail_when=always_fail)
    result = make_hybrid(ocr, vision, sleep).extract(report)

    assert not result.success
    assert result.error.startswith(
        "Hybrid extraction failed: OCR failed, Analysis failed: invalid_argument"
    )
    stats = result.metadata.detail(HybridStats)
    assert not stats.ocr_success
    assert "Note: OCR text extraction was not available" in vision.instructions[0]


def test_cancel_after_ocr_skips_vision(report, sleep):
    cancel = threading.Event()

    def cancel_during_ocr(_):
        cancel.set()
        return None

    vision = StubVisionClient()
    result = make_hybrid(StubOcrClient(fail_when=cancel_during_ocr), vision, sleep).extract(
        report, cancel_event=cancel
    )

    assert vision.instructions == []
    assert result.success
    assert result.extracted_text.endswith(OCR_ONLY_NOTE)


def test_prompt_truncates_long_ocr_text():
    prompt = build_hybrid_prompt("x" * 3000, True)

    assert ("x" * 2000) + '..."' in prompt
    assert "x" * 2001 not in prompt


def test_prompt_without_usable_ocr_text():
    assert "OCR EXTRACTED TEXT" not in build_hybrid_prompt("short", True)
    assert "OCR EXTRACTED TEXT" not in build_hybrid_prompt("y" * 500, False)
    assert "not available" in build_hybrid_prompt("", False)


def test_without_vision_client_returns_ocr_text(report, sleep):
    ocr = StubOcrClient()
    hybrid = HybridOrchestrator(ChunkOrchestrator(OcrExtractor(ocr, sleep), sleep), None)

    result = hybrid.extract(report)

    assert result.success
    assert result.method is ExtractionMethod.HYBRID
    assert result.extracted_text.endswith(f"\n\n{OCR_ONLY_NOTE}")
    assert page_text(3) in result.extracted_text
    stats = result.metadata.detail(HybridStats)
    assert stats.ocr_success
    assert not stats.analysis_success
    assert stats.analysis_error.startswith("ExtractorNotFound")
    assert len(ocr.calls) == 1


def test_ocr_only_confidence_defaults_when_unreported(sleep):
    hybrid = make_hybrid(StubOcrClient(), StubVisionClient(), sleep)
    ocr_result = ExtractionResult(
        success=True,
        extracted_text="Inspection summary: " + "gutters clogged, downspout loose. " * 3,
        method=ExtractionMethod.OCR,
        metadata=DocumentMetadata(
            page_count=1,
            file_type=SupportedFileType.PDF,
            extraction_method=ExtractionMethod.OCR,
        ),
    )
    analysis_result = ExtractionResult.failed(
        "timeout", ExtractionMethod.VISION, SupportedFileType.PDF, 0
    )

    result = hybrid.combine(ocr_result, analysis_result, 12)

    assert result.success
    assert result.metadata.confidence == OCR_ONLY_CONFIDENCE == 70.0
    assert result.metadata.detail(HybridStats).ocr_confidence is None
