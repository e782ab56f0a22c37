"""Smoke test: live extraction of one report with the real OCR and vision clients.

Runs the full pipeline against locally configured services with strict
constraints:
- One input document (a path argument, or a generated 35-page PDF that
  forces chunking)
- One retry per attempt, 2-second inter-chunk delay
- Every output isolated to smoke-test paths
- Each strategy (OCR, vision, hybrid) exercised once

Requires Tesseract on PATH (or Document AI credentials in .env) and
VISION_API_KEY in .env.

Usage:
    python tests/smoke/test_live_extraction.py [path/to/report.pdf]
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import pymupdf

# ---------------------------------------------------------------------------
# Resolve project root (must happen before report_extractor imports)
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))
sys.path.insert(0, str(PROJECT_ROOT))

from main import build_clients
from report_extractor.config import ExtractionSettings, OcrSettings, VisionSettings
from report_extractor.extractor import ExtractionPipeline, extract_files
from report_extractor.logging import setup_logging
from report_extractor.types import (
    ChunkingStats,
    ExtractionMethod,
    ExtractorConfig,
    ProcessorOptions,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Smoke-test settings
# ---------------------------------------------------------------------------

SMOKE_DATA_DIR = "data/smoke_live_extraction"
SMOKE_LOG_DIR = "logs/smoke_live_extraction"
GENERATED_PAGES = 35


@dataclass
class SmokeEvidence:
    """Structured evidence collected during the smoke run."""

    start_time: str = ""
    end_time: str = ""
    source_path: str = ""
    source_size: int = 0

    ocr_backend: str = ""
    ocr_success: bool = False
    ocr_chars: int = 0
    ocr_pages: int = 0
    ocr_chunks: int = 0
    ocr_error: str | None = None

    vision_success: bool = False
    vision_chars: int = 0
    vision_error: str | None = None

    hybrid_success: bool = False
    hybrid_method: str = ""
    hybrid_chars: int = 0
    hybrid_error: str | None = None

    transcript_path: str = ""
    transcript_written: bool = False

    passed: bool = False
    failure_reasons: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pre-run checks
# ---------------------------------------------------------------------------


def _pre_run_checks(ocr: OcrSettings, vision: VisionSettings) -> list[str]:
    """Run pre-flight checks and return list of failure messages (empty = OK)."""
    failures = []

    if ocr.backend == "tesseract":
        try:
            subprocess.run(
                [ocr.tesseract_cmd, "--version"],
                capture_output=True,
                timeout=10,
                check=True,
            )
        except (FileNotFoundError, subprocess.CalledProcessError):
            failures.append(f"Tesseract not runnable: {ocr.tesseract_cmd}")
        except subprocess.TimeoutExpired:
            failures.append("tesseract --version timed out")
    elif not (ocr.documentai_credentials_json and ocr.documentai_processor_id):
        failures.append("Document AI selected but credentials are not configured")

    if not vision.api_key:
        failures.append("VISION_API_KEY is not set")

    return failures


def _generate_report(path: Path, pages: int) -> None:
    """Write a synthetic text-rendered inspection report."""
    doc = pymupdf.open()
    for n in range(1, pages + 1):
        page = doc.new_page()
        page.insert_text((72, 72), f"INSPECTION REPORT -- Page {n}", fontsize=16)
        page.insert_text(
            (72, 110),
            f"Finding {n}: moisture staining observed at ceiling, recommend repair.",
        )
        page.insert_text((72, 130), f"Estimated cost: ${n * 125}.00")
    doc.save(path)
    doc.close()


def run_smoke_test(source: Path | None) -> SmokeEvidence:
    """Execute the live smoke run and return evidence."""
    evidence = SmokeEvidence()
    evidence.start_time = datetime.now(timezone.utc).isoformat()

    extraction = ExtractionSettings(inter_chunk_delay_seconds=2.0)
    ocr_settings = OcrSettings(retries=1)
    vision_settings = VisionSettings(retries=1)

    print("=" * 60)
    print("SMOKE TEST: Live extraction (OCR, vision, hybrid)")
    print("=" * 60)
    print()
    print("[Pre-Run] Checking prerequisites...")
    preflight_failures = _pre_run_checks(ocr_settings, vision_settings)
    if preflight_failures:
        for f in preflight_failures:
            print(f"  FAIL: {f}")
        evidence.failure_reasons.extend(preflight_failures)
        evidence.end_time = datetime.now(timezone.utc).isoformat()
        return evidence
    print("  All prerequisites OK")
    print()

    try:
        # Step A: isolated paths and logging
        data_dir = PROJECT_ROOT / SMOKE_DATA_DIR
        log_dir = PROJECT_ROOT / SMOKE_LOG_DIR
        for path in (data_dir, log_dir):
            if path.exists():
                shutil.rmtree(path)
        data_dir.mkdir(parents=True)
        setup_logging(log_dir=str(log_dir))
        print("[Step A] Smoke environment initialized")

        if source is None:
            source = data_dir / "generated_report.pdf"
            _generate_report(source, GENERATED_PAGES)
            print(f"  Generated {GENERATED_PAGES}-page report: {source}")
        evidence.source_path = str(source)
        evidence.source_size = source.stat().st_size
        print()

        # Step B: clients and pipeline
        ocr_client, vision_client = build_clients(ocr_settings, vision_settings)
        evidence.ocr_backend = ocr_settings.backend
        pipeline = ExtractionPipeline(
            ocr_client,
            vision_client,
            settings=extraction,
            ocr_defaults=ExtractorConfig(
                model=ocr_settings.backend,
                timeout_ms=ocr_settings.timeout_ms,
                retries=ocr_settings.retries,
            ),
            vision_defaults=ExtractorConfig(
                model=vision_settings.model,
                max_tokens=vision_settings.max_tokens,
                timeout_ms=vision_settings.timeout_ms,
                retries=vision_settings.retries,
            ),
        )
        if not pipeline.is_configured():
            evidence.failure_reasons.append("Pipeline is missing a client")
            return evidence
        print("[Step B] Pipeline configured")
        print()

        # Step C: OCR only (chunked for long PDFs)
        print("[Step C] OCR extraction...")
        result = pipeline.process_file(
            source,
            ProcessorOptions(
                preferred_method=ExtractionMethod.OCR, fallback_enabled=False
            ),
        )
        evidence.ocr_success = result.success
        evidence.ocr_chars = len(result.extracted_text)
        evidence.ocr_pages = result.metadata.page_count
        stats = result.metadata.detail(ChunkingStats)
        evidence.ocr_chunks = stats.total_chunks if stats else 0
        evidence.ocr_error = result.error
        print(
            f"  success={result.success}, chars={evidence.ocr_chars}, "
            f"pages={evidence.ocr_pages}, chunks={evidence.ocr_chunks}"
        )
        if not result.success:
            evidence.failure_reasons.append(f"OCR failed: {result.error}")
        print()

        # Step D: vision only
        print("[Step D] Vision extraction...")
        result = pipeline.process_file(
            source, ProcessorOptions(preferred_method=ExtractionMethod.VISION)
        )
        evidence.vision_success = result.success
        evidence.vision_chars = len(result.extracted_text)
        evidence.vision_error = result.error
        print(f"  success={result.success}, chars={evidence.vision_chars}")
        if not result.success:
            evidence.failure_reasons.append(f"Vision failed: {result.error}")
        print()

        # Step E: default strategy through the batch writer
        print("[Step E] Hybrid extraction with transcript...")
        batch = extract_files([source], pipeline, output_dir=data_dir / "out")
        hybrid = batch.results.get(str(source))
        if hybrid is not None:
            evidence.hybrid_success = hybrid.success
            evidence.hybrid_method = hybrid.method.value
            evidence.hybrid_chars = len(hybrid.extracted_text)
            evidence.hybrid_error = hybrid.error
        md_path = data_dir / "out" / source.with_suffix(".md").name
        evidence.transcript_path = str(md_path)
        evidence.transcript_written = md_path.exists()
        print(
            f"  success={evidence.hybrid_success}, method={evidence.hybrid_method}, "
            f"chars={evidence.hybrid_chars}"
        )
        if batch.files_succeeded != 1:
            evidence.failure_reasons.append(f"Hybrid failed: {batch.errors}")
        print()

    except Exception as exc:
        logger.exception("Smoke test aborted with unexpected error")
        evidence.failure_reasons.append(f"Unexpected error: {exc}")
    finally:
        evidence.end_time = datetime.now(timezone.utc).isoformat()

    evidence.passed = not evidence.failure_reasons
    return evidence


def main():
    source = Path(sys.argv[1]).resolve() if len(sys.argv) > 1 else None
    evidence = run_smoke_test(source)

    print()
    print("=" * 60)
    if evidence.passed:
        print("RESULT: PASS")
    else:
        print("RESULT: FAIL")
        for reason in evidence.failure_reasons:
            print(f"  - {reason}")
    print("=" * 60)
    print()

    print("Evidence Summary:")
    print(f"  Start:              {evidence.start_time}")
    print(f"  End:                {evidence.end_time}")
    print(f"  Source:             {evidence.source_path} ({evidence.source_size} bytes)")
    print(f"  OCR backend:        {evidence.ocr_backend}")
    print(f"  OCR:                success={evidence.ocr_success}, "
          f"chars={evidence.ocr_chars}, chunks={evidence.ocr_chunks}")
    print(f"  Vision:             success={evidence.vision_success}, "
          f"chars={evidence.vision_chars}")
    print(f"  Hybrid:             success={evidence.hybrid_success}, "
          f"method={evidence.hybrid_method}")
    print(f"  Transcript:         {evidence.transcript_path} "
          f"(written={evidence.transcript_written})")
    print()

    log_dir = PROJECT_ROOT / SMOKE_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    evidence_path = log_dir / "smoke_evidence.json"
    with open(evidence_path, "w") as f:
        json.dump(asdict(evidence), f, indent=2)
    print(f"Full evidence saved to: {evidence_path}")

    return 0 if evidence.passed else 1


if __name__ == "__main__":
    sys.exit(main())
