"""Inspection Report Extractor -- command-line entry point.

Startup sequence:
    1. Load pipeline configuration (needed for log_dir and rotation)
    2. Setup logging (must happen before any code that logs)
    3. Load remaining configuration (extraction, OCR, vision)
    4. Build the OCR and vision clients once and inject them
    5. Extract: a single file prints its result as JSON (or writes the
       transcript to --output); several files run as a batch that writes
       markdown transcripts

Exit code is 0 when every file succeeded, 1 otherwise.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from report_extractor.clients import AnthropicVisionClient, TesseractOcrClient
from report_extractor.config import load_all_settings
from report_extractor.errors import MissingCredentialsError
from report_extractor.extractor import ExtractionPipeline, extract_files
from report_extractor.extractor.chunking import CHUNKED_TIMEOUT_FACTOR
from report_extractor.logging import setup_logging
from report_extractor.types import ExtractionMethod, ExtractorConfig, ProcessorOptions

logger = logging.getLogger(__name__)

_METHODS = {
    "ocr": ExtractionMethod.OCR,
    "vision": ExtractionMethod.VISION,
    "hybrid": ExtractionMethod.HYBRID,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract text from inspection report PDFs and images."
    )
    parser.add_argument("files", nargs="+", type=Path, help="PDF, JPEG or PNG files")
    parser.add_argument(
        "--method",
        choices=sorted(_METHODS),
        help="Preferred extraction method (default: hybrid with vision fallback)",
    )
    parser.add_argument(
        "--no-fallback", action="store_true", help="Do not try the fallback method"
    )
    parser.add_argument(
        "--timeout-ms", type=int, help="Overall deadline for one document"
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the transcript to this path (single file only)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for batch transcripts (default: beside each source)",
    )
    parser.add_argument(
        "--force", action="store_true", help="Re-extract files that have transcripts"
    )
    return parser.parse_args(argv)


def build_clients(ocr_settings, vision_settings):
    """Construct the OCR and vision clients, or None where unconfigured."""
    ocr_client = None
    vision_client = None

    try:
        if ocr_settings.backend == "documentai":
            # Optional extra; only imported when selected
            from report_extractor.clients.documentai import DocumentAiOcrClient

            ocr_client = DocumentAiOcrClient(
                ocr_settings.documentai_credentials_json,
                ocr_settings.documentai_processor_id,
                ocr_settings.documentai_location,
                # A chunk attempt may run for the chunked timeout
                timeout_seconds=ocr_settings.timeout_ms * CHUNKED_TIMEOUT_FACTOR / 1000,
            )
        else:
            ocr_client = TesseractOcrClient(
                ocr_settings.tesseract_cmd,
                ocr_settings.tesseract_lang,
                ocr_settings.render_dpi,
                timeout_seconds=ocr_settings.timeout_ms / 1000,
            )
    except MissingCredentialsError as e:
        logger.warning("OCR client unavailable: %s", e.message)

    try:
        vision_client = AnthropicVisionClient(
            vision_settings.api_key, timeout_seconds=vision_settings.timeout_ms / 1000
        )
    except MissingCredentialsError as e:
        logger.warning("Vision client unavailable: %s", e.message)

    return ocr_client, vision_client


def main(argv: list[str] | None = None) -> int:
    """Run extraction for the files named on the command line."""
    args = parse_args(argv)

    # 1-3. Load configuration and set up logging BEFORE anything else logs
    extraction, ocr_settings, vision_settings, pipeline_settings = load_all_settings()
    setup_logging(
        log_dir=pipeline_settings.log_dir,
        max_bytes=pipeline_settings.log_max_bytes,
        backup_count=pipeline_settings.log_backup_count,
    )

    logger.info("Inspection Report Extractor starting")

    # Log non-sensitive config values (never log API keys or credentials)
    logger.info(
        "Config loaded -- extraction: page_limit=%s, chunk_size=%s, timeout_ms=%s",
        extraction.ocr_page_limit,
        extraction.chunk_size_pages,
        extraction.timeout_ms,
    )
    logger.info(
        "Config loaded -- ocr: backend=%s, timeout_ms=%s, retries=%s",
        ocr_settings.backend,
        ocr_settings.timeout_ms,
        ocr_settings.retries,
    )
    logger.info(
        "Config loaded -- vision: model=%s, max_tokens=%s, timeout_ms=%s",
        vision_settings.model,
        vision_settings.max_tokens,
        vision_settings.timeout_ms,
    )

    # 4. Build clients and pipeline
    ocr_client, vision_client = build_clients(ocr_settings, vision_settings)
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
        logger.warning("Not all clients are configured; some methods are unavailable")

    options = ProcessorOptions(
        preferred_method=_METHODS.get(args.method) if args.method else None,
        fallback_enabled=extraction.fallback_enabled and not args.no_fallback,
        timeout_ms=args.timeout_ms or extraction.timeout_ms,
    )

    # 5. Extract
    if len(args.files) == 1 and args.output_dir is None:
        result = pipeline.process_file(args.files[0], options)
        if args.output and result.success:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(result.extracted_text, encoding="utf-8")
            logger.info("Transcript written to %s", args.output)
        else:
            print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.success else 1

    if args.output:
        logger.error("--output is only valid with a single file; use --output-dir")
        return 1

    batch = extract_files(
        args.files, pipeline, options, output_dir=args.output_dir, force=args.force
    )
    for error in batch.errors:
        print(error, file=sys.stderr)

    logger.info("Run complete")
    return 0 if batch.files_failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main() or 0)
