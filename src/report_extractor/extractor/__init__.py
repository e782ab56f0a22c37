"""Batch extraction over many report files with per-file error isolation.

Runs the extraction pipeline on each file in turn and writes a markdown
transcript for every success. One file's failure never blocks the next.
Files that already have a non-empty transcript are skipped unless
``force`` is set, so re-running a batch only picks up new or failed files.

Public API:
    extract_files(paths, pipeline, options=None, output_dir=None, force=False)
        -> ExtractionBatchResult
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from report_extractor.extractor.service import ExtractionPipeline
from report_extractor.extractor.transcript import (
    should_extract,
    transcript_path,
    write_transcript,
)
from report_extractor.types import ExtractionResult, ProcessorOptions

logger = logging.getLogger(__name__)

__all__ = ["ExtractionBatchResult", "ExtractionPipeline", "extract_files"]


@dataclass
class ExtractionBatchResult:
    """Aggregated outcome of extracting text from multiple files."""

    files_attempted: int = 0
    files_succeeded: int = 0
    files_failed: int = 0
    files_skipped: int = 0
    results: dict[str, ExtractionResult] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def extract_files(
    paths: Iterable[Path | str],
    pipeline: ExtractionPipeline,
    options: ProcessorOptions | None = None,
    output_dir: Path | None = None,
    force: bool = False,
) -> ExtractionBatchResult:
    """Extract every file in *paths*, writing transcripts for successes.

    Args:
        paths: Report files to process, in order.
        pipeline: Configured extraction pipeline.
        options: Per-run options passed to every ``process_file`` call.
        output_dir: Directory for transcripts; beside each source if None.
        force: Re-extract even if a transcript already exists.

    Returns:
        ExtractionBatchResult with per-file results keyed by path string.
    """
    batch = ExtractionBatchResult()

    for raw_path in paths:
        path = Path(raw_path)
        md_path = transcript_path(path, output_dir)

        if not force and not should_extract(md_path):
            logger.info("Skipping %s: transcript already exists (%s)", path.name, md_path)
            batch.files_skipped += 1
            continue

        batch.files_attempted += 1
        result = pipeline.process_file(path, options)
        batch.results[str(path)] = result

        if not result.success:
            batch.files_failed += 1
            batch.errors.append(f"{path.name}: {result.error}")
            logger.warning("Extraction failed for %s: %s", path.name, result.error)
            continue

        try:
            write_transcript(md_path, result, path.name)
        except OSError as e:
            batch.files_failed += 1
            batch.errors.append(f"{path.name}: cannot write transcript: {e}")
            logger.error("Cannot write transcript for %s: %s", path.name, e)
            continue

        batch.files_succeeded += 1

    logger.info(
        "Extraction batch complete: %d attempted, %d succeeded, %d failed, %d skipped",
        batch.files_attempted,
        batch.files_succeeded,
        batch.files_failed,
        batch.files_skipped,
    )
    return batch
