"""Transcript writer with YAML frontmatter for extracted report text.

Writes a markdown file next to (or into an output directory for) each source
document, with extraction metadata in YAML frontmatter. ``should_extract``
gives batch runs idempotency: an existing non-empty transcript is skipped.

Public API:
    transcript_path(source, output_dir) -> Path
    should_extract(md_path)  -> bool
    write_transcript(md_path, result, source_name)  -> None
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

import frontmatter

from report_extractor.types import CostEstimate, ExtractionResult, HybridStats

logger = logging.getLogger(__name__)


def transcript_path(source: Path, output_dir: Path | None = None) -> Path:
    """Return the ``.md`` path for *source*, optionally inside *output_dir*."""
    md_name = source.with_suffix(".md").name
    return (output_dir / md_name) if output_dir else source.with_suffix(".md")


def should_extract(md_path: Path) -> bool:
    """Return False if *md_path* already exists with content."""
    return not (md_path.exists() and md_path.stat().st_size > 0)


def write_transcript(md_path: Path, result: ExtractionResult, source_name: str) -> None:
    """Write a successful result's text to *md_path* with metadata frontmatter.

    Frontmatter keys: ``source_file``, ``extraction_method``,
    ``extraction_date`` (UTC ISO-8601), ``page_count``, ``char_count``,
    ``file_type``, ``processing_time_ms``, plus ``estimated_cost`` and
    ``hybrid_ocr_success`` when those diagnostics are present.
    """
    post = frontmatter.Post(result.extracted_text)
    post.metadata["source_file"] = source_name
    post.metadata["extraction_method"] = result.method.value
    post.metadata["extraction_date"] = (
        datetime.datetime.now(datetime.timezone.utc).isoformat()
    )
    post.metadata["page_count"] = result.metadata.page_count
    post.metadata["char_count"] = len(result.extracted_text)
    post.metadata["file_type"] = result.metadata.file_type.value
    post.metadata["processing_time_ms"] = result.processing_time_ms

    cost = result.metadata.detail(CostEstimate)
    if cost is not None:
        post.metadata["estimated_cost"] = cost.display
    hybrid = result.metadata.detail(HybridStats)
    if hybrid is not None:
        post.metadata["hybrid_ocr_success"] = hybrid.ocr_success

    md_path.parent.mkdir(parents=True, exist_ok=True)

    with open(md_path, "w", encoding="utf-8") as f:
        f.write(frontmatter.dumps(post))

    logger.info(
        "Wrote transcript to %s (%d chars, %d pages)",
        md_path.name,
        len(result.extracted_text),
        result.metadata.page_count,
    )
