"""Minimum-viable-text validation for extraction output.

An extractor response is only a success if its text is long enough to be a
real transcript and is not dominated by garbage characters. Two heuristics:

1. Minimum content: trimmed length must reach the method's threshold
   (20 characters for a single OCR or vision call, 50 for combined chunks).
2. Garble ratio: the fraction of replacement / non-printable control
   characters must stay below ``GARBLE_RATIO_THRESHOLD``. Scanned-report
   OCR is noisy, so the threshold matches the loose OCR level.

Near-empty or garbled responses are failures, never low-confidence successes.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 20
MIN_CHUNKED_TEXT_LENGTH = 50
MIN_OCR_FALLBACK_LENGTH = 50
GARBLE_RATIO_THRESHOLD = 0.10

# Matches Unicode replacement char, NULL, and non-printable control chars
_GARBLE_PATTERN = re.compile(r"[\ufffd\x00-\x08\x0b\x0c\x0e-\x1f]")


def garble_ratio(text: str) -> float:
    """Return the fraction of garbled characters in *text* (0.0 for empty)."""
    if not text:
        return 0.0
    return len(_GARBLE_PATTERN.findall(text)) / len(text)


def passes_text_check(
    text: str | None,
    min_length: int = MIN_TEXT_LENGTH,
    log: logging.Logger | None = None,
) -> bool:
    """Check whether extracted text is a usable transcript.

    Args:
        text: Raw text returned by an extractor.
        min_length: Minimum trimmed length for this method.
        log: Logger for the rejection reason (defaults to this module's).

    Returns:
        True if both checks pass, False if either fails.
    """
    log = log or logger

    if not text or not text.strip():
        log.warning("Text check failed: empty or whitespace-only text")
        return False

    trimmed_length = len(text.strip())
    if trimmed_length < min_length:
        log.warning(
            "Text check failed (minimum content): %d chars < %d minimum",
            trimmed_length,
            min_length,
        )
        return False

    ratio = garble_ratio(text)
    if ratio > GARBLE_RATIO_THRESHOLD:
        log.warning(
            "Text check failed (garble ratio): %.3f > %.3f threshold",
            ratio,
            GARBLE_RATIO_THRESHOLD,
        )
        return False

    return True
