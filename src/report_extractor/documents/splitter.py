"""Page-range extraction into a standalone PDF using PyMuPDF.

Unlike the page counter, this step needs a structurally valid document to
copy pages from; anything PyMuPDF cannot open or copy raises
PageExtractionError.
"""

from __future__ import annotations

import logging

import pymupdf

from report_extractor.errors import PageExtractionError

logger = logging.getLogger(__name__)


def split(
    pdf_buffer: bytes,
    start_page: int,
    end_page: int,
    log: logging.Logger | None = None,
) -> bytes:
    """Return a new PDF containing pages *start_page*..*end_page* (1-indexed, inclusive).

    Encrypted documents are opened for reading with an empty user password;
    no other decryption is attempted.

    Raises:
        PageExtractionError: If the range is invalid or the source cannot be
            parsed and copied.
    """
    log = log or logger

    if start_page < 1 or end_page < start_page:
        raise PageExtractionError(
            f"Invalid page range {start_page}-{end_page}", start_page, end_page
        )

    try:
        source = pymupdf.open(stream=bytes(pdf_buffer), filetype="pdf")
    except Exception as e:
        log.warning("Cannot open PDF for page extraction: %s", e)
        raise PageExtractionError(
            f"Failed to extract pages: {e}", start_page, end_page
        ) from e

    try:
        if source.needs_pass:
            source.authenticate("")

        if end_page > source.page_count:
            raise PageExtractionError(
                f"Page range {start_page}-{end_page} exceeds document "
                f"length ({source.page_count} pages)",
                start_page,
                end_page,
            )

        target = pymupdf.open()
        try:
            target.insert_pdf(source, from_page=start_page - 1, to_page=end_page - 1)
            data = target.tobytes(garbage=3, deflate=True)
        finally:
            target.close()

    except PageExtractionError:
        raise
    except Exception as e:
        log.warning("Failed to extract pages %d-%d: %s", start_page, end_page, e)
        raise PageExtractionError(
            f"Failed to extract pages: {e}", start_page, end_page
        ) from e
    finally:
        source.close()

    log.debug(
        "Extracted pages %d-%d into %d-byte PDF", start_page, end_page, len(data)
    )
    return data
