"""Local OCR client: PyMuPDF page rendering + pytesseract.

PDF pages are rendered to high-DPI PNG images with PyMuPDF and recognized
one by one; JPEG and PNG inputs are opened directly with Pillow. Page texts
are joined with blank lines.
"""

from __future__ import annotations

import io
import logging

import pymupdf
import pytesseract
from PIL import Image

from report_extractor.extractor.ocr import OcrResponse

logger = logging.getLogger(__name__)


class TesseractOcrClient:
    """OcrClient backed by a local Tesseract install.

    ``timeout_seconds`` bounds each Tesseract run (one page or image), so a
    call the extractor has abandoned stops on its own.
    """

    name = "tesseract"

    def __init__(
        self,
        tesseract_cmd: str = "tesseract",
        lang: str = "eng",
        dpi: int = 300,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.lang = lang
        self.dpi = dpi
        self.timeout_seconds = timeout_seconds
        # Configure tesseract executable path if non-default
        if tesseract_cmd != "tesseract":
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def process(self, content: bytes, mime_type: str) -> OcrResponse:
        if mime_type == "application/pdf":
            return self._process_pdf(content)

        with Image.open(io.BytesIO(content)) as img:
            text = pytesseract.image_to_string(
                img, lang=self.lang, timeout=self.timeout_seconds
            )
        return OcrResponse(text=text.strip(), page_count=1)

    def _process_pdf(self, content: bytes) -> OcrResponse:
        doc = pymupdf.open(stream=content, filetype="pdf")
        page_texts: list[str] = []
        try:
            for page in doc:
                # Render at configured DPI (default 300) for OCR quality
                pix = page.get_pixmap(dpi=self.dpi)
                with Image.open(io.BytesIO(pix.tobytes("png"))) as img:
                    text = pytesseract.image_to_string(
                        img, lang=self.lang, timeout=self.timeout_seconds
                    )
                if text and text.strip():
                    page_texts.append(text.strip())
            page_count = len(doc)
        finally:
            doc.close()

        logger.debug(
            "Tesseract recognized %d/%d pages with text", len(page_texts), page_count
        )
        return OcrResponse(text="\n\n".join(page_texts), page_count=page_count)
