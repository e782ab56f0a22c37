"""Concrete OCR and vision clients, constructed once and injected.

The Document AI client lives in :mod:`report_extractor.clients.documentai`
and is imported only when that backend is selected, since its library ships
as an optional extra.
"""

from .anthropic_vision import AnthropicVisionClient
from .tesseract import TesseractOcrClient

__all__ = ["AnthropicVisionClient", "TesseractOcrClient"]
