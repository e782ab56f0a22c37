"""Logging package -- JSON file + console handlers."""

from .setup import DocumentFilter, document_context, setup_logging

__all__ = ["DocumentFilter", "document_context", "setup_logging"]
