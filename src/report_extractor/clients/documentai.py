"""Google Document AI OCR client.

Requires the ``documentai`` extra (google-cloud-documentai). Credentials are
a service-account JSON string, read from .env or the environment, never YAML.
"""

from __future__ import annotations

import json
import logging

from google.api_core.client_options import ClientOptions
from google.cloud import documentai
from google.oauth2 import service_account

from report_extractor.errors import MissingCredentialsError
from report_extractor.extractor.ocr import OcrResponse

logger = logging.getLogger(__name__)


class DocumentAiOcrClient:
    """OcrClient backed by a Document AI OCR processor.

    Args:
        credentials_json: Service-account key as a JSON string.
        processor_id: Document AI processor id.
        location: Processor region (``us`` or ``eu``).
        timeout_seconds: Deadline for each ``process_document`` RPC.

    Raises:
        MissingCredentialsError: If credentials or processor id are missing
            or the credentials are not valid JSON.
    """

    name = "google-document-ai"

    def __init__(
        self,
        credentials_json: str,
        processor_id: str,
        location: str = "us",
        timeout_seconds: float = 90.0,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        if not credentials_json:
            raise MissingCredentialsError("Google Document AI credentials not configured")
        if not processor_id:
            raise MissingCredentialsError("Google Document AI processor ID not configured")

        try:
            info = json.loads(credentials_json)
        except json.JSONDecodeError as e:
            raise MissingCredentialsError(
                "Invalid Google Document AI credentials format"
            ) from e

        project_id = info.get("project_id")
        if not project_id:
            raise MissingCredentialsError("Service-account credentials have no project_id")

        credentials = service_account.Credentials.from_service_account_info(info)
        self._client = documentai.DocumentProcessorServiceClient(
            credentials=credentials,
            client_options=ClientOptions(
                api_endpoint=f"{location}-documentai.googleapis.com"
            ),
        )
        self._processor_name = self._client.processor_path(
            project_id, location, processor_id
        )
        logger.info(
            "Document AI client ready (project=%s, location=%s)", project_id, location
        )

    def process(self, content: bytes, mime_type: str) -> OcrResponse:
        request = documentai.ProcessRequest(
            name=self._processor_name,
            raw_document=documentai.RawDocument(content=content, mime_type=mime_type),
        )
        result = self._client.process_document(
            request=request, timeout=self.timeout_seconds
        )
        document = result.document

        # Layout confidence is 0-1 per page
        scores = [page.layout.confidence for page in document.pages if page.layout]
        confidence = round(100 * sum(scores) / len(scores), 1) if scores else None
        return OcrResponse(
            text=document.text or "",
            page_count=len(document.pages),
            confidence=confidence,
        )
