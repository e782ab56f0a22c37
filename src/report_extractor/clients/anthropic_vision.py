"""Anthropic Messages API vision client.

PDFs are sent as base64 ``document`` content blocks, JPEG/PNG images as
``image`` blocks, each followed by the text instruction. Retries are left to
the extractor, so the SDK's own retries are disabled.
"""

from __future__ import annotations

import base64
import logging

import httpx
from anthropic import Anthropic

from report_extractor.errors import MissingCredentialsError

logger = logging.getLogger(__name__)


class AnthropicVisionClient:
    """VisionClient backed by the Anthropic SDK.

    Args:
        api_key: Anthropic API key (from .env or the environment).
        http_client: Optional httpx client whose lifecycle the caller owns.
        timeout_seconds: Request timeout enforced by the SDK, so a call the
            extractor has already abandoned does not outlive it for long.

    Raises:
        MissingCredentialsError: If *api_key* is empty.
    """

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = 90.0,
    ) -> None:
        if not api_key:
            raise MissingCredentialsError("Anthropic API key not configured")
        self._client = Anthropic(
            api_key=api_key,
            http_client=http_client or httpx.Client(),
            timeout=timeout_seconds,
            max_retries=0,
        )

    def complete(
        self,
        payload: bytes,
        media_type: str,
        instruction: str,
        model: str,
        max_tokens: int,
    ) -> str:
        data = base64.b64encode(payload).decode("utf-8")
        block_type = "document" if media_type == "application/pdf" else "image"

        response = self._client.messages.create(
            model=model,
            max_tokens=max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": block_type,
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": data,
                            },
                        },
                        {"type": "text", "text": instruction},
                    ],
                }
            ],
        )

        if response.usage:
            logger.debug(
                "Vision call tokens: input=%d, output=%d",
                response.usage.input_tokens,
                response.usage.output_tokens,
            )

        return "".join(
            block.text for block in response.content if block.type == "text"
        )
