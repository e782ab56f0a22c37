"""Shared fixtures: synthetic documents and a recording sleep."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from doubles import RecordingSleep, build_pdf


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def single_page_pdf() -> bytes:
    return build_pdf(1)


@pytest.fixture
def pdf_45_pages() -> bytes:
    return build_pdf(45)


@pytest.fixture
def png_bytes() -> bytes:
    img = Image.new("RGB", (120, 80), "white")
    for x in range(0, 120, 3):
        for y in range(0, 80, 5):
            img.putpixel((x, y), (x * 2 % 256, y * 3 % 256, (x + y) % 256))
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    img = Image.new("RGB", (120, 80), (200, 180, 160))
    out = io.BytesIO()
    img.save(out, format="JPEG")
    return out.getvalue()
