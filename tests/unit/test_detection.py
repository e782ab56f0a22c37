"""File type detection and upload validation."""

import pytest

from report_extractor.documents import detection
from report_extractor.types import SupportedFileType


@pytest.mark.parametrize("buffer", [b"", b"%", b"%P", b"%PD", b"\xff\xd8\xff"])
def test_short_buffers_are_unknown(buffer):
    assert detection.detect(buffer) is SupportedFileType.UNKNOWN


def test_none_is_unknown():
    assert detection.detect(None) is SupportedFileType.UNKNOWN


@pytest.mark.parametrize(
    "header, expected",
    [
        (b"%PDF-1.7\n", SupportedFileType.PDF),
        (b"\xff\xd8\xff\xe0\x00\x10JFIF", SupportedFileType.JPEG),
        (b"\x89PNG\r\n\x1a\n", SupportedFileType.PNG),
        (b"GIF89a", SupportedFileType.UNKNOWN),
        (b"PK\x03\x04", SupportedFileType.UNKNOWN),
    ],
)
def test_detect_by_magic_bytes(header, expected):
    assert detection.detect(header + b"\x00" * 200) is expected


def test_detects_generated_documents(single_page_pdf, png_bytes, jpeg_bytes):
    assert detection.detect(single_page_pdf) is SupportedFileType.PDF
    assert detection.detect(png_bytes) is SupportedFileType.PNG
    assert detection.detect(jpeg_bytes) is SupportedFileType.JPEG
    assert detection.is_image(png_bytes)
    assert not detection.is_image(single_page_pdf)


def test_png_with_small_declared_size_fails_validation():
    buffer = b"\x89PNG" + b"\x00" * 196
    report = detection.validate(buffer, "tiny.png", size=50)

    assert not report.is_valid
    assert report.file_type is SupportedFileType.PNG
    assert len(report.errors) == 1
    assert "minimum size" in report.errors[0]


def test_validation_collects_every_error():
    report = detection.validate(b"nope", "notes.txt", size=60 * 1024 * 1024)

    assert not report.is_valid
    assert len(report.errors) == 2
    assert any("too large" in e for e in report.errors)
    assert any("Unsupported file type" in e for e in report.errors)


def test_valid_pdf_passes(single_page_pdf):
    report = detection.validate(single_page_pdf, "report.pdf")
    assert report.is_valid
    assert report.errors == []


def test_describe_and_support():
    assert detection.describe(SupportedFileType.PDF) == "PDF Document"
    assert detection.describe(SupportedFileType.UNKNOWN) == "Unknown file type"
    assert detection.is_supported(SupportedFileType.JPEG)
    assert not detection.is_supported(SupportedFileType.UNKNOWN)


def test_looks_like_text_pdf():
    assert detection.looks_like_text_pdf(b"%PDF-1.4\n1 0 obj << /Type /Page >>" + b" " * 100)
    assert not detection.looks_like_text_pdf(b"%PDF-1.4\n" + b" " * 100)
    assert not detection.looks_like_text_pdf(b"\x89PNG /Type /Page")


def test_make_document_buffer(png_bytes):
    document = detection.make_document_buffer(png_bytes, "photo.png")

    assert document.file_type is SupportedFileType.PNG
    assert document.metadata.file_size == len(png_bytes)
    assert document.metadata.last_modified is not None
