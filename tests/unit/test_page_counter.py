"""Heuristic page counting and chunk planning."""

import pytest

from doubles import build_pdf
from report_extractor.documents import page_counter
from report_extractor.types import PageRange


def test_single_page_pdf_counts_one(single_page_pdf):
    result = page_counter.count_pages(single_page_pdf, "one.pdf")

    assert result.success
    assert result.page_count == 1


def test_multi_page_pdf(pdf_45_pages):
    result = page_counter.count_pages(pdf_45_pages, "long.pdf")

    assert result.success
    assert result.page_count == 45
    assert result.method == "count"


def test_max_count_wins():
    data = b"%PDF-1.4 << /Type /Pages /Count 3 >> << /Type /Pages /Count 12 >>"
    assert page_counter.count_pages(data).page_count == 12


def test_page_markers_exclude_pages_nodes():
    data = (
        b"%PDF-1.4 1 0 obj << /Type /Pages >> "
        b"2 0 obj << /Type /Page >> 3 0 obj << /Type/Page >>"
    )
    result = page_counter.count_pages(data)
    assert result.page_count == 2
    assert result.method == "type-page"


def test_kids_references():
    data = b"%PDF-1.4 << /Kids [4 0 R 5 0 R 6 0 R 7 0 R] >>"
    result = page_counter.count_pages(data)
    assert result.page_count == 4
    assert result.method == "kids"


def test_size_estimate_fallback():
    data = b"%PDF-1.4" + b"x" * 160_000
    result = page_counter.count_pages(data)

    assert result.success
    assert result.page_count == 3
    assert result.method == "size-estimation"


def test_size_estimate_minimum_one():
    assert page_counter.count_pages(b"%PDF-1.4 garbage").page_count == 1


def test_empty_buffer_fails():
    result = page_counter.count_pages(b"")

    assert not result.success
    assert result.page_count == 0
    assert result.error


@pytest.mark.parametrize("pages, expected", [(1, False), (30, False), (31, True)])
def test_needs_chunking(pages, expected):
    assert page_counter.needs_chunking(pages) is expected


def test_small_document_is_one_range():
    plan = page_counter.calculate_chunks(12)

    assert not plan.needs_chunking
    assert plan.chunk_count == 1
    assert plan.ranges == [PageRange(1, 12)]


@pytest.mark.parametrize("pages", [31, 45, 46, 100, 151])
def test_ranges_cover_every_page_once(pages):
    plan = page_counter.calculate_chunks(pages)

    assert plan.needs_chunking
    assert plan.chunk_count == -(-pages // 15)
    assert plan.ranges[0].start_page == 1
    assert plan.ranges[-1].end_page == pages
    for prev, cur in zip(plan.ranges, plan.ranges[1:]):
        assert cur.start_page == prev.end_page + 1
    assert sum(r.page_count for r in plan.ranges) == pages
    assert all(r.page_count <= 15 for r in plan.ranges)


def test_45_pages_make_three_chunks_of_fifteen():
    plan = page_counter.calculate_chunks(45)
    assert [r.page_count for r in plan.ranges] == [15, 15, 15]


def test_validate_page_count():
    assert page_counter.validate_page_count(10, 500_000) == (True, None)

    ok, warning = page_counter.validate_page_count(10, 5_000)
    assert not ok
    assert "small" in warning

    ok, warning = page_counter.validate_page_count(1, 20 * 1024 * 1024)
    assert not ok
    assert "large" in warning

    assert not page_counter.validate_page_count(0, 1000)[0]


def test_real_pdf_counts_match_pages():
    for pages in (2, 7, 31):
        assert page_counter.count_pages(build_pdf(pages)).page_count == pages
