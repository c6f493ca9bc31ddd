"""
Tests for cursor-based page layout (followup/paginator.py).
A4 with 20 mm top/bottom margins: the printable band runs from 20 to 277 mm.
"""
from io import BytesIO

import pytest
from factories import png_bytes
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen.canvas import Canvas

from followup.paginator import Paginator


@pytest.fixture
def paginator():
    return Paginator(Canvas(BytesIO(), pagesize=A4), A4)


class TestGeometry:
    def test_a4_band(self, paginator):
        assert paginator.page_height_mm == pytest.approx(297, abs=0.1)
        assert paginator.bottom_limit_mm == pytest.approx(277, abs=0.1)
        assert paginator.content_width_mm == pytest.approx(180, abs=0.1)
        assert paginator.cursor_mm == 20
        assert paginator.page_index == 1


class TestPageBreaks:
    def test_line_that_would_overflow_goes_to_next_page(self, paginator):
        for i in range(37):
            paginator.write_line(f"line {i}")
        last_on_first = paginator.placements[35]
        overflow = paginator.placements[36]
        assert last_on_first.page == 1 and last_on_first.bottom_mm <= paginator.bottom_limit_mm
        assert overflow.page == 2 and overflow.top_mm == 20
        assert paginator.page_count == 2

    def test_no_write_crosses_the_bottom(self, paginator):
        for i in range(120):
            paginator.write_line(f"line {i}")
        assert all(p.bottom_mm <= paginator.bottom_limit_mm + 1e-6 for p in paginator.placements)

    def test_image_is_never_split(self, paginator):
        paginator.advance(250 - paginator.cursor_mm)
        placement = paginator.place_image(png_bytes(), 180, 80, advance_mm=90)
        assert placement.page == 2
        assert placement.top_mm == 20
        assert placement.height_mm == 90
        assert paginator.cursor_mm == 110

    def test_image_that_fits_stays(self, paginator):
        placement = paginator.place_image(png_bytes(), 180, 80, advance_mm=90)
        assert (placement.page, placement.top_mm) == (1, 20)

    def test_table_row_is_never_split(self, paginator):
        paginator.advance(270 - paginator.cursor_mm)
        long_text = "Osteopathy, sports injuries, posture, breathing, " * 4
        placement = paginator.draw_table_row(["Dr. Claire Dubois", long_text], [60, 120])
        assert placement.height_mm > 7
        assert placement.page == 2
        assert placement.top_mm == 20

    def test_oversized_write_at_top_does_not_loop(self, paginator):
        placement = paginator.place_image(png_bytes(), 180, 300)
        assert placement.page == 1
        assert paginator.page_count == 1


class TestWrapping:
    def test_long_paragraph_wraps_to_content_width(self, paginator):
        text = "Alice reports better sleep since the last session. " * 10
        count = paginator.write_wrapped(text)
        assert count > 1
        assert len(paginator.placements) == count
        assert all(p.kind == "text" for p in paginator.placements)

    def test_wrapped_paragraph_flows_across_pages(self, paginator):
        paginator.advance(270 - paginator.cursor_mm)
        paginator.write_wrapped("word " * 200)
        pages = {p.page for p in paginator.placements}
        assert pages == {1, 2}

    def test_empty_text_still_takes_a_line(self, paginator):
        assert paginator.write_wrapped("") == 1
        assert paginator.cursor_mm == 27
