"""
paginator.py – Cursor-based page layout on a reportlab canvas
==============================================================
Keeps a vertical cursor (millimetres from the top edge) and a page index,
both reset when the Paginator is created.  Every write declares its
height up front; when the cursor plus that height would pass the
printable bottom, the page is broken *before* the write.

Atomic writes
-------------
  write_line      one text line                     (height = line height)
  place_image     one bitmap of fixed size          (height = advance)
  draw_table_row  one table row, wrapped cells      (height = measured row)

A wrapped paragraph is a sequence of write_line calls, so it may flow
across pages line by line; an image or a table row never does.

Every write is appended to `placements`, which is what the tests assert
against (the canvas itself is write-only).
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Sequence

from reportlab.lib import colors as rl_colors
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import Paragraph, Table, TableStyle

logger = logging.getLogger(__name__)

HEADER_BLUE = rl_colors.HexColor("#0078D4")
ROW_GRID    = rl_colors.HexColor("#D1D5DB")


@dataclass
class Placement:
    """One write as laid out: page (1-based), top edge and height in mm."""
    kind:      str          # "text" | "image" | "row"
    page:      int
    top_mm:    float
    height_mm: float
    text:      str = ""

    @property
    def bottom_mm(self) -> float:
        return self.top_mm + self.height_mm


class Paginator:
    def __init__(
        self,
        canvas: Canvas,
        pagesize: tuple[float, float],
        margin_mm: float = 15,
        top_mm: float = 20,
        bottom_mm: float = 20,
        line_height_mm: float = 7,
        font: str = "Helvetica",
        font_size: float = 10,
    ) -> None:
        self.canvas = canvas
        page_w, page_h = pagesize
        self.page_width_mm  = page_w / mm
        self.page_height_mm = page_h / mm
        self.margin_mm      = margin_mm
        self.top_mm         = top_mm
        self.bottom_limit_mm = self.page_height_mm - bottom_mm
        self.line_height_mm = line_height_mm
        self.font           = font
        self.font_size      = font_size

        self.cursor_mm  = top_mm
        self.page_index = 1
        self.placements: list[Placement] = []

        styles = getSampleStyleSheet()
        self._cell_style = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=9, leading=11)
        self._head_style = ParagraphStyle("CellHead", parent=self._cell_style,
                                          fontName="Helvetica-Bold", textColor=rl_colors.white)

    # ── Geometry ──────────────────────────────────────────────────────────────

    @property
    def content_width_mm(self) -> float:
        return self.page_width_mm - 2 * self.margin_mm

    @property
    def printable_height_mm(self) -> float:
        return self.bottom_limit_mm - self.top_mm

    @property
    def remaining_mm(self) -> float:
        return self.bottom_limit_mm - self.cursor_mm

    @property
    def page_count(self) -> int:
        return self.page_index

    def _y(self, from_top_mm: float) -> float:
        """Canvas y (points, origin bottom-left) for a distance from the top edge."""
        return (self.page_height_mm - from_top_mm) * mm

    # ── Page breaks ───────────────────────────────────────────────────────────

    def new_page(self) -> None:
        self.canvas.showPage()
        self.page_index += 1
        self.cursor_mm = self.top_mm
        logger.debug("Page break → page %d", self.page_index)

    def ensure_space(self, height_mm: float) -> bool:
        """
        Break the page when *height_mm* does not fit below the cursor.
        A write taller than a whole page is placed at the top of a fresh
        page rather than looping.  Returns True when a break happened.
        """
        if self.cursor_mm + height_mm <= self.bottom_limit_mm:
            return False
        if self.cursor_mm <= self.top_mm:
            return False
        self.new_page()
        return True

    def advance(self, height_mm: float) -> None:
        self.cursor_mm += height_mm

    # ── Atomic writes ─────────────────────────────────────────────────────────

    def write_line(
        self,
        text: str,
        font: Optional[str] = None,
        font_size: Optional[float] = None,
        height_mm: Optional[float] = None,
        align: str = "left",
    ) -> Placement:
        height = height_mm if height_mm is not None else self.line_height_mm
        self.ensure_space(height)
        font = font or self.font
        size = font_size or self.font_size

        self.canvas.setFont(font, size)
        baseline = self._y(self.cursor_mm + height * 0.7)
        if align == "center":
            self.canvas.drawCentredString(self.page_width_mm / 2 * mm, baseline, text)
        else:
            self.canvas.drawString(self.margin_mm * mm, baseline, text)

        placement = Placement("text", self.page_index, self.cursor_mm, height, text)
        self.placements.append(placement)
        self.cursor_mm += height
        return placement

    def wrap(self, text: str, font: Optional[str] = None, font_size: Optional[float] = None) -> list[str]:
        return simpleSplit(text, font or self.font, font_size or self.font_size,
                           self.content_width_mm * mm)

    def write_wrapped(self, text: str, font: Optional[str] = None, font_size: Optional[float] = None) -> int:
        """Word-wrap *text* to the content width; each line is break-checked. Returns line count."""
        lines = self.wrap(text, font, font_size) or [""]
        for line in lines:
            self.write_line(line, font=font, font_size=font_size)
        return len(lines)

    def place_image(
        self,
        data: bytes,
        width_mm: float,
        height_mm: float,
        advance_mm: Optional[float] = None,
    ) -> Placement:
        """Draw a PNG/JPEG at the cursor; the cursor then moves by *advance_mm*."""
        advance = advance_mm if advance_mm is not None else height_mm
        self.ensure_space(advance)
        image = ImageReader(BytesIO(data))
        self.canvas.drawImage(
            image,
            self.margin_mm * mm,
            self._y(self.cursor_mm + height_mm),
            width=width_mm * mm,
            height=height_mm * mm,
            preserveAspectRatio=True,
            anchor="c",
        )
        placement = Placement("image", self.page_index, self.cursor_mm, advance)
        self.placements.append(placement)
        self.cursor_mm += advance
        return placement

    def draw_table_row(
        self,
        cells: Sequence[str],
        col_widths_mm: Sequence[float],
        header: bool = False,
    ) -> Placement:
        style = self._head_style if header else self._cell_style
        row = [Paragraph(html.escape(cell, quote=False), style) for cell in cells]
        table = Table([row], colWidths=[w * mm for w in col_widths_mm])
        commands = [
            ("GRID",          (0, 0), (-1, -1), 0.5, ROW_GRID),
            ("VALIGN",        (0, 0), (-1, -1), "TOP"),
            ("TOPPADDING",    (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ]
        if header:
            commands.append(("BACKGROUND", (0, 0), (-1, -1), HEADER_BLUE))
        table.setStyle(TableStyle(commands))

        _, height_pts = table.wrap(sum(col_widths_mm) * mm, self.printable_height_mm * mm)
        height = height_pts / mm
        self.ensure_space(height)
        table.drawOn(self.canvas, self.margin_mm * mm, self._y(self.cursor_mm + height))

        placement = Placement("row", self.page_index, self.cursor_mm, height, " | ".join(cells))
        self.placements.append(placement)
        self.cursor_mm += height
        return placement
