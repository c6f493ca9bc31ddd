"""
exporter.py – Paginated PDF export of a filled template
========================================================
Walks the template's blocks in order, resolves each one against a single
answer snapshot and lays it out with the Paginator.  Charts for
multi-question scale blocks are captured lazily, one block at a time,
through the ChartRasterizerBridge.

Per block
---------
  1. title line (page-break-checked)
  2. variant content:
       Scale            chart image, or one "label: value/10" line per question
       FreeText         wrapped text
       Report           wrapped narrative + partner table (Name / Specialties)
       ScoredOutcome    per question: text, selected answer, result text;
                        then the plurality outcome text when there is one
       Choice           same as ScoredOutcome, without the outcome
       CardDraw         one line per drawn card, or a notice when none were drawn
       ProfileScore /   one labelled list per non-empty sub-group; nothing
       Match            for empty sub-groups
       Raw              the dumped answer, in a monospace font
  3. inter-block margin

Failure handling
----------------
  Capture failure   → that scale block's text lines  (trace: "fallback")
  Block failure     → a one-line notice for that block, then the next block
  Emission failure  → ExportError (nothing to download)
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import re
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4, LETTER
from reportlab.pdfgen.canvas import Canvas

from followup.config import ExportConfig, get_settings
from followup.export_trace import (
    STATUS_FALLBACK,
    STATUS_RAW,
    BlockStep,
    ExportTrace,
    new_trace,
)
from followup.models import FollowUp, Template
from followup.paginator import Paginator, Placement
from followup.rasterizer import ChartRasterizerBridge, MatplotlibRasterizer, RasterizationError
from followup.resolvers import (
    MATCH_NOT_RUN_TEXT,
    NOT_ANSWERED,
    NO_CARDS_TEXT,
    CardDrawResult,
    ChoiceLine,
    ChoiceResult,
    FreeTextResult,
    MatchResultView,
    ProfileScoreResult,
    RawResult,
    ReportResult,
    ResolvedResult,
    ScaleResult,
    ScoredOutcomeResult,
    format_scale_value,
    position_label,
    resolve_all,
)

logger = logging.getLogger(__name__)

PAGE_FORMATS = {"A4": A4, "LETTER": LETTER}

FONT        = "Helvetica"
FONT_BOLD   = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"
FONT_MONO   = "Courier"

IMAGE_GAP_MM          = 10     # space kept below a chart image
PARTNER_NAME_WIDTH_MM = 60


class ExportError(Exception):
    """The document could not be produced at all."""


@dataclass
class ExportedDocument:
    filename:   str
    data:       bytes
    trace:      ExportTrace
    placements: list[Placement] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return self.trace.page_count


def export_filename(client_name: str, today: Optional[datetime.date] = None) -> str:
    """FollowUp_<client name, spaces → _>_<YYYY-MM-DD>.pdf"""
    day = (today or datetime.date.today()).isoformat()
    name = re.sub(r"\s+", "_", client_name.strip()) or "client"
    return f"FollowUp_{name}_{day}.pdf"


# ─── Block writers ────────────────────────────────────────────────────────────

def _scale_lines(pager: Paginator, result: ScaleResult) -> None:
    for line in result.lines:
        pager.write_line(f"{line.text}: {format_scale_value(line.value)}/10")


def _choice_lines(pager: Paginator, lines: list[ChoiceLine]) -> None:
    for line in lines:
        pager.write_wrapped(line.question_text, font=FONT_BOLD)
        pager.write_wrapped(line.selected_answer_text or str(NOT_ANSWERED))
        if line.selected_result_text:
            pager.write_wrapped(line.selected_result_text, font=FONT_ITALIC)


def _groups(pager: Paginator, groups: list[tuple[str, list[str]]]) -> None:
    for label, names in groups:
        pager.write_line(label, font=FONT_BOLD)
        for name in names:
            pager.write_wrapped(f"• {name}")


def _partners(pager: Paginator, result: ReportResult) -> None:
    widths = [PARTNER_NAME_WIDTH_MM, pager.content_width_mm - PARTNER_NAME_WIDTH_MM]
    pager.draw_table_row(["Name", "Specialties"], widths, header=True)
    for partner in result.partners:
        pager.draw_table_row([partner.name, ", ".join(partner.specialties)], widths)


async def _write_block(
    pager: Paginator,
    result: ResolvedResult,
    bridge: Optional[ChartRasterizerBridge],
    cfg: ExportConfig,
    step: BlockStep,
) -> None:
    pager.write_line(result.title, font=FONT_BOLD, font_size=12, height_mm=cfg.title_line_height_mm)

    if isinstance(result, ScaleResult):
        if result.chartable and bridge is not None:
            try:
                image = await bridge.capture(result.block_id)
            except RasterizationError as exc:
                step.status = STATUS_FALLBACK
                step.warnings.append(str(exc))
            else:
                pager.place_image(image, cfg.chart_width_mm, cfg.chart_height_mm,
                                  advance_mm=cfg.chart_height_mm + IMAGE_GAP_MM)
                return
        elif result.chartable:
            step.status = STATUS_FALLBACK
            step.warnings.append("Chart rasterization disabled")
        _scale_lines(pager, result)

    elif isinstance(result, FreeTextResult):
        pager.write_wrapped(str(result.text))

    elif isinstance(result, ReportResult):
        pager.write_wrapped(result.narrative or str(NOT_ANSWERED))
        if result.partners:
            _partners(pager, result)

    elif isinstance(result, ScoredOutcomeResult):
        _choice_lines(pager, result.lines)
        if result.outcome_text:
            pager.write_wrapped(result.outcome_text, font=FONT_BOLD)

    elif isinstance(result, ChoiceResult):
        _choice_lines(pager, result.lines)

    elif isinstance(result, CardDrawResult):
        if not result.drawn:
            pager.write_line(NO_CARDS_TEXT, font=FONT_ITALIC)
        for drawn in result.drawn:
            pager.write_line(f"{position_label(drawn)}: {drawn.card.name}")

    elif isinstance(result, (ProfileScoreResult, MatchResultView)):
        if result.snapshot is None:
            pager.write_line(MATCH_NOT_RUN_TEXT, font=FONT_ITALIC)
        else:
            _groups(pager, result.groups())

    elif isinstance(result, RawResult):
        step.status = STATUS_RAW
        pager.write_wrapped(result.dump, font=FONT_MONO, font_size=8)

    else:
        step.status = STATUS_RAW
        pager.write_wrapped(repr(result), font=FONT_MONO, font_size=8)


# ─── Export ───────────────────────────────────────────────────────────────────

def _new_canvas(buf: BytesIO, cfg: ExportConfig, followup: FollowUp) -> tuple[Canvas, tuple[float, float]]:
    pagesize = PAGE_FORMATS.get(cfg.page_size, A4)
    try:
        canvas = Canvas(buf, pagesize=pagesize)
        canvas.setTitle(f"Follow-up for {followup.client_name}")
        canvas.setAuthor("followup")
    except Exception as exc:
        raise ExportError(f"Could not open a document canvas: {exc}") from exc
    return canvas, pagesize


def _default_bridge(cfg: ExportConfig) -> Optional[ChartRasterizerBridge]:
    if not cfg.charts_enabled:
        return None
    return ChartRasterizerBridge(
        MatplotlibRasterizer(cfg.chart_width_mm, cfg.chart_height_mm),
        timeout_s=cfg.chart_timeout_s,
    )


async def export_followup(
    template: Template,
    followup: FollowUp,
    cfg: Optional[ExportConfig] = None,
    bridge: Optional[ChartRasterizerBridge] = None,
    today: Optional[datetime.date] = None,
) -> ExportedDocument:
    """
    Export one follow-up as a PDF.  *template* and *followup* are treated
    as an immutable snapshot for the whole pass.  Pass *bridge* to use a
    different rasterizer; by default charts are painted with matplotlib
    unless the config disables rasterization.
    """
    cfg = cfg or get_settings().export
    if bridge is None:
        bridge = _default_bridge(cfg)
    elif not cfg.charts_enabled:
        bridge = None

    t0 = time.perf_counter()
    results = resolve_all(template, followup)
    if bridge is not None:
        bridge.mount(results)

    buf = BytesIO()
    canvas, pagesize = _new_canvas(buf, cfg, followup)
    pager = Paginator(
        canvas, pagesize,
        margin_mm      = cfg.margin_mm,
        top_mm         = cfg.top_mm,
        bottom_mm      = cfg.bottom_mm,
        line_height_mm = cfg.line_height_mm,
        font           = FONT,
    )
    trace = new_trace(followup.client_name, followup.template_name or template.name)

    # ── Header ────────────────────────────────────────────────────────────────
    pager.write_line(f"Follow-up for {followup.client_name}", font=FONT_BOLD, font_size=16,
                     height_mm=cfg.title_line_height_mm, align="center")
    pager.write_line(f"Template: {followup.template_name or template.name}", font_size=11,
                     align="center")
    pager.advance(cfg.block_margin_mm)

    # ── Blocks ────────────────────────────────────────────────────────────────
    for result in results:
        started = time.perf_counter()
        step = BlockStep(result.block_id, result.title, type(result).__name__,
                         first_page=pager.page_index)
        try:
            await _write_block(pager, result, bridge, cfg, step)
        except Exception as exc:
            logger.warning("Block '%s' could not be rendered: %s", result.block_id, exc)
            step.status = STATUS_FALLBACK
            step.warnings.append(f"Render failed: {exc}")
            pager.write_line("This section could not be rendered.", font=FONT_ITALIC)
        pager.advance(cfg.block_margin_mm)

        step.last_page = pager.page_index
        step.duration_ms = (time.perf_counter() - started) * 1000
        trace.append(step)
        logger.debug("Block '%s' → %s (pages %d-%d)", step.block_id, step.status,
                     step.first_page, step.last_page)

    if bridge is not None:
        bridge.unmount()

    # ── Emission ──────────────────────────────────────────────────────────────
    try:
        await asyncio.to_thread(canvas.save)
    except Exception as exc:
        raise ExportError(f"Could not write the PDF: {exc}") from exc

    trace.page_count = pager.page_count
    trace.total_ms = (time.perf_counter() - t0) * 1000
    counts = trace.counts()
    logger.info(
        "Exported follow-up '%s': %d page(s), %d block(s), %d fallback, %d raw",
        followup.id, trace.page_count, len(trace.steps),
        counts[STATUS_FALLBACK], counts[STATUS_RAW],
    )
    return ExportedDocument(
        filename   = export_filename(followup.client_name, today),
        data       = buf.getvalue(),
        trace      = trace,
        placements = list(pager.placements),
    )
