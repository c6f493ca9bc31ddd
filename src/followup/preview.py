"""
preview.py – On-screen preview of a filled template
====================================================
Turns the ordered list of resolved results into PreviewSections: a plain
view model the Streamlit page and the terminal demo both draw, plus
render_preview_html() for a standalone HTML rendering.

One section per block, in template order.  A block whose result is a
RawResult still gets its section (title + dump); nothing is omitted.
The preview is a read view: it never writes answers back.
"""

from __future__ import annotations

import html
import textwrap
from dataclasses import dataclass, field
from typing import Optional

from followup.charts import ChartSpec, chart_spec, radar_figure
from followup.models import FollowUp, Template
from followup.resolvers import (
    MATCH_NOT_RUN_TEXT,
    NOT_ANSWERED,
    NO_CARDS_TEXT,
    OUTCOME_NONE_TEXT,
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

NA_TEXT = "N/A"
PARTNER_COLUMNS = ("Name", "Contact", "Specialties")


@dataclass
class PreviewItem:
    label:    str
    text:     str = ""
    emphasis: bool = False


@dataclass
class PreviewSection:
    block_id: str
    title:    str
    kind:     str                               # result class name, e.g. "ScaleResult"
    items:    list[PreviewItem] = field(default_factory=list)
    chart:    Optional[ChartSpec] = None
    table:    list[tuple[str, ...]] = field(default_factory=list)
    raw:      Optional[str] = None


# ─── Per-result builders ──────────────────────────────────────────────────────

def _scale_items(result: ScaleResult) -> list[PreviewItem]:
    items = []
    for line in result.lines:
        if not result.chartable and not line.answered:
            value = NA_TEXT
        else:
            value = f"{format_scale_value(line.value)}/10"
        items.append(PreviewItem(label=line.text, text=value))
    return items


def _choice_items(lines: list[ChoiceLine]) -> list[PreviewItem]:
    items = []
    for line in lines:
        items.append(PreviewItem(label=line.question_text,
                                 text=line.selected_answer_text or str(NOT_ANSWERED)))
        if line.selected_result_text:
            items.append(PreviewItem(label="", text=line.selected_result_text))
    return items


def _section(result: ResolvedResult) -> PreviewSection:
    section = PreviewSection(result.block_id, result.title, type(result).__name__)

    if isinstance(result, ScaleResult):
        section.items = _scale_items(result)
        section.chart = chart_spec(result)

    elif isinstance(result, FreeTextResult):
        section.items = [PreviewItem(label="", text=str(result.text))]

    elif isinstance(result, ReportResult):
        section.items = [PreviewItem(label="", text=result.narrative or str(NOT_ANSWERED))]
        section.table = [
            (p.name, " / ".join(filter(None, [p.email, p.phone])), ", ".join(p.specialties))
            for p in result.partners
        ]

    elif isinstance(result, ScoredOutcomeResult):
        section.items = _choice_items(result.lines)
        section.items.append(PreviewItem(
            label="Outcome", text=result.outcome_text or OUTCOME_NONE_TEXT,
            emphasis=result.outcome_text is not None,
        ))

    elif isinstance(result, ChoiceResult):
        section.items = _choice_items(result.lines)

    elif isinstance(result, CardDrawResult):
        section.items = [
            PreviewItem(
                label=position_label(d),
                text=f"{d.card.name} ({d.card.description})" if d.card.description else d.card.name,
            )
            for d in result.drawn
        ] or [PreviewItem(label="", text=NO_CARDS_TEXT)]

    elif isinstance(result, (ProfileScoreResult, MatchResultView)):
        groups = result.groups()
        if result.snapshot is None:
            section.items = [PreviewItem(label="", text=MATCH_NOT_RUN_TEXT)]
        else:
            section.items = [PreviewItem(label=label, text=", ".join(names)) for label, names in groups]

    elif isinstance(result, RawResult):
        section.raw = result.dump
        section.items = [PreviewItem(label="", text=f"Unrecognised block ({result.type_name or 'unknown'})")]

    return section


def build_preview(template: Template, followup: FollowUp) -> list[PreviewSection]:
    """Resolve every block against one answer snapshot and build its section."""
    return [_section(result) for result in resolve_all(template, followup)]


# ─── HTML rendering ───────────────────────────────────────────────────────────

def _item_html(item: PreviewItem) -> str:
    text = html.escape(item.text)
    if item.emphasis:
        text = f"<b>{text}</b>"
    if not item.label:
        return f'<p style="margin:4px 0;white-space:pre-wrap;">{text}</p>'
    return (f'<p style="margin:4px 0;"><span style="color:#555;font-weight:600;">'
            f'{html.escape(item.label)}:</span> {text}</p>')


def _table_html(rows: list[tuple[str, ...]]) -> str:
    head = "".join(f'<th style="padding:6px 10px;text-align:left;">{c}</th>' for c in PARTNER_COLUMNS)
    body = "".join(
        "<tr>" + "".join(
            f'<td style="padding:6px 10px;border-bottom:1px solid #eee;">{html.escape(cell)}</td>'
            for cell in row
        ) + "</tr>"
        for row in rows
    )
    return (f'<table style="width:100%;border-collapse:collapse;background:white;">'
            f'<thead><tr style="background:#0078D4;color:white;">{head}</tr></thead>'
            f'<tbody>{body}</tbody></table>')


def render_preview_html(
    sections: list[PreviewSection],
    heading: str = "",
    include_charts: bool = False,
) -> str:
    """
    Standalone HTML fragment for *sections*.  With include_charts the radar
    charts are embedded as plotly divs (plotly.js loaded from the CDN);
    otherwise chartable scales show their per-question values only.
    """
    parts = []
    if heading:
        parts.append(f'<h2 style="color:#0078D4;margin:0 0 12px;">{html.escape(heading)}</h2>')

    for section in sections:
        body = "".join(_item_html(i) for i in section.items)
        if section.chart is not None and include_charts:
            body = radar_figure(section.chart).to_html(full_html=False, include_plotlyjs="cdn") + body
        if section.table:
            body += _table_html(section.table)
        if section.raw is not None:
            body += (f'<pre style="background:#f3f4f6;padding:8px;border-radius:4px;">'
                     f'{html.escape(section.raw)}</pre>')
        parts.append(textwrap.dedent(f"""
        <div style="background:white;border-left:4px solid #0078D4;border-radius:8px;
                    padding:12px 16px;margin-bottom:12px;" id="block-{html.escape(section.block_id)}">
          <h3 style="margin:0 0 8px;">{html.escape(section.title)}</h3>
          {body}
        </div>"""))

    return "\n".join(parts)
