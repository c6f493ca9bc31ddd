"""
charts.py – Radar charts for multi-question scale blocks.

Two renderings of the same ChartSpec:
  radar_figure()       plotly figure for the live, interactive preview
  matplotlib_radar()   matplotlib figure the off-screen rasterizer paints
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

import plotly.graph_objects as go
from matplotlib.figure import Figure

from followup.resolvers import ScaleResult

BLUE      = "#0078D4"
BLUE_FILL = "rgba(0,120,212,0.15)"
SCALE_MAX = 10


@dataclass
class ChartSpec:
    """Labels and 0–10 values of one radar chart, in sub-question order."""
    block_id: str
    title:    str
    labels:   list[str] = field(default_factory=list)
    values:   list[float] = field(default_factory=list)

    def closed(self) -> tuple[list[str], list[float]]:
        """Labels and values with the first point repeated to close the polygon."""
        if not self.labels:
            return [], []
        return self.labels + self.labels[:1], self.values + self.values[:1]


def chart_spec(result: ScaleResult) -> Optional[ChartSpec]:
    """A ChartSpec for a chartable scale result, None for scalar scales."""
    if not result.chartable:
        return None
    points = result.chart_points()
    return ChartSpec(
        block_id = result.block_id,
        title    = result.title,
        labels   = [label for label, _ in points],
        values   = [value for _, value in points],
    )


def radar_figure(spec: ChartSpec, height: int = 360) -> go.Figure:
    labels, values = spec.closed()
    fig = go.Figure()
    fig.add_trace(go.Scatterpolar(
        r=values,
        theta=labels,
        fill="toself",
        name=spec.title,
        line=dict(color=BLUE, width=2),
        fillcolor=BLUE_FILL,
    ))
    fig.update_layout(
        polar=dict(
            radialaxis=dict(visible=True, range=[0, SCALE_MAX], gridcolor="#e0e0e0", linecolor="#e0e0e0"),
            angularaxis=dict(linecolor="#cccccc"),
            bgcolor="white",
        ),
        showlegend=False,
        margin=dict(t=30, b=30, l=60, r=60),
        height=height,
        paper_bgcolor="white",
    )
    return fig


def matplotlib_radar(spec: ChartSpec, width_mm: float = 180, height_mm: float = 80, dpi: int = 150) -> Figure:
    """
    Build a radar figure sized to the slot it will fill in the document.
    Uses Figure directly (no pyplot state) so it can be painted from a
    worker thread.
    """
    n = len(spec.labels)
    angles = [2 * math.pi * i / n for i in range(n)] if n else []
    values = list(spec.values)
    if n:
        angles += angles[:1]
        values += values[:1]

    fig = Figure(figsize=(width_mm / 25.4, height_mm / 25.4), dpi=dpi)
    ax = fig.add_subplot(111, polar=True)
    ax.set_theta_offset(math.pi / 2)
    ax.set_theta_direction(-1)
    ax.plot(angles, values, linewidth=2, color=BLUE)
    ax.fill(angles, values, color=BLUE, alpha=0.2)
    if n:
        ax.set_thetagrids([math.degrees(a) for a in angles[:-1]], spec.labels, fontsize=7)
    ax.set_ylim(0, SCALE_MAX)
    ax.tick_params(axis="y", labelsize=6)
    fig.tight_layout()
    return fig
