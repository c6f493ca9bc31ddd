"""
export_trace.py – Audit log for document exports
=================================================
Every block the exporter walks emits a BlockStep.  The exporter collects
the steps into an ExportTrace and returns it with the document; the
Streamlit Export tab and the terminal demo render it as a table.

Data model
----------
  BlockStep      One block's contribution: status, page span, timing, warnings.
  ExportTrace    Full trace for one export pass; ordered list of BlockSteps.

Key fields
----------
  BlockStep.status       "rendered" | "fallback" | "raw"
                           rendered  content written as designed
                           fallback  chart capture failed, text lines written instead,
                                     or a per-block failure degraded to a notice
                           raw       block variant unknown, answer dumped verbatim
  BlockStep.first_page   page the block's title landed on (1-based)
  BlockStep.last_page    page the block's last write landed on
  ExportTrace.total_ms   end-to-end export wall time
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import asdict, dataclass, field

STATUS_RENDERED = "rendered"
STATUS_FALLBACK = "fallback"
STATUS_RAW      = "raw"

STATUS_ICONS = {
    STATUS_RENDERED: "✅",
    STATUS_FALLBACK: "⚠️",
    STATUS_RAW:      "🧾",
}


@dataclass
class BlockStep:
    """One block's contribution inside an export pass."""
    block_id:    str
    title:       str
    kind:        str                # resolved result class, e.g. "ScaleResult"
    status:      str = STATUS_RENDERED
    first_page:  int = 1
    last_page:   int = 1
    duration_ms: float = 0.0
    warnings:    list[str] = field(default_factory=list)

    @property
    def icon(self) -> str:
        return STATUS_ICONS.get(self.status, "•")


@dataclass
class ExportTrace:
    """Full trace for a single export."""
    export_id:     str
    client_name:   str
    template_name: str
    timestamp:     str
    page_count:    int = 0
    total_ms:      float = 0.0
    steps:         list[BlockStep] = field(default_factory=list)

    def append(self, step: BlockStep) -> None:
        self.steps.append(step)

    def counts(self) -> dict[str, int]:
        out = {STATUS_RENDERED: 0, STATUS_FALLBACK: 0, STATUS_RAW: 0}
        for step in self.steps:
            out[step.status] = out.get(step.status, 0) + 1
        return out

    @property
    def degraded(self) -> list[BlockStep]:
        return [s for s in self.steps if s.status != STATUS_RENDERED]

    def to_dict(self) -> dict:
        return asdict(self)

    def rows(self) -> list[dict]:
        """Flat rows for a table widget."""
        return [
            {
                "Block":    s.title,
                "Status":   f"{s.icon} {s.status}",
                "Pages":    str(s.first_page) if s.first_page == s.last_page
                            else f"{s.first_page}–{s.last_page}",
                "ms":       round(s.duration_ms, 1),
                "Warnings": "; ".join(s.warnings),
            }
            for s in self.steps
        ]


def new_trace(client_name: str, template_name: str) -> ExportTrace:
    return ExportTrace(
        export_id     = str(uuid.uuid4())[:8].upper(),
        client_name   = client_name,
        template_name = template_name,
        timestamp     = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )
