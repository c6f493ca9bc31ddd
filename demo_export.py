"""
demo_export.py – Terminal demo: preview and PDF export of a follow-up

Run:
    python demo_export.py [follow-up id]

Seeds the demo workspace on first run (see followup/seed_demo_data.py),
prints every preview section in a rich panel, then writes the exported
PDF next to this script.  Settings come from .env (see .env.example).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

# ── make src/ importable without installing the package ──────────────────────
sys.path.insert(0, str(Path(__file__).parent / "src"))

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from followup.config import get_settings
from followup.database import RecordStore, StoreError
from followup.export_trace import ExportTrace
from followup.exporter import ExportError, export_followup
from followup.preview import PARTNER_COLUMNS, PreviewSection, build_preview
from followup.repository import load_followup
from followup.seed_demo_data import DEMO_FOLLOWUP_ID, ensure_demo_data

console = Console()

STATUS_STYLE = {
    "rendered": "bold green",
    "fallback": "bold yellow",
    "raw":      "bold red",
}


# ─── Display helpers ─────────────────────────────────────────────────────────

def _bar(value: float, width: int = 10) -> str:
    filled = round(value / 10 * width)
    return "█" * filled + "░" * (width - filled)


def show_section(section: PreviewSection) -> None:
    body = Table(box=None, show_header=False, padding=(0, 1))
    body.add_column("Label", style="bold cyan", no_wrap=True)
    body.add_column("Value", style="white")

    if section.chart is not None:
        for label, value in zip(section.chart.labels, section.chart.values):
            body.add_row(label, f"{_bar(value)} {value:g}/10")
    else:
        for item in section.items:
            text = f"[bold]{escape(item.text)}[/bold]" if item.emphasis else escape(item.text)
            body.add_row(escape(item.label), text)

    if section.table:
        partners = Table(box=box.SIMPLE_HEAD, header_style="bold white on blue")
        for column in PARTNER_COLUMNS:
            partners.add_column(column)
        for row in section.table:
            partners.add_row(*row)
        body.add_row("", partners)

    if section.raw is not None:
        body.add_row("", f"[dim]{escape(section.raw)}[/dim]")

    border = "red" if section.raw is not None else "blue"
    console.print(Panel(body, title=f"[bold]{section.title}[/bold]", border_style=border))


def show_trace(trace: ExportTrace) -> None:
    table = Table(box=box.ROUNDED, header_style="bold magenta")
    table.add_column("Block")
    table.add_column("Status", justify="center")
    table.add_column("Pages", justify="center")
    table.add_column("ms", justify="right")
    table.add_column("Warnings", style="dim")
    for row, step in zip(trace.rows(), trace.steps):
        style = STATUS_STYLE.get(step.status, "white")
        table.add_row(row["Block"], f"[{style}]{row['Status']}[/{style}]",
                      row["Pages"], f"{row['ms']:.1f}", escape(row["Warnings"]))
    console.print(Panel(table, title=f"[bold]Export trace {trace.export_id}[/bold]",
                        border_style="magenta"))


# ─── Main ────────────────────────────────────────────────────────────────────

async def run(followup_id: str) -> None:
    settings = get_settings()
    store = RecordStore(settings.store.db_path)
    if ensure_demo_data(store, settings.app.counselor_id):
        console.print("[dim]Demo workspace seeded.[/dim]")

    loaded = await load_followup(store, settings.app.counselor_id, followup_id)
    if loaded is None:
        console.print(f"[bold red]Follow-up '{followup_id}' not found.[/bold red]")
        sys.exit(1)

    console.rule(f"[bold blue]Preview: {loaded.followup.client_name} · "
                 f"{loaded.followup.template_name}[/bold blue]")
    if not loaded.issues.clean:
        console.print(Panel(escape(loaded.issues.summary()), title="[bold]Adjusted on load[/bold]",
                            border_style="yellow"))
    for section in build_preview(loaded.template, loaded.followup):
        show_section(section)

    with console.status("Exporting PDF…"):
        doc = await export_followup(loaded.template, loaded.followup, settings.export)
    out_path = Path(__file__).parent / doc.filename
    out_path.write_bytes(doc.data)

    show_trace(doc.trace)
    console.print(f"[bold green]✓[/bold green] {doc.page_count} page(s) written to {out_path}")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s",
                        handlers=[RichHandler(console=console, show_path=False)])
    console.print(Panel(
        "[bold]Client follow-ups[/bold]\n"
        "[dim]Preview  •  PDF export with chart rasterization[/dim]",
        style="on blue",
        expand=False,
    ))

    followup_id = sys.argv[1] if len(sys.argv) > 1 else DEMO_FOLLOWUP_ID
    try:
        asyncio.run(run(followup_id))

    except (StoreError, ExportError) as e:
        console.print(f"\n[bold red]Export failed:[/bold red] {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
