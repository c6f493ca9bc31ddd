"""
config.py – Central settings for the follow-up report engine
=============================================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and adjust the values you need; every setting
has a working default.

Export layout values are millimetres on the page; they are converted to
PDF points by the paginator.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)

# Workspace root (src/followup/config.py → repo root)
_ROOT_DIR = Path(__file__).resolve().parent.parent.parent

PAGE_SIZES = ("A4", "LETTER")


# ─── Helpers ────────────────────────────────────────────────────────────────

def _float_or_default(value: str, default: float) -> float:
    """Parse a float, falling back to *default* on empty or malformed input."""
    try:
        return float(value) if value.strip() else default
    except ValueError:
        return default


# ─── Export layout ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExportConfig:
    page_size:            str     # "A4" | "LETTER"
    margin_mm:            float   # left/right printable margin
    top_mm:               float   # cursor start on every page
    bottom_mm:            float   # printable area ends this far above the page edge
    line_height_mm:       float
    title_line_height_mm: float
    block_margin_mm:      float   # vertical gap after every block
    chart_width_mm:       float
    chart_height_mm:      float
    chart_timeout_s:      float   # max wait for one off-screen chart capture
    text_charts_only:     bool    # skip rasterization, always use text lines

    @property
    def charts_enabled(self) -> bool:
        return not self.text_charts_only


# ─── Record store ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StoreConfig:
    db_path: Path

    @property
    def is_configured(self) -> bool:
        return bool(str(self.db_path))


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    counselor_id: str
    app_title:    str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    export: ExportConfig
    store:  StoreConfig
    app:    AppConfig

    def status_summary(self) -> dict[str, str]:
        """Return a dict of component → status badge for the UI."""
        def badge(ok: bool, on: str = "🟢 Enabled", off: str = "⚪ Disabled") -> str:
            return on if ok else off

        return {
            "Record store":        badge(self.store.is_configured, "🟢 " + self.store.db_path.name),
            "Chart rasterization": badge(self.export.charts_enabled, off="⚪ Text fallback only"),
            "Page format":         f"📄 {self.export.page_size}",
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str   = lambda k, d="": os.getenv(k, d).strip()
    _float = lambda k, d: _float_or_default(os.getenv(k, ""), d)
    _bool  = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    page_size = _str("EXPORT_PAGE_SIZE", "A4").upper()
    if page_size not in PAGE_SIZES:
        page_size = "A4"

    return Settings(
        export=ExportConfig(
            page_size            = page_size,
            margin_mm            = _float("EXPORT_MARGIN_MM", 15.0),
            top_mm               = _float("EXPORT_TOP_MM", 20.0),
            bottom_mm            = _float("EXPORT_BOTTOM_MM", 20.0),
            line_height_mm       = _float("EXPORT_LINE_HEIGHT_MM", 7.0),
            title_line_height_mm = _float("EXPORT_TITLE_LINE_HEIGHT_MM", 10.0),
            block_margin_mm      = _float("EXPORT_BLOCK_MARGIN_MM", 5.0),
            chart_width_mm       = _float("EXPORT_CHART_WIDTH_MM", 180.0),
            chart_height_mm      = _float("EXPORT_CHART_HEIGHT_MM", 80.0),
            chart_timeout_s      = _float("CHART_CAPTURE_TIMEOUT_S", 10.0),
            text_charts_only     = _bool("EXPORT_TEXT_CHARTS_ONLY", False),
        ),
        store=StoreConfig(
            db_path = Path(_str("FOLLOWUP_DB_PATH") or _ROOT_DIR / "followup_data.db"),
        ),
        app=AppConfig(
            counselor_id = _str("COUNSELOR_ID", "demo-counselor"),
            app_title    = _str("APP_TITLE", "Client Follow-ups"),
        ),
    )
