"""
followup – Client assessment engine and report generator
=========================================================
Package containing the assessment block schema, per-block result
resolvers, the matching and scoring algorithms, the on-screen preview
model, the chart rasterizer bridge and the paginated PDF exporter.

Module map
----------
  models.py          Block variants, Template, FollowUp, typed answers,
                     catalog and match-result types.
  normalize.py       Record-store boundary: raw JSON → typed models,
                     with an issue log for dropped / coerced data.
  config.py          Settings loaded from .env (export layout, store, app).
  database.py        SQLite JSON document store (record store).
  repository.py      Async load/save of templates, follow-ups, snapshots.
  preferences.py     Injectable "last selected client" preference.

  scoring.py         Plurality resolution for scored-outcome blocks.
  matching.py        Exclusion / target / profile recommendation engine.
  profile_score.py   Trait-criteria match percentage (explicit action).
  card_draw.py       Random and manual card draws into spread positions.
  resolvers.py       (block, answer) → display-ready resolved result.

  charts.py          Radar chart spec, plotly and matplotlib figures.
  rasterizer.py      Off-screen chart mounting + best-effort PNG capture.
  preview.py         On-screen section model + HTML rendering.
  paginator.py       Cursor-based page layout on a reportlab canvas.
  exporter.py        Per-block PDF export with textual fallbacks.
  export_trace.py    Per-block export audit log.

Export order
------------
  load_template + load_followup  (one snapshot per pass)
  → ChartRasterizerBridge.mount  (one off-screen chart per multi-question scale)
  → for each block, in template order:
        resolve → [await capture] → paginate → ExportTrace step
  → canvas.save() → ExportedDocument(filename, data, trace)
"""
__version__ = "0.1.0"
