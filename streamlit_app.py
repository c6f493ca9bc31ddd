# streamlit_app.py – Client follow-ups
# Preview, recommendation matching, profile score, card draw and PDF export of filled assessment templates

import asyncio
import sys
from pathlib import Path

# make src/ importable without installing the package
sys.path.insert(0, str(Path(__file__).parent / "src"))

import pandas as pd
import streamlit as st

from followup.card_draw import draw_random, pick_card
from followup.charts import radar_figure
from followup.config import get_settings
from followup.database import RecordStore, StoreError
from followup.exporter import ExportError, export_followup
from followup.matching import MatchSession, run_matching
from followup.models import CardDrawAnswer, CardDrawBlock, MatchBlock, MatchResult, ProfileScoreBlock
from followup.preferences import MappingLastSelection, preselect
from followup.preview import PARTNER_COLUMNS, PreviewSection, build_preview
from followup.profile_score import DEFAULT_DIMENSIONS, compute_profile_score, criteria_from_rows
from followup.repository import (
    list_clients,
    list_followups,
    load_catalogs,
    load_followup,
    save_answers,
    save_match_snapshot,
    save_profile_score,
)
from followup.resolvers import NO_CARDS_TEXT, MatchResultView, position_label, resolve
from followup.seed_demo_data import demo_decks, demo_spreads, ensure_demo_data

# Color constants
BLUE         = "#0078D4"
TEXT_MUTED   = "#616161"
BLUE_LITE    = "#EFF6FF"
BORDER       = "#E1DFDD"
GREEN        = "#107C41"

settings = get_settings()

# ─── Page config ─────────────────────────────────────────────────────────────
st.set_page_config(
    page_title=settings.app.app_title,
    page_icon="📋",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def _store(db_path: str) -> RecordStore:
    store = RecordStore(db_path)
    ensure_demo_data(store, settings.app.counselor_id)
    return store


store = _store(str(settings.store.db_path))
counselor_id = settings.app.counselor_id
last_selection = MappingLastSelection(st.session_state)


def _run(coro):
    """Drive one repository / exporter coroutine from the script thread."""
    return asyncio.run(coro)


# ─── Sidebar: client & follow-up picker ──────────────────────────────────────
with st.sidebar:
    st.markdown(f"""
    <div style="background:{BLUE_LITE};border-left:4px solid {BLUE};border-radius:8px;
                padding:10px 14px;margin-bottom:12px;">
      <b style="color:{BLUE};">📋 {settings.app.app_title}</b><br/>
      <span style="color:{TEXT_MUTED};font-size:0.85rem;">Counselor: {counselor_id}</span>
    </div>""", unsafe_allow_html=True)

    try:
        clients = _run(list_clients(store, counselor_id))
    except StoreError as exc:
        st.error(f"Could not read clients: {exc}")
        st.stop()

    if not clients:
        st.info("No clients yet.")
        st.stop()

    client_ids = [c.id for c in clients]
    client_idx = st.selectbox(
        "Client",
        range(len(clients)),
        index=preselect(client_ids, last_selection),
        format_func=lambda i: clients[i].name or clients[i].id,
    )
    client = clients[client_idx]
    last_selection.set(client.id)

    followup_rows = _run(list_followups(store, counselor_id, client_id=client.id))
    if not followup_rows:
        st.info("This client has no follow-up yet.")
        st.stop()
    followup_id = st.selectbox(
        "Follow-up",
        [r["id"] for r in followup_rows],
        format_func=lambda fid: next(
            f"{r['templateName']} · {r['status']}" for r in followup_rows if r["id"] == fid
        ),
    )

    st.markdown("---")
    st.markdown("#### ⚙️ Settings")
    for label, status in settings.status_summary().items():
        st.caption(f"{label}: {status}")


# ─── Snapshot (read once per run) ────────────────────────────────────────────
loaded = _run(load_followup(store, counselor_id, followup_id))
if loaded is None:
    st.error("This follow-up or its template could not be found.")
    st.stop()

template, followup = loaded.template, loaded.followup

st.markdown(f"## {followup.client_name or client.name}")
st.caption(f"Template: {followup.template_name or template.name} · "
           f"created {followup.created_at[:10] or 'n/a'} · status {followup.status.value}")
if not loaded.issues.clean:
    with st.expander(f"⚠️ {len(loaded.issues.issues)} stored value(s) were adjusted on load"):
        st.markdown(loaded.issues.summary())

tab_preview, tab_match, tab_analyses, tab_export = st.tabs(
    ["👁️ Preview", "🧭 Matching", "🎯 Profile & cards", "📄 Export"]
)


# ─── Preview ─────────────────────────────────────────────────────────────────

def _render_section(section: PreviewSection) -> None:
    with st.container(border=True):
        st.markdown(f"#### {section.title}")
        if section.chart is not None:
            st.plotly_chart(radar_figure(section.chart), use_container_width=True,
                            key=f"chart-{section.block_id}")
        for item in section.items:
            text = f"**{item.text}**" if item.emphasis else item.text
            st.markdown(f"**{item.label}:** {text}" if item.label else text)
        if section.table:
            st.dataframe(pd.DataFrame(section.table, columns=list(PARTNER_COLUMNS)),
                         use_container_width=True, hide_index=True)
        if section.raw is not None:
            st.code(section.raw, language="json")


with tab_preview:
    for section in build_preview(template, followup):
        _render_section(section)


# ─── Matching ────────────────────────────────────────────────────────────────

def _match_tables(view: MatchResultView) -> None:
    groups = view.groups()
    if not groups:
        st.info("No catalog entry matches these criteria.")
    for label, names in groups:
        st.markdown(f"**{label}**")
        st.markdown("\n".join(f"- {n}" for n in names))


with tab_match:
    match_blocks = [b for b in template.blocks if isinstance(b, MatchBlock)]
    if not match_blocks:
        st.info("This template has no recommendation block.")
    else:
        block = match_blocks[0]
        if len(match_blocks) > 1:
            block = st.selectbox("Block", match_blocks, format_func=lambda b: b.display_title)

        col_saved, col_run = st.columns([1, 1])
        with col_saved:
            st.markdown("#### 💾 Last saved analysis")
            saved_view = resolve(block, followup.answers.get(block.id))
            if saved_view.snapshot is None:
                st.caption("Analysis not yet performed.")
            else:
                _match_tables(saved_view)

        with col_run:
            st.markdown("#### 🧭 New analysis")
            st.caption(
                "Permanent exclusions: "
                + (", ".join(client.contraindications + client.allergies) or "none")
            )
            temp = st.text_input("Temporary exclusions (comma-separated)", key="match_temp")
            targets = st.text_input("Targets to treat (comma-separated)", key="match_targets")
            profile = st.text_input("Holistic profile tags (comma-separated)", key="match_profile")

            if st.button("▶️ Run", type="primary"):
                session = MatchSession(
                    client=client,
                    temporary_exclusions=temp.split(","),
                    targets=targets.split(","),
                    profile_tags=profile.split(","),
                )
                inventory, programs = _run(load_catalogs(store))
                st.session_state["match_result"] = (
                    followup.id, block.id, run_matching(session.to_request(), inventory, programs)
                )

            pending = st.session_state.get("match_result")
            if pending and pending[0] == followup.id and pending[1] == block.id:
                result: MatchResult = pending[2]
                _match_tables(MatchResultView(block.id, block.display_title, snapshot=result))
                if st.button("💾 Save snapshot"):
                    try:
                        _run(save_match_snapshot(store, counselor_id, followup.id, block.id, result))
                    except StoreError as exc:
                        st.error(f"Saving failed: {exc}")
                    else:
                        st.session_state.pop("match_result", None)
                        st.toast("Analysis saved ✅")
                        st.rerun()


# ─── Profile score & card draw ───────────────────────────────────────────────

def _pick_block(blocks, key: str):
    if len(blocks) > 1:
        return st.selectbox("Block", blocks, format_func=lambda b: b.display_title, key=key)
    return blocks[0]


def _save(answer_coro, done_message: str, state_key: str) -> None:
    try:
        _run(answer_coro)
    except StoreError as exc:
        st.error(f"Saving failed: {exc}")
    else:
        st.session_state.pop(state_key, None)
        st.toast(done_message)
        st.rerun()


with tab_analyses:
    profile_blocks = [b for b in template.blocks if isinstance(b, ProfileScoreBlock)]
    card_blocks = [b for b in template.blocks if isinstance(b, CardDrawBlock)]
    if not profile_blocks and not card_blocks:
        st.info("This template has no profile-score or card-draw block.")

    if profile_blocks:
        profile_block = _pick_block(profile_blocks, "profile_block")
        st.markdown(f"#### 🎯 {profile_block.display_title}")
        st.caption("Comma-separated traits per criterion. "
                   "A criterion without reference traits is not checked.")
        rows = st.data_editor(
            pd.DataFrame({"Criterion": list(DEFAULT_DIMENSIONS), "Candidate": "", "Reference": ""}),
            num_rows="dynamic", use_container_width=True, hide_index=True, key="profile_rows",
        )
        if st.button("▶️ Compute score", type="primary", key="profile_run"):
            st.session_state["profile_result"] = (
                followup.id, profile_block.id,
                compute_profile_score(criteria_from_rows(rows.to_dict("records"))),
            )

        pending = st.session_state.get("profile_result")
        if pending and pending[0] == followup.id and pending[1] == profile_block.id:
            score = pending[2]
            st.metric("Match score", f"{score.score}%")
            for label, traits in (("Matching traits", score.matching_traits),
                                  ("Missing traits", score.missing_traits)):
                if traits:
                    st.markdown(f"**{label}**")
                    st.markdown("\n".join(f"- {t}" for t in traits))
            if st.button("💾 Save score", key="profile_save"):
                _save(save_profile_score(store, counselor_id, followup.id, profile_block.id, score),
                      "Score saved ✅", "profile_result")

    if card_blocks:
        st.markdown("---")
        card_block = _pick_block(card_blocks, "card_block")
        st.markdown(f"#### 🃏 {card_block.display_title}")
        spreads, decks = demo_spreads(), demo_decks()
        col_spread, col_deck = st.columns(2)
        spread = spreads[col_spread.selectbox("Spread", list(spreads),
                                              format_func=lambda s: spreads[s].name)]
        deck_id = col_deck.selectbox("Deck", list(decks))
        deck = decks[deck_id]

        draw_key = f"card_draw:{followup.id}:{card_block.id}:{spread.id}:{deck_id}"
        draw: CardDrawAnswer = (st.session_state.get(draw_key)
                                or CardDrawAnswer(spread_id=spread.id, deck_id=deck_id))

        col_random, col_pick = st.columns(2)
        if col_random.button("🎲 Random draw", key="card_random"):
            try:
                draw = draw_random(spread, deck, deck_id=deck_id)
            except ValueError as exc:
                st.error(str(exc))
        remaining = [c for c in deck if all(d.card.id != c.id for d in draw.drawn)]
        if remaining and len(draw.drawn) < len(spread.positions):
            chosen = col_pick.selectbox("Pick a card", remaining, format_func=lambda c: c.name,
                                        key="card_pick")
            if col_pick.button("➕ Place card", key="card_place"):
                draw = pick_card(draw, spread, chosen)
        st.session_state[draw_key] = draw

        if not draw.drawn:
            st.caption(NO_CARDS_TEXT)
        else:
            for drawn in draw.drawn:
                st.markdown(f"**{position_label(drawn)}:** {drawn.card.name}")
            col_save, col_reset = st.columns(2)
            if col_save.button("💾 Save draw", key="card_save"):
                _save(save_answers(store, counselor_id, followup.id, {card_block.id: draw}),
                      "Draw saved ✅", draw_key)
            if col_reset.button("↩️ Start over", key="card_reset"):
                st.session_state.pop(draw_key, None)
                st.rerun()


# ─── Export ──────────────────────────────────────────────────────────────────
with tab_export:
    st.markdown("#### 📄 Export as PDF")
    st.caption(f"Page format {settings.export.page_size}; "
               + ("charts rendered as images." if settings.export.charts_enabled
                  else "charts written as text lines."))

    if st.button("⚙️ Generate PDF", type="primary"):
        with st.spinner("Rendering charts and laying out pages…"):
            try:
                st.session_state["export_doc"] = (
                    followup.id, _run(export_followup(template, followup, settings.export))
                )
            except ExportError as exc:
                st.error(f"Export failed: {exc}")

    exported = st.session_state.get("export_doc")
    if exported and exported[0] == followup.id:
        doc = exported[1]
        counts = doc.trace.counts()
        c1, c2, c3 = st.columns(3)
        c1.metric("Pages", doc.page_count)
        c2.metric("Blocks rendered", counts["rendered"])
        c3.metric("Text fallbacks", counts["fallback"] + counts["raw"])
        st.dataframe(pd.DataFrame(doc.trace.rows()), use_container_width=True, hide_index=True)
        st.download_button(
            label="⬇️ Download PDF",
            data=doc.data,
            file_name=doc.filename,
            mime="application/pdf",
            width="stretch",
        )
