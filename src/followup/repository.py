"""
repository.py – Async persistence of templates, follow-ups and snapshots
=========================================================================
The awaitable side of the record store.  Every function runs the blocking
RecordStore call in a worker thread (asyncio.to_thread) and converts raw
documents through normalize.py, so callers only ever see typed models.

Collections
-----------
  users/{counselorId}/question_models   templates
  users/{counselorId}/follow_ups        follow-ups (answers keyed by block id)
  users/{counselorId}/clients           client records
  products                              inventory catalog
  protocols                             program catalog

Read functions raise StoreError when the store is unreachable; save
functions re-raise it so the UI can show a notification.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from followup.database import RecordStore, StoreError
from followup.models import (
    Answer,
    CatalogItem,
    ClientRecord,
    FollowUp,
    FollowUpStatus,
    MatchAnswer,
    MatchResult,
    ProfileScoreAnswer,
    Template,
)
from followup.normalize import (
    NormalizationResult,
    RecordNormalizer,
    answers_to_record,
    catalog_from_records,
    client_from_record,
    followup_to_record,
)

logger = logging.getLogger(__name__)

PRODUCTS_COLLECTION = "products"
PROGRAMS_COLLECTION = "protocols"


def templates_path(counselor_id: str) -> str:
    return f"users/{counselor_id}/question_models"


def followups_path(counselor_id: str) -> str:
    return f"users/{counselor_id}/follow_ups"


def clients_path(counselor_id: str) -> str:
    return f"users/{counselor_id}/clients"


@dataclass
class LoadedFollowUp:
    """One follow-up snapshot with the template it was filled against."""
    template: Template
    followup: FollowUp
    issues:   NormalizationResult = field(default_factory=NormalizationResult)


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")


def _answers_as_map(raw: Any) -> dict[str, Any]:
    """Stored answers in either layout → {blockId: answer}."""
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, list):
        return {
            str(e["questionId"]): e.get("answer")
            for e in raw if isinstance(e, dict) and e.get("questionId")
        }
    return {}


# ─── Reads ────────────────────────────────────────────────────────────────────

async def load_template(store: RecordStore, counselor_id: str, template_id: str) -> Optional[Template]:
    doc = await asyncio.to_thread(store.get, templates_path(counselor_id), template_id)
    if doc is None:
        return None
    normalizer = RecordNormalizer()
    template = normalizer.template(doc)
    template.counselor_id = template.counselor_id or counselor_id
    return template


async def list_templates(store: RecordStore, counselor_id: str) -> list[Template]:
    docs = await asyncio.to_thread(store.query, templates_path(counselor_id))
    normalizer = RecordNormalizer()
    return [normalizer.template(d) for d in docs]


async def load_followup(store: RecordStore, counselor_id: str, followup_id: str) -> Optional[LoadedFollowUp]:
    """
    Read a follow-up and its template once; the pair is the immutable
    snapshot a preview or export pass works on.  None when either document
    is missing.
    """
    doc = await asyncio.to_thread(store.get, followups_path(counselor_id), followup_id)
    if doc is None:
        return None
    template_id = doc.get("templateId", doc.get("modelId"))
    if not template_id:
        logger.warning("Follow-up '%s' has no template reference", followup_id)
        return None
    template_doc = await asyncio.to_thread(store.get, templates_path(counselor_id), str(template_id))
    if template_doc is None:
        logger.warning("Template '%s' of follow-up '%s' not found", template_id, followup_id)
        return None

    normalizer = RecordNormalizer()
    template = normalizer.template(template_doc)
    followup = normalizer.followup(doc, template)
    if not normalizer.result.clean:
        logger.info("Follow-up '%s' normalised with %d issue(s)", followup_id, len(normalizer.result.issues))
    return LoadedFollowUp(template=template, followup=followup, issues=normalizer.result)


async def list_followups(
    store: RecordStore,
    counselor_id: str,
    client_id: Optional[str] = None,
    status: Optional[FollowUpStatus] = None,
) -> list[dict]:
    """Summary rows (id, clientId, clientName, templateName, status, createdAt), newest first."""
    filters = []
    if client_id:
        filters.append(("clientId", "==", client_id))
    if status is not None:
        filters.append(("status", "==", status.value))
    docs = await asyncio.to_thread(store.query, followups_path(counselor_id), filters)
    rows = [
        {
            "id":           d["id"],
            "clientId":     d.get("clientId", ""),
            "clientName":   d.get("clientName", ""),
            "templateName": d.get("templateName", d.get("modelName", "")),
            "status":       d.get("status", FollowUpStatus.PENDING.value),
            "createdAt":    str(d.get("createdAt", "")),
        }
        for d in docs
    ]
    rows.sort(key=lambda r: r["createdAt"], reverse=True)
    return rows


async def list_clients(store: RecordStore, counselor_id: str) -> list[ClientRecord]:
    docs = await asyncio.to_thread(store.query, clients_path(counselor_id))
    return [client_from_record(d) for d in docs]


async def load_client(store: RecordStore, counselor_id: str, client_id: str) -> Optional[ClientRecord]:
    doc = await asyncio.to_thread(store.get, clients_path(counselor_id), client_id)
    return client_from_record(doc) if doc is not None else None


async def load_catalogs(store: RecordStore) -> tuple[list[CatalogItem], list[CatalogItem]]:
    """(inventory items, programs), tags unioned per item."""
    products, programs = await asyncio.gather(
        asyncio.to_thread(store.query, PRODUCTS_COLLECTION),
        asyncio.to_thread(store.query, PROGRAMS_COLLECTION),
    )
    return catalog_from_records(products), catalog_from_records(programs)


# ─── Writes ───────────────────────────────────────────────────────────────────

async def create_followup(
    store: RecordStore,
    counselor_id: str,
    client: ClientRecord,
    template: Template,
) -> str:
    """Create the follow-up for (client, template), or return the existing one's id."""
    existing = await asyncio.to_thread(
        store.query, followups_path(counselor_id),
        [("clientId", "==", client.id), ("templateId", "==", template.id)],
    )
    if existing:
        return existing[0]["id"]

    followup = FollowUp(
        id            = "",
        client_id     = client.id,
        client_name   = client.name,
        template_id   = template.id,
        template_name = template.name,
        created_at    = _now(),
    )
    record = followup_to_record(followup)
    record.pop("id", None)
    new_id = await asyncio.to_thread(store.add, followups_path(counselor_id), record)
    logger.info("Created follow-up '%s' for client '%s'", new_id, client.id)
    return new_id


async def save_answers(
    store: RecordStore,
    counselor_id: str,
    followup_id: str,
    answers: dict[str, Answer],
    merge: bool = True,
) -> None:
    """
    Write *answers* into the follow-up.  Each given block's answer replaces
    the stored one whole.  With merge=True the other blocks' answers are
    kept; answers stored in the older list layout are converted to the map
    layout on the way.
    """
    path = f"{followups_path(counselor_id)}/{followup_id}"
    patch = answers_to_record(answers)

    def _apply(current: dict) -> dict:
        stored = _answers_as_map(current.get("answers")) if merge else {}
        return {**current, "answers": {**stored, **patch}, "updatedAt": _now()}

    try:
        await asyncio.to_thread(store.update, path, _apply)
    except StoreError:
        logger.warning("Saving answers of follow-up '%s' failed", followup_id)
        raise
    logger.debug("Saved %d answer(s) on follow-up '%s'", len(answers), followup_id)


async def complete_followup(store: RecordStore, counselor_id: str, followup_id: str) -> None:
    """Mark an existing follow-up completed; StoreError when it does not exist."""
    path = f"{followups_path(counselor_id)}/{followup_id}"

    def _apply(current: dict) -> dict:
        return {**current, "status": FollowUpStatus.COMPLETED.value, "completedAt": _now()}

    await asyncio.to_thread(store.update, path, _apply)
    logger.info("Follow-up '%s' marked completed", followup_id)


async def save_match_snapshot(
    store: RecordStore,
    counselor_id: str,
    followup_id: str,
    block_id: str,
    result: MatchResult,
) -> None:
    """Persist the engine's output as the match block's answer (explicit save action)."""
    await save_answers(store, counselor_id, followup_id, {block_id: MatchAnswer(result=result)})
    logger.info("Match snapshot saved for block '%s' of follow-up '%s'", block_id, followup_id)


async def save_profile_score(
    store: RecordStore,
    counselor_id: str,
    followup_id: str,
    block_id: str,
    result: ProfileScoreAnswer,
) -> None:
    await save_answers(store, counselor_id, followup_id, {block_id: result})
