"""
normalize.py – Record-store boundary
=====================================
Maps arbitrary stored JSON into the typed models the resolvers and
engines work on.  Nothing past this module validates answers again: the
writers of follow-up documents are not trusted, the readers are.

Normalization never raises on malformed data.  Anything it drops or
coerces is logged as a NormalizationIssue so the UI can surface it.

Issue levels
------------
WARN   – data was dropped or coerced; the display may be incomplete.
INFO   – data was ignored because it no longer applies (e.g. answers of deleted blocks).

Issues raised
-------------
  N-01  Block with an unknown type tag         → kept as UnknownBlock (raw dump)
  N-02  Known block type with a malformed shape → kept as UnknownBlock (raw dump)
  N-03  Answer for a block id absent from the template → dropped
  N-04  Answer shape does not fit the block variant    → dropped
  N-05  Scale value not numeric (or NaN / infinite)    → dropped
  N-06  Scale value outside 0–10                       → clamped
  N-07  Unknown follow-up status                       → pending
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from followup.models import (
    BLOCK_MODELS,
    Answer,
    BlockDefinition,
    BlockType,
    Card,
    CardDrawAnswer,
    CatalogItem,
    ClientRecord,
    DrawnCard,
    FollowUp,
    FollowUpStatus,
    FreeTextAnswer,
    MatchAnswer,
    MatchGroup,
    MatchResult,
    Partner,
    ProfileScoreAnswer,
    RawAnswer,
    ReportAnswer,
    ScaleAnswer,
    SelectionAnswer,
    SpreadPosition,
    TargetGroup,
    Template,
    UnknownBlock,
    block_type_from_tag,
)

logger = logging.getLogger(__name__)

SCALE_MIN = 0.0
SCALE_MAX = 10.0


# ─── Issue model ──────────────────────────────────────────────────────────────

class IssueLevel(str, Enum):
    WARN = "WARN"
    INFO = "INFO"


@dataclass
class NormalizationIssue:
    code:     str
    level:    IssueLevel
    message:  str
    block_id: str = ""


@dataclass
class NormalizationResult:
    issues: list[NormalizationIssue] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.issues

    @property
    def warnings(self) -> list[NormalizationIssue]:
        return [i for i in self.issues if i.level == IssueLevel.WARN]

    def summary(self) -> str:
        if not self.issues:
            return "✅ All stored data matched its block definitions."
        return "\n".join(
            f"{'⚠️' if i.level == IssueLevel.WARN else 'ℹ️'} [{i.code}] {i.message}"
            for i in self.issues
        )


# ─── Scalar helpers ───────────────────────────────────────────────────────────

def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def _number(value: Any) -> Optional[float]:
    """Finite float from a number or "3,5"-style string; None otherwise (NaN and inf included)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def clean_record(data: Any) -> Any:
    """Drop None values recursively; the record store never stores nulls."""
    if isinstance(data, list):
        return [clean_record(v) for v in data]
    if isinstance(data, dict):
        return {k: clean_record(v) for k, v in data.items() if v is not None}
    return data


def raw_dump(payload: Any) -> str:
    """Best-effort pretty dump used by the raw fallback sections."""
    if payload is None:
        return "Not answered"
    try:
        return json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(payload)


# ─── Catalog / client records ─────────────────────────────────────────────────

_TAG_FIELDS = ("tags", "contraindications", "holisticProfile", "pathologies")


def catalog_item_from_record(doc: Any, fallback_id: str = "") -> Optional[CatalogItem]:
    """Build a CatalogItem; tags split across several fields are unioned."""
    if not isinstance(doc, dict):
        return None
    name = _str_or_none(doc.get("name")) or _str_or_none(doc.get("title")) or ""
    tags: set[str] = set()
    for key in _TAG_FIELDS:
        tags.update(_str_list(doc.get(key)))
    return CatalogItem(id=_str_or_none(doc.get("id")) or fallback_id, name=name, tags=frozenset(tags))


def catalog_from_records(docs: Any) -> list[CatalogItem]:
    if not isinstance(docs, list):
        return []
    items = (catalog_item_from_record(d, fallback_id=f"item-{i}") for i, d in enumerate(docs))
    return [item for item in items if item is not None]


def client_from_record(doc: dict) -> ClientRecord:
    name = _str_or_none(doc.get("name"))
    if not name:
        name = " ".join(filter(None, [_str_or_none(doc.get("firstName")),
                                      _str_or_none(doc.get("lastName"))]))
    return ClientRecord(
        id                = _str_or_none(doc.get("id")) or "",
        name              = name or "",
        contraindications = _str_list(doc.get("contraindications")),
        allergies         = _str_list(doc.get("allergies")),
    )


def _match_group(doc: Any) -> MatchGroup:
    if not isinstance(doc, dict):
        return MatchGroup()
    items = doc.get("items", doc.get("products"))
    programs = doc.get("programs", doc.get("protocols", doc.get("protocoles")))
    return MatchGroup(items=catalog_from_records(items), programs=catalog_from_records(programs))


def match_result_from_record(doc: Any) -> Optional[MatchResult]:
    """Read a saved engine snapshot (current or legacy key spelling)."""
    if not isinstance(doc, dict):
        return None
    by_target: list[TargetGroup] = []
    raw_targets = doc.get("byTarget", doc.get("byPathology")) or []
    if isinstance(raw_targets, list):
        for entry in raw_targets:
            if not isinstance(entry, dict):
                continue
            group = _match_group(entry)
            target = _str_or_none(entry.get("target", entry.get("pathology"))) or ""
            by_target.append(TargetGroup(target=target, items=group.items, programs=group.programs))
    return MatchResult(
        by_target     = by_target,
        by_profile    = _match_group(doc.get("byProfile", doc.get("byHolisticProfile"))),
        perfect_match = _match_group(doc.get("perfectMatch")),
    )


# ─── Record normalizer ────────────────────────────────────────────────────────

class RecordNormalizer:
    """Collects issues while converting template and follow-up documents."""

    def __init__(self) -> None:
        self.result = NormalizationResult()

    def _issue(self, code: str, level: IssueLevel, message: str, block_id: str = "") -> None:
        self.result.issues.append(NormalizationIssue(code, level, message, block_id))
        if level == IssueLevel.WARN:
            logger.warning("[%s] %s", code, message)
        else:
            logger.debug("[%s] %s", code, message)

    # ── Blocks & templates ────────────────────────────────────────────────────

    def block(self, doc: Any, index: int = 0) -> BlockDefinition:
        if not isinstance(doc, dict):
            self._issue("N-02", IssueLevel.WARN, f"Block #{index + 1} is not an object.")
            return UnknownBlock(id=f"block-{index + 1}", type_name=type(doc).__name__,
                                raw={"value": doc})

        block_id = _str_or_none(doc.get("id")) or f"block-{index + 1}"
        tag = doc.get("type")
        block_type = block_type_from_tag(tag)
        if block_type is None:
            self._issue("N-01", IssueLevel.WARN,
                        f"Block '{block_id}' has unknown type '{tag}'.", block_id)
            return UnknownBlock(id=block_id, type_name=str(tag or ""),
                                title=_str_or_none(doc.get("title")), raw=doc)

        try:
            return BLOCK_MODELS[block_type].model_validate({**doc, "id": block_id})
        except ValidationError as exc:
            self._issue("N-02", IssueLevel.WARN,
                        f"Block '{block_id}' ({block_type.value}) is malformed: "
                        f"{exc.error_count()} validation error(s).", block_id)
            return UnknownBlock(id=block_id, type_name=block_type.value,
                                title=_str_or_none(doc.get("title")), raw=doc)

    def template(self, doc: dict) -> Template:
        raw_blocks = doc.get("blocks", doc.get("questions")) or []
        if not isinstance(raw_blocks, list):
            raw_blocks = []
        return Template(
            id           = _str_or_none(doc.get("id")) or "",
            name         = _str_or_none(doc.get("name")) or "",
            blocks       = [self.block(b, i) for i, b in enumerate(raw_blocks)],
            counselor_id = _str_or_none(doc.get("counselorId")) or "",
        )

    # ── Answers ───────────────────────────────────────────────────────────────

    def _scale(self, block_id: str, raw: Any) -> Optional[Answer]:
        if not isinstance(raw, dict):
            return None
        values: dict[str, float] = {}
        for qid, value in raw.items():
            number = _number(value)
            if number is None:
                self._issue("N-05", IssueLevel.WARN,
                            f"Scale value for '{qid}' is not numeric: {value!r}.", block_id)
                continue
            if not SCALE_MIN <= number <= SCALE_MAX:
                self._issue("N-06", IssueLevel.WARN,
                            f"Scale value {number:g} for '{qid}' clamped to 0–10.", block_id)
                number = min(max(number, SCALE_MIN), SCALE_MAX)
            values[str(qid)] = number
        return ScaleAnswer(values=values)

    def _free_text(self, block_id: str, raw: Any) -> Optional[Answer]:
        text = _str_or_none(raw)
        return FreeTextAnswer(text=text) if text is not None else None

    def _report(self, block_id: str, raw: Any) -> Optional[Answer]:
        if isinstance(raw, str):
            return ReportAnswer(text=raw)
        if not isinstance(raw, dict):
            return None
        partners = []
        for p in raw.get("partners") or []:
            if not isinstance(p, dict) or not _str_or_none(p.get("name")):
                continue
            partners.append(Partner(
                name        = _str_or_none(p.get("name")) or "",
                id          = _str_or_none(p.get("id")) or "",
                email       = _str_or_none(p.get("email")) or None,
                phone       = _str_or_none(p.get("phone")) or None,
                specialties = _str_list(p.get("specialties")),
            ))
        return ReportAnswer(text=_str_or_none(raw.get("text")) or "", partners=partners)

    def _selection(self, block_id: str, raw: Any) -> Optional[Answer]:
        if not isinstance(raw, dict):
            return None
        return SelectionAnswer(selections={
            str(qid): aid for qid, aid in ((q, _str_or_none(a)) for q, a in raw.items()) if aid
        })

    def _card_draw(self, block_id: str, raw: Any) -> Optional[Answer]:
        if not isinstance(raw, dict):
            return None
        drawn: list[DrawnCard] = []
        for entry in raw.get("drawnCards") or raw.get("drawn") or []:
            if not isinstance(entry, dict):
                continue
            card, pos = entry.get("card"), entry.get("position")
            if not isinstance(card, dict) or not isinstance(pos, dict):
                continue
            number = _number(pos.get("positionNumber", pos.get("number")))
            drawn.append(DrawnCard(
                position=SpreadPosition(
                    number  = int(number) if number is not None else len(drawn) + 1,
                    meaning = _str_or_none(pos.get("meaning")) or "",
                ),
                card=Card(
                    id          = _str_or_none(card.get("id")) or "",
                    name        = _str_or_none(card.get("name")) or "",
                    description = _str_or_none(card.get("description")),
                    image_url   = _str_or_none(card.get("imageUrl")),
                ),
            ))
        return CardDrawAnswer(
            drawn     = drawn,
            spread_id = _str_or_none(raw.get("spreadId", raw.get("tirageModelId"))) or "",
            deck_id   = _str_or_none(raw.get("deckId")) or "",
        )

    def _profile_score(self, block_id: str, raw: Any) -> Optional[Answer]:
        if not isinstance(raw, dict):
            return None
        score = _number(raw.get("score"))
        return ProfileScoreAnswer(
            score           = score if score is not None else 0.0,
            matching_traits = _str_list(raw.get("matchingTraits", raw.get("matching"))),
            missing_traits  = _str_list(raw.get("missingTraits", raw.get("missing"))),
        )

    def _match(self, block_id: str, raw: Any) -> Optional[Answer]:
        result = match_result_from_record(raw)
        return MatchAnswer(result=result) if result is not None else None

    _ANSWER_READERS = {
        BlockType.SCALE:          _scale,
        BlockType.FREE_TEXT:      _free_text,
        BlockType.REPORT:         _report,
        BlockType.SCORED_OUTCOME: _selection,
        BlockType.CHOICE:         _selection,
        BlockType.CARD_DRAW:      _card_draw,
        BlockType.PROFILE_SCORE:  _profile_score,
        BlockType.MATCH:          _match,
    }

    def answer(self, block: BlockDefinition, raw: Any) -> Optional[Answer]:
        """Coerce one stored answer to the variant *block* expects."""
        if raw is None:
            return None
        if block.block_type is None:
            return RawAnswer(payload=raw)
        reader = self._ANSWER_READERS[block.block_type]
        answer = reader(self, block.id, raw)
        if answer is None:
            self._issue("N-04", IssueLevel.WARN,
                        f"Answer for '{block.id}' does not fit a {block.block_type.value} block; ignored.",
                        block.id)
        return answer

    def answers(self, template: Template, raw_answers: Any) -> dict[str, Answer]:
        """Accept `[{questionId, answer}]` lists as well as `{blockId: answer}` maps."""
        if isinstance(raw_answers, list):
            pairs = [
                (_str_or_none(e.get("questionId")), e.get("answer"))
                for e in raw_answers if isinstance(e, dict)
            ]
        elif isinstance(raw_answers, dict):
            pairs = [(str(k), v) for k, v in raw_answers.items()]
        else:
            pairs = []

        typed: dict[str, Answer] = {}
        for block_id, raw in pairs:
            if not block_id:
                continue
            block = template.block_by_id(block_id)
            if block is None:
                self._issue("N-03", IssueLevel.INFO,
                            f"Answer for unknown block '{block_id}' ignored.", block_id)
                continue
            answer = self.answer(block, raw)
            if answer is not None:
                typed[block_id] = answer
        return typed

    def followup(self, doc: dict, template: Template) -> FollowUp:
        status_raw = _str_or_none(doc.get("status")) or FollowUpStatus.PENDING.value
        try:
            status = FollowUpStatus(status_raw)
        except ValueError:
            self._issue("N-07", IssueLevel.WARN, f"Unknown follow-up status '{status_raw}'.")
            status = FollowUpStatus.PENDING

        created = doc.get("createdAt")
        return FollowUp(
            id            = _str_or_none(doc.get("id")) or "",
            client_id     = _str_or_none(doc.get("clientId")) or "",
            client_name   = _str_or_none(doc.get("clientName")) or "",
            template_id   = _str_or_none(doc.get("templateId", doc.get("modelId"))) or template.id,
            template_name = _str_or_none(doc.get("templateName", doc.get("modelName"))) or template.name,
            created_at    = str(created) if created is not None else "",
            status        = status,
            answers       = self.answers(template, doc.get("answers")),
        )


# ─── Writers ──────────────────────────────────────────────────────────────────

def answers_to_record(answers: dict[str, Answer]) -> dict[str, Any]:
    return clean_record({block_id: a.to_record() for block_id, a in answers.items()})


def followup_to_record(followup: FollowUp) -> dict[str, Any]:
    return clean_record({
        "id":           followup.id,
        "clientId":     followup.client_id,
        "clientName":   followup.client_name,
        "templateId":   followup.template_id,
        "templateName": followup.template_name,
        "createdAt":    followup.created_at or None,
        "status":       followup.status.value,
        "answers":      answers_to_record(followup.answers),
    })
