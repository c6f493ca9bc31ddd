"""
resolvers.py – Block + answer → display-ready result
=====================================================
One pure function per block variant.  The preview renderer and the
document exporter both consume the ResolvedResult these produce, so the
two renderings can never disagree on what a block's answer means.

Contract
--------
  resolve(block, answer) never raises.  A missing or mismatched answer
  resolves to an explicit NOT_ANSWERED marker (or an empty/None field
  where the variant's result has one), and any internal failure degrades
  to a RawResult carrying a best-effort dump of the answer.

Result types
------------
  ScaleResult           per-question (text, value 0–10); chartable when >1 question
  FreeTextResult        text | NOT_ANSWERED
  ReportResult          narrative + partners
  ScoredOutcomeResult   per-question lines + plurality outcome text (or None)
  ChoiceResult          per-question lines with the selected answer's result text
  CardDrawResult        drawn cards ordered by position
  ProfileScoreResult    stored score snapshot, or None when not yet computed
  MatchResultView       last-saved engine snapshot, or None when not yet run
  RawResult             dump of an answer whose block could not be resolved

Outcome and result texts are authored as rich-text HTML; they are reduced
to plain text here, once, for both renderings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from bs4 import BeautifulSoup

from followup.models import (
    Answer,
    BlockDefinition,
    CardDrawAnswer,
    CardDrawBlock,
    ChoiceBlock,
    DrawnCard,
    FollowUp,
    FreeTextAnswer,
    FreeTextBlock,
    MatchAnswer,
    MatchBlock,
    MatchResult,
    Partner,
    ProfileScoreAnswer,
    ProfileScoreBlock,
    RawAnswer,
    ReportAnswer,
    ReportBlock,
    ScaleAnswer,
    ScaleBlock,
    ScoredOutcomeBlock,
    SelectionAnswer,
    Template,
    UnknownBlock,
)
from followup.normalize import raw_dump
from followup.scoring import find_outcome, score_outcome

logger = logging.getLogger(__name__)


class _Marker(Enum):
    NOT_ANSWERED = "Not answered"

    def __str__(self) -> str:
        return self.value


NOT_ANSWERED = _Marker.NOT_ANSWERED

MATCH_NOT_RUN_TEXT = "Analysis not yet performed."
OUTCOME_NONE_TEXT  = "No result yet."
NO_CARDS_TEXT      = "No cards drawn."


def format_scale_value(value: float) -> str:
    """8.0 → "8", 7.5 → "7.5"."""
    return f"{value:g}"


def rich_text_to_plain(value: Optional[str]) -> Optional[str]:
    """Rich-text HTML → plain text, e.g. <p>Result <b>X</b></p> → Result X.  Blank → None."""
    if not value:
        return None
    text = BeautifulSoup(value, "html.parser").get_text(" ", strip=True)
    return text or None


def position_label(drawn: DrawnCard) -> str:
    if drawn.position.meaning:
        return f"{drawn.position.number} — {drawn.position.meaning}"
    return str(drawn.position.number)


# ─── Result types ─────────────────────────────────────────────────────────────

@dataclass
class ResolvedResult:
    block_id: str
    title:    str


@dataclass
class ScaleLine:
    text:     str
    value:    float = 0.0
    answered: bool = False


@dataclass
class ScaleResult(ResolvedResult):
    lines:     list[ScaleLine] = field(default_factory=list)
    chartable: bool = False

    def chart_points(self) -> list[tuple[str, float]]:
        return [(line.text, line.value) for line in self.lines]


@dataclass
class FreeTextResult(ResolvedResult):
    text: Union[str, _Marker] = NOT_ANSWERED


@dataclass
class ReportResult(ResolvedResult):
    narrative: str = ""
    partners:  list[Partner] = field(default_factory=list)


@dataclass
class ChoiceLine:
    question_text:        str
    selected_answer_text: Optional[str] = None   # None when unanswered
    selected_result_text: Optional[str] = None


@dataclass
class ScoredOutcomeResult(ResolvedResult):
    lines:        list[ChoiceLine] = field(default_factory=list)
    outcome_text: Optional[str] = None


@dataclass
class ChoiceResult(ResolvedResult):
    lines: list[ChoiceLine] = field(default_factory=list)


@dataclass
class CardDrawResult(ResolvedResult):
    drawn: list[DrawnCard] = field(default_factory=list)


@dataclass
class ProfileScoreResult(ResolvedResult):
    snapshot: Optional[ProfileScoreAnswer] = None

    def groups(self) -> list[tuple[str, list[str]]]:
        if self.snapshot is None:
            return []
        out = [("Match score", [f"{format_scale_value(self.snapshot.score)}%"])]
        if self.snapshot.matching_traits:
            out.append(("Matching traits", list(self.snapshot.matching_traits)))
        if self.snapshot.missing_traits:
            out.append(("Missing traits", list(self.snapshot.missing_traits)))
        return out


@dataclass
class MatchResultView(ResolvedResult):
    snapshot: Optional[MatchResult] = None

    def groups(self) -> list[tuple[str, list[str]]]:
        """(label, names) for every non-empty sub-group; empty ones are left out."""
        if self.snapshot is None:
            return []
        labelled = [(f"Target {g.target}", g) for g in self.snapshot.by_target]
        labelled.append(("Holistic profile", self.snapshot.by_profile))
        labelled.append(("Perfect match", self.snapshot.perfect_match))

        out: list[tuple[str, list[str]]] = []
        for label, group in labelled:
            if group.items:
                out.append((f"{label}: products", [i.name for i in group.items]))
            if group.programs:
                out.append((f"{label}: programs", [p.name for p in group.programs]))
        return out


@dataclass
class RawResult(ResolvedResult):
    dump:      str = ""
    type_name: str = ""


# ─── Per-variant resolvers ────────────────────────────────────────────────────

def _answer_of(answer: Optional[Answer], kind: type) -> Optional[Answer]:
    return answer if isinstance(answer, kind) else None


def resolve_scale(block: ScaleBlock, answer: Optional[Answer]) -> ScaleResult:
    values = getattr(_answer_of(answer, ScaleAnswer), "values", {})
    lines = [
        ScaleLine(text=q.text or q.id, value=values.get(q.id, 0.0), answered=q.id in values)
        for q in block.sub_questions
    ]
    return ScaleResult(block.id, block.display_title, lines=lines, chartable=block.chartable)


def resolve_free_text(block: FreeTextBlock, answer: Optional[Answer]) -> FreeTextResult:
    typed = _answer_of(answer, FreeTextAnswer)
    text = typed.text if typed is not None and typed.text.strip() else NOT_ANSWERED
    return FreeTextResult(block.id, block.display_title, text=text)


def resolve_report(block: ReportBlock, answer: Optional[Answer]) -> ReportResult:
    typed = _answer_of(answer, ReportAnswer)
    if typed is None:
        return ReportResult(block.id, block.display_title)
    return ReportResult(block.id, block.display_title,
                        narrative=typed.text, partners=list(typed.partners))


def _selection_lines(questions, selections: dict[str, str]) -> list[ChoiceLine]:
    lines = []
    for question in questions:
        chosen = next((a for a in question.answers if a.id == selections.get(question.id)), None)
        lines.append(ChoiceLine(
            question_text        = question.text or question.id,
            selected_answer_text = chosen.text if chosen is not None else None,
            selected_result_text = rich_text_to_plain(getattr(chosen, "result_text", None)),
        ))
    return lines


def resolve_scored_outcome(block: ScoredOutcomeBlock, answer: Optional[Answer]) -> ScoredOutcomeResult:
    selections = getattr(_answer_of(answer, SelectionAnswer), "selections", {})
    outcome = find_outcome(block, score_outcome(block, selections))
    return ScoredOutcomeResult(
        block.id, block.display_title,
        lines        = _selection_lines(block.questions, selections),
        outcome_text = rich_text_to_plain(outcome.text) if outcome is not None else None,
    )


def resolve_choice(block: ChoiceBlock, answer: Optional[Answer]) -> ChoiceResult:
    selections = getattr(_answer_of(answer, SelectionAnswer), "selections", {})
    return ChoiceResult(block.id, block.display_title,
                        lines=_selection_lines(block.questions, selections))


def resolve_card_draw(block: CardDrawBlock, answer: Optional[Answer]) -> CardDrawResult:
    typed = _answer_of(answer, CardDrawAnswer)
    drawn = sorted(typed.drawn, key=lambda d: d.position.number) if typed is not None else []
    return CardDrawResult(block.id, block.display_title, drawn=drawn)


def resolve_profile_score(block: ProfileScoreBlock, answer: Optional[Answer]) -> ProfileScoreResult:
    return ProfileScoreResult(block.id, block.display_title,
                              snapshot=_answer_of(answer, ProfileScoreAnswer))


def resolve_match(block: MatchBlock, answer: Optional[Answer]) -> MatchResultView:
    typed = _answer_of(answer, MatchAnswer)
    return MatchResultView(block.id, block.display_title,
                           snapshot=typed.result if typed is not None else None)


def resolve_unknown(block: UnknownBlock, answer: Optional[Answer]) -> RawResult:
    payload = answer.payload if isinstance(answer, RawAnswer) else (
        answer.to_record() if answer is not None else None
    )
    return RawResult(block.id, block.display_title, dump=raw_dump(payload), type_name=block.type_name)


RESOLVERS: dict[type, Callable[..., ResolvedResult]] = {
    ScaleBlock:         resolve_scale,
    FreeTextBlock:      resolve_free_text,
    ReportBlock:        resolve_report,
    ScoredOutcomeBlock: resolve_scored_outcome,
    ChoiceBlock:        resolve_choice,
    CardDrawBlock:      resolve_card_draw,
    ProfileScoreBlock:  resolve_profile_score,
    MatchBlock:         resolve_match,
    UnknownBlock:       resolve_unknown,
}


def _raw_fallback(block: BlockDefinition, answer: Optional[Answer]) -> RawResult:
    payload = answer.to_record() if answer is not None else None
    return RawResult(block.id, block.display_title, dump=raw_dump(payload),
                     type_name=type(block).__name__)


def resolve(block: BlockDefinition, answer: Optional[Answer]) -> ResolvedResult:
    """Dispatch on the block variant; unknown variants and failures dump raw."""
    resolver = RESOLVERS.get(type(block))
    if resolver is None:
        logger.warning("No resolver for %s '%s'; dumping raw answer", type(block).__name__, block.id)
        return _raw_fallback(block, answer)
    try:
        return resolver(block, answer)
    except Exception as exc:
        logger.warning("Resolver failed for block '%s': %s", block.id, exc)
        return _raw_fallback(block, answer)


def resolve_all(template: Template, followup: FollowUp) -> list[ResolvedResult]:
    """Resolve every block of *template* in order against one answer snapshot."""
    return [resolve(block, followup.answers.get(block.id)) for block in template.blocks]
