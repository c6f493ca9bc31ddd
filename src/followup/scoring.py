"""
scoring.py – Plurality resolution for scored-outcome blocks
===========================================================
A scored-outcome block is a questionnaire whose answers each carry a
value tag.  Once *every* question has an answer, the tags of the chosen
answers are tallied and the tag with the highest count selects one of the
block's outcomes.

Rules
-----
  • Completeness gate – any unanswered question → None (no partial scoring).
  • Tally – one vote per question for the chosen answer's value tag.
    Answers with an empty value tag, or an answer id that does not exist
    on the question, cast no vote.
  • Winner – strictly highest tally; ties go to the tag first tallied
    in question order (never random).
  • Lookup – the winner is matched against block.outcomes by exact value;
    no matching outcome → None.
"""

from __future__ import annotations

from typing import Mapping, Optional

from followup.models import Outcome, ScoredOutcomeBlock


def tally_votes(block: ScoredOutcomeBlock, selections: Mapping[str, str]) -> dict[str, int]:
    """Return value tag → vote count, keyed in first-tallied order."""
    counts: dict[str, int] = {}
    for question in block.questions:
        answer_id = selections.get(question.id)
        chosen = next((a for a in question.answers if a.id == answer_id), None)
        if chosen is None or not chosen.value:
            continue
        counts[chosen.value] = counts.get(chosen.value, 0) + 1
    return counts


def dominant_value(counts: Mapping[str, int]) -> Optional[str]:
    """Tag with the strictly highest count; earliest-inserted tag wins ties."""
    winner: Optional[str] = None
    best = 0
    for value, count in counts.items():
        if count > best:
            winner, best = value, count
    return winner


def score_outcome(block: ScoredOutcomeBlock, selections: Optional[Mapping[str, str]]) -> Optional[str]:
    """
    Resolve the block's outcome value for *selections* (question id → answer id).
    Returns None when a question is unanswered, no vote was cast, or the
    winning tag has no outcome.
    """
    if not selections or not block.questions:
        return None
    if any(not selections.get(q.id) for q in block.questions):
        return None

    winner = dominant_value(tally_votes(block, selections))
    if winner is None:
        return None
    return winner if find_outcome(block, winner) is not None else None


def find_outcome(block: ScoredOutcomeBlock, value: Optional[str]) -> Optional[Outcome]:
    if value is None:
        return None
    return next((o for o in block.outcomes if o.value == value), None)
