"""
profile_score.py – Trait-criteria match against a reference profile
====================================================================
Computes the result displayed by profile-score blocks.  This runs only
when the counselor explicitly asks for an analysis; the block then shows
the saved result until the next explicit run.

Each criterion compares the candidate's traits with the reference
profile's traits for one dimension (training level, soft skills, job
codes, location, ...).  A criterion whose reference set is empty is not
checked.

  score    = round(100 × criteria with ≥1 shared trait / criteria checked)
  matching = "<label>: shared, traits"     one line per criterion with overlap
  missing  = "<label>: absent, traits"     reference traits the candidate lacks
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from followup.models import ProfileScoreAnswer

# Dimensions offered by the analysis form; locations and contract types
# are compared case-insensitively.
DEFAULT_DIMENSIONS = ("Training level", "Soft skills", "Job codes", "Location", "Contract type")
CASE_FOLDED_DIMENSIONS = {"Location", "Contract type"}


@dataclass
class TraitCriterion:
    label:      str
    candidate:  set[str] = field(default_factory=set)
    reference:  set[str] = field(default_factory=set)
    case_fold:  bool = False   # compare lower-cased (locations, contract types)

    def _sets(self) -> tuple[set[str], set[str]]:
        if self.case_fold:
            return ({c.lower() for c in self.candidate}, {r.lower() for r in self.reference})
        return set(self.candidate), set(self.reference)


def compute_profile_score(criteria: Iterable[TraitCriterion]) -> ProfileScoreAnswer:
    matched = 0
    checked = 0
    matching: list[str] = []
    missing:  list[str] = []

    for criterion in criteria:
        candidate, reference = criterion._sets()
        if not reference:
            continue
        checked += 1
        shared = sorted(candidate & reference)
        absent = sorted(reference - candidate)
        if shared:
            matched += 1
            matching.append(f"{criterion.label}: {', '.join(shared)}")
        if absent:
            missing.append(f"{criterion.label}: {', '.join(absent)}")

    score = round(matched / checked * 100) if checked else 0
    return ProfileScoreAnswer(score=score, matching_traits=matching, missing_traits=missing)


def split_traits(text: Any) -> set[str]:
    """Comma-separated traits → set; blanks dropped, non-strings give an empty set."""
    if not isinstance(text, str):
        return set()
    return {t.strip() for t in text.split(",") if t.strip()}


def criteria_from_rows(rows: Iterable[dict]) -> list[TraitCriterion]:
    """
    Build criteria from form rows {"Criterion", "Candidate", "Reference"}
    holding comma-separated traits.  Rows without a label are skipped.
    """
    criteria = []
    for row in rows:
        label = str(row.get("Criterion") or "").strip()
        if not label:
            continue
        criteria.append(TraitCriterion(
            label     = label,
            candidate = split_traits(row.get("Candidate")),
            reference = split_traits(row.get("Reference")),
            case_fold = label in CASE_FOLDED_DIMENSIONS,
        ))
    return criteria
