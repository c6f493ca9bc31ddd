"""
matching.py – Recommendation engine over tagged catalogs
=========================================================
Given a client's exclusion tags and two tag-annotated catalogs (inventory
items and programs), produce graded recommendations.

---------------------------------------------------------------------------
Algorithm
---------------------------------------------------------------------------
  1. Exclusion filter   drop every item whose tags intersect the exclusion
                        set (contraindications ∪ allergies ∪ temporary
                        exclusions).  The survivors are the candidate pool
                        for every grouping below; nothing excluded comes back.
  2. Per-target groups  one group per target tag: candidates whose tags
                        contain that exact tag.
  3. Profile group      candidates whose tags intersect the profile tags.
                        An empty profile set gives an empty group.
  4. Perfect match      candidates carrying *all* target tags and, when the
                        profile set is non-empty, at least one profile tag.
                        Always a subset of every per-target group.

Catalog order is preserved in every group; target order follows the
request (duplicates and blanks removed).

The engine is pure: no I/O, no mutation of its inputs.  Persisting its
output is a separate, explicit step (repository.save_match_snapshot).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from followup.models import CatalogItem, ClientRecord, MatchGroup, MatchResult, TargetGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchRequest:
    """The three engine inputs, as tag sets."""
    exclusions:   frozenset[str] = frozenset()
    targets:      tuple[str, ...] = ()
    profile_tags: frozenset[str] = frozenset()


@dataclass
class MatchSession:
    """
    Session-scoped editing state for one matching run.
    Temporary exclusions live only here; they are never written back to
    the client record.
    """
    client:               ClientRecord
    temporary_exclusions: list[str] = field(default_factory=list)
    targets:              list[str] = field(default_factory=list)
    profile_tags:         list[str] = field(default_factory=list)

    def to_request(self) -> MatchRequest:
        return build_request(
            self.client.contraindications,
            self.client.allergies,
            self.temporary_exclusions,
            targets=self.targets,
            profile_tags=self.profile_tags,
        )


def _clean(tags: Iterable[str]) -> list[str]:
    return [t.strip() for t in tags if isinstance(t, str) and t.strip()]


def build_request(
    *exclusion_sources: Iterable[str],
    targets: Iterable[str] = (),
    profile_tags: Iterable[str] = (),
) -> MatchRequest:
    """Union the exclusion sources and de-duplicate targets in order."""
    exclusions: set[str] = set()
    for source in exclusion_sources:
        exclusions.update(_clean(source))
    ordered_targets = list(dict.fromkeys(_clean(targets)))
    return MatchRequest(
        exclusions   = frozenset(exclusions),
        targets      = tuple(ordered_targets),
        profile_tags = frozenset(_clean(profile_tags)),
    )


def exclude(catalog: Sequence[CatalogItem], exclusions: frozenset[str]) -> list[CatalogItem]:
    return [item for item in catalog if not (item.tags & exclusions)]


def _with_tag(pool: Sequence[CatalogItem], tag: str) -> list[CatalogItem]:
    return [item for item in pool if tag in item.tags]


def _any_of(pool: Sequence[CatalogItem], tags: frozenset[str]) -> list[CatalogItem]:
    if not tags:
        return []
    return [item for item in pool if item.tags & tags]


def _perfect(pool: Sequence[CatalogItem], targets: tuple[str, ...], profile: frozenset[str]) -> list[CatalogItem]:
    if not targets:
        return []
    wanted = frozenset(targets)
    return [
        item for item in pool
        if wanted <= item.tags and (not profile or item.tags & profile)
    ]


def run_matching(
    request: MatchRequest,
    inventory: Sequence[CatalogItem],
    programs: Sequence[CatalogItem],
) -> MatchResult:
    """Run the four-stage match; deterministic for identical inputs."""
    items_pool    = exclude(inventory, request.exclusions)
    programs_pool = exclude(programs, request.exclusions)

    by_target = [
        TargetGroup(
            target   = target,
            items    = _with_tag(items_pool, target),
            programs = _with_tag(programs_pool, target),
        )
        for target in request.targets
    ]
    by_profile = MatchGroup(
        items    = _any_of(items_pool, request.profile_tags),
        programs = _any_of(programs_pool, request.profile_tags),
    )
    perfect = MatchGroup(
        items    = _perfect(items_pool, request.targets, request.profile_tags),
        programs = _perfect(programs_pool, request.targets, request.profile_tags),
    )

    logger.info(
        "Matching: %d/%d items and %d/%d programs left after exclusions; %d perfect",
        len(items_pool), len(inventory), len(programs_pool), len(programs),
        len(perfect.items) + len(perfect.programs),
    )
    return MatchResult(by_target=by_target, by_profile=by_profile, perfect_match=perfect)
