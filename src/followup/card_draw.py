"""
card_draw.py – Drawing cards from a deck into a spread's positions.

Two ways to fill a spread: a random draw that fills every position at
once, and a manual "fan" pick that fills the next free position with the
card the client chose.  Both return a new CardDrawAnswer; inputs are not
mutated.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from followup.models import Card, CardDrawAnswer, DrawnCard, SpreadPosition


@dataclass
class Spread:
    """A draw model: named, numbered positions each with a meaning."""
    id:        str
    name:      str
    positions: list[SpreadPosition] = field(default_factory=list)

    def ordered_positions(self) -> list[SpreadPosition]:
        return sorted(self.positions, key=lambda p: p.number)


def draw_random(
    spread: Spread,
    deck: Sequence[Card],
    deck_id: str = "",
    rng: Optional[random.Random] = None,
) -> CardDrawAnswer:
    """Shuffle *deck* and deal one card into every position of *spread*."""
    positions = spread.ordered_positions()
    if len(deck) < len(positions):
        raise ValueError(
            f"Deck holds {len(deck)} cards but spread '{spread.name}' needs {len(positions)}."
        )
    shuffled = list(deck)
    (rng or random.Random()).shuffle(shuffled)
    drawn = [DrawnCard(position=pos, card=card) for pos, card in zip(positions, shuffled)]
    return CardDrawAnswer(drawn=drawn, spread_id=spread.id, deck_id=deck_id)


def pick_card(current: CardDrawAnswer, spread: Spread, card: Card) -> CardDrawAnswer:
    """
    Place *card* in the next free position.
    A full spread, an already drawn card or a missing next position leaves
    the draw unchanged.
    """
    if any(d.card.id == card.id for d in current.drawn):
        return current
    next_number = len(current.drawn) + 1
    position = next((p for p in spread.positions if p.number == next_number), None)
    if position is None:
        return current
    drawn = sorted(current.drawn + [DrawnCard(position=position, card=card)],
                   key=lambda d: d.position.number)
    return CardDrawAnswer(drawn=drawn, spread_id=spread.id, deck_id=current.deck_id)
