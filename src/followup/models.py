"""
Data models for the follow-up assessment engine.

Block definitions are pydantic models so stored template documents can be
validated at the record-store boundary (see normalize.py).  Everything the
algorithms work on after that boundary (answers, catalog items, match
results, follow-ups) is a plain dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ─── Enumerations ────────────────────────────────────────────────────────────

class BlockType(str, Enum):
    """Closed set of assessment block variants."""
    SCALE          = "scale"           # sub-questions rated 0–10
    FREE_TEXT      = "free_text"       # one open question
    REPORT         = "report"          # narrative + referral partners
    SCORED_OUTCOME = "scored_outcome"  # questionnaire resolved by plurality
    CHOICE         = "choice"          # independent multiple-choice questions
    CARD_DRAW      = "card_draw"       # cards drawn into spread positions
    PROFILE_SCORE  = "profile_score"   # match % against a reference profile
    MATCH          = "match"           # matching-engine recommendations


# Type tags written by earlier versions of the template editor
BLOCK_TYPE_ALIASES: dict[str, BlockType] = {
    "free-text": BlockType.FREE_TEXT,
    "scorm":     BlockType.SCORED_OUTCOME,
    "qcm":       BlockType.CHOICE,
    "prisme":    BlockType.CARD_DRAW,
    "vitae":     BlockType.PROFILE_SCORE,
    "aura":      BlockType.MATCH,
}


def block_type_from_tag(tag: Any) -> Optional[BlockType]:
    """Map a stored type tag to a BlockType, or None when it is not recognised."""
    if not isinstance(tag, str):
        return None
    tag = tag.strip()
    if tag in BLOCK_TYPE_ALIASES:
        return BLOCK_TYPE_ALIASES[tag]
    try:
        return BlockType(tag.lower().replace("-", "_"))
    except ValueError:
        return None


class FollowUpStatus(str, Enum):
    PENDING   = "pending"
    COMPLETED = "completed"


# ─── Block definitions ───────────────────────────────────────────────────────

class _Block(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    block_type: ClassVar[Optional[BlockType]] = None
    default_title: ClassVar[str] = "Block"

    id: str

    @property
    def display_title(self) -> str:
        title = getattr(self, "title", None)
        return title or self.default_title


class SubQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id:   str
    text: str = ""


class ScaleBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.SCALE
    default_title: ClassVar[str] = "Scale"

    title:         Optional[str] = None
    sub_questions: list[SubQuestion] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sub_questions", "subQuestions", "questions"),
    )

    @property
    def chartable(self) -> bool:
        """Only scales with more than one sub-question are drawn as a radar."""
        return len(self.sub_questions) > 1


class FreeTextBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.FREE_TEXT
    default_title: ClassVar[str] = "Open question"

    question: str = ""

    @property
    def display_title(self) -> str:
        return self.question or self.default_title


class ReportBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.REPORT
    default_title: ClassVar[str] = "Report"

    title: str = ""


class OutcomeAnswerOption(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id:    str
    text:  str = ""
    value: str = ""   # tag tallied by the plurality vote


class OutcomeQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id:      str
    text:    str = ""
    answers: list[OutcomeAnswerOption] = Field(default_factory=list)


class Outcome(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    value: str
    text:  str = ""


class ScoredOutcomeBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.SCORED_OUTCOME
    default_title: ClassVar[str] = "Questionnaire"

    title:     str = ""
    questions: list[OutcomeQuestion] = Field(default_factory=list)
    outcomes:  list[Outcome] = Field(
        default_factory=list,
        validation_alias=AliasChoices("outcomes", "results"),
    )


class ChoiceAnswerOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id:          str
    text:        str = ""
    result_text: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("result_text", "resultText"),
    )


class ChoiceQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id:      str
    text:    str = ""
    answers: list[ChoiceAnswerOption] = Field(default_factory=list)


class ChoiceBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.CHOICE
    default_title: ClassVar[str] = "Multiple choice"

    title:     str = ""
    questions: list[ChoiceQuestion] = Field(default_factory=list)


class CardDrawBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.CARD_DRAW
    default_title: ClassVar[str] = "Card draw"

    title: Optional[str] = None


class ProfileScoreBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.PROFILE_SCORE
    default_title: ClassVar[str] = "Profile analysis"

    title: Optional[str] = None


class MatchBlock(_Block):
    block_type: ClassVar[Optional[BlockType]] = BlockType.MATCH
    default_title: ClassVar[str] = "Recommendation analysis"

    title: Optional[str] = None


class UnknownBlock(_Block):
    """A stored block whose type is not recognised or whose shape is malformed."""

    type_name: str = ""
    title:     Optional[str] = None
    raw:       dict[str, Any] = Field(default_factory=dict)

    @property
    def display_title(self) -> str:
        return self.title or f"Block {self.type_name or '?'}"


BlockDefinition = Union[
    ScaleBlock, FreeTextBlock, ReportBlock, ScoredOutcomeBlock, ChoiceBlock,
    CardDrawBlock, ProfileScoreBlock, MatchBlock, UnknownBlock,
]

BLOCK_MODELS: dict[BlockType, type[_Block]] = {
    BlockType.SCALE:          ScaleBlock,
    BlockType.FREE_TEXT:      FreeTextBlock,
    BlockType.REPORT:         ReportBlock,
    BlockType.SCORED_OUTCOME: ScoredOutcomeBlock,
    BlockType.CHOICE:         ChoiceBlock,
    BlockType.CARD_DRAW:      CardDrawBlock,
    BlockType.PROFILE_SCORE:  ProfileScoreBlock,
    BlockType.MATCH:          MatchBlock,
}


# ─── Catalog & matching ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class CatalogItem:
    """An inventory product or a program, annotated with tags."""
    id:   str
    name: str
    tags: frozenset[str] = frozenset()

    def to_record(self) -> dict:
        return {"id": self.id, "name": self.name, "tags": sorted(self.tags)}


@dataclass
class MatchGroup:
    items:    list[CatalogItem] = field(default_factory=list)
    programs: list[CatalogItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items and not self.programs

    def to_record(self) -> dict:
        return {
            "items":    [i.to_record() for i in self.items],
            "programs": [p.to_record() for p in self.programs],
        }


@dataclass
class TargetGroup(MatchGroup):
    target: str = ""

    def to_record(self) -> dict:
        return {"target": self.target, **super().to_record()}


@dataclass
class MatchResult:
    """Output of the matching engine; also the saved snapshot shape."""
    by_target:     list[TargetGroup] = field(default_factory=list)
    by_profile:    MatchGroup = field(default_factory=MatchGroup)
    perfect_match: MatchGroup = field(default_factory=MatchGroup)

    def to_record(self) -> dict:
        return {
            "byTarget":     [g.to_record() for g in self.by_target],
            "byProfile":    self.by_profile.to_record(),
            "perfectMatch": self.perfect_match.to_record(),
        }


@dataclass
class ClientRecord:
    """The slice of a client record the assessment engine reads."""
    id:                str
    name:              str
    contraindications: list[str] = field(default_factory=list)
    allergies:         list[str] = field(default_factory=list)


# ─── Answers ─────────────────────────────────────────────────────────────────

@dataclass
class ScaleAnswer:
    values: dict[str, float] = field(default_factory=dict)   # sub-question id → 0..10

    def to_record(self) -> Any:
        return dict(self.values)


@dataclass
class FreeTextAnswer:
    text: str = ""

    def to_record(self) -> Any:
        return self.text


@dataclass
class Partner:
    name:        str
    id:          str = ""
    email:       Optional[str] = None
    phone:       Optional[str] = None
    specialties: list[str] = field(default_factory=list)

    def to_record(self) -> dict:
        rec = {"id": self.id, "name": self.name, "email": self.email,
               "phone": self.phone, "specialties": list(self.specialties)}
        return {k: v for k, v in rec.items() if v is not None}


@dataclass
class ReportAnswer:
    text:     str = ""
    partners: list[Partner] = field(default_factory=list)

    def to_record(self) -> Any:
        return {"text": self.text, "partners": [p.to_record() for p in self.partners]}


@dataclass
class SelectionAnswer:
    """Chosen answer id per question (scored-outcome and choice blocks)."""
    selections: dict[str, str] = field(default_factory=dict)

    def to_record(self) -> Any:
        return dict(self.selections)


@dataclass
class Card:
    id:          str
    name:        str
    description: Optional[str] = None
    image_url:   Optional[str] = None

    def to_record(self) -> dict:
        rec = {"id": self.id, "name": self.name,
               "description": self.description, "imageUrl": self.image_url}
        return {k: v for k, v in rec.items() if v is not None}


@dataclass(frozen=True)
class SpreadPosition:
    number:  int
    meaning: str = ""

    def to_record(self) -> dict:
        return {"positionNumber": self.number, "meaning": self.meaning}


@dataclass
class DrawnCard:
    position: SpreadPosition
    card:     Card

    def to_record(self) -> dict:
        return {"position": self.position.to_record(), "card": self.card.to_record()}


@dataclass
class CardDrawAnswer:
    drawn:     list[DrawnCard] = field(default_factory=list)
    spread_id: str = ""
    deck_id:   str = ""

    def to_record(self) -> Any:
        return {
            "spreadId":   self.spread_id,
            "deckId":     self.deck_id,
            "drawnCards": [d.to_record() for d in self.drawn],
        }


@dataclass
class ProfileScoreAnswer:
    score:           float = 0.0            # 0–100
    matching_traits: list[str] = field(default_factory=list)
    missing_traits:  list[str] = field(default_factory=list)

    def to_record(self) -> Any:
        return {
            "score":    self.score,
            "matching": list(self.matching_traits),
            "missing":  list(self.missing_traits),
        }


@dataclass
class MatchAnswer:
    result: MatchResult

    def to_record(self) -> Any:
        return self.result.to_record()


@dataclass
class RawAnswer:
    """Answer of a block whose variant is unknown; kept verbatim."""
    payload: Any = None

    def to_record(self) -> Any:
        return self.payload


Answer = Union[
    ScaleAnswer, FreeTextAnswer, ReportAnswer, SelectionAnswer,
    CardDrawAnswer, ProfileScoreAnswer, MatchAnswer, RawAnswer,
]


# ─── Templates & follow-ups ──────────────────────────────────────────────────

@dataclass
class Template:
    """An ordered, named list of blocks owned by a counselor."""
    id:           str
    name:         str
    blocks:       list[BlockDefinition] = field(default_factory=list)
    counselor_id: str = ""

    def block_by_id(self, block_id: str) -> Optional[BlockDefinition]:
        return next((b for b in self.blocks if b.id == block_id), None)

    def chartable_scales(self) -> list[ScaleBlock]:
        return [b for b in self.blocks if isinstance(b, ScaleBlock) and b.chartable]


@dataclass
class FollowUp:
    """One client's filling of one template."""
    id:            str
    client_id:     str
    client_name:   str
    template_id:   str
    template_name: str
    created_at:    str = ""
    status:        FollowUpStatus = FollowUpStatus.PENDING
    answers:       dict[str, Answer] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == FollowUpStatus.COMPLETED
