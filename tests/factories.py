"""
Factory helpers for building test objects.
Imported by conftest.py fixtures AND directly by test modules.
"""
import sys
import os
import threading
from io import BytesIO

# Ensure both src/ and tests/ are importable in all test files
_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

from PIL import Image

from followup.config import ExportConfig
from followup.models import (
    CatalogItem,
    ChoiceAnswerOption,
    ChoiceBlock,
    ChoiceQuestion,
    ClientRecord,
    FollowUp,
    Outcome,
    OutcomeAnswerOption,
    OutcomeQuestion,
    ScaleBlock,
    ScoredOutcomeBlock,
    SubQuestion,
    Template,
)


# ─── Blocks & templates ───────────────────────────────────────────────────────

def make_scale_block(block_id: str = "b-scale", labels=("Energy", "Sleep"), title: str = "Wellbeing") -> ScaleBlock:
    return ScaleBlock(
        id=block_id,
        title=title,
        sub_questions=[SubQuestion(id=f"q{i + 1}", text=label) for i, label in enumerate(labels)],
    )


def make_outcome_block(
    block_id: str = "b-outcome",
    votes: int = 3,
    outcomes=(("x", "Result X"),),
) -> ScoredOutcomeBlock:
    """`votes` questions, each offering answer "<q>-x" (value x) and "<q>-y" (value y)."""
    questions = [
        OutcomeQuestion(
            id=f"q{i + 1}",
            text=f"Question {i + 1}",
            answers=[
                OutcomeAnswerOption(id=f"q{i + 1}-x", text="Option X", value="x"),
                OutcomeAnswerOption(id=f"q{i + 1}-y", text="Option Y", value="y"),
            ],
        )
        for i in range(votes)
    ]
    return ScoredOutcomeBlock(
        id=block_id,
        title="Questionnaire",
        questions=questions,
        outcomes=[Outcome(value=v, text=t) for v, t in outcomes],
    )


def make_choice_block(block_id: str = "b-choice") -> ChoiceBlock:
    return ChoiceBlock(
        id=block_id,
        title="Habits",
        questions=[
            ChoiceQuestion(id="h1", text="Water per day?", answers=[
                ChoiceAnswerOption(id="h1a", text="Less than 1 L", result_text="Drink more."),
                ChoiceAnswerOption(id="h1b", text="1.5 L or more"),
            ]),
            ChoiceQuestion(id="h2", text="Sleep per night?", answers=[
                ChoiceAnswerOption(id="h2a", text="Under 6 h"),
            ]),
        ],
    )


def make_template(*blocks, template_id: str = "tpl-1", name: str = "Check-in") -> Template:
    return Template(id=template_id, name=name, blocks=list(blocks), counselor_id="c-1")


def make_followup(template: Template, answers=None, client_name: str = "Alice Martin") -> FollowUp:
    return FollowUp(
        id            = "fu-1",
        client_id     = "cl-1",
        client_name   = client_name,
        template_id   = template.id,
        template_name = template.name,
        created_at    = "2026-10-01T09:00:00+00:00",
        answers       = dict(answers or {}),
    )


# ─── Catalogs & clients ───────────────────────────────────────────────────────

def make_item(item_id: str, *tags: str, name: str = "") -> CatalogItem:
    return CatalogItem(id=item_id, name=name or item_id.upper(), tags=frozenset(tags))


def make_client(contraindications=(), allergies=()) -> ClientRecord:
    return ClientRecord(
        id="cl-1",
        name="Alice Martin",
        contraindications=list(contraindications),
        allergies=list(allergies),
    )


# ─── Export ───────────────────────────────────────────────────────────────────

def make_export_config(**overrides) -> ExportConfig:
    values = dict(
        page_size="A4",
        margin_mm=15.0,
        top_mm=20.0,
        bottom_mm=20.0,
        line_height_mm=7.0,
        title_line_height_mm=10.0,
        block_margin_mm=5.0,
        chart_width_mm=180.0,
        chart_height_mm=80.0,
        chart_timeout_s=2.0,
        text_charts_only=False,
    )
    values.update(overrides)
    return ExportConfig(**values)


def png_bytes(size=(8, 8)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, (0, 120, 212)).save(buf, format="PNG")
    return buf.getvalue()


# ─── Fake rasterizers ─────────────────────────────────────────────────────────

class OkRasterizer:
    """Paints nothing; every capture returns a small valid PNG."""

    def __init__(self):
        self.rendered = []
        self.released = 0

    def render(self, spec):
        self.rendered.append(spec)
        return spec

    def capture(self, surface):
        return png_bytes()

    def release(self, surface):
        self.released += 1


class FailingRasterizer(OkRasterizer):
    def capture(self, surface):
        raise RuntimeError("canvas unsupported in this environment")


class HangingRasterizer(OkRasterizer):
    """First paint never completes within the bridge timeout."""

    def __init__(self, delay_s: float = 0.5):
        super().__init__()
        self.delay_s = delay_s
        self._never = threading.Event()

    def render(self, spec):
        self._never.wait(self.delay_s)
        return super().render(spec)


class SlowRasterizer(OkRasterizer):
    """Every paint takes delay_s; records how many paints overlap."""

    def __init__(self, delay_s: float = 0.5):
        super().__init__()
        self.delay_s = delay_s
        self.active = 0
        self.peak = 0
        self._guard = threading.Lock()
        self._never = threading.Event()

    def render(self, spec):
        with self._guard:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            self._never.wait(self.delay_s)
        finally:
            with self._guard:
                self.active -= 1
        return super().render(spec)
