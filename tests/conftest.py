"""
Shared pytest fixtures for the follow-up test suite.
The record store is a throw-away SQLite file under tmp_path; chart
rasterization uses the fakes in factories.py unless a test opts into
matplotlib explicitly.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)


import pytest

from factories import (
    make_choice_block,
    make_export_config,
    make_followup,
    make_outcome_block,
    make_scale_block,
    make_template,
)

from followup.database import RecordStore
from followup.models import FreeTextBlock, ScaleAnswer, SelectionAnswer
from followup.seed_demo_data import seed_all

COUNSELOR = "c-test"


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def store(tmp_path):
    return RecordStore(tmp_path / "followup_test.db")


@pytest.fixture
def seeded_store(store):
    seed_all(store, COUNSELOR)
    return store


@pytest.fixture
def counselor_id():
    return COUNSELOR


@pytest.fixture
def export_cfg():
    return make_export_config()


@pytest.fixture
def scale_template():
    """One chartable scale block (Energy, Sleep)."""
    return make_template(make_scale_block())


@pytest.fixture
def scale_followup(scale_template):
    return make_followup(scale_template, {"b-scale": ScaleAnswer(values={"q1": 8, "q2": 3})})


@pytest.fixture
def mixed_template():
    return make_template(
        make_scale_block(labels=("Energy", "Sleep", "Stress")),
        FreeTextBlock(id="b-text", question="What would you change first?"),
        make_outcome_block(),
        make_choice_block(),
    )


@pytest.fixture
def mixed_followup(mixed_template):
    return make_followup(mixed_template, {
        "b-scale":   ScaleAnswer(values={"q1": 4, "q2": 7, "q3": 2}),
        "b-outcome": SelectionAnswer(selections={"q1": "q1-x", "q2": "q2-y", "q3": "q3-x"}),
        "b-choice":  SelectionAnswer(selections={"h1": "h1a"}),
    })
