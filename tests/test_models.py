"""
Tests for the block schema and typed answers (followup/models.py).
"""
import pytest
from factories import make_followup, make_item, make_scale_block, make_template

from followup.models import (
    BLOCK_MODELS,
    BlockType,
    CardDrawAnswer,
    Card,
    ChoiceBlock,
    DrawnCard,
    FollowUpStatus,
    FreeTextBlock,
    MatchGroup,
    MatchResult,
    Partner,
    ProfileScoreAnswer,
    ScaleBlock,
    ScoredOutcomeBlock,
    SpreadPosition,
    TargetGroup,
    UnknownBlock,
    block_type_from_tag,
)


class TestBlockTypeTags:
    @pytest.mark.parametrize("tag,expected", [
        ("scale", BlockType.SCALE),
        ("free_text", BlockType.FREE_TEXT),
        ("free-text", BlockType.FREE_TEXT),
        ("scorm", BlockType.SCORED_OUTCOME),
        ("qcm", BlockType.CHOICE),
        ("prisme", BlockType.CARD_DRAW),
        ("vitae", BlockType.PROFILE_SCORE),
        ("aura", BlockType.MATCH),
        ("Scored-Outcome", BlockType.SCORED_OUTCOME),
    ])
    def test_known_tags(self, tag, expected):
        assert block_type_from_tag(tag) == expected

    @pytest.mark.parametrize("tag", ["legacy_quiz", "", None, 3])
    def test_unknown_tags_are_none(self, tag):
        assert block_type_from_tag(tag) is None

    def test_every_block_type_has_a_model(self):
        assert set(BLOCK_MODELS) == set(BlockType)
        for block_type, model in BLOCK_MODELS.items():
            assert model.block_type == block_type


class TestBlockModels:
    def test_scale_accepts_camel_case_sub_questions(self):
        block = ScaleBlock.model_validate({
            "id": "b1", "subQuestions": [{"id": "q1", "text": "Energy"}, {"id": "q2"}],
        })
        assert [q.id for q in block.sub_questions] == ["q1", "q2"]
        assert block.chartable

    def test_single_question_scale_not_chartable(self):
        assert not make_scale_block(labels=("Pain",)).chartable

    def test_scale_default_title(self):
        assert ScaleBlock(id="b1").display_title == "Scale"

    def test_free_text_title_is_question(self):
        assert FreeTextBlock(id="b1", question="Why?").display_title == "Why?"

    def test_scored_outcome_reads_results_alias(self):
        block = ScoredOutcomeBlock.model_validate({
            "id": "b1", "title": "T", "questions": [],
            "results": [{"value": "x", "text": "Result X"}],
        })
        assert block.outcomes[0].text == "Result X"

    def test_choice_answer_result_text_alias(self):
        block = ChoiceBlock.model_validate({
            "id": "b1",
            "questions": [{"id": "q1", "answers": [{"id": "a", "text": "A", "resultText": "Because"}]}],
        })
        assert block.questions[0].answers[0].result_text == "Because"

    def test_unknown_block_title_mentions_type(self):
        assert UnknownBlock(id="b1", type_name="legacy").display_title == "Block legacy"

    def test_blocks_are_frozen(self):
        block = make_scale_block()
        with pytest.raises(Exception):
            block.title = "changed"


class TestTemplate:
    def test_block_by_id(self):
        tpl = make_template(make_scale_block("a"), make_scale_block("b"))
        assert tpl.block_by_id("b").id == "b"
        assert tpl.block_by_id("missing") is None

    def test_chartable_scales(self):
        tpl = make_template(make_scale_block("a"), make_scale_block("b", labels=("Only",)))
        assert [b.id for b in tpl.chartable_scales()] == ["a"]

    def test_followup_status(self):
        fu = make_followup(make_template())
        assert fu.status == FollowUpStatus.PENDING
        assert not fu.is_completed


class TestRecords:
    def test_catalog_item_tags_sorted(self):
        assert make_item("a", "sleep", "calm").to_record()["tags"] == ["calm", "sleep"]

    def test_match_result_record_keys(self):
        result = MatchResult(
            by_target=[TargetGroup(target="anxiety", items=[make_item("b", "anxiety")])],
            by_profile=MatchGroup(),
            perfect_match=MatchGroup(items=[make_item("b", "anxiety")]),
        )
        rec = result.to_record()
        assert set(rec) == {"byTarget", "byProfile", "perfectMatch"}
        assert rec["byTarget"][0]["target"] == "anxiety"
        assert rec["perfectMatch"]["items"][0]["id"] == "b"

    def test_partner_record_drops_none(self):
        rec = Partner(name="Dr. Dubois").to_record()
        assert "email" not in rec and "phone" not in rec

    def test_card_draw_record(self):
        answer = CardDrawAnswer(
            drawn=[DrawnCard(SpreadPosition(1, "Past"), Card(id="c1", name="Oak"))],
            spread_id="s1", deck_id="d1",
        )
        rec = answer.to_record()
        assert rec["drawnCards"][0]["position"] == {"positionNumber": 1, "meaning": "Past"}
        assert "imageUrl" not in rec["drawnCards"][0]["card"]

    def test_profile_score_record_keys(self):
        rec = ProfileScoreAnswer(score=50, matching_traits=["a"], missing_traits=["b"]).to_record()
        assert rec == {"score": 50, "matching": ["a"], "missing": ["b"]}
