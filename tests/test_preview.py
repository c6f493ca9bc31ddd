"""
Tests for the on-screen preview model and its HTML rendering (followup/preview.py).
"""
from factories import make_followup, make_outcome_block, make_scale_block, make_template

from followup.models import (
    CardDrawBlock,
    MatchBlock,
    Partner,
    ProfileScoreBlock,
    ReportAnswer,
    ReportBlock,
    ScaleAnswer,
    SelectionAnswer,
    UnknownBlock,
)
from followup.preview import NA_TEXT, build_preview, render_preview_html
from followup.resolvers import MATCH_NOT_RUN_TEXT


def _by_id(sections):
    return {s.block_id: s for s in sections}


class TestBuildPreview:
    def test_chart_points(self, scale_template, scale_followup):
        [section] = build_preview(scale_template, scale_followup)
        assert section.chart is not None
        assert list(zip(section.chart.labels, section.chart.values)) == [("Energy", 8), ("Sleep", 3)]

    def test_one_section_per_block_in_order(self, mixed_template, mixed_followup):
        sections = build_preview(mixed_template, mixed_followup)
        assert [s.block_id for s in sections] == ["b-scale", "b-text", "b-outcome", "b-choice"]

    def test_outcome_emphasised(self, mixed_template, mixed_followup):
        outcome = _by_id(build_preview(mixed_template, mixed_followup))["b-outcome"].items[-1]
        assert outcome.label == "Outcome"
        assert outcome.text == "Result X"
        assert outcome.emphasis

    def test_choice_result_text_follows_answer(self, mixed_template, mixed_followup):
        items = _by_id(build_preview(mixed_template, mixed_followup))["b-choice"].items
        assert [(i.label, i.text) for i in items] == [
            ("Water per day?", "Less than 1 L"),
            ("", "Drink more."),
            ("Sleep per night?", "Not answered"),
        ]

    def test_unanswered_free_text(self, mixed_template, mixed_followup):
        assert _by_id(build_preview(mixed_template, mixed_followup))["b-text"].items[0].text == "Not answered"

    def test_single_question_scale_na(self):
        template = make_template(make_scale_block(labels=("Pain",)))
        [section] = build_preview(template, make_followup(template))
        assert section.chart is None
        assert section.items[0].text == NA_TEXT

    def test_single_question_scale_value(self):
        template = make_template(make_scale_block(labels=("Pain",)))
        [section] = build_preview(template, make_followup(template, {"b-scale": ScaleAnswer({"q1": 3.5})}))
        assert section.items[0].text == "3.5/10"

    def test_partner_table(self):
        template = make_template(ReportBlock(id="r", title="Notes"))
        answer = ReportAnswer("Went well.", [
            Partner(name="Dr. Dubois", email="d@example.org", phone="0600", specialties=["Osteo", "Sport"]),
        ])
        [section] = build_preview(template, make_followup(template, {"r": answer}))
        assert section.items[0].text == "Went well."
        assert section.table == [("Dr. Dubois", "d@example.org / 0600", "Osteo, Sport")]

    def test_placeholders_for_empty_engines(self):
        template = make_template(CardDrawBlock(id="c"), ProfileScoreBlock(id="p"), MatchBlock(id="m"))
        sections = _by_id(build_preview(template, make_followup(template)))
        assert sections["c"].items[0].text == "No cards drawn."
        assert sections["p"].items[0].text == MATCH_NOT_RUN_TEXT
        assert sections["m"].items[0].text == MATCH_NOT_RUN_TEXT

    def test_unknown_block_keeps_its_section(self):
        template = make_template(UnknownBlock(id="u", type_name="legacy_quiz", title="Legacy quiz"))
        [section] = build_preview(template, make_followup(template))
        assert section.title == "Legacy quiz"
        assert section.raw == "Not answered"
        assert "legacy_quiz" in section.items[0].text


class TestPreviewHtml:
    def test_escapes_user_text(self):
        template = make_template(ReportBlock(id="r", title="<Notes>"))
        sections = build_preview(template, make_followup(template, {"r": ReportAnswer("<script>x</script>")}))
        out = render_preview_html(sections, heading="Alice & Bruno")
        assert "<script>" not in out
        assert "&lt;script&gt;" in out
        assert "Alice &amp; Bruno" in out
        assert 'id="block-r"' in out

    def test_charts_only_on_request(self, scale_template, scale_followup):
        sections = build_preview(scale_template, scale_followup)
        assert "plotly" not in render_preview_html(sections)
        with_chart = render_preview_html(sections, include_charts=True)
        assert "plotly" in with_chart
        assert "Energy:</span> 8/10" in with_chart

    def test_rich_text_outcome_shows_as_text(self):
        template = make_template(make_outcome_block(outcomes=(("x", "<p>Result <b>X</b></p>"),)))
        followup = make_followup(template, {"b-outcome": SelectionAnswer(
            {"q1": "q1-x", "q2": "q2-x", "q3": "q3-y"})})
        out = render_preview_html(build_preview(template, followup))
        assert "<b>Result X</b>" in out
        assert "&lt;p&gt;" not in out
