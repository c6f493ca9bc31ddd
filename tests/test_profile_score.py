"""
Tests for the trait-criteria profile score (followup/profile_score.py).
"""
from followup.profile_score import TraitCriterion, compute_profile_score, criteria_from_rows, split_traits


class TestComputeProfileScore:
    def test_two_of_three_criteria(self):
        result = compute_profile_score([
            TraitCriterion("Soft skills", {"listening", "patience"}, {"listening", "patience"}),
            TraitCriterion("Training level", {"bachelor"}, {"certificate"}),
            TraitCriterion("Job codes", {"K1201", "K1202"}, {"K1201"}),
        ])
        assert result.score == 67
        assert result.matching_traits == ["Soft skills: listening, patience", "Job codes: K1201"]
        assert result.missing_traits == ["Training level: certificate"]

    def test_empty_reference_not_checked(self):
        result = compute_profile_score([
            TraitCriterion("Location", {"lyon"}, set()),
            TraitCriterion("Soft skills", {"listening"}, {"listening"}),
        ])
        assert result.score == 100

    def test_nothing_checked_scores_zero(self):
        assert compute_profile_score([]).score == 0

    def test_case_fold(self):
        result = compute_profile_score([TraitCriterion("Location", {"Lyon"}, {"lyon"}, case_fold=True)])
        assert result.score == 100
        assert result.matching_traits == ["Location: lyon"]


class TestFormRows:
    def test_split_traits(self):
        assert split_traits(" listening, , patience ") == {"listening", "patience"}
        assert split_traits(None) == set()

    def test_rows_to_criteria(self):
        criteria = criteria_from_rows([
            {"Criterion": "Soft skills", "Candidate": "listening, patience", "Reference": "listening"},
            {"Criterion": "Location", "Candidate": "Lyon", "Reference": "lyon"},
            {"Criterion": "", "Candidate": "x", "Reference": "x"},
        ])
        assert [c.label for c in criteria] == ["Soft skills", "Location"]
        assert criteria[1].case_fold and not criteria[0].case_fold
        assert compute_profile_score(criteria).score == 100
