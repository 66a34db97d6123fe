"""
Tests for placement_matching.core.matching.insights — recruiter and
candidate readings of a stored breakdown.
"""

from placement_matching.core.matching.insights import (
    analyze_fit,
    build_insights,
    generate_candidate_recommendations,
    generate_improvements,
    generate_recommendations,
    generate_strengths,
    identify_skill_gaps,
)
from placement_matching.data.models import MatchScoreBreakdown, MatchScoreRecord


def _breakdown(total=0.5, skill=0.5, academic=0.5, experience=0.5, preference=0.7, matches=None):
    return MatchScoreBreakdown(
        total_score=total,
        skill_score=skill,
        academic_score=academic,
        experience_score=experience,
        preference_score=preference,
        explanation={"skill": {"skill_matches": matches or []}},
    )


class TestStrengthsAndImprovements:
    def test_strong_profile(self):
        strengths = generate_strengths(
            _breakdown(skill=0.9, academic=0.85, experience=0.75, preference=0.9)
        )
        assert strengths == [
            "Strong technical skill alignment",
            "Excellent academic background",
            "Relevant work experience",
            "Strong preference alignment",
        ]

    def test_thresholds_are_strict(self):
        assert generate_strengths(_breakdown(skill=0.8, academic=0.8, experience=0.7, preference=0.8)) == []

    def test_weak_profile(self):
        improvements = generate_improvements(_breakdown(skill=0.2, academic=0.3, experience=0.1))
        assert len(improvements) == 3

    def test_no_improvements_for_solid_profile(self):
        assert generate_improvements(_breakdown(skill=0.7, academic=0.6, experience=0.5)) == []


class TestRecommendations:
    def test_missing_required_skill(self):
        breakdown = _breakdown(
            experience=0.6,
            matches=[{"skill_id": "k8s", "skill": "Kubernetes", "required": True, "missing": True}],
        )
        assert generate_recommendations(breakdown) == [
            "Focus on acquiring the missing required skills"
        ]

    def test_strong_match(self):
        recommendations = generate_recommendations(_breakdown(total=0.75, experience=0.6))
        assert recommendations == ["This is a strong match - consider applying"]

    def test_candidate_recommendations_excellent(self):
        recommendations = generate_candidate_recommendations(
            _breakdown(total=0.9, skill=0.9, experience=0.9)
        )
        assert recommendations == ["Excellent match! Strongly consider applying"]

    def test_candidate_recommendations_weak(self):
        recommendations = generate_candidate_recommendations(
            _breakdown(total=0.3, skill=0.3, experience=0.2)
        )
        assert recommendations[0] == "Consider developing skills before applying"
        assert len(recommendations) == 3


class TestFitAnalysis:
    def test_labels(self):
        fit = analyze_fit(_breakdown(total=0.72, skill=0.65, academic=0.9, experience=0.3))
        assert fit.overall == "Excellent"
        assert fit.skill_fit == "Good"
        assert fit.academic_fit == "Excellent"
        assert fit.experience_fit == "Limited"

    def test_low_scores(self):
        fit = analyze_fit(_breakdown(total=0.4, skill=0.4, academic=0.4, experience=0.5))
        assert fit.overall == "Fair"
        assert fit.skill_fit == "Needs Improvement"
        assert fit.academic_fit == "Fair"
        assert fit.experience_fit == "Moderate"


class TestSkillGaps:
    def test_only_required_missing_skills(self):
        breakdown = _breakdown(matches=[
            {"skill_id": "py", "skill": "Python", "required": True, "missing": False},
            {"skill_id": "k8s", "skill": None, "required": True, "missing": True},
            {"skill_id": "go", "skill": "Go", "required": True, "missing": True},
        ])
        # Falls back to the id when the skill has no name
        assert identify_skill_gaps(breakdown) == ["k8s", "Go"]

    def test_no_explanation(self):
        assert identify_skill_gaps(MatchScoreBreakdown()) == []


class TestBuildInsights:
    def test_from_record(self):
        record = MatchScoreRecord.from_breakdown(
            "cand-1", "opp-1", _breakdown(total=0.8, skill=0.9, experience=0.8)
        )
        insights = build_insights(record)
        assert insights.candidate_id == "cand-1"
        assert insights.opportunity_id == "opp-1"
        assert insights.breakdown.total_score == 0.8
        assert "Strong technical skill alignment" in insights.strengths
        assert insights.fit_analysis.overall == "Excellent"
        assert insights.candidate_recommendations[0] == "Good match with some areas for improvement"
