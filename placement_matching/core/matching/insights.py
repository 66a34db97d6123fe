"""
Human-readable insights derived from a stored match breakdown.

Recruiter-facing strengths, improvements and recommendations, plus a
candidate-facing fit analysis with skill gaps. Insights only read a
breakdown; they never feed back into scoring.
"""

from placement_matching.data.models import (
    FitAnalysis,
    MatchInsights,
    MatchScoreBreakdown,
    MatchScoreRecord,
)


def generate_strengths(breakdown: MatchScoreBreakdown) -> list[str]:
    strengths = []
    if breakdown.skill_score > 0.8:
        strengths.append("Strong technical skill alignment")
    if breakdown.academic_score > 0.8:
        strengths.append("Excellent academic background")
    if breakdown.experience_score > 0.7:
        strengths.append("Relevant work experience")
    if breakdown.preference_score > 0.8:
        strengths.append("Strong preference alignment")
    return strengths


def generate_improvements(breakdown: MatchScoreBreakdown) -> list[str]:
    improvements = []
    if breakdown.skill_score < 0.6:
        improvements.append("Consider developing additional technical skills")
    if breakdown.academic_score < 0.5:
        improvements.append("Academic performance could be strengthened")
    if breakdown.experience_score < 0.4:
        improvements.append("More relevant work experience would be beneficial")
    return improvements


def generate_recommendations(breakdown: MatchScoreBreakdown) -> list[str]:
    """Recruiter-facing next steps."""
    recommendations = []
    if breakdown.missing_required_skill_names:
        recommendations.append("Focus on acquiring the missing required skills")
    if breakdown.experience_score < 0.5:
        recommendations.append("Consider taking on relevant projects or internships")
    if breakdown.total_score > 0.7:
        recommendations.append("This is a strong match - consider applying")
    return recommendations


def analyze_fit(breakdown: MatchScoreBreakdown) -> FitAnalysis:
    """Bucket each score into a label."""

    def _label(score: float, high: float, mid: float, labels: tuple[str, str, str]) -> str:
        if score > high:
            return labels[0]
        if score > mid:
            return labels[1]
        return labels[2]

    return FitAnalysis(
        overall=_label(breakdown.total_score, 0.7, 0.5, ("Excellent", "Good", "Fair")),
        skill_fit=_label(
            breakdown.skill_score, 0.8, 0.6, ("Excellent", "Good", "Needs Improvement")
        ),
        academic_fit=_label(breakdown.academic_score, 0.8, 0.6, ("Excellent", "Good", "Fair")),
        experience_fit=_label(
            breakdown.experience_score, 0.7, 0.4, ("Strong", "Moderate", "Limited")
        ),
    )


def identify_skill_gaps(breakdown: MatchScoreBreakdown) -> list[str]:
    return breakdown.missing_required_skill_names


def generate_candidate_recommendations(breakdown: MatchScoreBreakdown) -> list[str]:
    """Candidate-facing advice."""
    if breakdown.total_score > 0.8:
        recommendations = ["Excellent match! Strongly consider applying"]
    elif breakdown.total_score > 0.6:
        recommendations = ["Good match with some areas for improvement"]
    else:
        recommendations = ["Consider developing skills before applying"]

    if breakdown.skill_score < 0.6:
        recommendations.append("Focus on building technical skills relevant to this role")
    if breakdown.experience_score < 0.4:
        recommendations.append("Gain more relevant experience through projects or internships")
    return recommendations


def build_insights(record: MatchScoreRecord) -> MatchInsights:
    """Assemble every insight for one stored pair."""
    breakdown = record.to_breakdown()
    return MatchInsights(
        candidate_id=record.candidate_id,
        opportunity_id=record.opportunity_id,
        breakdown=breakdown,
        strengths=generate_strengths(breakdown),
        improvements=generate_improvements(breakdown),
        recommendations=generate_recommendations(breakdown),
        fit_analysis=analyze_fit(breakdown),
        skill_gaps=identify_skill_gaps(breakdown),
        candidate_recommendations=generate_candidate_recommendations(breakdown),
    )
