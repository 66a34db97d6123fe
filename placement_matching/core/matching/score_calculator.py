"""
Candidate-opportunity score calculator.

Scores a candidate profile against an opportunity profile with a fixed,
auditable weighted formula over four sub-scores:
- Skills (declared opportunity skills, weighted)
- Academics (GPA against threshold, technical major)
- Experience (work history and projects)
- Preferences (location, job type, industry)

The calculator is pure: no I/O, no state, and identical inputs (including
`as_of`) always produce identical output.
"""

import math
from datetime import date
from typing import Optional

from placement_matching.data.models import (
    AcademicExplanation,
    CandidateProfile,
    ExperienceExplanation,
    GpaComparison,
    MajorRelevance,
    MatchingWeights,
    MatchScoreBreakdown,
    OpportunityProfile,
    PreferenceExplanation,
    ProjectSummary,
    SkillExplanation,
    SkillMatchDetail,
    WorkExperienceSummary,
    utc_now,
)
from placement_matching.utils.constants import (
    ACADEMIC_BASE_SCORE,
    DAYS_PER_MONTH,
    EXPERIENCE_BONUS_CAP,
    EXPERIENCE_BONUS_DIVISOR,
    FULL_EXPERIENCE_MONTHS,
    FULL_PROJECT_COUNT,
    GPA_EXCESS_BONUS,
    GPA_FLOOR_SCORE,
    GPA_GAP_PENALTY,
    GPA_MEETS_BASE,
    GPA_SCALE,
    INDUSTRY_MATCH_BONUS,
    JOB_TYPE_MATCH_BONUS,
    LOCATION_FLOOR_SCORE,
    LOCATION_MATCH_BONUS,
    LOCATION_MISMATCH_PENALTY,
    MAX_PROFICIENCY,
    NO_SKILLS_DECLARED_SCORE,
    PREFERENCE_BASE_SCORE,
    PROJECT_SHARE,
    RELEVANT_EXPERIENCE_BONUS,
    RELEVANT_PROJECT_BONUS,
    REMOTE_LOCATION,
    TECHNICAL_MAJOR_BONUS,
    WORK_SHARE,
    PreferenceType,
)


def round_score(value: float) -> float:
    """Round half-up to 2 decimals (round() would round half to even)."""
    return math.floor(value * 100 + 0.5) / 100


def _clamp(value: float) -> float:
    return max(0.0, min(value, 1.0))


class ScoreCalculator:
    """
    Calculator for candidate-opportunity match scores.

    Each sub-score lies in [0, 1] by construction; the total is their
    weighted sum computed on unrounded values, then every number is
    rounded to 2 decimals.
    """

    def __init__(self, weights: Optional[MatchingWeights] = None):
        """
        Initialize the calculator.

        Args:
            weights: Default weights (0.40/0.25/0.25/0.10 when omitted)
        """
        self.weights = weights or MatchingWeights()

    def compute(
        self,
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
        weights: Optional[MatchingWeights] = None,
        as_of: Optional[date] = None,
    ) -> MatchScoreBreakdown:
        """
        Score a candidate against an opportunity.

        Args:
            candidate: Candidate snapshot
            opportunity: Opportunity snapshot
            weights: Overrides the calculator's default weights
            as_of: End date for ongoing work experience (today, UTC, when omitted)

        Returns:
            MatchScoreBreakdown with rounded scores and explanations
        """
        weights = weights or self.weights
        as_of = as_of or utc_now().date()

        skill_explanation, skill_score = self._score_skills(candidate, opportunity)
        academic_explanation, academic_score = self._score_academics(candidate, opportunity)
        experience_explanation, experience_score = self._score_experience(
            candidate, opportunity, as_of
        )
        preference_explanation, preference_score = self._score_preferences(
            candidate, opportunity
        )

        total_score = (
            skill_score * weights.skill_weight
            + academic_score * weights.academic_weight
            + experience_score * weights.experience_weight
            + preference_score * weights.preference_weight
        )

        return MatchScoreBreakdown(
            total_score=round_score(_clamp(total_score)),
            skill_score=round_score(skill_score),
            academic_score=round_score(academic_score),
            experience_score=round_score(experience_score),
            preference_score=round_score(preference_score),
            explanation={
                "skill": skill_explanation.model_dump(),
                "academic": academic_explanation.model_dump(),
                "experience": experience_explanation.model_dump(),
                "preference": preference_explanation.model_dump(),
            },
        )

    # -------------------------------------------------------------------------
    # Skills
    # -------------------------------------------------------------------------

    def _score_skills(
        self,
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
    ) -> tuple[SkillExplanation, float]:
        """Weighted share of the declared skills the candidate holds."""
        if not opportunity.skills:
            return (
                SkillExplanation(reason="No required skills specified"),
                NO_SKILLS_DECLARED_SCORE,
            )

        held = {s.skill_id: s for s in candidate.skills}
        total_weight = 0.0
        matched_weight = 0.0
        details: list[SkillMatchDetail] = []

        for required in opportunity.skills:
            total_weight += required.weight
            skill = held.get(required.skill_id)

            if skill is not None:
                proficiency = skill.proficiency / MAX_PROFICIENCY
                bonus = min(skill.years_of_experience / EXPERIENCE_BONUS_DIVISOR, EXPERIENCE_BONUS_CAP)
                score = min(proficiency + bonus, 1.0)
                matched_weight += score * required.weight
                details.append(SkillMatchDetail(
                    skill_id=required.skill_id,
                    skill=required.name or skill.name,
                    required=required.required,
                    weight=required.weight,
                    student_proficiency=skill.proficiency,
                    student_experience=skill.years_of_experience,
                    score=score,
                ))
            elif required.required:
                # Missing optional skills lower the score just the same;
                # only required ones are called out
                details.append(SkillMatchDetail(
                    skill_id=required.skill_id,
                    skill=required.name,
                    required=True,
                    weight=required.weight,
                    missing=True,
                ))

        explanation = SkillExplanation(
            total_required_skills=len(opportunity.skills),
            matched_skills=sum(1 for d in details if not d.missing),
            missing_required_skills=sum(1 for d in details if d.missing and d.required),
            skill_matches=details,
        )
        score = matched_weight / total_weight if total_weight > 0 else 0.0
        return explanation, _clamp(score)

    # -------------------------------------------------------------------------
    # Academics
    # -------------------------------------------------------------------------

    def _score_academics(
        self,
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
    ) -> tuple[AcademicExplanation, float]:
        """GPA against the threshold, plus a technical-major bonus."""
        academic = candidate.academic
        explanation = AcademicExplanation()
        score = ACADEMIC_BASE_SCORE

        gpa = academic.gpa
        threshold = opportunity.gpa_threshold

        if gpa is not None and threshold is not None:
            if gpa >= threshold:
                excess = gpa - threshold
                score = min(GPA_MEETS_BASE + (excess / GPA_SCALE) * GPA_EXCESS_BONUS, 1.0)
            else:
                gap = threshold - gpa
                score = max(GPA_FLOOR_SCORE, GPA_MEETS_BASE - (gap / GPA_SCALE) * GPA_GAP_PENALTY)
            explanation.gpa_comparison = GpaComparison(
                student_gpa=gpa,
                required_gpa=threshold,
                meets_requirement=gpa >= threshold,
            )
        elif gpa is not None:
            score = min(gpa / GPA_SCALE, 1.0)
            explanation.gpa_score = gpa

        if academic.university_name or academic.university_id:
            explanation.university = academic.university_name or academic.university_id

        if academic.has_major and opportunity.is_technical:
            relevant = academic.technical_major
            if relevant:
                score = min(score + TECHNICAL_MAJOR_BONUS, 1.0)
            explanation.major_relevance = MajorRelevance(
                major=academic.major_name or academic.major_id,
                is_technical_role=opportunity.is_technical,
                is_relevant_major=relevant,
            )

        return explanation, _clamp(score)

    # -------------------------------------------------------------------------
    # Experience
    # -------------------------------------------------------------------------

    def _score_experience(
        self,
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
        as_of: date,
    ) -> tuple[ExperienceExplanation, float]:
        """Work history (70%) and projects (30%)."""
        work = WorkExperienceSummary(count=len(candidate.experiences))
        projects = ProjectSummary(count=len(candidate.projects))

        if candidate.experiences:
            total_months = 0.0
            for entry in candidate.experiences:
                end = entry.end_date or as_of
                # Entries that end before they start count as zero
                total_months += max((end - entry.start_date).days, 0) / DAYS_PER_MONTH
            work.total_months = round(total_months, 2)
            work.score = min(total_months / FULL_EXPERIENCE_MONTHS, 1.0)

            if self._has_relevant_experience(candidate, opportunity):
                work.relevant = True
                work.score = min(work.score + RELEVANT_EXPERIENCE_BONUS, 1.0)

        if candidate.projects:
            projects.score = min(len(candidate.projects) / FULL_PROJECT_COUNT, 1.0)
            wanted = opportunity.skill_ids
            if any(wanted.intersection(p.skill_ids) for p in candidate.projects):
                projects.relevant = True
                projects.score = min(projects.score + RELEVANT_PROJECT_BONUS, 1.0)

        combined = work.score * WORK_SHARE + projects.score * PROJECT_SHARE
        explanation = ExperienceExplanation(
            work_experience=work,
            projects=projects,
            combined_score=combined,
        )
        return explanation, _clamp(combined)

    @staticmethod
    def _has_relevant_experience(
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
    ) -> bool:
        """Employment type among the job types, or title shares the leading keyword."""
        job_types = {jt.lower() for jt in opportunity.job_types}
        title_words = opportunity.title.lower().split()
        keyword = title_words[0] if title_words else None

        for entry in candidate.experiences:
            if entry.employment_type and entry.employment_type.lower() in job_types:
                return True
            if keyword and keyword in entry.title.lower():
                return True
        return False

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    def _score_preferences(
        self,
        candidate: CandidateProfile,
        opportunity: OpportunityProfile,
    ) -> tuple[PreferenceExplanation, float]:
        """Neutral 0.7, adjusted by location, job type and industry."""
        explanation = PreferenceExplanation()
        score = PREFERENCE_BASE_SCORE

        locations = self._preference_values(candidate, PreferenceType.LOCATION)
        if locations and opportunity.location:
            location = opportunity.location.lower()
            if any(v in location or v == REMOTE_LOCATION for v in locations):
                score = min(score + LOCATION_MATCH_BONUS, 1.0)
                explanation.location_match = True
            else:
                score = max(score - LOCATION_MISMATCH_PENALTY, LOCATION_FLOOR_SCORE)
                explanation.location_match = False

        job_types = self._preference_values(candidate, PreferenceType.JOB_TYPE)
        if job_types and opportunity.job_types:
            offered = [jt.lower() for jt in opportunity.job_types]
            matched = any(v in jt for v in job_types for jt in offered)
            if matched:
                score = min(score + JOB_TYPE_MATCH_BONUS, 1.0)
            explanation.job_type_match = matched

        industries = self._preference_values(candidate, PreferenceType.INDUSTRY)
        if industries and opportunity.industry:
            industry = opportunity.industry.lower()
            matched = any(v in industry for v in industries)
            if matched:
                score = min(score + INDUSTRY_MATCH_BONUS, 1.0)
            explanation.industry_match = matched

        return explanation, _clamp(score)

    @staticmethod
    def _preference_values(
        candidate: CandidateProfile,
        pref_type: PreferenceType,
    ) -> list[str]:
        # Blank values would substring-match anything
        return [
            p.value.strip().lower()
            for p in candidate.preferences_of(pref_type)
            if p.value.strip()
        ]


# Singleton instance
_score_calculator: Optional[ScoreCalculator] = None


def get_score_calculator() -> ScoreCalculator:
    """Get the score calculator singleton instance."""
    global _score_calculator
    if _score_calculator is None:
        _score_calculator = ScoreCalculator()
    return _score_calculator


def compute(
    candidate: CandidateProfile,
    opportunity: OpportunityProfile,
    weights: Optional[MatchingWeights] = None,
    as_of: Optional[date] = None,
) -> MatchScoreBreakdown:
    """Score a candidate against an opportunity with the default calculator."""
    return get_score_calculator().compute(candidate, opportunity, weights, as_of)
