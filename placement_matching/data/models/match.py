"""
Match and scoring data models for the matching engine.

Defines scoring weights, the per-pair score breakdown with its
explanation payload, and the persisted score record.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import ConfigDict, Field, model_validator

from placement_matching.utils.constants import (
    COMPUTE_VERSION,
    DEFAULT_MATCHING_WEIGHTS,
    MatchRecordStatus,
    MatchScoreLevel,
)

from .base import BaseDocument, EmbeddedModel


class MatchingWeights(EmbeddedModel):
    """Weights applied to the four sub-scores. Non-negative, summing to 1."""

    skill_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["skill_weight"], ge=0)
    academic_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["academic_weight"], ge=0)
    experience_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["experience_weight"], ge=0)
    preference_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["preference_weight"], ge=0)

    @model_validator(mode="after")
    def validate_total(self) -> "MatchingWeights":
        """Ensure weights sum to 1.0."""
        total = (
            self.skill_weight
            + self.academic_weight
            + self.experience_weight
            + self.preference_weight
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Weights must sum to 1.0, got {total:.4f}")
        return self


# =============================================================================
# Explanation payloads
# =============================================================================


class ExplanationModel(EmbeddedModel):
    """Explanation base: fixed required keys, open to extra keys."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="allow")


class SkillMatchDetail(ExplanationModel):
    """Outcome for one declared opportunity skill."""

    skill_id: str
    skill: Optional[str] = None
    required: bool = False
    weight: int = 1
    student_proficiency: int = 0
    student_experience: float = 0.0
    score: float = 0.0
    missing: bool = False


class SkillExplanation(ExplanationModel):
    total_required_skills: int = 0
    matched_skills: int = 0
    missing_required_skills: int = 0
    skill_matches: list[SkillMatchDetail] = Field(default_factory=list)
    reason: Optional[str] = None


class GpaComparison(ExplanationModel):
    student_gpa: float
    required_gpa: float
    meets_requirement: bool


class MajorRelevance(ExplanationModel):
    major: Optional[str] = None
    is_technical_role: bool = False
    is_relevant_major: bool = False


class AcademicExplanation(ExplanationModel):
    gpa_comparison: Optional[GpaComparison] = None
    gpa_score: Optional[float] = None
    university: Optional[str] = None
    major_relevance: Optional[MajorRelevance] = None


class WorkExperienceSummary(ExplanationModel):
    count: int = 0
    total_months: float = 0.0
    score: float = 0.0
    relevant: bool = False


class ProjectSummary(ExplanationModel):
    count: int = 0
    score: float = 0.0
    relevant: bool = False


class ExperienceExplanation(ExplanationModel):
    work_experience: WorkExperienceSummary = Field(default_factory=WorkExperienceSummary)
    projects: ProjectSummary = Field(default_factory=ProjectSummary)
    combined_score: float = 0.0


class PreferenceExplanation(ExplanationModel):
    # None means the preference was not evaluated
    location_match: Optional[bool] = None
    job_type_match: Optional[bool] = None
    industry_match: Optional[bool] = None


# =============================================================================
# Breakdown and persisted record
# =============================================================================


class MatchScoreBreakdown(EmbeddedModel):
    """Result of scoring one candidate against one opportunity."""

    total_score: float = Field(0.0, ge=0, le=1)
    skill_score: float = Field(0.0, ge=0, le=1)
    academic_score: float = Field(0.0, ge=0, le=1)
    experience_score: float = Field(0.0, ge=0, le=1)
    preference_score: float = Field(0.0, ge=0, le=1)

    # Keyed by "skill", "academic", "experience", "preference"
    explanation: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def score_level(self) -> MatchScoreLevel:
        return MatchScoreLevel.from_score(self.total_score)

    @property
    def missing_required_skill_names(self) -> list[str]:
        """Names (or ids) of required skills the candidate lacks."""
        matches = self.explanation.get("skill", {}).get("skill_matches", [])
        return [
            m.get("skill") or m.get("skill_id")
            for m in matches
            if m.get("missing") and m.get("required")
        ]


class MatchScoreRecord(BaseDocument):
    """
    Persisted breakdown for a (candidate, opportunity) pair.

    At most one record exists per pair; recomputation replaces it.
    """

    candidate_id: str
    opportunity_id: str

    total_score: float = Field(0.0, ge=0, le=1)
    skill_score: float = Field(0.0, ge=0, le=1)
    academic_score: float = Field(0.0, ge=0, le=1)
    experience_score: float = Field(0.0, ge=0, le=1)
    preference_score: float = Field(0.0, ge=0, le=1)
    explanation: dict[str, dict[str, Any]] = Field(default_factory=dict)

    status: MatchRecordStatus = MatchRecordStatus.COMPUTED
    compute_version: str = COMPUTE_VERSION
    computed_at: Optional[datetime] = None

    @classmethod
    def from_breakdown(
        cls,
        candidate_id: str,
        opportunity_id: str,
        breakdown: MatchScoreBreakdown,
        compute_version: str = COMPUTE_VERSION,
    ) -> "MatchScoreRecord":
        """Build a record for a pair from a freshly computed breakdown."""
        record = cls(
            candidate_id=candidate_id,
            opportunity_id=opportunity_id,
            compute_version=compute_version,
            **breakdown.model_dump(),
        )
        record.computed_at = record.updated_at
        return record

    def to_breakdown(self) -> MatchScoreBreakdown:
        return MatchScoreBreakdown(
            total_score=self.total_score,
            skill_score=self.skill_score,
            academic_score=self.academic_score,
            experience_score=self.experience_score,
            preference_score=self.preference_score,
            explanation=self.explanation,
        )


class RankedMatch(EmbeddedModel):
    """A score record with its 1-based rank in a result list."""

    rank: int = Field(..., ge=1)
    record: MatchScoreRecord

    @property
    def candidate_id(self) -> str:
        return self.record.candidate_id

    @property
    def opportunity_id(self) -> str:
        return self.record.opportunity_id

    @property
    def total_score(self) -> float:
        return self.record.total_score


class FitAnalysis(EmbeddedModel):
    overall: str
    skill_fit: str
    academic_fit: str
    experience_fit: str


class MatchInsights(EmbeddedModel):
    """Human-readable reading of a breakdown for recruiters and candidates."""

    candidate_id: str
    opportunity_id: str
    breakdown: MatchScoreBreakdown
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    fit_analysis: FitAnalysis
    skill_gaps: list[str] = Field(default_factory=list)
    candidate_recommendations: list[str] = Field(default_factory=list)


class MatchingStats(EmbeddedModel):
    """Aggregate view over stored scores and the queue."""

    total_matches: int = 0
    recent_matches: int = 0  # computed in the last 24 hours
    queue_size: int = 0  # pending tasks
    average_score: float = 0.0
    top_matches: list[RankedMatch] = Field(default_factory=list)
