"""
Pydantic data models for the matching engine.

Profile snapshots, score breakdowns and records, recomputation tasks
and run audit entries.
"""

# Base models
from .base import BaseDocument, EmbeddedModel, PyObjectId, TimestampMixin, utc_now

# Profile snapshots
from .profiles import (
    AcademicRecord,
    CandidateProfile,
    CandidateSkill,
    OpportunityProfile,
    OpportunitySkill,
    Preference,
    Project,
    WorkExperience,
)

# Scoring models
from .match import (
    AcademicExplanation,
    ExperienceExplanation,
    FitAnalysis,
    GpaComparison,
    MajorRelevance,
    MatchingStats,
    MatchingWeights,
    MatchInsights,
    MatchScoreBreakdown,
    MatchScoreRecord,
    PreferenceExplanation,
    ProjectSummary,
    RankedMatch,
    SkillExplanation,
    SkillMatchDetail,
    WorkExperienceSummary,
)

# Queue models
from .task import (
    CandidateScope,
    OpportunityScope,
    PairScope,
    QueueStatus,
    RecomputationTask,
    TaskScope,
    scope_from_ids,
)

# Audit models
from .audit import RunAuditLog

__all__ = [
    # Base
    "BaseDocument",
    "EmbeddedModel",
    "PyObjectId",
    "TimestampMixin",
    "utc_now",
    # Profiles
    "AcademicRecord",
    "CandidateProfile",
    "CandidateSkill",
    "OpportunityProfile",
    "OpportunitySkill",
    "Preference",
    "Project",
    "WorkExperience",
    # Scoring
    "AcademicExplanation",
    "ExperienceExplanation",
    "FitAnalysis",
    "GpaComparison",
    "MajorRelevance",
    "MatchingStats",
    "MatchingWeights",
    "MatchInsights",
    "MatchScoreBreakdown",
    "MatchScoreRecord",
    "PreferenceExplanation",
    "ProjectSummary",
    "RankedMatch",
    "SkillExplanation",
    "SkillMatchDetail",
    "WorkExperienceSummary",
    # Queue
    "CandidateScope",
    "OpportunityScope",
    "PairScope",
    "QueueStatus",
    "RecomputationTask",
    "TaskScope",
    "scope_from_ids",
    # Audit
    "RunAuditLog",
]
