"""
Application-wide constants for the placement matching engine.

This module contains all constant values used throughout the engine.
Modify these values to customize behavior without changing code logic.
"""

from enum import Enum
from typing import Final


# =============================================================================
# Application Constants
# =============================================================================

APP_NAME: Final[str] = "placement-matching"
APP_DISPLAY_NAME: Final[str] = "Placement Matching Engine"
VERSION: Final[str] = "1.0.0"

# Version stamp written on every score record and run log
COMPUTE_VERSION: Final[str] = "1.0"


# =============================================================================
# Scoring Constants
# =============================================================================

# Default weights for the four sub-scores (must sum to 1)
DEFAULT_MATCHING_WEIGHTS: Final[dict[str, float]] = {
    "skill_weight": 0.40,
    "academic_weight": 0.25,
    "experience_weight": 0.25,
    "preference_weight": 0.10,
}

# Majors that earn the technical-role bonus (substring match, lowercase)
TECHNICAL_MAJORS: Final[tuple[str, ...]] = (
    "computer science",
    "software engineering",
    "information systems",
    "computer engineering",
)

# Skill scoring
MAX_PROFICIENCY: Final[int] = 5
EXPERIENCE_BONUS_DIVISOR: Final[float] = 5.0
EXPERIENCE_BONUS_CAP: Final[float] = 0.2
NO_SKILLS_DECLARED_SCORE: Final[float] = 0.5

# Academic scoring
ACADEMIC_BASE_SCORE: Final[float] = 0.5
GPA_SCALE: Final[float] = 4.0
GPA_MEETS_BASE: Final[float] = 0.7
GPA_EXCESS_BONUS: Final[float] = 0.3
GPA_GAP_PENALTY: Final[float] = 0.5
GPA_FLOOR_SCORE: Final[float] = 0.2
TECHNICAL_MAJOR_BONUS: Final[float] = 0.1

# Experience scoring
DAYS_PER_MONTH: Final[int] = 30
FULL_EXPERIENCE_MONTHS: Final[float] = 24.0
RELEVANT_EXPERIENCE_BONUS: Final[float] = 0.2
FULL_PROJECT_COUNT: Final[float] = 3.0
RELEVANT_PROJECT_BONUS: Final[float] = 0.3
WORK_SHARE: Final[float] = 0.7
PROJECT_SHARE: Final[float] = 0.3

# Preference scoring
PREFERENCE_BASE_SCORE: Final[float] = 0.7
LOCATION_MATCH_BONUS: Final[float] = 0.2
LOCATION_MISMATCH_PENALTY: Final[float] = 0.3
LOCATION_FLOOR_SCORE: Final[float] = 0.2
JOB_TYPE_MATCH_BONUS: Final[float] = 0.1
INDUSTRY_MATCH_BONUS: Final[float] = 0.1
REMOTE_LOCATION: Final[str] = "remote"


# =============================================================================
# Queue Constants
# =============================================================================

DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_BATCH_SIZE: Final[int] = 10
DEFAULT_INTERVAL_SECONDS: Final[float] = 30.0
DEFAULT_RETENTION_DAYS: Final[int] = 7

# Trigger priorities (higher = more urgent)
PRIORITY_OPPORTUNITY_SKILLS: Final[int] = 5
PRIORITY_DOCUMENT_PARSED: Final[int] = 5
PRIORITY_OPPORTUNITY_UPDATE: Final[int] = 4
PRIORITY_SKILLS_UPDATE: Final[int] = 4
PRIORITY_EXPERIENCE_UPDATE: Final[int] = 4
PRIORITY_ACADEMIC_UPDATE: Final[int] = 3
PRIORITY_PROFILE_UPDATE: Final[int] = 3
PRIORITY_SCHEDULED_SWEEP: Final[int] = 1
PRIORITY_MANUAL_DEFAULT: Final[int] = 5

# Rolling window used for the "today" queue counters (milliseconds)
QUEUE_STATUS_WINDOW_MS: Final[int] = 24 * 60 * 60 * 1000


# =============================================================================
# Insight Thresholds
# =============================================================================

SCORE_THRESHOLDS: Final[dict[str, float]] = {
    "excellent": 0.85,
    "good": 0.70,
    "fair": 0.50,
    "poor": 0.30,
}


# =============================================================================
# Enums
# =============================================================================


class TaskStatus(str, Enum):
    """Lifecycle state of a recomputation task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class PreferenceType(str, Enum):
    """Kinds of candidate preferences the engine reads."""

    LOCATION = "LOCATION"
    JOB_TYPE = "JOB_TYPE"
    INDUSTRY = "INDUSTRY"


class RunType(str, Enum):
    """Kinds of processor invocations recorded in the run log."""

    CANDIDATE_UPDATE = "CANDIDATE_UPDATE"
    OPPORTUNITY_UPDATE = "OPPORTUNITY_UPDATE"
    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    SCHEDULED_BATCH = "SCHEDULED_BATCH"


class MatchRecordStatus(str, Enum):
    """Status of a persisted match score record."""

    PENDING = "pending"
    COMPUTED = "computed"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"


class MatchScoreLevel(Enum):
    """Categorical levels for match scores."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_score(cls, score: float) -> "MatchScoreLevel":
        """Convert a numeric score to a level."""
        if score >= SCORE_THRESHOLDS["excellent"]:
            return cls.EXCELLENT
        elif score >= SCORE_THRESHOLDS["good"]:
            return cls.GOOD
        elif score >= SCORE_THRESHOLDS["fair"]:
            return cls.FAIR
        return cls.POOR
