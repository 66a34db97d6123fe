"""
Profile snapshots consumed by the matching engine.

Candidate and opportunity profiles are owned by other services; the engine
only reads the fields declared here.
"""

from datetime import date, datetime
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator, Field, field_validator

from placement_matching.utils.constants import TECHNICAL_MAJORS, PreferenceType

from .base import EmbeddedModel


def _coerce_id(value: Any) -> Any:
    # Profile ids arrive as ObjectId from MongoDB and as str everywhere else
    if value is not None and not isinstance(value, str):
        return str(value)
    return value


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    return value


ProfileId = Annotated[str, BeforeValidator(_coerce_id)]
ProfileDate = Annotated[date, BeforeValidator(_coerce_date)]


# =============================================================================
# Candidate
# =============================================================================


class CandidateSkill(EmbeddedModel):
    """A skill held by a candidate."""

    skill_id: ProfileId
    name: Optional[str] = None
    proficiency: int = Field(..., ge=1, le=5)
    years_of_experience: float = Field(0.0, ge=0)


class AcademicRecord(EmbeddedModel):
    """Academic standing of a candidate."""

    gpa: Optional[float] = Field(None, ge=0.0, le=4.0)
    university_id: Optional[str] = None
    university_name: Optional[str] = None
    major_id: Optional[str] = None
    major_name: Optional[str] = None
    is_technical_major: Optional[bool] = None

    @property
    def has_major(self) -> bool:
        return bool(self.major_id or self.major_name)

    @property
    def technical_major(self) -> bool:
        """Explicit flag wins; otherwise derived from the major name."""
        if self.is_technical_major is not None:
            return self.is_technical_major
        if not self.major_name:
            return False
        major = self.major_name.lower()
        return any(tm in major for tm in TECHNICAL_MAJORS)


class WorkExperience(EmbeddedModel):
    """A single employment entry. end_date=None means ongoing."""

    title: str = ""
    employer: str = ""
    employment_type: Optional[str] = None
    start_date: ProfileDate
    end_date: Optional[ProfileDate] = None


class Project(EmbeddedModel):
    """A candidate project and the skills it exercised."""

    name: str
    skill_ids: list[ProfileId] = Field(default_factory=list)


class Preference(EmbeddedModel):
    """A candidate's stated preference."""

    type: PreferenceType
    value: str
    priority: int = 0


class CandidateProfile(EmbeddedModel):
    """Read-only snapshot of a candidate as assembled by the profile service."""

    id: ProfileId = Field(..., alias="_id")
    skills: list[CandidateSkill] = Field(default_factory=list)
    academic: AcademicRecord = Field(default_factory=AcademicRecord)
    experiences: list[WorkExperience] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    preferences: list[Preference] = Field(default_factory=list)
    is_active: bool = True

    def preferences_of(self, pref_type: PreferenceType) -> list[Preference]:
        """Preferences of one type, in declared order."""
        wanted = pref_type.value if isinstance(pref_type, PreferenceType) else pref_type
        return [p for p in self.preferences if p.type == wanted]


# =============================================================================
# Opportunity
# =============================================================================


class OpportunitySkill(EmbeddedModel):
    """A skill declared on an opportunity."""

    skill_id: ProfileId
    name: Optional[str] = None
    weight: int = Field(1, ge=1, le=5)
    required: bool = False


class OpportunityProfile(EmbeddedModel):
    """Read-only snapshot of a job opportunity."""

    id: ProfileId = Field(..., alias="_id")
    title: str = ""
    skills: list[OpportunitySkill] = Field(default_factory=list)
    gpa_threshold: Optional[float] = Field(None, ge=0.0, le=4.0)
    is_technical: bool = False
    job_types: list[str] = Field(default_factory=list)
    industry: Optional[str] = None
    location: Optional[str] = None
    is_active: bool = True

    @field_validator("job_types", mode="before")
    @classmethod
    def dedupe_job_types(cls, v: Any) -> Any:
        """Job types behave as a set but keep their declared order."""
        if isinstance(v, (list, tuple, set, frozenset)):
            seen: list[str] = []
            for item in v:
                if item not in seen:
                    seen.append(item)
            return seen
        return v

    @property
    def skill_ids(self) -> set[str]:
        return {s.skill_id for s in self.skills}
