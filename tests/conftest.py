"""
Shared test fixtures for the placement matching test suite.

Sets environment variables before any package imports so settings resolve
to the in-memory backend, then provides profile factories and wired-up
in-memory stores, processors and services.
"""

import os

# === Set environment BEFORE any package imports ===
os.environ.setdefault("APP_ENVIRONMENT", "testing")
os.environ.setdefault("DB_NAME", "placement_matching_test")
os.environ.setdefault("QUEUE_BACKEND", "memory")
os.environ.setdefault("LOG_FILE_OUTPUT", "false")

from datetime import datetime, timedelta
from typing import Any, Optional

import pytest

from placement_matching.core.matching import ScoreCalculator
from placement_matching.core.queue import QueueProcessor, TriggerAdapter
from placement_matching.core.service import MatchingService
from placement_matching.data.models import (
    AcademicRecord,
    CandidateProfile,
    CandidateSkill,
    OpportunityProfile,
    OpportunitySkill,
    Preference,
    Project,
    WorkExperience,
    utc_now,
)
from placement_matching.data.repositories.memory import (
    InMemoryMatchScoreStore,
    InMemoryOpportunityService,
    InMemoryProfileService,
    InMemoryRecomputationQueue,
    InMemoryRunAuditStore,
)
from placement_matching.utils.config import AppSettings, QueueSettings


class FakeClock:
    """Manually advanced clock for the in-memory stores."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or utc_now()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Profile factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_candidate():
    """Factory that returns a callable to build CandidateProfile snapshots."""

    def _factory(
        candidate_id: str = "cand-1",
        skills: Optional[list[dict[str, Any]]] = None,
        gpa: Optional[float] = None,
        major_name: Optional[str] = None,
        university_name: Optional[str] = None,
        experiences: Optional[list[dict[str, Any]]] = None,
        projects: Optional[list[dict[str, Any]]] = None,
        preferences: Optional[list[tuple[str, str]]] = None,
        is_active: bool = True,
    ) -> CandidateProfile:
        return CandidateProfile(
            id=candidate_id,
            skills=[CandidateSkill(**s) for s in (skills or [])],
            academic=AcademicRecord(
                gpa=gpa,
                major_name=major_name,
                university_name=university_name,
            ),
            experiences=[WorkExperience(**e) for e in (experiences or [])],
            projects=[Project(**p) for p in (projects or [])],
            preferences=[Preference(type=t, value=v) for t, v in (preferences or [])],
            is_active=is_active,
        )

    return _factory


@pytest.fixture
def make_opportunity():
    """Factory that returns a callable to build OpportunityProfile snapshots."""

    def _factory(
        opportunity_id: str = "opp-1",
        title: str = "Software Engineer",
        skills: Optional[list[dict[str, Any]]] = None,
        gpa_threshold: Optional[float] = None,
        is_technical: bool = False,
        job_types: Optional[list[str]] = None,
        industry: Optional[str] = None,
        location: Optional[str] = None,
        is_active: bool = True,
    ) -> OpportunityProfile:
        return OpportunityProfile(
            id=opportunity_id,
            title=title,
            skills=[OpportunitySkill(**s) for s in (skills or [])],
            gpa_threshold=gpa_threshold,
            is_technical=is_technical,
            job_types=job_types or [],
            industry=industry,
            location=location,
            is_active=is_active,
        )

    return _factory


# ---------------------------------------------------------------------------
# Engine components
# ---------------------------------------------------------------------------


@pytest.fixture
def calculator():
    return ScoreCalculator()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue():
    return InMemoryRecomputationQueue()


@pytest.fixture
def store():
    return InMemoryMatchScoreStore()


@pytest.fixture
def run_log():
    return InMemoryRunAuditStore()


@pytest.fixture
def profiles():
    return InMemoryProfileService()


@pytest.fixture
def opportunities():
    return InMemoryOpportunityService()


@pytest.fixture
def queue_settings():
    return QueueSettings(
        backend="memory",
        interval_seconds=0.05,
        initial_delay_seconds=0,
        batch_size=10,
        max_attempts=3,
        task_timeout_seconds=5.0,
    )


@pytest.fixture
def processor(queue, store, run_log, profiles, opportunities, queue_settings):
    proc = QueueProcessor(
        queue=queue,
        store=store,
        run_log=run_log,
        profiles=profiles,
        opportunities=opportunities,
        settings=queue_settings,
    )
    yield proc
    proc.stop(timeout=2.0)


@pytest.fixture
def triggers(queue, profiles):
    return TriggerAdapter(queue, profiles)


@pytest.fixture
def app_settings(queue_settings):
    return AppSettings(queue=queue_settings)


@pytest.fixture
def service(queue, store, run_log, profiles, opportunities, app_settings):
    svc = MatchingService(
        queue=queue,
        store=store,
        run_log=run_log,
        profiles=profiles,
        opportunities=opportunities,
        settings=app_settings,
    )
    yield svc
    svc.stop(timeout=2.0)
