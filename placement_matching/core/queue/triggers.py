"""
Translation of domain events into recomputation tasks.

Profile and opportunity services call these hooks after they change
data; each hook enqueues a task with a fixed priority and reason.
"""

from typing import Optional

from placement_matching.core.collaborators import ProfileService
from placement_matching.data.models import (
    CandidateScope,
    OpportunityScope,
    RecomputationTask,
    TaskScope,
)
from placement_matching.data.repositories.interfaces import RecomputationQueue
from placement_matching.utils.constants import (
    DEFAULT_MAX_ATTEMPTS,
    PRIORITY_ACADEMIC_UPDATE,
    PRIORITY_DOCUMENT_PARSED,
    PRIORITY_EXPERIENCE_UPDATE,
    PRIORITY_MANUAL_DEFAULT,
    PRIORITY_OPPORTUNITY_SKILLS,
    PRIORITY_OPPORTUNITY_UPDATE,
    PRIORITY_PROFILE_UPDATE,
    PRIORITY_SCHEDULED_SWEEP,
    PRIORITY_SKILLS_UPDATE,
)
from placement_matching.utils.logger import audit_log, get_logger

logger = get_logger(__name__)


class TriggerAdapter:
    """Stateless mapping from domain events to prioritized queue entries."""

    def __init__(
        self,
        queue: RecomputationQueue,
        profiles: Optional[ProfileService] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._queue = queue
        self._profiles = profiles
        self._max_attempts = max_attempts

    def enqueue(self, scope: TaskScope, priority: int, reason: str) -> RecomputationTask:
        """Queue a task for any scope."""
        task = self._queue.enqueue(
            RecomputationTask(
                scope=scope,
                priority=priority,
                trigger_reason=reason,
                max_attempts=self._max_attempts,
            )
        )
        logger.info(f"Queued recomputation for {scope.describe()} ({reason}, priority {priority})")
        return task

    # -------------------------------------------------------------------------
    # Opportunity events
    # -------------------------------------------------------------------------

    def on_opportunity_skills_updated(self, opportunity_id: str) -> RecomputationTask:
        return self.enqueue(
            OpportunityScope(opportunity_id=opportunity_id),
            PRIORITY_OPPORTUNITY_SKILLS,
            "Required skills updated",
        )

    def on_opportunity_updated(
        self,
        opportunity_id: str,
        reason: str = "Opportunity updated",
    ) -> RecomputationTask:
        return self.enqueue(
            OpportunityScope(opportunity_id=opportunity_id),
            PRIORITY_OPPORTUNITY_UPDATE,
            reason,
        )

    # -------------------------------------------------------------------------
    # Candidate events
    # -------------------------------------------------------------------------

    def on_document_parsed(self, candidate_id: str, document_type: str) -> RecomputationTask:
        """A CV or transcript was parsed into the candidate's profile."""
        return self.enqueue(
            CandidateScope(candidate_id=candidate_id),
            PRIORITY_DOCUMENT_PARSED,
            f"{document_type} uploaded",
        )

    def on_skills_updated(self, candidate_id: str) -> RecomputationTask:
        return self.enqueue(
            CandidateScope(candidate_id=candidate_id), PRIORITY_SKILLS_UPDATE, "Skills updated"
        )

    def on_experience_updated(self, candidate_id: str) -> RecomputationTask:
        return self.enqueue(
            CandidateScope(candidate_id=candidate_id),
            PRIORITY_EXPERIENCE_UPDATE,
            "Experience updated",
        )

    def on_academic_updated(self, candidate_id: str) -> RecomputationTask:
        return self.enqueue(
            CandidateScope(candidate_id=candidate_id),
            PRIORITY_ACADEMIC_UPDATE,
            "Academic info updated",
        )

    def on_profile_updated(
        self,
        candidate_id: str,
        reason: str = "Profile updated",
    ) -> RecomputationTask:
        return self.enqueue(
            CandidateScope(candidate_id=candidate_id), PRIORITY_PROFILE_UPDATE, reason
        )

    # -------------------------------------------------------------------------
    # Scheduled and administrative
    # -------------------------------------------------------------------------

    def schedule_full_sweep(self) -> list[RecomputationTask]:
        """Queue a low-priority task for every active candidate."""
        if self._profiles is None:
            raise RuntimeError("A full sweep needs a profile service")

        candidates = self._profiles.get_all_active_candidates()
        tasks = [
            self.enqueue(
                CandidateScope(candidate_id=candidate.id),
                PRIORITY_SCHEDULED_SWEEP,
                "Scheduled periodic recomputation",
            )
            for candidate in candidates
        ]
        logger.info(f"Scheduled periodic recomputation for {len(tasks)} candidate(s)")
        return tasks

    def trigger_manual(
        self,
        scope: TaskScope,
        priority: int = PRIORITY_MANUAL_DEFAULT,
        actor: str = "system",
    ) -> RecomputationTask:
        """Queue an operator-requested task, recording who asked for it."""
        task = self.enqueue(scope, priority, f"Manual trigger by {actor}")
        audit_log(
            "manual_trigger",
            {
                "task_id": task.id_str,
                "scope": scope.describe(),
                "priority": priority,
                "actor": actor,
            },
            audit_type="TRIGGER",
        )
        return task
