"""
Matching service facade.

Single entry point for profile handlers, read paths and operators:
enqueueing, ranked reads, queue status, run history and administrative
recomputes. `build_matching_service` wires the configured backend.
"""

from datetime import timedelta
from typing import Optional

from placement_matching.core.collaborators import OpportunityService, ProfileService
from placement_matching.core.matching import ScoreCalculator, build_insights
from placement_matching.core.queue import BatchResult, QueueProcessor, TriggerAdapter
from placement_matching.data.models import (
    MatchingStats,
    MatchingWeights,
    MatchInsights,
    QueueStatus,
    RankedMatch,
    RecomputationTask,
    RunAuditLog,
    TaskScope,
    scope_from_ids,
    utc_now,
)
from placement_matching.data.repositories.interfaces import (
    MatchScoreStore,
    RecomputationQueue,
    RunAuditStore,
)
from placement_matching.utils.config import AppSettings, MatchingSettings, get_settings
from placement_matching.utils.constants import (
    PRIORITY_MANUAL_DEFAULT,
    QUEUE_STATUS_WINDOW_MS,
    RunType,
    TaskStatus,
)
from placement_matching.utils.logger import LoggerMixin, audit_log


def weights_from_settings(matching: MatchingSettings) -> MatchingWeights:
    return MatchingWeights(
        skill_weight=matching.skill_weight,
        academic_weight=matching.academic_weight,
        experience_weight=matching.experience_weight,
        preference_weight=matching.preference_weight,
    )


class MatchingService(LoggerMixin):
    """Facade over the score store, the queue and its processor."""

    def __init__(
        self,
        queue: RecomputationQueue,
        store: MatchScoreStore,
        run_log: RunAuditStore,
        profiles: ProfileService,
        opportunities: OpportunityService,
        settings: Optional[AppSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.queue = queue
        self.store = store
        self.run_log = run_log
        self.profiles = profiles
        self.opportunities = opportunities

        weights = weights_from_settings(self.settings.matching)
        self.calculator = ScoreCalculator(weights)
        self.processor = QueueProcessor(
            queue=queue,
            store=store,
            run_log=run_log,
            profiles=profiles,
            opportunities=opportunities,
            calculator=self.calculator,
            settings=self.settings.queue,
            compute_version=self.settings.matching.compute_version,
        )
        self.triggers = TriggerAdapter(queue, profiles, self.settings.queue.max_attempts)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        return self.processor.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.processor.stop(timeout)

    # -------------------------------------------------------------------------
    # Collaborator-facing
    # -------------------------------------------------------------------------

    def enqueue(
        self,
        candidate_id: Optional[str] = None,
        opportunity_id: Optional[str] = None,
        reason: str = "",
        priority: int = 0,
    ) -> RecomputationTask:
        """
        Queue a recomputation.

        Both ids name a single pair; one id fans out to every active
        counterpart.

        Raises:
            InvalidTaskScopeError: If neither id is given.
        """
        return self.triggers.enqueue(scope_from_ids(candidate_id, opportunity_id), priority, reason)

    def get_top_matches_for_opportunity(
        self,
        opportunity_id: str,
        limit: int = 10,
    ) -> list[RankedMatch]:
        """Best candidates for an opportunity, ranked from 1."""
        return self.store.top_for_opportunity(opportunity_id, limit)

    def get_top_matches_for_candidate(
        self,
        candidate_id: str,
        limit: int = 10,
    ) -> list[RankedMatch]:
        """Best opportunities for a candidate, ranked from 1."""
        return self.store.top_for_candidate(candidate_id, limit)

    def get_match_insights(
        self,
        candidate_id: str,
        opportunity_id: str,
    ) -> Optional[MatchInsights]:
        """Insights for a stored pair, or None when it has not been scored."""
        record = self.store.get_pair(candidate_id, opportunity_id)
        if record is None:
            return None
        return build_insights(record)

    # -------------------------------------------------------------------------
    # Operational visibility
    # -------------------------------------------------------------------------

    def get_queue_status(self) -> QueueStatus:
        now = utc_now()
        since = now - timedelta(milliseconds=QUEUE_STATUS_WINDOW_MS)

        oldest = self.queue.oldest_pending()
        oldest_age_ms = None
        if oldest is not None:
            oldest_age_ms = max(int((now - oldest.created_at).total_seconds() * 1000), 0)

        return QueueStatus(
            pending=self.queue.count(TaskStatus.PENDING),
            processing=self.queue.count(TaskStatus.PROCESSING),
            completed_today=self.queue.count(TaskStatus.COMPLETED, since=since),
            failed_today=self.queue.count(TaskStatus.FAILED, since=since),
            oldest_pending_age_ms=oldest_age_ms,
            is_processor_running=self.processor.is_running,
            is_currently_processing=self.processor.is_processing,
        )

    def get_run_history(self, limit: int = 20) -> list[RunAuditLog]:
        return self.run_log.recent(limit)

    def get_matching_stats(self, top_limit: int = 10) -> MatchingStats:
        since = utc_now() - timedelta(milliseconds=QUEUE_STATUS_WINDOW_MS)
        return MatchingStats(
            total_matches=self.store.count_records(),
            recent_matches=self.store.count_records(since=since),
            queue_size=self.queue.count(TaskStatus.PENDING),
            average_score=round(self.store.average_total_score(), 2),
            top_matches=self.store.top_overall(top_limit),
        )

    # -------------------------------------------------------------------------
    # Administrative
    # -------------------------------------------------------------------------

    def trigger_manual_recompute(
        self,
        scope: TaskScope,
        priority: int = PRIORITY_MANUAL_DEFAULT,
        actor: str = "system",
    ) -> RecomputationTask:
        return self.triggers.trigger_manual(scope, priority, actor)

    def process_batch_now(
        self,
        batch_size: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> BatchResult:
        """Synchronous one-shot drain of up to batch_size tasks."""
        return self.processor.process_batch(batch_size, RunType.MANUAL_TRIGGER, actor)

    def cleanup(self, retention_days: Optional[int] = None) -> int:
        """Purge finished tasks older than the retention window."""
        days = self.settings.queue.retention_days if retention_days is None else retention_days
        removed = self.queue.purge_older_than(timedelta(days=days))
        audit_log(
            "queue_cleanup",
            {"retention_days": days, "removed": removed},
            audit_type="CLEANUP",
        )
        return removed


def build_matching_service(settings: Optional[AppSettings] = None) -> MatchingService:
    """
    Create a MatchingService for the configured backend.

    QUEUE_BACKEND=mongodb uses the MongoDB repositories and profile
    collections; QUEUE_BACKEND=memory keeps everything in process.
    """
    settings = settings or get_settings()

    if settings.queue.backend == "memory":
        from placement_matching.data.repositories.memory import (
            InMemoryMatchScoreStore,
            InMemoryOpportunityService,
            InMemoryProfileService,
            InMemoryRecomputationQueue,
            InMemoryRunAuditStore,
        )

        return MatchingService(
            queue=InMemoryRecomputationQueue(),
            store=InMemoryMatchScoreStore(),
            run_log=InMemoryRunAuditStore(),
            profiles=InMemoryProfileService(),
            opportunities=InMemoryOpportunityService(),
            settings=settings,
        )

    from placement_matching.data.database import get_database_manager
    from placement_matching.data.repositories import (
        MatchScoreRepository,
        MongoOpportunityService,
        MongoProfileService,
        QueueRepository,
        RunLogRepository,
    )

    db_manager = get_database_manager()
    return MatchingService(
        queue=QueueRepository(db_manager),
        store=MatchScoreRepository(db_manager),
        run_log=RunLogRepository(db_manager),
        profiles=MongoProfileService(db_manager),
        opportunities=MongoOpportunityService(db_manager),
        settings=settings,
    )
