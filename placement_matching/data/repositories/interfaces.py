"""
Storage contracts for the matching engine.

Each contract has a MongoDB repository and an in-memory adapter. The
queue processor and the service facade only depend on these classes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from placement_matching.data.models import (
    MatchScoreBreakdown,
    MatchScoreRecord,
    RankedMatch,
    RecomputationTask,
    RunAuditLog,
)
from placement_matching.utils.constants import COMPUTE_VERSION, TaskStatus


def rank_records(records: Iterable[MatchScoreRecord]) -> list[RankedMatch]:
    """Number records 1..N in the order given (already sorted by score)."""
    return [RankedMatch(rank=i, record=record) for i, record in enumerate(records, start=1)]


# Timestamp each status is windowed on when counting "since" a cutoff
STATUS_TIME_FIELDS: dict[str, str] = {
    TaskStatus.PENDING.value: "created_at",
    TaskStatus.PROCESSING.value: "processed_at",
    TaskStatus.COMPLETED.value: "completed_at",
    TaskStatus.FAILED.value: "processed_at",
}


class MatchScoreStore(ABC):
    """
    Persistence boundary for match score records.

    Holds at most one record per (candidate_id, opportunity_id) pair.
    Ranked reads order by total_score descending; ties keep insertion order.
    """

    @abstractmethod
    def upsert_pair(
        self,
        candidate_id: str,
        opportunity_id: str,
        breakdown: MatchScoreBreakdown,
        compute_version: str = COMPUTE_VERSION,
    ) -> MatchScoreRecord:
        """Insert or replace the record for one pair."""

    @abstractmethod
    def bulk_replace_for_candidate(
        self,
        candidate_id: str,
        breakdowns: Mapping[str, MatchScoreBreakdown],
        compute_version: str = COMPUTE_VERSION,
    ) -> int:
        """
        Replace every record of a candidate.

        Args:
            candidate_id: The candidate whose records are replaced
            breakdowns: Fresh breakdowns keyed by opportunity id

        Returns:
            Number of records written
        """

    @abstractmethod
    def bulk_replace_for_opportunity(
        self,
        opportunity_id: str,
        breakdowns: Mapping[str, MatchScoreBreakdown],
        compute_version: str = COMPUTE_VERSION,
    ) -> int:
        """Replace every record of an opportunity; breakdowns keyed by candidate id."""

    @abstractmethod
    def top_for_opportunity(self, opportunity_id: str, limit: int = 10) -> list[RankedMatch]:
        pass

    @abstractmethod
    def top_for_candidate(self, candidate_id: str, limit: int = 10) -> list[RankedMatch]:
        pass

    @abstractmethod
    def get_pair(self, candidate_id: str, opportunity_id: str) -> Optional[MatchScoreRecord]:
        pass

    @abstractmethod
    def count_records(self, since: Optional[datetime] = None) -> int:
        """Count records, optionally only those computed at or after `since`."""

    @abstractmethod
    def average_total_score(self) -> float:
        """Mean total score across all records (0.0 when empty)."""

    @abstractmethod
    def top_overall(self, limit: int = 10) -> list[RankedMatch]:
        pass


class RecomputationQueue(ABC):
    """
    Durable, prioritized task list with retry bookkeeping.

    claim_batch must be atomic with respect to the pending -> processing
    transition: a task is handed to at most one claimer.
    """

    @abstractmethod
    def enqueue(self, task: RecomputationTask) -> RecomputationTask:
        """Persist a new pending task and return it with its id set."""

    @abstractmethod
    def claim_batch(self, n: int) -> list[RecomputationTask]:
        """
        Claim up to n pending tasks.

        Tasks are returned in claim order: priority descending, then
        created_at ascending. Each claimed task is moved to processing
        and stamped with processed_at.
        """

    @abstractmethod
    def mark_completed(self, task_id: str) -> Optional[RecomputationTask]:
        pass

    @abstractmethod
    def mark_failed(
        self,
        task_id: str,
        error: str,
        permanent: bool = False,
    ) -> Optional[RecomputationTask]:
        """
        Record a failed attempt.

        Increments attempts and returns the task to pending while
        attempts < max_attempts, otherwise fails it and keeps the error.
        permanent=True fails the task at once without consuming a retry.
        """

    @abstractmethod
    def purge_older_than(self, age: timedelta) -> int:
        """Delete completed and failed tasks created before now - age."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[RecomputationTask]:
        pass

    @abstractmethod
    def count(self, status: TaskStatus, since: Optional[datetime] = None) -> int:
        """Count tasks in a status, windowed on STATUS_TIME_FIELDS when since is given."""

    @abstractmethod
    def oldest_pending(self) -> Optional[RecomputationTask]:
        pass


class RunAuditStore(ABC):
    """Append-only log of processor runs."""

    @abstractmethod
    def append(self, entry: RunAuditLog) -> RunAuditLog:
        pass

    @abstractmethod
    def recent(self, limit: int = 20) -> list[RunAuditLog]:
        """Most recent entries, newest first."""
