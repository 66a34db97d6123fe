"""
In-memory store adapters.

Thread-safe stand-ins for the MongoDB repositories, used by tests, local
tooling and QUEUE_BACKEND=memory. Models are copied on the way in and
out so callers never share state with the store.
"""

import threading
from datetime import datetime, timedelta
from itertools import count
from typing import Callable, Iterable, Mapping, Optional

from bson import ObjectId

from placement_matching.data.models import (
    CandidateProfile,
    MatchScoreBreakdown,
    MatchScoreRecord,
    OpportunityProfile,
    RankedMatch,
    RecomputationTask,
    RunAuditLog,
    utc_now,
)
from placement_matching.utils.constants import COMPUTE_VERSION, TaskStatus

from .interfaces import (
    STATUS_TIME_FIELDS,
    MatchScoreStore,
    RecomputationQueue,
    RunAuditStore,
    rank_records,
)

Clock = Callable[[], datetime]


# =============================================================================
# Match scores
# =============================================================================


class InMemoryMatchScoreStore(MatchScoreStore):
    """Match score store keyed by (candidate_id, opportunity_id)."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[tuple[str, str], MatchScoreRecord] = {}

    def _new_record(
        self,
        candidate_id: str,
        opportunity_id: str,
        breakdown: MatchScoreBreakdown,
        compute_version: str,
    ) -> MatchScoreRecord:
        record = MatchScoreRecord.from_breakdown(
            candidate_id, opportunity_id, breakdown, compute_version
        )
        now = self._clock()
        record.id = ObjectId()
        record.created_at = record.updated_at = record.computed_at = now
        return record

    def upsert_pair(
        self,
        candidate_id: str,
        opportunity_id: str,
        breakdown: MatchScoreBreakdown,
        compute_version: str = COMPUTE_VERSION,
    ) -> MatchScoreRecord:
        record = self._new_record(candidate_id, opportunity_id, breakdown, compute_version)
        key = (candidate_id, opportunity_id)
        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                record.id = existing.id
                record.created_at = existing.created_at
            self._records[key] = record
            return record.model_copy(deep=True)

    def bulk_replace_for_candidate(
        self,
        candidate_id: str,
        breakdowns: Mapping[str, MatchScoreBreakdown],
        compute_version: str = COMPUTE_VERSION,
    ) -> int:
        records = [
            self._new_record(candidate_id, opp_id, breakdown, compute_version)
            for opp_id, breakdown in breakdowns.items()
        ]
        with self._lock:
            for key in [k for k in self._records if k[0] == candidate_id]:
                del self._records[key]
            for record in records:
                self._records[(record.candidate_id, record.opportunity_id)] = record
        return len(records)

    def bulk_replace_for_opportunity(
        self,
        opportunity_id: str,
        breakdowns: Mapping[str, MatchScoreBreakdown],
        compute_version: str = COMPUTE_VERSION,
    ) -> int:
        records = [
            self._new_record(cand_id, opportunity_id, breakdown, compute_version)
            for cand_id, breakdown in breakdowns.items()
        ]
        with self._lock:
            for key in [k for k in self._records if k[1] == opportunity_id]:
                del self._records[key]
            for record in records:
                self._records[(record.candidate_id, record.opportunity_id)] = record
        return len(records)

    def _ranked(
        self,
        predicate: Callable[[MatchScoreRecord], bool],
        limit: int,
    ) -> list[RankedMatch]:
        with self._lock:
            matching = [r.model_copy(deep=True) for r in self._records.values() if predicate(r)]
        # sorted() is stable, so ties keep insertion order
        matching = sorted(matching, key=lambda r: -r.total_score)
        return rank_records(matching[:limit])

    def top_for_opportunity(self, opportunity_id: str, limit: int = 10) -> list[RankedMatch]:
        return self._ranked(lambda r: r.opportunity_id == opportunity_id, limit)

    def top_for_candidate(self, candidate_id: str, limit: int = 10) -> list[RankedMatch]:
        return self._ranked(lambda r: r.candidate_id == candidate_id, limit)

    def top_overall(self, limit: int = 10) -> list[RankedMatch]:
        return self._ranked(lambda r: True, limit)

    def get_pair(self, candidate_id: str, opportunity_id: str) -> Optional[MatchScoreRecord]:
        with self._lock:
            record = self._records.get((candidate_id, opportunity_id))
            return record.model_copy(deep=True) if record is not None else None

    def count_records(self, since: Optional[datetime] = None) -> int:
        with self._lock:
            if since is None:
                return len(self._records)
            return sum(
                1
                for r in self._records.values()
                if r.computed_at is not None and r.computed_at >= since
            )

    def average_total_score(self) -> float:
        with self._lock:
            scores = [r.total_score for r in self._records.values()]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    def all_records(self) -> list[MatchScoreRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values()]


# =============================================================================
# Recomputation queue
# =============================================================================


class InMemoryRecomputationQueue(RecomputationQueue):
    """Recomputation queue whose claim is a locked pending -> processing swap."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._tasks: dict[str, RecomputationTask] = {}
        self._sequence: dict[str, int] = {}
        self._counter = count()

    def enqueue(self, task: RecomputationTask) -> RecomputationTask:
        task = task.model_copy(deep=True)
        task.id = ObjectId()
        task.created_at = task.updated_at = self._clock()
        with self._lock:
            self._tasks[task.id_str] = task
            self._sequence[task.id_str] = next(self._counter)
        return task.model_copy(deep=True)

    def claim_batch(self, n: int) -> list[RecomputationTask]:
        with self._lock:
            pending = [
                t for t in self._tasks.values() if t.status == TaskStatus.PENDING.value
            ]
            pending.sort(
                key=lambda t: (-t.priority, t.created_at, self._sequence[t.id_str])
            )
            claimed = pending[: max(n, 0)]
            now = self._clock()
            for task in claimed:
                task.status = TaskStatus.PROCESSING.value
                task.processed_at = now
                task.updated_at = now
            return [t.model_copy(deep=True) for t in claimed]

    def _processing_task(self, task_id: str) -> Optional[RecomputationTask]:
        task = self._tasks.get(str(task_id))
        if task is None or task.status != TaskStatus.PROCESSING.value:
            return None
        return task

    def mark_completed(self, task_id: str) -> Optional[RecomputationTask]:
        with self._lock:
            task = self._processing_task(task_id)
            if task is None:
                return None
            now = self._clock()
            task.status = TaskStatus.COMPLETED.value
            task.completed_at = now
            task.updated_at = now
            return task.model_copy(deep=True)

    def mark_failed(
        self,
        task_id: str,
        error: str,
        permanent: bool = False,
    ) -> Optional[RecomputationTask]:
        with self._lock:
            task = self._processing_task(task_id)
            if task is None:
                return None
            task.error = error
            task.updated_at = self._clock()
            if permanent:
                task.status = TaskStatus.FAILED.value
            else:
                task.attempts += 1
                task.status = (
                    TaskStatus.PENDING.value
                    if task.attempts < task.max_attempts
                    else TaskStatus.FAILED.value
                )
            return task.model_copy(deep=True)

    def purge_older_than(self, age: timedelta) -> int:
        cutoff = self._clock() - age
        with self._lock:
            stale = [
                task_id
                for task_id, task in self._tasks.items()
                if TaskStatus(task.status).is_terminal and task.created_at < cutoff
            ]
            for task_id in stale:
                del self._tasks[task_id]
                del self._sequence[task_id]
        return len(stale)

    def get(self, task_id: str) -> Optional[RecomputationTask]:
        with self._lock:
            task = self._tasks.get(str(task_id))
            return task.model_copy(deep=True) if task is not None else None

    def count(self, status: TaskStatus, since: Optional[datetime] = None) -> int:
        status_value = TaskStatus(status).value
        time_field = STATUS_TIME_FIELDS[status_value]
        with self._lock:
            total = 0
            for task in self._tasks.values():
                if task.status != status_value:
                    continue
                if since is not None:
                    stamp = getattr(task, time_field)
                    if stamp is None or stamp < since:
                        continue
                total += 1
            return total

    def oldest_pending(self) -> Optional[RecomputationTask]:
        with self._lock:
            pending = [
                t for t in self._tasks.values() if t.status == TaskStatus.PENDING.value
            ]
            if not pending:
                return None
            oldest = min(pending, key=lambda t: (t.created_at, self._sequence[t.id_str]))
            return oldest.model_copy(deep=True)

    def all_tasks(self) -> list[RecomputationTask]:
        with self._lock:
            return [t.model_copy(deep=True) for t in self._tasks.values()]


# =============================================================================
# Run audit log
# =============================================================================


class InMemoryRunAuditStore(RunAuditStore):
    """Append-only run log held in a list."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: list[RunAuditLog] = []

    def append(self, entry: RunAuditLog) -> RunAuditLog:
        entry = entry.model_copy(deep=True)
        entry.id = ObjectId()
        entry.created_at = entry.updated_at = self._clock()
        with self._lock:
            self._entries.append(entry)
        return entry.model_copy(deep=True)

    def recent(self, limit: int = 20) -> list[RunAuditLog]:
        with self._lock:
            newest_first = list(reversed(self._entries))
        return [e.model_copy(deep=True) for e in newest_first[:limit]]


# =============================================================================
# Profile sources
# =============================================================================


class InMemoryProfileService:
    """Candidate profiles held in a dict, keyed by id."""

    def __init__(self, candidates: Iterable[CandidateProfile] = ()) -> None:
        self._lock = threading.Lock()
        self._candidates: dict[str, CandidateProfile] = {c.id: c for c in candidates}

    def put(self, candidate: CandidateProfile) -> None:
        with self._lock:
            self._candidates[candidate.id] = candidate

    def remove(self, candidate_id: str) -> None:
        with self._lock:
            self._candidates.pop(candidate_id, None)

    def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        with self._lock:
            return self._candidates.get(candidate_id)

    def get_all_active_candidates(self) -> list[CandidateProfile]:
        with self._lock:
            return [c for c in self._candidates.values() if c.is_active]


class InMemoryOpportunityService:
    """Opportunity profiles held in a dict, keyed by id."""

    def __init__(self, opportunities: Iterable[OpportunityProfile] = ()) -> None:
        self._lock = threading.Lock()
        self._opportunities: dict[str, OpportunityProfile] = {o.id: o for o in opportunities}

    def put(self, opportunity: OpportunityProfile) -> None:
        with self._lock:
            self._opportunities[opportunity.id] = opportunity

    def remove(self, opportunity_id: str) -> None:
        with self._lock:
            self._opportunities.pop(opportunity_id, None)

    def get_opportunity(self, opportunity_id: str) -> Optional[OpportunityProfile]:
        with self._lock:
            return self._opportunities.get(opportunity_id)

    def get_all_active_opportunities(self) -> list[OpportunityProfile]:
        with self._lock:
            return [o for o in self._opportunities.values() if o.is_active]
