"""
Tests for placement_matching.core.queue.processor — batch processing,
failure isolation, timeouts, single-flight runs and the scheduler thread.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from placement_matching.core.queue import QueueProcessor
from placement_matching.core.queue.processor import TASK_WORKERS
from placement_matching.data.models import (
    CandidateScope,
    MatchScoreBreakdown,
    OpportunityScope,
    PairScope,
    RecomputationTask,
)
from placement_matching.data.repositories.memory import InMemoryProfileService
from placement_matching.utils.config import QueueSettings
from placement_matching.utils.constants import RunType, TaskStatus


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _enqueue(queue, scope, priority=0):
    return queue.enqueue(RecomputationTask(scope=scope, priority=priority, trigger_reason="test"))


def _scheduler_threads():
    return [t for t in threading.enumerate() if t.name == "matching-queue-processor"]


def _task_workers():
    return [t for t in threading.enumerate() if t.name.startswith("matching-task")]


class BlockingProfileService(InMemoryProfileService):
    """Profile source that holds every lookup until released."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def get_candidate(self, candidate_id):
        self.entered.set()
        self.release.wait(5)
        return super().get_candidate(candidate_id)


class FailingProfileService(InMemoryProfileService):
    def get_candidate(self, candidate_id):
        raise RuntimeError("profile service unavailable")


@pytest.fixture
def seeded(profiles, opportunities, make_candidate, make_opportunity):
    profiles.put(make_candidate("c1", gpa=3.5))
    profiles.put(make_candidate("c2", gpa=2.5))
    profiles.put(make_candidate("c3", is_active=False))
    opportunities.put(make_opportunity("o1", gpa_threshold=3.0))
    opportunities.put(make_opportunity("o2"))
    opportunities.put(make_opportunity("o3", is_active=False))


# ── Scopes ───────────────────────────────────────────────────────────────────


@pytest.mark.usefixtures("seeded")
class TestScopes:
    def test_pair_scope_upserts_one_record(self, processor, queue, store):
        task = _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        result = processor.process_batch()

        assert result.completed == 1
        assert result.processed_task_ids == [task.id_str]
        assert store.count_records() == 1
        assert store.get_pair("c1", "o1") is not None
        assert queue.get(task.id_str).status == TaskStatus.COMPLETED

    def test_candidate_scope_covers_active_opportunities(self, processor, queue, store):
        store.upsert_pair("c1", "o3", MatchScoreBreakdown(total_score=0.1))
        _enqueue(queue, CandidateScope(candidate_id="c1"))
        processor.process_batch()

        pairs = {(r.candidate_id, r.opportunity_id) for r in store.all_records()}
        # The stale o3 record is replaced away
        assert pairs == {("c1", "o1"), ("c1", "o2")}

    def test_opportunity_scope_covers_active_candidates(self, processor, queue, store):
        _enqueue(queue, OpportunityScope(opportunity_id="o1"))
        processor.process_batch()

        pairs = {(r.candidate_id, r.opportunity_id) for r in store.all_records()}
        assert pairs == {("c1", "o1"), ("c2", "o1")}

    def test_repeat_requests_keep_one_record(self, processor, queue, store):
        _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        result = processor.process_batch()

        assert result.completed == 2
        assert store.count_records() == 1

    def test_records_carry_compute_version(self, queue, store, run_log, profiles, opportunities, queue_settings):
        processor = QueueProcessor(
            queue, store, run_log, profiles, opportunities,
            settings=queue_settings, compute_version="2.1",
        )
        _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        processor.process_batch()

        assert store.get_pair("c1", "o1").compute_version == "2.1"
        assert run_log.recent(1)[0].metadata["version"] == "2.1"


# ── Failure handling ─────────────────────────────────────────────────────────


@pytest.mark.usefixtures("seeded")
class TestFailures:
    def test_failing_task_does_not_abort_batch(self, processor, queue, store):
        good = _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"), priority=3)
        missing = _enqueue(queue, PairScope(candidate_id="ghost", opportunity_id="o1"), priority=2)
        other = _enqueue(queue, PairScope(candidate_id="c2", opportunity_id="o2"), priority=1)

        result = processor.process_batch()

        assert result.claimed == 3
        assert result.completed == 2
        assert result.failed_task_ids == [missing.id_str]
        assert result.success is False
        assert queue.get(good.id_str).status == TaskStatus.COMPLETED
        assert queue.get(other.id_str).status == TaskStatus.COMPLETED
        assert store.count_records() == 2

    def test_missing_profile_fails_permanently(self, processor, queue):
        task = _enqueue(queue, CandidateScope(candidate_id="ghost"))
        processor.process_batch()

        failed = queue.get(task.id_str)
        assert failed.status == TaskStatus.FAILED
        assert failed.attempts == 0
        assert failed.error == "Candidate not found: ghost"

    def test_missing_opportunity_fails_permanently(self, processor, queue):
        task = _enqueue(queue, OpportunityScope(opportunity_id="nowhere"))
        processor.process_batch()
        assert queue.get(task.id_str).error == "Opportunity not found: nowhere"

    def test_transient_error_requeues_until_exhausted(self, queue, store, run_log, opportunities, queue_settings):
        processor = QueueProcessor(
            queue, store, run_log, FailingProfileService(), opportunities, settings=queue_settings
        )
        task = _enqueue(queue, CandidateScope(candidate_id="c1"))

        processor.process_batch()
        after_first = queue.get(task.id_str)
        assert after_first.status == TaskStatus.PENDING
        assert after_first.attempts == 1
        assert after_first.error == "profile service unavailable"

        processor.process_batch()
        processor.process_batch()
        final = queue.get(task.id_str)
        assert final.status == TaskStatus.FAILED
        assert final.attempts == 3

        # Exhausted tasks are never claimed again
        assert processor.process_batch().claimed == 0

    def test_timeout_counts_as_transient_failure(self, queue, store, run_log, opportunities, make_candidate):
        slow = BlockingProfileService([make_candidate("c1")])
        settings = QueueSettings(backend="memory", task_timeout_seconds=0.1, max_attempts=3)
        processor = QueueProcessor(queue, store, run_log, slow, opportunities, settings=settings)
        task = _enqueue(queue, CandidateScope(candidate_id="c1"))

        try:
            result = processor.process_batch()
        finally:
            slow.release.set()

        assert result.failed_task_ids == [task.id_str]
        timed_out = queue.get(task.id_str)
        assert timed_out.status == TaskStatus.PENDING
        assert timed_out.attempts == 1
        assert "timeout" in timed_out.error
        # The late result is discarded
        assert store.count_records() == 0

    def test_claim_failure_is_audited_and_raised(self, store, run_log, profiles, opportunities, queue_settings):
        broken_queue = MagicMock()
        broken_queue.claim_batch.side_effect = RuntimeError("queue offline")
        processor = QueueProcessor(
            broken_queue, store, run_log, profiles, opportunities, settings=queue_settings
        )

        with pytest.raises(RuntimeError, match="queue offline"):
            processor.process_batch(triggered_by="admin")

        (entry,) = run_log.recent()
        assert entry.success is False
        assert entry.error == "queue offline"
        assert entry.triggered_by == "admin"

    def test_mark_failed_error_does_not_stop_batch(self, store, run_log, profiles, opportunities, queue_settings):
        tasks = [
            RecomputationTask(id=ObjectId(), scope=CandidateScope(candidate_id=f"ghost{i}"))
            for i in range(2)
        ]
        flaky_queue = MagicMock()
        flaky_queue.claim_batch.return_value = tasks
        flaky_queue.mark_failed.side_effect = RuntimeError("write failed")
        processor = QueueProcessor(
            flaky_queue, store, run_log, profiles, opportunities, settings=queue_settings
        )

        result = processor.process_batch()
        assert result.claimed == 2
        assert result.failed == 2
        assert flaky_queue.mark_failed.call_count == 2


# ── Run audit ────────────────────────────────────────────────────────────────


@pytest.mark.usefixtures("seeded")
class TestRunAudit:
    def test_one_entry_per_run(self, processor, queue, run_log):
        done = _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        failed = _enqueue(queue, CandidateScope(candidate_id="ghost"))

        processor.process_batch(run_type=RunType.MANUAL_TRIGGER, triggered_by="admin")

        (entry,) = run_log.recent()
        assert entry.run_type == RunType.MANUAL_TRIGGER
        assert entry.input_count == 2
        assert entry.output_count == 1
        assert entry.success is False
        assert entry.triggered_by == "admin"
        assert entry.metadata["processed_task_ids"] == [done.id_str]
        assert entry.metadata["failed_task_ids"] == [failed.id_str]
        assert entry.failed_count == 1

    def test_empty_runs_recorded_by_default(self, processor, run_log):
        result = processor.process_batch()
        assert result.claimed == 0
        assert run_log.recent()[0].input_count == 0

    def test_empty_runs_can_be_skipped(self, queue, store, run_log, profiles, opportunities):
        settings = QueueSettings(backend="memory", record_empty_runs=False)
        processor = QueueProcessor(queue, store, run_log, profiles, opportunities, settings=settings)
        processor.process_batch()
        assert run_log.recent() == []

    def test_batch_size_limits_claim(self, processor, queue):
        for i in range(5):
            _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        result = processor.process_batch(batch_size=2)
        assert result.claimed == 2
        assert queue.count(TaskStatus.PENDING) == 3

    def test_zero_batch_size_claims_nothing(self, processor, queue):
        for i in range(3):
            _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        result = processor.process_batch(batch_size=0)
        assert result.claimed == 0
        assert queue.count(TaskStatus.PENDING) == 3

    def test_negative_batch_size_rejected(self, processor, queue):
        _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))
        with pytest.raises(ValueError):
            processor.process_batch(batch_size=-1)
        assert queue.count(TaskStatus.PENDING) == 1


# ── Single flight and scheduling ─────────────────────────────────────────────


class TestScheduling:
    def test_tick_skipped_while_run_in_progress(
        self, queue, store, run_log, opportunities, queue_settings, make_candidate, make_opportunity
    ):
        blocking = BlockingProfileService([make_candidate("c1")])
        opportunities.put(make_opportunity("o1"))
        processor = QueueProcessor(
            queue, store, run_log, blocking, opportunities, settings=queue_settings
        )
        _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))

        worker = threading.Thread(target=processor.process_batch)
        worker.start()
        try:
            assert blocking.entered.wait(2)
            assert processor.is_processing is True
            assert processor.tick() is None
        finally:
            blocking.release.set()
            worker.join(5)

        assert processor.is_processing is False
        assert len(run_log.recent()) == 1

    def test_tick_runs_scheduled_batch(self, processor, run_log):
        result = processor.tick()
        assert result is not None
        assert result.run_type == RunType.SCHEDULED_BATCH
        assert run_log.recent()[0].run_type == RunType.SCHEDULED_BATCH

    @pytest.mark.usefixtures("seeded")
    def test_scheduler_drains_queue(self, processor, queue):
        task = _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))

        assert processor.start() is True
        assert processor.is_running is True
        assert processor.start() is False

        assert _wait_for(lambda: queue.get(task.id_str).status == TaskStatus.COMPLETED)

        processor.stop(timeout=2)
        assert processor.is_running is False

    def test_stop_without_start(self, processor):
        processor.stop()
        assert processor.is_running is False

    def test_restart_after_stop(self, processor):
        assert processor.start() is True
        processor.stop(timeout=2)
        assert processor.start() is True
        processor.stop(timeout=2)
        assert processor.is_running is False

    def test_restart_while_batch_blocked_keeps_one_scheduler(
        self, queue, store, run_log, opportunities, queue_settings, make_candidate, make_opportunity
    ):
        blocking = BlockingProfileService([make_candidate("c1")])
        opportunities.put(make_opportunity("o1"))
        processor = QueueProcessor(
            queue, store, run_log, blocking, opportunities, settings=queue_settings
        )
        task = _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))

        try:
            assert processor.start() is True
            assert blocking.entered.wait(2)

            # The batch outlasts the join; the old loop must still wind down
            processor.stop(timeout=0.1)
            assert processor.is_running is False
            assert processor.start() is True
        finally:
            blocking.release.set()

        assert _wait_for(lambda: queue.get(task.id_str).status == TaskStatus.COMPLETED)
        assert _wait_for(lambda: len(_scheduler_threads()) == 1)
        assert processor.is_running is True

        processor.stop(timeout=2)
        assert _scheduler_threads() == []


# ── Soft timeout ─────────────────────────────────────────────────────────────


class TestSoftTimeout:
    def test_hung_lookups_hold_a_bounded_number_of_workers(
        self, queue, store, run_log, opportunities, make_candidate, make_opportunity
    ):
        hanging = BlockingProfileService([make_candidate("c1")])
        opportunities.put(make_opportunity("o1"))
        settings = QueueSettings(backend="memory", task_timeout_seconds=0.1, max_attempts=5)
        processor = QueueProcessor(queue, store, run_log, hanging, opportunities, settings=settings)
        for _ in range(TASK_WORKERS + 2):
            _enqueue(queue, PairScope(candidate_id="c1", opportunity_id="o1"))

        before = set(_task_workers())
        try:
            result = processor.process_batch()
            stranded = [t for t in _task_workers() if t not in before]
        finally:
            hanging.release.set()

        assert result.failed == TASK_WORKERS + 2
        assert len(stranded) <= TASK_WORKERS
        assert all(t.status == TaskStatus.PENDING for t in queue.all_tasks())
        assert store.count_records() == 0
