"""
Recomputation queue processor.

Owns a background thread that periodically claims a batch of tasks,
rescores the pairs each task names and writes the results through the
match score store. At most one run is active per processor instance.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Optional

from placement_matching.core.collaborators import OpportunityService, ProfileService
from placement_matching.core.matching.score_calculator import ScoreCalculator
from placement_matching.data.models import (
    CandidateScope,
    MatchingWeights,
    MatchScoreBreakdown,
    OpportunityScope,
    PairScope,
    RecomputationTask,
    RunAuditLog,
)
from placement_matching.data.repositories.interfaces import (
    MatchScoreStore,
    RecomputationQueue,
    RunAuditStore,
)
from placement_matching.utils.config import QueueSettings
from placement_matching.utils.constants import COMPUTE_VERSION, RunType
from placement_matching.utils.exceptions import (
    CandidateNotFoundError,
    OpportunityNotFoundError,
    ProfileNotFoundError,
    TaskTimeoutError,
)
from placement_matching.utils.logger import LoggerMixin, audit_log, task_context

# Upper bound on helper threads held by overrunning tasks
TASK_WORKERS = 2

@dataclass
class BatchResult:
    """Outcome of one processor run."""

    run_type: RunType
    claimed: int = 0
    completed: int = 0
    processed_task_ids: list[str] = field(default_factory=list)
    failed_task_ids: list[str] = field(default_factory=list)
    runtime_ms: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> int:
        return len(self.failed_task_ids)

    @property
    def success(self) -> bool:
        return self.error is None and not self.failed_task_ids


@dataclass
class _ScopeResult:
    """Breakdowns computed for a task, waiting to be written."""

    scope: PairScope | CandidateScope | OpportunityScope
    breakdowns: dict[str, MatchScoreBreakdown]


class QueueProcessor(LoggerMixin):
    """
    Single-flight scheduler over a recomputation queue.

    Each run claims up to batch_size tasks and handles them in claim
    order. A failing task never aborts the batch: input errors (a profile
    that no longer exists) fail the task at once, anything else consumes
    one attempt and requeues it while attempts remain. One run audit entry
    is appended per run.
    """

    def __init__(
        self,
        queue: RecomputationQueue,
        store: MatchScoreStore,
        run_log: RunAuditStore,
        profiles: ProfileService,
        opportunities: OpportunityService,
        calculator: Optional[ScoreCalculator] = None,
        settings: Optional[QueueSettings] = None,
        weights: Optional[MatchingWeights] = None,
        compute_version: str = COMPUTE_VERSION,
    ):
        self._queue = queue
        self._store = store
        self._run_log = run_log
        self._profiles = profiles
        self._opportunities = opportunities
        self._calculator = calculator or ScoreCalculator()
        self._settings = settings or QueueSettings()
        self._weights = weights
        self._compute_version = compute_version

        # Held for the whole of a run; a tick that cannot take it is skipped
        self._run_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        # One event per scheduler thread, so a restart never revives a stopped loop
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

        # A task that overruns keeps its worker until the collaborator returns
        self._executor = ThreadPoolExecutor(
            max_workers=TASK_WORKERS,
            thread_name_prefix="matching-task",
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Whether the background scheduler thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def is_processing(self) -> bool:
        """Whether a run is in progress right now."""
        return self._run_lock.locked()

    def start(self) -> bool:
        """
        Start the scheduler thread.

        The first tick fires after initial_delay_seconds, then every
        interval_seconds. Returns False if it was already running.
        """
        with self._lifecycle_lock:
            if self.is_running:
                self.logger.info("Queue processor already running")
                return False

            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                name="matching-queue-processor",
                daemon=True,
            )
            self._thread.start()

        self.logger.info(
            f"Started matching queue processor "
            f"(interval: {self._settings.interval_seconds:g}s, batch: {self._settings.batch_size})"
        )
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the scheduler; a run in progress finishes its batch first.

        If the run outlasts the timeout, the old thread exits on its own
        once the batch is done and the processor may be started again.
        """
        with self._lifecycle_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            thread.join(timeout)
            self._thread = None
            self._stop_event = None

        if thread.is_alive():
            self.logger.warning("Matching queue processor stopping after the current batch")
        else:
            self.logger.info("Matching queue processor stopped")

    def _run_loop(self, stop_event: threading.Event) -> None:
        # wait() returns True once stop() is called
        if stop_event.wait(self._settings.initial_delay_seconds):
            return
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:
                # A claim failure is already logged and audited; keep the scheduler alive
                self.logger.exception("Scheduled queue run failed")
            if stop_event.wait(self._settings.interval_seconds):
                return

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def tick(self) -> Optional[BatchResult]:
        """
        Run one scheduled batch unless a run is already in progress.

        Returns:
            The batch result, or None when the tick was skipped
        """
        if not self._run_lock.acquire(blocking=False):
            self.logger.debug("Previous run still in progress, skipping tick")
            return None
        try:
            return self._run_batch(self._settings.batch_size, RunType.SCHEDULED_BATCH, None)
        finally:
            self._run_lock.release()

    def process_batch(
        self,
        batch_size: Optional[int] = None,
        run_type: RunType = RunType.MANUAL_TRIGGER,
        triggered_by: Optional[str] = None,
    ) -> BatchResult:
        """
        Run one batch synchronously, waiting for any run in progress.

        Task failures are recorded on the tasks, never raised. A failure
        to claim the batch is audited and then raised.
        """
        if batch_size is None:
            batch_size = self._settings.batch_size
        elif batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {batch_size}")

        with self._run_lock:
            return self._run_batch(batch_size, run_type, triggered_by)

    def _run_batch(
        self,
        batch_size: int,
        run_type: RunType,
        triggered_by: Optional[str],
    ) -> BatchResult:
        started = time.monotonic()
        result = BatchResult(run_type=run_type)

        try:
            tasks = self._queue.claim_batch(batch_size)
        except Exception as e:
            result.error = str(e) or e.__class__.__name__
            result.runtime_ms = self._elapsed_ms(started)
            self.logger.error(f"Failed to claim recomputation tasks: {e}")
            self._record_run(result, triggered_by)
            raise

        result.claimed = len(tasks)
        for task in tasks:
            task_id = task.id_str
            if self._process_task(task):
                result.completed += 1
                result.processed_task_ids.append(task_id)
            else:
                result.failed_task_ids.append(task_id)

        result.runtime_ms = self._elapsed_ms(started)

        if tasks or self._settings.record_empty_runs:
            self._record_run(result, triggered_by)
        if tasks:
            self.logger.info(
                f"Processed {result.completed} matching task(s) "
                f"({result.failed} failed) in {result.runtime_ms}ms"
            )
        return result

    def _record_run(self, result: BatchResult, triggered_by: Optional[str]) -> None:
        entry = RunAuditLog(
            run_type=result.run_type,
            input_count=result.claimed,
            output_count=result.completed,
            runtime_ms=result.runtime_ms,
            success=result.success,
            error=result.error,
            triggered_by=triggered_by,
            metadata={
                "version": self._compute_version,
                "processed_task_ids": result.processed_task_ids,
                "failed_task_ids": result.failed_task_ids,
            },
        )
        try:
            self._run_log.append(entry)
        except Exception as e:
            # Scores are already written; losing the audit row must not undo them
            self.logger.error(f"Failed to append run audit entry: {e}")
        audit_log("batch_processed", entry.summary(), audit_type="RUN")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def _process_task(self, task: RecomputationTask) -> bool:
        """Handle one claimed task. Returns True when it completed."""
        task_id = task.id_str
        with task_context(task_id):
            try:
                scope_result = self._compute_with_timeout(task)
                written = self._write(scope_result)
                self._queue.mark_completed(task_id)
                self.logger.debug(f"Completed: {written} score(s) for {task.scope.describe()}")
                return True
            except ProfileNotFoundError as e:
                self.logger.warning(f"Failed permanently: {e}")
                self._mark_failed(task_id, str(e), permanent=True)
            except Exception as e:
                self.logger.error(f"Failed (attempt {task.attempts + 1}): {e}")
                self._mark_failed(task_id, str(e) or e.__class__.__name__, permanent=False)
            return False

    def _mark_failed(self, task_id: str, error: str, permanent: bool) -> None:
        try:
            self._queue.mark_failed(task_id, error, permanent=permanent)
        except Exception:
            # The task stays in processing; it must not take the rest of the batch down
            self.logger.exception(f"Could not record failure of task {task_id}")

    def _compute_with_timeout(self, task: RecomputationTask) -> _ScopeResult:
        """
        Fetch profiles and compute scores within the soft task timeout.

        The work runs on the processor's task pool; if it overruns, the task
        fails and its late result is discarded. The timeout is soft: a
        collaborator call that hangs keeps its worker, so at most
        TASK_WORKERS calls can be stranded at once and later tasks time out
        waiting for a free worker.
        """
        timeout = self._settings.task_timeout_seconds
        future = self._executor.submit(self._compute_scope, task.scope)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            # Not started yet: drop it instead of running it late
            future.cancel()
            raise TaskTimeoutError(task.id_str, timeout) from None

    def _compute_scope(
        self,
        scope: PairScope | CandidateScope | OpportunityScope,
    ) -> _ScopeResult:
        if isinstance(scope, PairScope):
            candidate = self._profiles.get_candidate(scope.candidate_id)
            if candidate is None:
                raise CandidateNotFoundError(scope.candidate_id)
            opportunity = self._opportunities.get_opportunity(scope.opportunity_id)
            if opportunity is None:
                raise OpportunityNotFoundError(scope.opportunity_id)
            breakdown = self._calculator.compute(candidate, opportunity, self._weights)
            return _ScopeResult(scope, {scope.opportunity_id: breakdown})

        if isinstance(scope, CandidateScope):
            candidate = self._profiles.get_candidate(scope.candidate_id)
            if candidate is None:
                raise CandidateNotFoundError(scope.candidate_id)
            breakdowns = {
                opportunity.id: self._calculator.compute(candidate, opportunity, self._weights)
                for opportunity in self._opportunities.get_all_active_opportunities()
            }
            return _ScopeResult(scope, breakdowns)

        if isinstance(scope, OpportunityScope):
            opportunity = self._opportunities.get_opportunity(scope.opportunity_id)
            if opportunity is None:
                raise OpportunityNotFoundError(scope.opportunity_id)
            breakdowns = {
                candidate.id: self._calculator.compute(candidate, opportunity, self._weights)
                for candidate in self._profiles.get_all_active_candidates()
            }
            return _ScopeResult(scope, breakdowns)

        raise TypeError(f"Unsupported task scope: {scope!r}")

    def _write(self, result: _ScopeResult) -> int:
        scope = result.scope
        if isinstance(scope, PairScope):
            self._store.upsert_pair(
                scope.candidate_id,
                scope.opportunity_id,
                result.breakdowns[scope.opportunity_id],
                self._compute_version,
            )
            return 1
        if isinstance(scope, CandidateScope):
            return self._store.bulk_replace_for_candidate(
                scope.candidate_id, result.breakdowns, self._compute_version
            )
        return self._store.bulk_replace_for_opportunity(
            scope.opportunity_id, result.breakdowns, self._compute_version
        )
