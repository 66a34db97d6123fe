"""
Recomputation queue repository.

Tasks live in the `recomputation_queue` collection. Every state change is
a single conditional update, so several processes can share one queue.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from placement_matching.data.database import RECOMPUTATION_QUEUE_COLLECTION
from placement_matching.data.models import RecomputationTask, utc_now
from placement_matching.utils.constants import TaskStatus
from placement_matching.utils.logger import get_logger

from .base import BaseRepository
from .interfaces import STATUS_TIME_FIELDS, RecomputationQueue

logger = get_logger(__name__)

# Claim order: most urgent first, then oldest; _id breaks same-millisecond ties
CLAIM_SORT = [("priority", DESCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]

TERMINAL_STATUSES = [TaskStatus.COMPLETED.value, TaskStatus.FAILED.value]


class QueueRepository(BaseRepository[RecomputationTask], RecomputationQueue):
    """MongoDB-backed recomputation queue."""

    @property
    def collection_name(self) -> str:
        return RECOMPUTATION_QUEUE_COLLECTION

    @property
    def model_class(self) -> type[RecomputationTask]:
        return RecomputationTask

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def enqueue(self, task: RecomputationTask) -> RecomputationTask:
        task = self.create(task)
        logger.debug(
            f"Enqueued task {task.id} ({task.scope.describe()}, priority {task.priority})"
        )
        return task

    def claim_batch(self, n: int) -> list[RecomputationTask]:
        collection = self._get_collection()
        claimed: list[RecomputationTask] = []

        # One compare-and-set per slot: only a pending task can be claimed
        for _ in range(max(n, 0)):
            now = utc_now()
            document = collection.find_one_and_update(
                {"status": TaskStatus.PENDING.value},
                {
                    "$set": {
                        "status": TaskStatus.PROCESSING.value,
                        "processed_at": now,
                        "updated_at": now,
                    }
                },
                sort=CLAIM_SORT,
                return_document=ReturnDocument.AFTER,
            )
            if document is None:
                break
            claimed.append(self._to_model(document))

        if claimed:
            logger.debug(f"Claimed {len(claimed)} task(s)")
        return claimed

    def mark_completed(self, task_id: str) -> Optional[RecomputationTask]:
        object_id = self._to_object_id(task_id)
        if object_id is None:
            return None
        now = utc_now()
        document = self._get_collection().find_one_and_update(
            {"_id": object_id, "status": TaskStatus.PROCESSING.value},
            {
                "$set": {
                    "status": TaskStatus.COMPLETED.value,
                    "completed_at": now,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(document)

    def mark_failed(
        self,
        task_id: str,
        error: str,
        permanent: bool = False,
    ) -> Optional[RecomputationTask]:
        object_id = self._to_object_id(task_id)
        if object_id is None:
            return None
        now = utc_now()

        update: Any
        if permanent:
            update = {
                "$set": {
                    "status": TaskStatus.FAILED.value,
                    "error": error,
                    "updated_at": now,
                }
            }
        else:
            # Pipeline update: the increment and the retry decision see the same document
            update = [
                {
                    "$set": {
                        "attempts": {"$add": ["$attempts", 1]},
                        "error": {"$literal": error},
                        "updated_at": now,
                    }
                },
                {
                    "$set": {
                        "status": {
                            "$cond": [
                                {"$lt": ["$attempts", "$max_attempts"]},
                                TaskStatus.PENDING.value,
                                TaskStatus.FAILED.value,
                            ]
                        }
                    }
                },
            ]

        document = self._get_collection().find_one_and_update(
            {"_id": object_id, "status": TaskStatus.PROCESSING.value},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(document)

    def purge_older_than(self, age: timedelta) -> int:
        cutoff = utc_now() - age
        result = self._get_collection().delete_many(
            {"status": {"$in": TERMINAL_STATUSES}, "created_at": {"$lt": cutoff}}
        )
        logger.info(f"Purged {result.deleted_count} finished task(s) created before {cutoff}")
        return result.deleted_count

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, task_id: str) -> Optional[RecomputationTask]:
        return self.get_by_id(task_id)

    def count(self, status: TaskStatus, since: Optional[datetime] = None) -> int:
        status_value = TaskStatus(status).value
        query: dict[str, Any] = {"status": status_value}
        if since is not None:
            query[STATUS_TIME_FIELDS[status_value]] = {"$gte": since}
        return self._get_collection().count_documents(query)

    def oldest_pending(self) -> Optional[RecomputationTask]:
        document = self._get_collection().find_one(
            {"status": TaskStatus.PENDING.value},
            sort=[("created_at", ASCENDING), ("_id", ASCENDING)],
        )
        return self._to_model(document)


# Singleton instance
_queue_repository: Optional[QueueRepository] = None


def get_queue_repository() -> QueueRepository:
    """Get the queue repository singleton instance."""
    global _queue_repository
    if _queue_repository is None:
        _queue_repository = QueueRepository()
    return _queue_repository
