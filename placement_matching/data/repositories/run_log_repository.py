"""
Run audit log repository.

Append-only store for processor runs in the `matching_runs` collection.
"""

from typing import Optional

from pymongo import DESCENDING

from placement_matching.data.database import MATCHING_RUNS_COLLECTION
from placement_matching.data.models import RunAuditLog

from .base import BaseRepository
from .interfaces import RunAuditStore


class RunLogRepository(BaseRepository[RunAuditLog], RunAuditStore):
    """MongoDB-backed run audit log."""

    @property
    def collection_name(self) -> str:
        return MATCHING_RUNS_COLLECTION

    @property
    def model_class(self) -> type[RunAuditLog]:
        return RunAuditLog

    def append(self, entry: RunAuditLog) -> RunAuditLog:
        return self.create(entry)

    def recent(self, limit: int = 20) -> list[RunAuditLog]:
        return self.find({}, limit=limit, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])


# Singleton instance
_run_log_repository: Optional[RunLogRepository] = None


def get_run_log_repository() -> RunLogRepository:
    """Get the run log repository singleton instance."""
    global _run_log_repository
    if _run_log_repository is None:
        _run_log_repository = RunLogRepository()
    return _run_log_repository
