"""
Storage for the matching engine.

Abstract store contracts, their MongoDB repositories and in-memory
adapters, plus the read-only profile sources.
"""

# Contracts
from .interfaces import MatchScoreStore, RecomputationQueue, RunAuditStore, rank_records

# MongoDB repositories
from .base import BaseRepository
from .match_score_repository import MatchScoreRepository, get_match_score_repository
from .queue_repository import QueueRepository, get_queue_repository
from .run_log_repository import RunLogRepository, get_run_log_repository
from .profile_repository import MongoOpportunityService, MongoProfileService

# In-memory adapters
from .memory import (
    InMemoryMatchScoreStore,
    InMemoryOpportunityService,
    InMemoryProfileService,
    InMemoryRecomputationQueue,
    InMemoryRunAuditStore,
)

__all__ = [
    # Contracts
    "MatchScoreStore",
    "RecomputationQueue",
    "RunAuditStore",
    "rank_records",
    # MongoDB
    "BaseRepository",
    "MatchScoreRepository",
    "get_match_score_repository",
    "QueueRepository",
    "get_queue_repository",
    "RunLogRepository",
    "get_run_log_repository",
    "MongoOpportunityService",
    "MongoProfileService",
    # In-memory
    "InMemoryMatchScoreStore",
    "InMemoryOpportunityService",
    "InMemoryProfileService",
    "InMemoryRecomputationQueue",
    "InMemoryRunAuditStore",
]
