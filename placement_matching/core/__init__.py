"""
Core matching logic: scoring, the recomputation queue processor, event
triggers and the service facade.
"""

from .collaborators import OpportunityService, ProfileService
from .matching import ScoreCalculator, build_insights, compute
from .queue import BatchResult, QueueProcessor, TriggerAdapter
from .service import MatchingService, build_matching_service, weights_from_settings

__all__ = [
    "OpportunityService",
    "ProfileService",
    "ScoreCalculator",
    "build_insights",
    "compute",
    "BatchResult",
    "QueueProcessor",
    "TriggerAdapter",
    "MatchingService",
    "build_matching_service",
    "weights_from_settings",
]
