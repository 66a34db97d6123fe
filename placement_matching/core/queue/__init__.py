"""
Recomputation queue processing and event triggers.
"""

from .processor import BatchResult, QueueProcessor
from .triggers import TriggerAdapter

__all__ = ["BatchResult", "QueueProcessor", "TriggerAdapter"]
