"""
Recomputation task models.

A task names what needs rescoring (its scope), how urgent it is and
where it stands in its lifecycle:

    pending -> processing -> completed
    processing -> pending   (retry, attempts < max_attempts)
    processing -> failed    (attempts == max_attempts, or input error)
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from placement_matching.utils.constants import DEFAULT_MAX_ATTEMPTS, TaskStatus
from placement_matching.utils.exceptions import InvalidTaskScopeError

from .base import BaseDocument, EmbeddedModel


# =============================================================================
# Task scope
# =============================================================================


class PairScope(EmbeddedModel):
    """Rescore one (candidate, opportunity) pair."""

    kind: Literal["pair"] = "pair"
    candidate_id: str
    opportunity_id: str

    def describe(self) -> str:
        return f"candidate {self.candidate_id} x opportunity {self.opportunity_id}"


class CandidateScope(EmbeddedModel):
    """Rescore a candidate against every active opportunity."""

    kind: Literal["candidate"] = "candidate"
    candidate_id: str

    def describe(self) -> str:
        return f"candidate {self.candidate_id} x all opportunities"


class OpportunityScope(EmbeddedModel):
    """Rescore every active candidate against an opportunity."""

    kind: Literal["opportunity"] = "opportunity"
    opportunity_id: str

    def describe(self) -> str:
        return f"all candidates x opportunity {self.opportunity_id}"


TaskScope = Annotated[
    Union[PairScope, CandidateScope, OpportunityScope],
    Field(discriminator="kind"),
]


def scope_from_ids(
    candidate_id: Optional[str] = None,
    opportunity_id: Optional[str] = None,
) -> Union[PairScope, CandidateScope, OpportunityScope]:
    """
    Build the scope variant matching the ids given.

    Raises:
        InvalidTaskScopeError: If neither id is given.
    """
    if candidate_id and opportunity_id:
        return PairScope(candidate_id=candidate_id, opportunity_id=opportunity_id)
    if candidate_id:
        return CandidateScope(candidate_id=candidate_id)
    if opportunity_id:
        return OpportunityScope(opportunity_id=opportunity_id)
    raise InvalidTaskScopeError("A task needs a candidate id, an opportunity id, or both")


# =============================================================================
# Task document
# =============================================================================


class RecomputationTask(BaseDocument):
    """A queued request to refresh one or more match scores."""

    scope: TaskScope
    priority: int = 0

    status: TaskStatus = TaskStatus.PENDING
    attempts: int = Field(0, ge=0)
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1)

    trigger_reason: str = ""
    error: Optional[str] = None

    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def candidate_id(self) -> Optional[str]:
        return getattr(self.scope, "candidate_id", None)

    @property
    def opportunity_id(self) -> Optional[str]:
        return getattr(self.scope, "opportunity_id", None)

    @property
    def is_terminal(self) -> bool:
        return TaskStatus(self.status).is_terminal

    @property
    def has_retries_left(self) -> bool:
        return self.attempts < self.max_attempts


class QueueStatus(EmbeddedModel):
    """Operational snapshot of the recomputation queue."""

    pending: int = 0
    processing: int = 0
    completed_today: int = 0
    failed_today: int = 0
    oldest_pending_age_ms: Optional[int] = None
    is_processor_running: bool = False
    is_currently_processing: bool = False
