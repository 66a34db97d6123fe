"""
Exception hierarchy for the matching engine.

The queue processor uses these types to decide whether a failed task
may be retried.
"""


class MatchingError(Exception):
    """Base exception for matching engine errors."""
    pass


class ProfileNotFoundError(MatchingError):
    """A referenced profile no longer exists. Retrying cannot help."""

    def __init__(self, kind: str, profile_id: str) -> None:
        self.kind = kind
        self.profile_id = profile_id
        super().__init__(f"{kind.capitalize()} not found: {profile_id}")


class CandidateNotFoundError(ProfileNotFoundError):
    """Raised when a candidate profile cannot be fetched."""

    def __init__(self, candidate_id: str) -> None:
        super().__init__("candidate", candidate_id)


class OpportunityNotFoundError(ProfileNotFoundError):
    """Raised when an opportunity profile cannot be fetched."""

    def __init__(self, opportunity_id: str) -> None:
        super().__init__("opportunity", opportunity_id)


class TaskTimeoutError(MatchingError):
    """Raised when a task exceeds its soft wall-clock budget."""

    def __init__(self, task_id: str, timeout_seconds: float) -> None:
        self.task_id = task_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Task {task_id} exceeded {timeout_seconds:g}s timeout")


class InvalidTaskScopeError(MatchingError, ValueError):
    """Raised when a task scope names neither a candidate nor an opportunity."""
    pass
