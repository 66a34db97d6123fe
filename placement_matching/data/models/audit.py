"""
Run audit log model.

One entry is appended for every processor invocation, scheduled or manual.
"""

from typing import Any, Optional

from pydantic import Field

from placement_matching.utils.constants import COMPUTE_VERSION, RunType

from .base import BaseDocument


class RunAuditLog(BaseDocument):
    """Summary of one processor run."""

    run_type: RunType
    input_count: int = Field(0, ge=0)  # tasks claimed
    output_count: int = Field(0, ge=0)  # tasks completed
    runtime_ms: int = Field(0, ge=0)
    success: bool = True
    error: Optional[str] = None
    triggered_by: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=lambda: {"version": COMPUTE_VERSION})

    @property
    def failed_count(self) -> int:
        return len(self.metadata.get("failed_task_ids", []))

    def summary(self) -> dict[str, Any]:
        """Flat view used by the audit log sink."""
        return {
            "run_type": self.run_type,
            "input_count": self.input_count,
            "output_count": self.output_count,
            "runtime_ms": self.runtime_ms,
            "success": self.success,
            "triggered_by": self.triggered_by,
            "error": self.error,
        }
