"""
Job records tracking one accepted batch of order mutations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from gateway.schemas.orders import OrderMutation


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"


class JobStateError(RuntimeError):
    """Raised when a mutation would break the job's accounting invariants."""


@dataclass(slots=True)
class JobStats:
    total: int
    succeeded: int = 0
    failed: int = 0

    @property
    def accounted(self) -> int:
        return self.succeeded + self.failed

    def as_dict(self) -> Dict[str, int]:
        return {"total": self.total, "succeeded": self.succeeded, "failed": self.failed}


@dataclass(slots=True)
class Job:
    """Lifecycle of a batch: processing until every order is accounted for."""

    job_id: str
    stats: JobStats
    invalid: List[OrderMutation] = field(default_factory=list)
    status: JobStatus = JobStatus.PROCESSING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    results: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def record_success(self, order_id: str, result: Any) -> None:
        self._ensure_open()
        self.results.append({"orderId": order_id, "result": result})
        self.stats.succeeded += 1

    def record_failure(self, order_id: str, message: str) -> None:
        self._ensure_open()
        self.errors.append({"orderId": order_id, "error": message})
        self.stats.failed += 1

    def complete(self, when: Optional[datetime] = None) -> None:
        if self.status is JobStatus.COMPLETED:
            raise JobStateError(f"Job {self.job_id} is already completed.")
        if self.stats.accounted != self.stats.total:
            raise JobStateError(
                f"Job {self.job_id} has {self.stats.accounted} of "
                f"{self.stats.total} orders accounted for."
            )
        self.status = JobStatus.COMPLETED
        self.completed_at = when or datetime.now(timezone.utc)

    def _ensure_open(self) -> None:
        if self.status is JobStatus.COMPLETED:
            raise JobStateError(f"Job {self.job_id} is already completed.")
        if self.stats.accounted >= self.stats.total:
            raise JobStateError(f"Job {self.job_id} has no unaccounted orders left.")

    def to_status_payload(self) -> Dict[str, Any]:
        """Render the polling view; results and errors appear once completed."""
        payload: Dict[str, Any] = {
            "status": self.status.value,
            "stats": self.stats.as_dict(),
            "invalid": [order.to_wire() for order in self.invalid],
            "created": self.created_at.isoformat(),
        }
        if self.status is JobStatus.COMPLETED:
            payload["completed"] = self.completed_at.isoformat() if self.completed_at else None
            payload["results"] = list(self.results)
            payload["errors"] = list(self.errors)
        return payload


__all__ = ["Job", "JobStateError", "JobStats", "JobStatus"]
