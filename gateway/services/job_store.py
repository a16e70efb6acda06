"""Process-local table of order update jobs."""

from __future__ import annotations

import copy
import threading
from typing import Callable, Dict, Optional, TypeVar

from gateway.core.errors import JobNotFound
from gateway.models.jobs import Job

T = TypeVar("T")


class JobStore:
    """Hold every job for the lifetime of the process.

    Jobs are never evicted. Readers receive deep copies, and all writes go
    through ``update`` so a mutation is applied under the table lock.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, job: Job) -> str:
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id} already exists.")
            self._jobs[job.job_id] = job
        return job.job_id

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def update(self, job_id: str, mutator: Callable[[Job], T]) -> T:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound("Job not found")
            return mutator(job)

    def __len__(self) -> int:
        return len(self._jobs)


__all__ = ["JobStore"]
