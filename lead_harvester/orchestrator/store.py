"""Shared table of job statuses guarded by a single lock."""
from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional, Protocol, TypeVar

from ..models import JobStatus

T = TypeVar("T")


class JobStore(Protocol):
    """Storage seam for job statuses; every access is one short critical section."""

    def add(self, status: JobStatus) -> None:  # pragma: no cover - runtime protocol
        ...

    def get(self, job_id: str) -> Optional[JobStatus]:  # pragma: no cover - runtime protocol
        ...

    def update(self, job_id: str, mutate: Callable[[JobStatus], T]) -> Optional[T]:  # pragma: no cover
        ...

    def all(self) -> List[JobStatus]:  # pragma: no cover - runtime protocol
        ...


class InMemoryJobStore:
    """Process-local job table. Callers never see the live records, only copies.

    ``mutate`` callbacks run with the lock held and must not perform I/O.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, JobStatus] = {}
        self._lock = threading.Lock()

    def add(self, status: JobStatus) -> None:
        with self._lock:
            if status.job_id in self._jobs:
                raise ValueError(f"Job '{status.job_id}' already exists")
            self._jobs[status.job_id] = status

    def get(self, job_id: str) -> Optional[JobStatus]:
        with self._lock:
            status = self._jobs.get(job_id)
            return status.copy() if status is not None else None

    def update(self, job_id: str, mutate: Callable[[JobStatus], T]) -> Optional[T]:
        """Apply ``mutate`` to the live record; returns ``None`` for unknown jobs."""

        with self._lock:
            status = self._jobs.get(job_id)
            if status is None:
                return None
            return mutate(status)

    def all(self) -> List[JobStatus]:
        with self._lock:
            return [status.copy() for status in self._jobs.values()]


__all__ = ["InMemoryJobStore", "JobStore"]
