"""Job orchestration for resumable crawl-and-extract runs."""

from .service import JobManager, normalise_website
from .store import InMemoryJobStore, JobStore

__all__ = ["InMemoryJobStore", "JobManager", "JobStore", "normalise_website"]
