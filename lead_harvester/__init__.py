"""Crawl company websites and extract contact details into resumable batch output."""

from . import models  # noqa: F401
from .crawler import SiteCrawler
from .models import (
    Contact,
    ControlRequest,
    CrawlOutcome,
    CrawlResult,
    ExtractedData,
    JobState,
    JobStatus,
    WorkItem,
)
from .orchestrator import JobManager
from .progress import ProgressLedger
from .rate_limit import DelayPolicy

__all__ = [
    "Contact",
    "ControlRequest",
    "CrawlOutcome",
    "CrawlResult",
    "DelayPolicy",
    "ExtractedData",
    "JobManager",
    "JobState",
    "JobStatus",
    "ProgressLedger",
    "SiteCrawler",
    "WorkItem",
    "extractor",
    "ingestion",
    "orchestrator",
]
