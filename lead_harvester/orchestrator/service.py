"""Job orchestration: one thread per job, cooperative pause/resume/stop, row-by-row output."""
from __future__ import annotations

import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from ..crawler import SiteCrawler
from ..ingestion import load_work_items
from ..io import ResultWriter, build_row
from ..models import (
    NOT_FOUND,
    ControlRequest,
    CrawlOutcome,
    CrawlResult,
    ExtractedData,
    JobState,
    JobStatus,
    WorkItem,
)
from ..progress import ProgressLedger
from ..rate_limit import DelayPolicy
from ..search import UrlResolver
from .store import InMemoryJobStore, JobStore

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5


class CrawlerProtocol(Protocol):
    """Interface the job runner expects from a site crawler."""

    def scrape_site(self, seed_url: str) -> CrawlResult:  # pragma: no cover - runtime protocol
        """Crawl ``seed_url`` and return everything found."""


ItemLoader = Callable[[Path], List[WorkItem]]


def normalise_website(website: str) -> str:
    """Add a scheme to bare domains such as ``acme.com``."""

    website = website.strip()
    if "://" not in website:
        website = f"https://{website.lstrip('/')}"
    return website


class JobManager:
    """Runs scraping jobs and exposes their status and control operations.

    Every job owns its crawler (and therefore its cookie jar) and, optionally,
    a :class:`ProgressLedger`. The only state shared between jobs is the
    status table in ``store``.
    """

    def __init__(
        self,
        *,
        crawler_factory: Optional[Callable[[], CrawlerProtocol]] = None,
        resolver: Optional[UrlResolver] = None,
        delay_policy: Optional[DelayPolicy] = None,
        store: Optional[JobStore] = None,
        loader: ItemLoader = load_work_items,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval <= 0 or poll_interval >= 1:
            raise ValueError("poll_interval must be between 0 and 1 second")
        self._delay_policy = delay_policy or DelayPolicy()
        self._crawler_factory = crawler_factory or (lambda: SiteCrawler(delay_policy=self._delay_policy))
        self._resolver = resolver
        self._store = store or InMemoryJobStore()
        self._loader = loader
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._threads: Dict[str, threading.Thread] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start_job(
        self,
        input_path: str | Path,
        output_path: str | Path,
        *,
        job_id: Optional[str] = None,
        ledger: Optional[ProgressLedger] = None,
    ) -> str:
        """Register a job and run it on its own thread; returns the job id."""

        job_id = self._register(job_id)
        thread = threading.Thread(
            target=self._run,
            args=(job_id, Path(input_path), Path(output_path), ledger),
            name=f"job-{job_id}",
            daemon=True,
        )
        self._threads[job_id] = thread
        thread.start()
        return job_id

    def run_job(
        self,
        input_path: str | Path,
        output_path: str | Path,
        *,
        job_id: Optional[str] = None,
        ledger: Optional[ProgressLedger] = None,
    ) -> JobStatus:
        """Run a job on the calling thread and return its final status."""

        job_id = self._register(job_id)
        self._run(job_id, Path(input_path), Path(output_path), ledger)
        return self._store.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[JobStatus]:
        thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
        return self._store.get(job_id)

    def _register(self, job_id: Optional[str]) -> str:
        job_id = job_id or str(uuid.uuid4())
        status = JobStatus(job_id=job_id)
        status.add_log("Job started.")
        self._store.add(status)
        return job_id

    # ------------------------------------------------------------------
    # Status and control
    # ------------------------------------------------------------------
    def get_status(self, job_id: str) -> Optional[JobStatus]:
        return self._store.get(job_id)

    def list_jobs(self) -> List[JobStatus]:
        return self._store.all()

    def pause(self, job_id: str) -> bool:
        return self._signal(job_id, ControlRequest.PAUSE)

    def stop(self, job_id: str) -> bool:
        return self._signal(job_id, ControlRequest.STOP)

    def resume(self, job_id: str) -> bool:
        def apply(status: JobStatus) -> bool:
            status.control = ControlRequest.NONE
            if status.state is JobState.PAUSED:
                status.state = JobState.PROCESSING
            return True

        return bool(self._store.update(job_id, apply))

    def _signal(self, job_id: str, request: ControlRequest) -> bool:
        def apply(status: JobStatus) -> bool:
            status.control = request
            return True

        return bool(self._store.update(job_id, apply))

    # ------------------------------------------------------------------
    # Job thread
    # ------------------------------------------------------------------
    def _run(self, job_id: str, input_path: Path, output_path: Path, ledger: Optional[ProgressLedger]) -> None:
        try:
            items = self._loader(input_path)
        except (OSError, ValueError) as exc:
            LOGGER.error("Job %s could not load %s: %s", job_id, input_path, exc)
            self._finish(job_id, JobState.FAILED, f"Failed to load input file: {exc}")
            return
        except Exception as exc:
            # Parser errors from pandas/openpyxl (e.g. a corrupt workbook) are setup failures too.
            LOGGER.exception("Job %s could not parse %s", job_id, input_path)
            self._finish(job_id, JobState.FAILED, f"Failed to load input file: {exc}")
            return

        def start(status: JobStatus) -> None:
            status.total = len(items)
            status.state = JobState.PROCESSING

        self._store.update(job_id, start)

        writer = ResultWriter(output_path, append=ledger is not None)
        try:
            writer.open()
        except OSError as exc:
            LOGGER.error("Job %s could not open %s: %s", job_id, output_path, exc)
            self._finish(job_id, JobState.FAILED, f"Failed to open output file: {exc}")
            return

        try:
            self._process_items(job_id, items, writer, ledger)
        except OSError as exc:
            LOGGER.exception("Job %s failed while writing %s", job_id, output_path)
            self._finish(job_id, JobState.FAILED, f"Failed to write output file: {exc}")
        except Exception as exc:  # pragma: no cover - defensive programming
            LOGGER.exception("Job %s failed unexpectedly", job_id)
            self._finish(job_id, JobState.FAILED, f"Job failed: {exc}")
        finally:
            writer.close()

    def _process_items(
        self,
        job_id: str,
        items: List[WorkItem],
        writer: ResultWriter,
        ledger: Optional[ProgressLedger],
    ) -> None:
        crawler = self._crawler_factory()
        try:
            if self._run_items(job_id, items, writer, ledger, crawler):
                self._finish(job_id, JobState.COMPLETED, "All records processed.", current_item="Done")
        finally:
            close = getattr(crawler, "close", None)
            if close is not None:
                close()

    def _run_items(
        self,
        job_id: str,
        items: List[WorkItem],
        writer: ResultWriter,
        ledger: Optional[ProgressLedger],
        crawler: CrawlerProtocol,
    ) -> bool:
        """Process items in order; returns False when a stop request ended the run."""

        processed_any = False
        for index, item in enumerate(items, start=1):
            if not self._await_clearance(job_id):
                return False
            if ledger is not None and item.identity in ledger:
                self._update(job_id, processed=index, log=f"Skipping {item.company} (already processed)")
                continue
            if processed_any:
                self._delay_policy.site_wait()
                if not self._await_clearance(job_id):
                    return False

            self._update(job_id, current_item=item.company)
            writer.write_row(self._process_item(job_id, item, crawler))
            if ledger is not None:
                ledger.mark_complete(item.identity)
            self._update(job_id, processed=index)
            processed_any = True

        return True

    def _process_item(self, job_id: str, item: WorkItem, crawler: CrawlerProtocol) -> Dict[str, str]:
        website = item.website
        if not website:
            self._update(job_id, log=f"Searching for {item.company}...")
            website = self._resolve(item)
        if not website:
            self._update(job_id, log=f"Website not found for {item.company}")
            return build_row(item, website="", status=NOT_FOUND)

        url = normalise_website(website)
        self._update(job_id, log=f"Scraping {url}")
        try:
            result = crawler.scrape_site(url)
        except Exception:
            LOGGER.exception("Crawl of %s failed for %s", url, item.company)
            result = CrawlResult(outcome=CrawlOutcome.ERROR)

        if result.has_data:
            self._update(
                job_id,
                log=f"Found: {'; '.join(result.email_list)} | {'; '.join(result.phone_list)}",
                last_extracted=ExtractedData.from_result(result),
            )
        return build_row(item, website=url, status=result.outcome.value, result=result)

    def _resolve(self, item: WorkItem) -> Optional[str]:
        if self._resolver is None:
            return None
        try:
            return self._resolver.resolve(item.company, item.country)
        except Exception:  # pragma: no cover - defensive programming
            LOGGER.exception("Website lookup failed for %s", item.company)
            return None

    def _await_clearance(self, job_id: str) -> bool:
        """Block while the job is paused; ``False`` means a stop was requested."""

        paused = False
        while True:
            request = self._store.update(job_id, _apply_control)
            if request is ControlRequest.STOP or request is None:
                LOGGER.info("Job %s stopped by user", job_id)
                return False
            if request is ControlRequest.PAUSE:
                if not paused:
                    LOGGER.info("Job %s paused", job_id)
                    paused = True
                self._sleep(self._poll_interval)
                continue
            if paused:
                self._update(job_id, log="Job resumed.")
            return True

    def _update(
        self,
        job_id: str,
        *,
        log: Optional[str] = None,
        processed: Optional[int] = None,
        current_item: Optional[str] = None,
        last_extracted: Optional[ExtractedData] = None,
    ) -> None:
        if log:
            LOGGER.info("[%s] %s", job_id, log)

        def apply(status: JobStatus) -> None:
            if log:
                status.add_log(log)
            if processed is not None:
                status.processed = processed
            if current_item is not None:
                status.current_item = current_item
            if last_extracted is not None:
                status.last_extracted = last_extracted

        self._store.update(job_id, apply)

    def _finish(self, job_id: str, state: JobState, message: str, *, current_item: Optional[str] = None) -> None:
        LOGGER.info("[%s] %s", job_id, message)

        def apply(status: JobStatus) -> None:
            status.state = state
            status.add_log(message)
            if current_item is not None:
                status.current_item = current_item

        self._store.update(job_id, apply)


def _apply_control(status: JobStatus) -> ControlRequest:
    """Translate the pending control request into a state change (runs under the store lock)."""

    if status.control is ControlRequest.STOP:
        if status.state is not JobState.STOPPED:
            status.state = JobState.STOPPED
            status.add_log("Job stopped by user.")
        return ControlRequest.STOP
    if status.control is ControlRequest.PAUSE:
        if status.state is not JobState.PAUSED:
            status.state = JobState.PAUSED
            status.add_log("Job paused.")
        return ControlRequest.PAUSE
    if status.state is JobState.PAUSED:
        status.state = JobState.PROCESSING
    return ControlRequest.NONE


__all__ = ["CrawlerProtocol", "JobManager", "normalise_website"]
