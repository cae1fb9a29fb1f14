"""Tests for the job controller: lifecycle, control signals, output and resumable runs."""
from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional

import pytest

from lead_harvester.crawler import SiteCrawler
from lead_harvester.io import read_rows
from lead_harvester.models import MAX_LOG_LINES, Contact, CrawlOutcome, CrawlResult, JobState
from lead_harvester.orchestrator import JobManager, normalise_website
from lead_harvester.progress import ProgressLedger
from lead_harvester.search import NullResolver


class RecordingCrawler:
    """Crawler double returning canned results and running an optional hook per call."""

    def __init__(self, results: Optional[Dict[str, CrawlResult]] = None) -> None:
        self.results = results or {}
        self.calls: List[str] = []
        self.on_call: Optional[Callable[[str], None]] = None

    def scrape_site(self, seed_url: str) -> CrawlResult:
        self.calls.append(seed_url)
        if self.on_call is not None:
            self.on_call(seed_url)
        return self.results.get(seed_url, CrawlResult())


class StaticResolver:
    def __init__(self, urls: Dict[str, str]) -> None:
        self.urls = urls
        self.queries: List[tuple] = []

    def resolve(self, company: str, country: str) -> Optional[str]:
        self.queries.append((company, country))
        return self.urls.get(company)


def _write_input(tmp_path, rows: List[str], name: str = "input.csv"):
    path = tmp_path / name
    path.write_text("Company,Website,Country\n" + "\n".join(rows) + "\n", encoding="utf-8")
    return path


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.005)
    pytest.fail("condition was not reached in time")


def _manager(crawler, delay_policy, resolver=None) -> JobManager:
    return JobManager(
        crawler_factory=lambda: crawler,
        resolver=resolver or NullResolver(),
        delay_policy=delay_policy,
        poll_interval=0.01,
    )


def test_missing_website_without_search_result_is_not_found(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["Acme Co,,US"])
    output_path = tmp_path / "results.csv"
    crawler = RecordingCrawler()
    resolver = StaticResolver({})

    status = _manager(crawler, delay_policy, resolver).run_job(input_path, output_path)

    assert status.state is JobState.COMPLETED
    assert status.total == status.processed == 1
    assert resolver.queries == [("Acme Co", "US")]
    assert crawler.calls == []
    rows = read_rows(output_path)
    assert len(rows) == 1
    assert rows[0]["company"] == "Acme Co"
    assert rows[0]["status"] == "not_found"
    assert rows[0]["email"] == rows[0]["phone"] == rows[0]["contact_1_name"] == ""


def test_email_on_seed_page_ends_up_in_output(tmp_path, make_transport, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["Acme Co,acme.com,US"])
    output_path = tmp_path / "results.csv"
    transport = make_transport({"https://acme.com": "<html><body><p>john@acme.com</p></body></html>"})
    crawler = SiteCrawler(transport, delay_policy=delay_policy)

    status = _manager(crawler, delay_policy).run_job(input_path, output_path)

    row = read_rows(output_path)[0]
    assert row["website"] == "https://acme.com"
    assert row["email"] == "john@acme.com"
    assert row["status"] == "success"
    assert status.last_extracted is not None
    assert status.last_extracted.emails == ["john@acme.com"]
    assert any(line.startswith("Found: john@acme.com") for line in status.logs)


def test_blocked_seed_page_is_reported(tmp_path, make_transport, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["Acme Co,https://acme.com,US"])
    output_path = tmp_path / "results.csv"
    crawler = SiteCrawler(make_transport({"https://acme.com": ("slow down", 429)}), delay_policy=delay_policy)

    _manager(crawler, delay_policy).run_job(input_path, output_path)

    row = read_rows(output_path)[0]
    assert row["status"] == "blocked"
    assert row["email"] == row["phone"] == ""


def test_resolved_website_is_crawled(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["Globex,,IN"])
    output_path = tmp_path / "results.csv"
    result = CrawlResult(outcome=CrawlOutcome.SUCCESS)
    result.add_phones(["+91 9876543210"])
    crawler = RecordingCrawler({"https://globex.example/": result})
    resolver = StaticResolver({"Globex": "https://globex.example/"})

    _manager(crawler, delay_policy, resolver).run_job(input_path, output_path)

    row = read_rows(output_path)[0]
    assert crawler.calls == ["https://globex.example/"]
    assert row["website"] == "https://globex.example/"
    assert row["phone"] == "+91 9876543210"


def test_site_delay_applies_between_items_only(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["A,a.example,", "B,b.example,", "C,c.example,"])

    _manager(RecordingCrawler(), delay_policy).run_job(input_path, tmp_path / "results.csv")

    assert delay_policy.site_waits == 2


def test_crawler_exception_is_recorded_as_error(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["A,a.example,", "B,b.example,"])
    output_path = tmp_path / "results.csv"
    crawler = RecordingCrawler()

    def explode(url: str) -> None:
        if url == "https://a.example":
            raise RuntimeError("parser crashed")

    crawler.on_call = explode

    status = _manager(crawler, delay_policy).run_job(input_path, output_path)

    assert status.state is JobState.COMPLETED
    assert [row["status"] for row in read_rows(output_path)] == ["error", "no_data"]


def test_pause_and_resume_continue_without_skipping(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["A,a.example,", "B,b.example,", "C,c.example,"])
    output_path = tmp_path / "results.csv"
    crawler = RecordingCrawler()
    manager = _manager(crawler, delay_policy)
    job_id = "pause-job"
    crawler.on_call = lambda url: manager.pause(job_id) if len(crawler.calls) == 1 else None

    manager.start_job(input_path, output_path, job_id=job_id)
    _wait_for(lambda: manager.get_status(job_id).state is JobState.PAUSED)
    time.sleep(0.1)

    paused = manager.get_status(job_id)
    assert paused.processed == 1
    assert crawler.calls == ["https://a.example"]

    assert manager.resume(job_id)
    final = manager.wait(job_id, timeout=5)

    assert final.state is JobState.COMPLETED
    assert final.processed == 3
    assert crawler.calls == ["https://a.example", "https://b.example", "https://c.example"]
    assert [row["company"] for row in read_rows(output_path)] == ["A", "B", "C"]
    assert "Job paused." in final.logs
    assert "Job resumed." in final.logs


def test_stop_keeps_written_rows(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["A,a.example,", "B,b.example,", "C,c.example,"])
    output_path = tmp_path / "results.csv"
    crawler = RecordingCrawler()
    manager = _manager(crawler, delay_policy)
    crawler.on_call = lambda url: manager.stop("stop-job")

    status = manager.run_job(input_path, output_path, job_id="stop-job")

    assert status.state is JobState.STOPPED
    assert status.processed == 1
    assert crawler.calls == ["https://a.example"]
    assert [row["company"] for row in read_rows(output_path)] == ["A"]
    assert "Job stopped by user." in status.logs


def test_stop_while_paused(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["A,a.example,", "B,b.example,"])
    crawler = RecordingCrawler()
    manager = _manager(crawler, delay_policy)
    crawler.on_call = lambda url: manager.pause("job")

    manager.start_job(input_path, tmp_path / "results.csv", job_id="job")
    _wait_for(lambda: manager.get_status("job").state is JobState.PAUSED)
    assert manager.stop("job")
    final = manager.wait("job", timeout=5)

    assert final.state is JobState.STOPPED
    assert crawler.calls == ["https://a.example"]


def test_unopenable_output_fails_the_job(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["A,a.example,"])
    crawler = RecordingCrawler()

    status = _manager(crawler, delay_policy).run_job(input_path, tmp_path)

    assert status.state is JobState.FAILED
    assert status.processed == 0
    assert crawler.calls == []
    assert any("Failed to open output file" in line for line in status.logs)


def test_missing_input_fails_the_job(tmp_path, delay_policy) -> None:
    status = _manager(RecordingCrawler(), delay_policy).run_job(tmp_path / "nope.csv", tmp_path / "results.csv")

    assert status.state is JobState.FAILED
    assert not (tmp_path / "results.csv").exists()


def test_corrupt_workbook_fails_the_job(tmp_path, delay_policy) -> None:
    input_path = tmp_path / "companies.xlsx"
    input_path.write_bytes(b"this is not a zip archive")
    manager = _manager(RecordingCrawler(), delay_policy)

    manager.start_job(input_path, tmp_path / "results.csv", job_id="corrupt")
    threaded = manager.wait("corrupt", timeout=5)
    synchronous = manager.run_job(input_path, tmp_path / "results.csv", job_id="corrupt-sync")

    for status in (threaded, synchronous):
        assert status.state is JobState.FAILED
        assert any(line.startswith("Failed to load input file") for line in status.logs)
    assert not (tmp_path / "results.csv").exists()


def test_crawler_is_closed_when_the_job_ends(tmp_path, delay_policy) -> None:
    crawler = RecordingCrawler()
    closed = []
    crawler.close = lambda: closed.append(True)
    manager = _manager(crawler, delay_policy)
    crawler.on_call = lambda url: manager.stop("closing")
    input_path = _write_input(tmp_path, ["A,a.example,", "B,b.example,"])

    status = manager.run_job(input_path, tmp_path / "results.csv", job_id="closing")

    assert status.state is JobState.STOPPED
    assert closed == [True]


def test_control_operations_report_unknown_jobs(delay_policy) -> None:
    manager = _manager(RecordingCrawler(), delay_policy)

    assert manager.pause("missing") is False
    assert manager.resume("missing") is False
    assert manager.stop("missing") is False
    assert manager.get_status("missing") is None


def test_rolling_log_keeps_latest_lines(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, [f"Company {index},," for index in range(40)])

    status = _manager(RecordingCrawler(), delay_policy).run_job(input_path, tmp_path / "results.csv")

    assert len(status.logs) == MAX_LOG_LINES
    assert status.logs[-1] == "All records processed."
    assert "Job started." not in status.logs


def test_ledger_resume_skips_finished_companies(tmp_path, delay_policy) -> None:
    input_path = _write_input(tmp_path, ["Acme Co,a.example,", "Globex,b.example,", "Initech,c.example,"])
    output_path = tmp_path / "results.csv"
    ledger_path = tmp_path / "progress.json"

    first_crawler = RecordingCrawler()
    first = _manager(first_crawler, delay_policy)
    first_crawler.on_call = lambda url: first.stop("run-1")
    status = first.run_job(input_path, output_path, job_id="run-1", ledger=ProgressLedger.load(ledger_path))

    assert status.state is JobState.STOPPED
    assert set(ProgressLedger.load(ledger_path)) == {"acme co"}

    second_crawler = RecordingCrawler()
    ledger = ProgressLedger.load(ledger_path)
    status = _manager(second_crawler, delay_policy).run_job(input_path, output_path, job_id="run-2", ledger=ledger)

    assert status.state is JobState.COMPLETED
    assert status.processed == 3
    assert second_crawler.calls == ["https://b.example", "https://c.example"]
    assert set(ProgressLedger.load(ledger_path)) == {"acme co", "globex", "initech"}
    assert [row["company"] for row in read_rows(output_path)] == ["Acme Co", "Globex", "Initech"]


def test_status_snapshot_is_detached_and_serialisable(tmp_path, delay_policy) -> None:
    result = CrawlResult(outcome=CrawlOutcome.SUCCESS)
    result.add_emails(["a@acme.com"])
    result.add_contact(Contact(name="Jane Doe", phone="555-123-4567"))
    manager = _manager(RecordingCrawler({"https://acme.example": result}), delay_policy)
    input_path = _write_input(tmp_path, ["Acme Co,acme.example,US"])
    manager.run_job(input_path, tmp_path / "results.csv", job_id="snap")

    snapshot = manager.get_status("snap")
    snapshot.logs.append("local change")
    snapshot.last_extracted.emails.append("other@example.com")
    snapshot.last_extracted.contacts[0].name = "Someone Else"
    data = manager.get_status("snap").as_dict()

    assert data["id"] == "snap"
    assert data["status"] == "completed"
    assert "local change" not in data["logs"]
    assert data["last_extracted"]["emails"] == ["a@acme.com"]
    assert data["last_extracted"]["contacts"][0]["name"] == "Jane Doe"
    assert "control" not in data
    assert [status.job_id for status in manager.list_jobs()] == ["snap"]


@pytest.mark.parametrize(
    ("website", "expected"),
    [
        ("acme.com", "https://acme.com"),
        ("  http://acme.com/about ", "http://acme.com/about"),
        ("//acme.com", "https://acme.com"),
    ],
)
def test_normalise_website(website: str, expected: str) -> None:
    assert normalise_website(website) == expected
