"""Data models shared by the crawler, the extractor and the job orchestrator."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

MAX_LOG_LINES = 50


def normalise_identity(company: str) -> str:
    """Return the key used to recognise an already processed company."""

    return " ".join(company.split()).casefold()


def phone_digits(value: str) -> str:
    return "".join(char for char in value if char.isdigit())


# --- Input Models ---

@dataclass(frozen=True)
class WorkItem:
    """One company row loaded from the input spreadsheet."""

    company: str
    website: Optional[str] = None
    country: str = ""

    def __post_init__(self) -> None:
        company = (self.company or "").strip()
        if not company:
            raise ValueError("Work items require a company name.")
        object.__setattr__(self, "company", company)
        website = (self.website or "").strip()
        object.__setattr__(self, "website", website or None)
        object.__setattr__(self, "country", (self.country or "").strip())

    @property
    def identity(self) -> str:
        return normalise_identity(self.company)


# --- Crawl Models ---

class CrawlOutcome(str, Enum):
    """Classification assigned once per site crawl."""

    SUCCESS = "success"
    NO_DATA = "no_data"
    BLOCKED = "blocked"
    ERROR = "error"


NOT_FOUND = "not_found"


@dataclass
class Contact:
    """A person believed to be described by one line of a page."""

    name: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_useful(self) -> bool:
        return bool(self.name or self.title)

    @property
    def key(self) -> tuple:
        return (self.phone, self.name)

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "title": self.title, "phone": self.phone, "email": self.email}


@dataclass
class CrawlResult:
    """Everything collected while crawling one site."""

    emails: Set[str] = field(default_factory=set)
    phones: Dict[str, str] = field(default_factory=dict)
    contacts: List[Contact] = field(default_factory=list)
    source_pages: List[str] = field(default_factory=list)
    outcome: CrawlOutcome = CrawlOutcome.NO_DATA

    def add_emails(self, emails: Iterable[str]) -> bool:
        """Merge ``emails`` and report whether any of them was new."""

        added = False
        for email in emails:
            email = email.casefold()
            if email not in self.emails:
                self.emails.add(email)
                added = True
        return added

    def add_phones(self, phones: Iterable[str]) -> bool:
        """Merge ``phones`` keyed by their digits; the first spelling wins."""

        added = False
        for phone in phones:
            digits = phone_digits(phone)
            if digits and digits not in self.phones:
                self.phones[digits] = phone
                added = True
        return added

    def add_contact(self, contact: Contact) -> bool:
        if not contact.is_useful:
            return False
        if any(existing.key == contact.key for existing in self.contacts):
            return False
        self.contacts.append(contact)
        return True

    @property
    def email_list(self) -> List[str]:
        return sorted(self.emails)

    @property
    def phone_list(self) -> List[str]:
        return sorted(self.phones.values())

    @property
    def has_data(self) -> bool:
        return bool(self.emails or self.phones)


# --- Job Models ---

class JobState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_finished(self) -> bool:
        return self in {JobState.STOPPED, JobState.COMPLETED, JobState.FAILED}


class ControlRequest(str, Enum):
    NONE = "none"
    PAUSE = "pause"
    STOP = "stop"


@dataclass
class ExtractedData:
    """Snapshot of the most recent extraction, exposed through the job status."""

    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    contacts: List[Contact] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: CrawlResult) -> "ExtractedData":
        return cls(
            emails=result.email_list,
            phones=result.phone_list,
            contacts=[Contact(**contact.as_dict()) for contact in result.contacts],
        )

    def copy(self) -> "ExtractedData":
        return ExtractedData(
            emails=list(self.emails),
            phones=list(self.phones),
            contacts=[Contact(**contact.as_dict()) for contact in self.contacts],
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "emails": list(self.emails),
            "phones": list(self.phones),
            "contacts": [contact.as_dict() for contact in self.contacts],
        }


@dataclass
class JobStatus:
    """Progress record of one job, mutated only through the job store."""

    job_id: str
    state: JobState = JobState.QUEUED
    total: int = 0
    processed: int = 0
    current_item: str = "Initializing..."
    logs: Deque[str] = field(default_factory=lambda: deque(maxlen=MAX_LOG_LINES))
    last_extracted: Optional[ExtractedData] = None
    control: ControlRequest = ControlRequest.NONE

    def add_log(self, message: str) -> None:
        self.logs.append(message)

    def copy(self) -> "JobStatus":
        """Return a detached snapshot that is safe to hand out of the store."""

        return JobStatus(
            job_id=self.job_id,
            state=self.state,
            total=self.total,
            processed=self.processed,
            current_item=self.current_item,
            logs=deque(self.logs, maxlen=MAX_LOG_LINES),
            last_extracted=self.last_extracted.copy() if self.last_extracted else None,
            control=self.control,
        )

    def as_dict(self) -> Dict[str, Any]:
        """Return a serialisable representation; the control flag stays internal."""

        return {
            "id": self.job_id,
            "status": self.state.value,
            "total_records": self.total,
            "processed_count": self.processed,
            "current_company": self.current_item,
            "logs": list(self.logs),
            "last_extracted": self.last_extracted.as_dict() if self.last_extracted else None,
        }


__all__ = [
    "Contact",
    "ControlRequest",
    "CrawlOutcome",
    "CrawlResult",
    "ExtractedData",
    "JobState",
    "JobStatus",
    "MAX_LOG_LINES",
    "NOT_FOUND",
    "WorkItem",
    "normalise_identity",
    "phone_digits",
]
