"""Row-by-row CSV output for crawl results."""
from __future__ import annotations

import csv
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .models import CrawlResult, WorkItem

MAX_CONTACT_SLOTS = 5
CONTACT_FIELDS = ("name", "title", "phone", "email")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
JOIN_SEPARATOR = "; "

BASE_COLUMNS = [
    "company",
    "country",
    "website",
    "email",
    "phone",
    "source_page",
    "status",
    "timestamp",
]
FIELDNAMES = BASE_COLUMNS + [
    f"contact_{slot}_{field}" for slot in range(1, MAX_CONTACT_SLOTS + 1) for field in CONTACT_FIELDS
]


def build_row(
    item: WorkItem,
    *,
    website: str,
    status: str,
    result: Optional[CrawlResult] = None,
    timestamp: Optional[datetime] = None,
) -> Dict[str, str]:
    """Flatten one processed work item into an output row."""

    result = result or CrawlResult()
    row = {
        "company": item.company,
        "country": item.country,
        "website": website,
        "email": _join(result.email_list),
        "phone": _join(result.phone_list),
        "source_page": _join(result.source_pages),
        "status": status,
        "timestamp": (timestamp or datetime.now()).strftime(TIMESTAMP_FORMAT),
    }
    for slot in range(MAX_CONTACT_SLOTS):
        contact = result.contacts[slot] if slot < len(result.contacts) else None
        for field in CONTACT_FIELDS:
            value = getattr(contact, field) if contact is not None else None
            row[f"contact_{slot + 1}_{field}"] = value or ""
    return row


def _join(values: Iterable[str]) -> str:
    return JOIN_SEPARATOR.join(value for value in values if value)


class ResultWriter:
    """Append rows to a CSV file, flushing each one to disk before returning.

    With ``append=False`` the destination is truncated. In append mode the
    header is only written when the file is new or empty, so a resumed batch
    keeps extending the same file.
    """

    def __init__(self, path: str | Path, *, append: bool = False) -> None:
        self.path = Path(path)
        self.append = append
        self._handle = None
        self._writer: Optional[csv.DictWriter] = None

    def open(self) -> "ResultWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        needs_header = not self.append or not self.path.exists() or self.path.stat().st_size == 0
        self._handle = self.path.open("a" if self.append else "w", newline="", encoding="utf-8")
        self._writer = csv.DictWriter(self._handle, fieldnames=FIELDNAMES)
        if needs_header:
            self._writer.writeheader()
            self._sync()
        return self

    def __enter__(self) -> "ResultWriter":
        return self.open()

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    def write_row(self, row: Dict[str, str]) -> None:
        if self._writer is None:
            raise RuntimeError("ResultWriter.open() must be called before writing rows")
        self._writer.writerow(row)
        self._sync()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._writer = None

    def _sync(self) -> None:
        self._handle.flush()
        os.fsync(self._handle.fileno())


def read_rows(path: str | Path) -> List[Dict[str, str]]:
    """Read an output file back; used by operators inspecting partial runs."""

    with Path(path).open(newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


__all__ = ["FIELDNAMES", "ResultWriter", "build_row", "read_rows"]
