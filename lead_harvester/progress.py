"""Durable record of the companies a batch run has already finished."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Set

LOGGER = logging.getLogger(__name__)

DEFAULT_LEDGER_PATH = "progress.json"


class ProgressLedger:
    """Set of processed identifiers, saved as a whole-file snapshot after every mark.

    A ledger belongs to exactly one running job. Two jobs writing the same file
    would overwrite each other's snapshots.
    """

    def __init__(self, path: str | Path = DEFAULT_LEDGER_PATH, processed: Iterable[str] = ()) -> None:
        self.path = Path(path)
        self._processed: Set[str] = set(processed)

    @classmethod
    def load(cls, path: str | Path = DEFAULT_LEDGER_PATH) -> "ProgressLedger":
        """Read ``path`` if it exists; a missing or corrupt file yields an empty ledger."""

        file_path = Path(path)
        if not file_path.exists():
            LOGGER.info("No progress file found at %s. Starting fresh.", file_path)
            return cls(file_path)

        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
            processed = data["processed"]
            if not isinstance(processed, list) or not all(isinstance(item, str) for item in processed):
                raise ValueError("'processed' must be a list of strings")
        except (OSError, ValueError, KeyError, TypeError) as exc:
            LOGGER.error("Failed to read progress file %s: %s. Starting fresh.", file_path, exc)
            return cls(file_path)

        LOGGER.info("Resumed previous session: %s companies processed.", len(processed))
        return cls(file_path, processed)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._processed

    def __len__(self) -> int:
        return len(self._processed)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._processed))

    def mark_complete(self, identifier: str) -> None:
        self._processed.add(identifier)
        self.save()

    def save(self) -> None:
        payload = json.dumps({"processed": sorted(self._processed)}, indent=2, ensure_ascii=False)
        temp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            if self.path.parent != Path("."):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except OSError as exc:
            LOGGER.error("Failed to write progress file %s: %s", self.path, exc)


__all__ = ["DEFAULT_LEDGER_PATH", "ProgressLedger"]
