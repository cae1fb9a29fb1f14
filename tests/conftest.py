"""Shared fakes for crawler and orchestrator tests."""
from __future__ import annotations

from typing import Dict, List, Tuple, Union

import pytest

from lead_harvester.rate_limit import DelayPolicy
from lead_harvester.transport import TransportError

PageSpec = Union[str, Tuple[str, int], Exception]


class FakeTransport:
    """Serve canned pages by URL and remember every fetch."""

    def __init__(self, pages: Dict[str, PageSpec]) -> None:
        self.pages = pages
        self.requests: List[str] = []

    def fetch(self, url: str) -> Tuple[str, int]:
        self.requests.append(url)
        page = self.pages.get(url)
        if page is None:
            raise TransportError(url, "connection refused")
        if isinstance(page, Exception):
            raise page
        if isinstance(page, tuple):
            return page
        return page, 200


class RecordingDelayPolicy(DelayPolicy):
    """Delay policy that never sleeps but counts the waits it was asked for."""

    def __init__(self) -> None:
        super().__init__(page_delay=(0.0, 0.0), site_delay=(0.0, 0.0))
        self.page_waits = 0
        self.site_waits = 0

    def page_wait(self) -> float:
        self.page_waits += 1
        return 0.0

    def site_wait(self) -> float:
        self.site_waits += 1
        return 0.0


@pytest.fixture
def delay_policy() -> RecordingDelayPolicy:
    return RecordingDelayPolicy()


@pytest.fixture
def make_transport():
    return FakeTransport
