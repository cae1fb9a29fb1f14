"""Courtesy delays applied between page requests and between target sites."""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

LOGGER = logging.getLogger(__name__)

DelayRange = Tuple[float, float]

DEFAULT_PAGE_DELAY: DelayRange = (8.0, 30.0)
DEFAULT_SITE_DELAY: DelayRange = (16.0, 45.0)


@dataclass
class DelayPolicy:
    """Random wait intervals that keep request timing from looking scripted."""

    page_delay: DelayRange = DEFAULT_PAGE_DELAY
    site_delay: DelayRange = DEFAULT_SITE_DELAY
    sleep: Callable[[float], None] = time.sleep
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        self.page_delay = _validate_range("page_delay", self.page_delay)
        self.site_delay = _validate_range("site_delay", self.site_delay)

    @classmethod
    def disabled(cls) -> "DelayPolicy":
        return cls(page_delay=(0.0, 0.0), site_delay=(0.0, 0.0))

    def page_wait(self) -> float:
        return self._wait(self.page_delay, "Page Delay")

    def site_wait(self) -> float:
        return self._wait(self.site_delay, "Site Delay")

    def _wait(self, bounds: DelayRange, label: str) -> float:
        low, high = bounds
        if high <= 0:
            return 0.0
        seconds = self.rng.uniform(low, high)
        LOGGER.info("Waiting for %.1f seconds (%s)...", seconds, label)
        self.sleep(seconds)
        return seconds


def _validate_range(name: str, bounds: Optional[DelayRange]) -> DelayRange:
    if bounds is None:
        return (0.0, 0.0)
    low, high = (float(value) for value in bounds)
    if low < 0 or high < low:
        raise ValueError(f"{name} must be a non-negative (min, max) pair, got {bounds!r}")
    return (low, high)


__all__ = ["DelayPolicy", "DelayRange", "DEFAULT_PAGE_DELAY", "DEFAULT_SITE_DELAY"]
