"""HTTP transport used by the crawler and the website resolver."""
from __future__ import annotations

import logging
import random
from typing import Optional, Protocol, Sequence, Tuple

import requests

LOGGER = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
)

DEFAULT_TIMEOUT = 30.0
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"


class TransportError(RuntimeError):
    """Raised when a page could not be fetched at all (network, DNS, TLS, timeout)."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class Transport(Protocol):
    """Anything able to fetch a URL and report the body and status code."""

    def fetch(self, url: str) -> Tuple[str, int]:  # pragma: no cover - runtime protocol
        """Return ``(body_text, status_code)`` or raise :class:`TransportError`."""


class HttpTransport:
    """``requests`` based transport with a rotating user agent and shared cookies."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
        user_agents: Sequence[str] = USER_AGENTS,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not user_agents:
            raise ValueError("At least one user agent string is required")
        self.timeout = timeout
        self._user_agents = tuple(user_agents)
        self._rng = rng or random.Random()
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": accept_language,
            }
        )

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    def choose_user_agent(self) -> str:
        return self._rng.choice(self._user_agents)

    def fetch(self, url: str) -> Tuple[str, int]:
        headers = {"User-Agent": self.choose_user_agent()}
        try:
            response = self._session.get(url, headers=headers, timeout=self.timeout)
            body = response.text
        except requests.RequestException as exc:
            raise TransportError(url, str(exc)) from exc
        LOGGER.debug("Fetched %s with status %s (%s bytes)", url, response.status_code, len(body))
        return body, response.status_code

    def close(self) -> None:
        self._session.close()


__all__ = ["DEFAULT_ACCEPT_LANGUAGE", "DEFAULT_TIMEOUT", "HttpTransport", "Transport", "TransportError", "USER_AGENTS"]
