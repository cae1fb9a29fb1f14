"""Resolve a company name to a likely official website."""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence
from urllib.parse import parse_qs, quote_plus, urlparse

from bs4 import BeautifulSoup

from .rate_limit import DelayPolicy
from .transport import HttpTransport, Transport, TransportError

LOGGER = logging.getLogger(__name__)

SEARCH_URL = "https://html.duckduckgo.com/html/?q={query}"
RESULT_SELECTORS = (".result__a", ".result__snippet", ".result__url")
FORBIDDEN_DOMAINS = (
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "twitter.com",
    "x.com",
    "youtube.com",
    "pinterest.com",
    "glassdoor.com",
    "indeed.com",
    "justdial.com",
    "indiamart.com",
    "yellowpages.com",
)


class UrlResolver(Protocol):
    """Best-effort lookup of a company's website."""

    def resolve(self, company: str, country: str) -> Optional[str]:  # pragma: no cover - runtime protocol
        """Return a candidate URL or ``None``."""


class NullResolver:
    """Resolver used when web search is disabled."""

    def resolve(self, company: str, country: str) -> Optional[str]:
        LOGGER.debug("Search disabled; no website for %s", company)
        return None


class DuckDuckGoResolver:
    """Query the DuckDuckGo HTML endpoint and return the first plausible result."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        delay_policy: Optional[DelayPolicy] = None,
        forbidden_domains: Sequence[str] = FORBIDDEN_DOMAINS,
    ) -> None:
        self._transport = transport or HttpTransport()
        self._delay_policy = delay_policy or DelayPolicy()
        self._forbidden_domains = tuple(forbidden_domains)

    def resolve(self, company: str, country: str) -> Optional[str]:
        query = " ".join(part for part in (company.strip(), country.strip(), "official website") if part)
        LOGGER.info("Searching for: '%s'", query)
        self._delay_policy.page_wait()

        search_url = SEARCH_URL.format(query=quote_plus(query))
        try:
            body, status_code = self._transport.fetch(search_url)
        except TransportError as exc:
            LOGGER.error("Search request failed: %s", exc)
            return None
        if not 200 <= status_code < 300:
            LOGGER.warning("Search failed with status: %s", status_code)
            return None
        return self.parse_results(body)

    def parse_results(self, html: str) -> Optional[str]:
        soup = BeautifulSoup(html, "html.parser")
        for selector in RESULT_SELECTORS:
            for element in soup.select(selector):
                href = element.get("href")
                if not href:
                    continue
                candidate = _unwrap_redirect(href)
                if self._is_acceptable(candidate):
                    LOGGER.info("Found likely website using selector '%s': %s", selector, candidate)
                    return candidate
        LOGGER.warning("No suitable website found in top results.")
        return None

    def _is_acceptable(self, url: str) -> bool:
        if not url.startswith("http"):
            return False
        host = (urlparse(url).hostname or "").lower()
        if not host or host.endswith("duckduckgo.com"):
            return False
        return not any(host == domain or host.endswith("." + domain) for domain in self._forbidden_domains)


def _unwrap_redirect(href: str) -> str:
    """Turn ``//duckduckgo.com/l/?uddg=<target>`` links into the target URL."""

    parsed = urlparse(href)
    if (parsed.hostname or "").endswith("duckduckgo.com") and parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    return href


__all__ = ["DuckDuckGoResolver", "FORBIDDEN_DOMAINS", "NullResolver", "UrlResolver"]
