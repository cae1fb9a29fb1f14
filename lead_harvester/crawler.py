"""Bounded breadth-first crawl of a single company website."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Optional, Set
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from .extractor import contact_from_lines, extract_emails, extract_phones
from .models import CrawlOutcome, CrawlResult
from .rate_limit import DelayPolicy
from .transport import HttpTransport, Transport, TransportError

LOGGER = logging.getLogger(__name__)

BLOCKED_STATUS_CODES = frozenset({403, 429})
CONTAINER_TAGS = ["div", "p", "li", "section", "article", "tr"]
INVISIBLE_TAGS = ["script", "style", "noscript", "template"]
LINK_KEYWORDS = ("contact", "about")


class SiteCrawler:
    """Visit a seed page plus a few of its contact/about pages and collect contacts.

    The crawl is capped at ``max_pages`` page visits. Only the seed page is
    mined for further links, and at most ``max_contact_links`` of them are
    queued. A 403 or 429 answer ends the crawl with :attr:`CrawlOutcome.BLOCKED`.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        delay_policy: Optional[DelayPolicy] = None,
        max_pages: int = 3,
        max_contact_links: int = 2,
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        self._transport = transport or HttpTransport()
        self._delay_policy = delay_policy or DelayPolicy()
        self.max_pages = max_pages
        self.max_contact_links = max_contact_links

    def scrape_site(self, seed_url: str) -> CrawlResult:
        result = CrawlResult()
        if not _is_http_url(seed_url):
            LOGGER.error("Invalid URL: %s", seed_url)
            result.outcome = CrawlOutcome.ERROR
            return result

        queue: Deque[str] = deque([seed_url])
        visited: Set[str] = set()

        while queue and len(visited) < self.max_pages:
            url = queue.popleft()
            if url in visited:
                continue
            is_first_page = not visited
            if not is_first_page:
                self._delay_policy.page_wait()
            visited.add(url)

            LOGGER.info("Visiting: %s", url)
            try:
                body, status_code = self._transport.fetch(url)
            except TransportError as exc:
                LOGGER.warning("Failed to fetch %s: %s", url, exc)
                if is_first_page:
                    result.outcome = CrawlOutcome.ERROR
                    return result
                continue

            if status_code in BLOCKED_STATUS_CODES:
                LOGGER.warning("Blocked at %s: %s", url, status_code)
                result.outcome = CrawlOutcome.BLOCKED
                return result

            soup = BeautifulSoup(body, "html.parser")
            if is_first_page:
                for link in self.discover_contact_links(soup, seed_url):
                    if link not in visited:
                        queue.append(link)
            self._collect_contacts(soup, result)

            gained_emails = result.add_emails(extract_emails(body))
            gained_phones = result.add_phones(extract_phones(body))
            if gained_emails or gained_phones:
                result.source_pages.append(url)

        result.outcome = CrawlOutcome.SUCCESS if result.has_data else CrawlOutcome.NO_DATA
        LOGGER.info(
            "Finished %s: %s (%s emails, %s phones, %s contacts, %s pages)",
            seed_url,
            result.outcome.value,
            len(result.emails),
            len(result.phones),
            len(result.contacts),
            len(visited),
        )
        return result

    def close(self) -> None:
        """Release the transport's connection pool, if it has one."""

        close = getattr(self._transport, "close", None)
        if close is not None:
            close()

    def discover_contact_links(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        """Return same-host links whose href mentions a contact or about page."""

        base_host = urlparse(base_url).hostname
        if not base_host:
            return []
        links: Set[str] = set()
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            if not any(keyword in href.lower() for keyword in LINK_KEYWORDS):
                continue
            try:
                joined = urldefrag(urljoin(base_url, href)).url
            except ValueError:
                continue
            if _is_http_url(joined) and urlparse(joined).hostname == base_host:
                links.add(joined)
        return sorted(links)[: self.max_contact_links]

    def _collect_contacts(self, soup: BeautifulSoup, result: CrawlResult) -> None:
        for element in soup(INVISIBLE_TAGS):
            element.decompose()
        for container in soup.find_all(CONTAINER_TAGS):
            lines = container_lines(container)
            for index in range(len(lines)):
                contact = contact_from_lines(lines, index)
                if contact is not None and result.add_contact(contact):
                    LOGGER.debug("Contact found: %s", contact)


def container_lines(container) -> List[str]:
    """Visible text of ``container`` as trimmed, non-empty lines."""

    text = container.get_text("\n")
    return [line.strip() for line in text.splitlines() if line.strip()]


def _is_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)
