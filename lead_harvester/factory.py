"""Factory helpers for wiring collaborators together from settings."""
from __future__ import annotations

import importlib
from typing import Optional

from .config import ConfigurationError, HarvesterSettings
from .crawler import SiteCrawler
from .orchestrator import JobManager
from .rate_limit import DelayPolicy
from .search import DuckDuckGoResolver, NullResolver, UrlResolver
from .transport import HttpTransport


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid resolver class path '{path}'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


def build_delay_policy(settings: HarvesterSettings, *, disabled: bool = False) -> DelayPolicy:
    if disabled:
        return DelayPolicy.disabled()
    return DelayPolicy(page_delay=settings.page_delay, site_delay=settings.site_delay)


def build_transport(settings: HarvesterSettings) -> HttpTransport:
    return HttpTransport(timeout=settings.request_timeout, accept_language=settings.accept_language)


def build_crawler(settings: HarvesterSettings, delay_policy: DelayPolicy) -> SiteCrawler:
    """Create a crawler with a fresh transport, so cookies never leak between jobs."""

    return SiteCrawler(
        build_transport(settings),
        delay_policy=delay_policy,
        max_pages=settings.max_pages,
        max_contact_links=settings.max_contact_links,
    )


def build_resolver(settings: HarvesterSettings, delay_policy: DelayPolicy) -> UrlResolver:
    """Instantiate the website resolver named in the configuration."""

    resolver_cfg = settings.resolver
    if not resolver_cfg.get("enabled", True):
        return NullResolver()

    class_path = resolver_cfg.get("class")
    if not class_path:
        raise ConfigurationError("Resolver configuration missing required 'class' field")

    resolver_cls = _load_class(class_path)
    options = dict(resolver_cfg.get("options") or {})
    if isinstance(resolver_cls, type) and issubclass(resolver_cls, DuckDuckGoResolver):
        options.setdefault("transport", build_transport(settings))
        options.setdefault("delay_policy", delay_policy)
    try:
        return resolver_cls(**options)
    except TypeError as exc:
        raise ConfigurationError(f"Cannot construct resolver '{class_path}': {exc}") from exc


def build_job_manager(
    settings: HarvesterSettings,
    *,
    use_search: bool = True,
    disable_delays: bool = False,
    delay_policy: Optional[DelayPolicy] = None,
) -> JobManager:
    delay_policy = delay_policy or build_delay_policy(settings, disabled=disable_delays)
    resolver = build_resolver(settings, delay_policy) if use_search else NullResolver()
    return JobManager(
        crawler_factory=lambda: build_crawler(settings, delay_policy),
        resolver=resolver,
        delay_policy=delay_policy,
        poll_interval=settings.poll_interval,
    )


__all__ = ["build_crawler", "build_delay_policy", "build_job_manager", "build_resolver", "build_transport"]
