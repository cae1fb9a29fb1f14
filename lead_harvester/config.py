"""Configuration helpers for the crawl-and-extract runner."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .rate_limit import DEFAULT_PAGE_DELAY, DEFAULT_SITE_DELAY, DelayRange
from .transport import DEFAULT_ACCEPT_LANGUAGE, DEFAULT_TIMEOUT

LOGGER = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}

DEFAULT_RESOLVER = {
    "class": "lead_harvester.search.DuckDuckGoResolver",
    "enabled": True,
    "options": {},
}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid JSON: {exc}") from exc
    else:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - dependency optional
            raise ConfigurationError(
                "YAML configuration requires the 'pyyaml' package to be installed"
            ) from exc
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


@dataclass
class HarvesterSettings:
    """Typed view of the configuration mapping."""

    page_delay: DelayRange = DEFAULT_PAGE_DELAY
    site_delay: DelayRange = DEFAULT_SITE_DELAY
    max_pages: int = 3
    max_contact_links: int = 2
    request_timeout: float = DEFAULT_TIMEOUT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    poll_interval: float = 0.5
    ledger_path: Optional[str] = None
    resolver: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_RESOLVER))

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None) -> "HarvesterSettings":
        data = dict(data or {})
        unknown = sorted(set(data) - set(cls.__dataclass_fields__))
        for key in unknown:
            LOGGER.warning("Ignoring unknown configuration key '%s'", key)

        defaults = cls()
        try:
            settings = cls(
                page_delay=_delay_range("page_delay", data.get("page_delay", defaults.page_delay)),
                site_delay=_delay_range("site_delay", data.get("site_delay", defaults.site_delay)),
                max_pages=int(data.get("max_pages", defaults.max_pages)),
                max_contact_links=int(data.get("max_contact_links", defaults.max_contact_links)),
                request_timeout=float(data.get("request_timeout", defaults.request_timeout)),
                accept_language=str(data.get("accept_language", defaults.accept_language)),
                poll_interval=float(data.get("poll_interval", defaults.poll_interval)),
                ledger_path=data.get("ledger_path") or None,
                resolver={**DEFAULT_RESOLVER, **(data.get("resolver") or {})},
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration value: {exc}") from exc

        if settings.max_pages < 1:
            raise ConfigurationError("max_pages must be at least 1")
        if settings.max_contact_links < 0:
            raise ConfigurationError("max_contact_links cannot be negative")
        if settings.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if not 0 < settings.poll_interval < 1:
            raise ConfigurationError("poll_interval must be between 0 and 1 second")
        return settings


def _delay_range(name: str, value: Any) -> DelayRange:
    if isinstance(value, (int, float, str)):
        try:
            low = high = float(value)
        except ValueError as exc:
            raise ConfigurationError(f"{name} must be a number or a [min, max] pair") from exc
    else:
        try:
            low, high = (float(part) for part in value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{name} must be a number or a [min, max] pair") from exc
    if low < 0 or high < low:
        raise ConfigurationError(f"{name} must satisfy 0 <= min <= max, got {value!r}")
    return (low, high)


__all__ = ["ConfigurationError", "HarvesterSettings", "load_configuration"]
