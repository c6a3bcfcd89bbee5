"""Site registry — loads sites.yaml and provides typed SiteTarget models.

Each entry under ``sites:`` becomes one SiteTarget; the mapping key is the
target's ``key`` label. When the file does not exist a default
single-target file is written so a fresh checkout has something to probe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from psych.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SITES: dict[str, Any] = {
    "sites": {
        "local": {
            "url": "http://127.0.0.1",
            "timeout": 5,
            "warning_threshold": 2,
            "interval": 10_000,
        },
    },
}


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SiteTarget:
    """Identity and probe policy for one monitored endpoint."""

    key: str
    url: str
    timeout_seconds: float = 5.0
    warning_threshold_seconds: float = 2.0
    interval_milliseconds: int = 10_000

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Site key must not be empty")
        if not self.url:
            raise ValueError(f"Site '{self.key}' has no url")
        if self.interval_milliseconds <= 0:
            raise ValueError(f"Site '{self.key}' interval must be > 0, got {self.interval_milliseconds}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"Site '{self.key}' timeout must be > 0, got {self.timeout_seconds}")

    @property
    def interval_seconds(self) -> float:
        return self.interval_milliseconds / 1000


# ── Registry ─────────────────────────────────────────────────────────────────


class SiteRegistry:
    """Loads and caches site targets from sites.yaml."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path(settings.sites_file)
        self._sites: list[SiteTarget] = []
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> list[SiteTarget]:
        """Parse sites.yaml and return the SiteTarget list."""
        if self._loaded and not force:
            return self._sites

        self._sites = []
        if not self._path.exists():
            self._write_default()

        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except Exception as e:
            logger.error("Invalid sites file %s: %s", self._path, e)
            self._loaded = True
            return self._sites

        entries = raw.get("sites") if isinstance(raw, dict) else None
        if not isinstance(entries, dict):
            logger.error("Invalid sites file %s: expected a 'sites' mapping", self._path)
            self._loaded = True
            return self._sites

        for key, entry in entries.items():
            try:
                self._sites.append(_parse_site(str(key), entry))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed site entry '%s': %s", key, e)

        self._loaded = True
        logger.info("Loaded %d sites from %s", len(self._sites), self._path)
        return self._sites

    @property
    def sites(self) -> list[SiteTarget]:
        return self.load()

    def get(self, key: str) -> SiteTarget | None:
        return next((s for s in self.sites if s.key == key), None)

    def reload(self) -> list[SiteTarget]:
        """Force reload from disk."""
        return self.load(force=True)

    def _write_default(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                yaml.dump(DEFAULT_SITES, sort_keys=False, default_flow_style=False),
                encoding="utf-8",
            )
            logger.info("Created default sites file: %s", self._path)
        except OSError as e:
            logger.error("Could not create sites file %s: %s", self._path, e)


# ── Parsing helpers ──────────────────────────────────────────────────────────


def _parse_site(key: str, d: Any) -> SiteTarget:
    if not isinstance(d, dict):
        raise TypeError(f"expected a mapping, got {type(d).__name__}")
    # A bare `url:` loads as None.
    url = d.get("url") or ""
    return SiteTarget(
        key=key,
        url=str(url).strip(),
        timeout_seconds=float(d.get("timeout", settings.default_timeout_seconds)),
        warning_threshold_seconds=float(
            d.get("warning_threshold", settings.default_warning_threshold_seconds),
        ),
        interval_milliseconds=_parse_interval(d.get("interval", settings.default_interval_ms)),
    )


def _parse_interval(raw: Any) -> int:
    """Whole milliseconds; fractional values are rejected rather than truncated."""
    if isinstance(raw, bool):
        raise TypeError("interval must be a number of milliseconds")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"interval must be whole milliseconds, got {raw}")
        return int(raw)
    return int(raw)
