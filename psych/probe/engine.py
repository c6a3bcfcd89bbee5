"""Probe engine — runs one timed HTTP GET and classifies the outcome.

A probe never raises: transport failures (timeout, refused connection,
DNS) are recorded on the result with status code 0 and classify as DOWN.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import IntEnum

import httpx

from psych.sites.registry import SiteTarget

logger = logging.getLogger(__name__)


# ── Models ───────────────────────────────────────────────────────────────────


class HealthVerdict(IntEnum):
    """Tri-state health; the ordinal is what the ``status`` metric stores."""

    DOWN = 0
    UP = 1
    WARN = 2


@dataclass
class ProbeResult:
    """Mutable outcome of one probe, reused across ticks via the pool."""

    status_code: int = 0
    duration_seconds: float = 0.0
    error: str = ""

    def reset(self) -> None:
        self.status_code = 0
        self.duration_seconds = 0.0
        self.error = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


# ── Executor ─────────────────────────────────────────────────────────────────


async def _fetch_status(client: httpx.AsyncClient, url: str, timeout: float) -> int:
    # Status is known once headers arrive; the body is never read.
    async with client.stream("GET", url, timeout=timeout) as resp:
        return resp.status_code


async def execute_probe(
    target: SiteTarget,
    client: httpx.AsyncClient,
    started: float,
    result: ProbeResult,
) -> ProbeResult:
    """GET ``target.url`` once and fill ``result``.

    ``started`` is a ``time.perf_counter()`` reading taken at tick time;
    the duration runs from there to completion or to the failure point.
    """
    try:
        # asyncio.timeout, unlike wait_for on 3.11, never swallows an outer cancel.
        async with asyncio.timeout(target.timeout_seconds):
            status_code = await _fetch_status(client, target.url, target.timeout_seconds)
    except TimeoutError:
        result.status_code = 0
        result.duration_seconds = time.perf_counter() - started
        result.error = f"Timed out after {target.timeout_seconds}s"
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        result.status_code = 0
        result.duration_seconds = time.perf_counter() - started
        result.error = f"{type(e).__name__}: {e}"
    except Exception as e:
        result.status_code = 0
        result.duration_seconds = time.perf_counter() - started
        result.error = f"Error: {type(e).__name__}: {e}"
        logger.exception("Unexpected probe failure for %s", target.key)
    else:
        result.status_code = status_code
        result.duration_seconds = time.perf_counter() - started
        logger.info("%s %d %.3fs", target.key, result.status_code, result.duration_seconds)
        return result

    logger.warning(
        "%s probe failed after %.3fs: %s", target.key, result.duration_seconds, result.error,
    )
    return result


# ── Classifier ───────────────────────────────────────────────────────────────


def classify(result: ProbeResult, threshold: float) -> HealthVerdict:
    """DOWN unless 2xx; a 2xx at or above ``threshold`` seconds is WARN.

    The threshold only ever turns UP into WARN, so a slow error stays DOWN.
    """
    if not result.ok:
        return HealthVerdict.DOWN
    if result.duration_seconds >= threshold:
        return HealthVerdict.WARN
    return HealthVerdict.UP
