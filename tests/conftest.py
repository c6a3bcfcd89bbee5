"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Coroutine, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest

from psych.sites.registry import SiteTarget
from psych.storage.tsdb import MetricRow, TimeSeriesStore


class RecordingSink:
    """In-memory stand-in for the time-series store."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[list[MetricRow]] = []

    def insert_rows(self, rows: list[MetricRow]) -> None:
        if self.fail:
            raise RuntimeError("disk full")
        self.batches.append(list(rows))

    def rows_for(self, key: str, metric: str) -> list[MetricRow]:
        return [
            r for batch in self.batches for r in batch
            if r.labels["key"] == key and r.metric == metric
        ]


def make_target(**overrides: Any) -> SiteTarget:
    fields: dict[str, Any] = {
        "key": "example",
        "url": "http://example.test/health",
        "timeout_seconds": 1.0,
        "warning_threshold_seconds": 2.0,
        "interval_milliseconds": 50,
    }
    fields.update(overrides)
    return SiteTarget(**fields)


def mock_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


async def run_for(coro: Coroutine[Any, Any, None], seconds: float) -> None:
    """Run a never-ending coroutine for ``seconds`` then cancel it."""
    task = asyncio.create_task(coro)
    await asyncio.sleep(seconds)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store(tmp_path: Path) -> Generator[TimeSeriesStore, None, None]:
    s = TimeSeriesStore(tmp_path / "data")
    yield s
    s.close()
