"""Metric emitter — turns one probe outcome into three labelled rows."""

from __future__ import annotations

import logging
from typing import Protocol

from psych.sites.registry import SiteTarget
from psych.storage.tsdb import MetricRow

from .engine import HealthVerdict, ProbeResult

logger = logging.getLogger(__name__)

METRIC_DURATION = "duration"
METRIC_STATUS_CODE = "statusCode"
METRIC_STATUS = "status"


class MetricSink(Protocol):
    def insert_rows(self, rows: list[MetricRow]) -> None: ...


def build_rows(
    target: SiteTarget,
    timestamp: int,
    result: ProbeResult,
    verdict: HealthVerdict,
) -> list[MetricRow]:
    """duration, statusCode and status rows sharing timestamp and labels."""
    labels = {"url": target.url, "key": target.key}
    return [
        MetricRow(METRIC_DURATION, timestamp, float(result.duration_seconds), dict(labels)),
        MetricRow(METRIC_STATUS_CODE, timestamp, float(result.status_code), dict(labels)),
        MetricRow(METRIC_STATUS, timestamp, float(int(verdict)), dict(labels)),
    ]


class MetricEmitter:
    """Submits per-tick rows to the store; a failed insert drops the sample."""

    def __init__(self, sink: MetricSink) -> None:
        self.sink = sink
        self.dropped = 0

    def emit(
        self,
        target: SiteTarget,
        timestamp: int,
        result: ProbeResult,
        verdict: HealthVerdict,
    ) -> list[MetricRow]:
        rows = build_rows(target, timestamp, result, verdict)
        try:
            self.sink.insert_rows(rows)
        except Exception:
            self.dropped += 1
            logger.exception("Dropping metrics for %s @ %d", target.key, timestamp)
        return rows
