"""Time-series store — SQLite-backed append/query for labelled metric rows.

A series is identified by (metric, labels). Labels are stored as sorted
JSON so the same label set always maps to the same series, whatever order
the caller builds it in.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DB_NAME = "metrics.db"


class StorageError(Exception):
    """Raised when the store cannot be opened or written."""


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DataPoint:
    timestamp: int
    value: float


@dataclass(frozen=True)
class MetricRow:
    """One labelled, timestamped sample."""

    metric: str
    timestamp: int
    value: float
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def point(self) -> DataPoint:
        return DataPoint(timestamp=self.timestamp, value=self.value)


def _canonical_labels(labels: dict[str, str]) -> str:
    return json.dumps(labels, sort_keys=True, separators=(",", ":"))


# ── Store ────────────────────────────────────────────────────────────────────


class TimeSeriesStore:
    """Append-only metric storage shared by every site session.

    All access goes through one connection guarded by a lock, so inserts
    from concurrent sessions never interleave inside a batch.
    """

    def __init__(self, data_path: Path | str) -> None:
        self._data_path = Path(data_path)
        self._db_path = self._data_path / DB_NAME
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._open()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _open(self) -> None:
        try:
            self._data_path.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS samples (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    metric TEXT NOT NULL,
                    labels TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    value REAL NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_samples_series
                    ON samples (metric, labels, timestamp);
            """)
            conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Could not open time-series store at {self._db_path}: {e}") from e
        self._conn = conn
        logger.info("Time-series store opened: %s", self._db_path)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Time-series store is closed")
        return self._conn

    def insert_rows(self, rows: list[MetricRow]) -> None:
        """Append rows in a single transaction (all or nothing)."""
        if not rows:
            return
        params = [
            (r.metric, _canonical_labels(r.labels), int(r.timestamp), float(r.value))
            for r in rows
        ]
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.executemany(
                        "INSERT INTO samples (metric, labels, timestamp, value) VALUES (?, ?, ?, ?)",
                        params,
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Insert failed: {e}") from e

    def select(
        self,
        metric: str,
        labels: dict[str, str],
        start: int = 0,
        end: int | None = None,
    ) -> list[DataPoint]:
        """Points of one series with ``start <= timestamp < end``, oldest first."""
        sql = (
            "SELECT timestamp, value FROM samples "
            "WHERE metric = ? AND labels = ? AND timestamp >= ?"
        )
        args: list[Any] = [metric, _canonical_labels(labels), start]
        if end is not None:
            sql += " AND timestamp < ?"
            args.append(end)
        sql += " ORDER BY timestamp, id"

        with self._lock:
            rows = self._require_conn().execute(sql, args).fetchall()
        return [DataPoint(timestamp=ts, value=v) for ts, v in rows]

    def list_series(self, metric: str | None = None) -> list[tuple[str, dict[str, str]]]:
        """Distinct (metric, labels) pairs, optionally for one metric."""
        sql = "SELECT DISTINCT metric, labels FROM samples"
        args: list[Any] = []
        if metric:
            sql += " WHERE metric = ?"
            args.append(metric)
        sql += " ORDER BY metric, labels"

        with self._lock:
            rows = self._require_conn().execute(sql, args).fetchall()
        return [(m, json.loads(lbl)) for m, lbl in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Time-series store closed: %s", self._db_path)
