"""Tests for the psychd entry point commands."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from psych import main
from psych.config import settings
from psych.storage.tsdb import MetricRow, TimeSeriesStore


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "data"
    monkeypatch.setattr(settings, "data_path", str(path))
    return path


class TestRunMonitor:
    def test_unopenable_store_aborts(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        monkeypatch.setattr(settings, "data_path", str(blocker))
        assert main.run_monitor(str(tmp_path / "sites.yaml")) == 1

    def test_no_sites_exits_cleanly(self, data_dir: Path, tmp_path: Path) -> None:
        sites = tmp_path / "sites.yaml"
        sites.write_text("sites: {}\n", encoding="utf-8")
        assert main.run_monitor(str(sites)) == 0
        assert (data_dir / "metrics.db").exists()


class TestRunQuery:
    def test_prints_points(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        store = TimeSeriesStore(data_dir)
        now = int(time.time())
        store.insert_rows([MetricRow("status", now, 2.0, {"url": "http://a.test", "key": "a"})])
        store.close()

        assert main.run_query("status", "a") == 0
        assert "WARN" in capsys.readouterr().out

    def test_unknown_site(self, data_dir: Path) -> None:
        assert main.run_query("status", "missing") == 1


class TestFormatValue:
    def test_formats(self) -> None:
        assert main._format_value("status", 0.0) == "DOWN"
        assert main._format_value("statusCode", 404.0) == "404"
        assert main._format_value("duration", 0.12345) == "0.123"
