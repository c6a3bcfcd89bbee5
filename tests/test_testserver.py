"""Tests for the random-status test server."""

from __future__ import annotations

import random

from fastapi.testclient import TestClient

from psych.testserver import STATUS_CODES, create_app


def test_answers_with_known_status() -> None:
    client = TestClient(create_app(rng=random.Random(7), max_delay=0))
    seen = {client.get("/").status_code for _ in range(30)}
    assert seen <= set(STATUS_CODES)
    assert len(seen) > 1


def test_any_path_is_served() -> None:
    client = TestClient(create_app(rng=random.Random(1), max_delay=0))
    resp = client.get("/some/deep/path", follow_redirects=False)
    assert resp.status_code in STATUS_CODES
