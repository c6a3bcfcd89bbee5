"""Synthetic target — answers with a random status after a random delay.

Point a site at it to exercise every verdict without a real flaky service.
"""

from __future__ import annotations

import asyncio
import logging
import random

from fastapi import FastAPI, Request, Response

logger = logging.getLogger(__name__)

STATUS_CODES = (
    200, 201, 202, 204,
    301, 302, 304,
    400, 401, 403, 404,
    500, 501, 502, 503,
)


def create_app(rng: random.Random | None = None, max_delay: int = 4) -> FastAPI:
    """Build the test server; ``max_delay`` is the largest whole-second sleep."""
    rng = rng or random.Random()
    app = FastAPI(title="psych test server")

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def random_status(request: Request, path: str = "") -> Response:
        status = rng.choice(STATUS_CODES)
        delay = rng.randint(0, max_delay)
        if delay:
            await asyncio.sleep(delay)
        logger.debug("%s /%s -> %d after %ds", request.method, path, status, delay)
        return Response(status_code=status)

    return app


app = create_app()
