"""Probe scheduler — one periodic session per site, plus a supervisor.

Each site runs in its own asyncio task so a slow or dead target never
delays another. Within a site, ticks are serialized: if a probe outlasts
the interval, missed boundaries are dropped and one deferred tick fires as
soon as the current one finishes, then the cadence realigns.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from enum import Enum

import httpx

from psych.sites.registry import SiteTarget

from .emitter import MetricEmitter
from .engine import HealthVerdict, classify, execute_probe
from .pool import ResponsePool

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


class SiteSession:
    """Periodic probe loop for a single site."""

    def __init__(
        self,
        target: SiteTarget,
        client: httpx.AsyncClient,
        pool: ResponsePool,
        emitter: MetricEmitter,
    ) -> None:
        self.target = target
        self.client = client
        self.pool = pool
        self.emitter = emitter
        self.state = SessionState.IDLE
        self.ticks = 0
        self._last_timestamp = 0
        self._stopping = False

    def stop(self) -> None:
        """Finish the in-flight tick, if any, then leave ``run()``."""
        self._stopping = True

    def _next_timestamp(self) -> int:
        # Wall clock may step backwards; keep this site's series monotonic.
        ts = max(int(time.time()), self._last_timestamp)
        self._last_timestamp = ts
        return ts

    async def tick(self) -> HealthVerdict:
        """Acquire a slot, probe, classify, emit, release."""
        timestamp = self._next_timestamp()
        started = time.perf_counter()
        slot = self.pool.acquire()
        try:
            await execute_probe(self.target, self.client, started, slot)
            verdict = classify(slot, self.target.warning_threshold_seconds)
            self.emitter.emit(self.target, timestamp, slot, verdict)
        finally:
            self.pool.release(slot)
        self.ticks += 1
        logger.debug(
            "Tick %s #%d: %s (%d, %.3fs)",
            self.target.key, self.ticks, verdict.name, slot.status_code, slot.duration_seconds,
        )
        return verdict

    async def run(self) -> None:
        """Tick at the site's interval until ``stop()`` or cancellation."""
        loop = asyncio.get_running_loop()
        current = asyncio.current_task()
        interval = self.target.interval_seconds
        self.state = SessionState.TICKING
        logger.info("Session started: %s -> %s every %dms", self.target.key, self.target.url,
                    self.target.interval_milliseconds)

        next_tick = loop.time()
        try:
            while not self._stopping:
                delay = next_tick - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)
                    if self._stopping:
                        break

                try:
                    await self.tick()
                except Exception:
                    logger.exception("Tick error: %s", self.target.key)

                if self._stopping:
                    break
                # A cancel that landed while the probe was finishing must still end the loop.
                if current is not None and current.cancelling():
                    raise asyncio.CancelledError

                next_tick += interval
                now = loop.time()
                if next_tick < now:
                    # Overran: drop the backlog, keep at most one pending tick.
                    missed = int((now - next_tick) // interval)
                    next_tick += missed * interval
        finally:
            self.state = SessionState.STOPPED
            logger.info("Session stopped: %s after %d ticks", self.target.key, self.ticks)


class SessionSupervisor:
    """Starts one SiteSession per target and keeps them running."""

    def __init__(
        self,
        pool: ResponsePool,
        emitter: MetricEmitter,
        client: httpx.AsyncClient,
    ) -> None:
        self.pool = pool
        self.emitter = emitter
        self.client = client
        self.sessions: dict[str, SiteSession] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._stop_requested = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self, targets: Iterable[SiteTarget]) -> None:
        """Spawn a session task for each target; a second call is a no-op."""
        if self._running:
            logger.warning("Supervisor already started — ignoring start()")
            return

        targets = list(targets)
        keys = [t.key for t in targets]
        dupes = sorted({k for k in keys if keys.count(k) > 1})
        if dupes:
            raise ValueError(f"Duplicate site keys: {', '.join(dupes)}")

        if not targets:
            logger.info("No sites configured — supervisor idle")
            return

        self._running = True
        for target in targets:
            session = SiteSession(target, self.client, self.pool, self.emitter)
            self.sessions[target.key] = session
            task = asyncio.create_task(session.run(), name=f"site-{target.key}")
            task.add_done_callback(self._on_session_done)
            self._tasks.append(task)

        logger.info("Supervisor started %d site sessions", len(targets))

    async def run(self, targets: Iterable[SiteTarget]) -> None:
        """Start every session and block until ``stop()`` is called."""
        await self.start(targets)
        try:
            await self._stop_requested.wait()
        finally:
            await self._shutdown()

    def stop(self) -> None:
        """Request shutdown; safe to call more than once or from a signal handler."""
        self._stop_requested.set()

    async def _shutdown(self) -> None:
        for session in self.sessions.values():
            session.stop()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._running = False
        logger.info("Supervisor stopped")

    def _on_session_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Session %s died: %s", task.get_name(), exc, exc_info=exc)
