"""Free list of ProbeResult slots shared by all site sessions."""

from __future__ import annotations

import threading
from collections import deque

from .engine import ProbeResult


class ResponsePool:
    """Thread-safe pool of reusable ProbeResult slots.

    ``acquire`` never fails: an empty free list allocates a new slot.
    Slots are never expired, so the pool only grows to the peak number of
    concurrent probes.
    """

    def __init__(self) -> None:
        self._free: deque[ProbeResult] = deque()
        self._lock = threading.Lock()
        self._created = 0

    def acquire(self) -> ProbeResult:
        with self._lock:
            if self._free:
                slot = self._free.pop()
            else:
                slot = ProbeResult()
                self._created += 1
        slot.reset()
        return slot

    def release(self, slot: ProbeResult) -> None:
        with self._lock:
            self._free.append(slot)

    @property
    def size(self) -> int:
        """Total slots ever allocated."""
        return self._created

    @property
    def free(self) -> int:
        with self._lock:
            return len(self._free)
