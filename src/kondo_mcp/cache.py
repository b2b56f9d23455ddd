"""Time-to-live cache over clj-kondo results with per-key single-flight.

clj-kondo re-parses the whole project on every run, which can take seconds
on large trees.  Agents tend to fire the same query repeatedly against an
unchanged checkout, so results are kept for ``ttl`` seconds.  Expiry is
checked lazily on read; nothing sweeps the map in the background.

Concurrent callers asking for the same key while a compute is in flight
wait on that compute's future instead of starting another engine run.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Hashable

log = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expiry: float


class AnalysisCache:
    """Thread-safe TTL cache keyed by request fingerprint."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = float(ttl)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, CacheEntry] = {}
        self._pending: dict[Hashable, Future] = {}
        # Bumped by invalidate_all() so computes started earlier don't store.
        self._generation = 0
        self._hits = 0
        self._misses = 0
        self._waits = 0
        self._compute_seconds = 0.0

    def get_or_compute(self, key: Hashable, compute_fn: Callable[[], Any]) -> Any:
        """Return the live cached value for *key*, or compute and store it."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() <= entry.expiry:
                    self._hits += 1
                    return entry.value
                del self._entries[key]

            pending = self._pending.get(key)
            if pending is not None:
                self._waits += 1
                owner = False
            else:
                pending = Future()
                self._pending[key] = pending
                self._misses += 1
                owner = True
            generation = self._generation

        if not owner:
            return pending.result()
        return self._compute(key, compute_fn, pending, generation)

    def _compute(self, key, compute_fn, pending: Future, generation: int):
        started = time.perf_counter()
        try:
            value = compute_fn()
        except BaseException as exc:
            with self._lock:
                if self._pending.get(key) is pending:
                    del self._pending[key]
            pending.set_exception(exc)
            raise
        finally:
            elapsed = time.perf_counter() - started
            with self._lock:
                self._compute_seconds += elapsed
            log.debug("computed %s in %.3fs", key, elapsed)

        with self._lock:
            if self._pending.get(key) is pending:
                del self._pending[key]
            if self.ttl > 0 and generation == self._generation:
                self._entries[key] = CacheEntry(value, self._clock() + self.ttl)
        pending.set_result(value)
        return value

    def invalidate_all(self) -> None:
        """Drop every entry and pending marker.  Idempotent."""
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self._pending.clear()
            self._generation += 1
        log.debug("cache invalidated (%d entries dropped)", dropped)

    def stats(self) -> dict:
        with self._lock:
            return {
                "entries": len(self._entries),
                "in_flight": len(self._pending),
                "hits": self._hits,
                "misses": self._misses,
                "waits": self._waits,
                "compute_seconds": round(self._compute_seconds, 3),
                "ttl_s": self.ttl,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
