# vb_platform/inflight.py
# ViewBridge - in-flight request de-duplication
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
"""
Per-key in-flight de-duplication for one process.

The first caller for a key becomes the owner and runs the work; callers that
arrive while it runs block on the owner's future and receive the same result
or the same exception. With ``debounce_s > 0`` a finished outcome stays cached
for that long, so a burst of triggers (webhook storms) costs one execution.

This is a process-local guard. Two instances behind a load balancer do not
see each other's entries, so same-key work can still overlap across
instances; counts incremented that way are "mostly correct", not exact.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, TypeVar

from _logging import Logger, log as _root_log

T = TypeVar("T")

__all__ = ["InFlight", "Lease"]


@dataclass
class _Entry:
    future: Future
    started: float
    done_at: float | None = None


@dataclass
class Lease(Generic[T]):
    key: Hashable
    owner: bool
    entry: _Entry
    released: bool = field(default=False, repr=False)

    @property
    def future(self) -> Future:
        return self.entry.future

    @property
    def cached(self) -> bool:
        return not self.owner and self.entry.done_at is not None

    def wait(self, timeout: float | None = None) -> T:
        """Block until the owner's outcome is available; re-raises its error."""
        return self.entry.future.result(timeout=timeout)


class InFlight:
    def __init__(
        self,
        name: str = "inflight",
        *,
        debounce_s: float = 0.0,
        handoff_wait_s: float = 0.1,
        handoff_retries: int = 3,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        logger: Logger | None = None,
    ):
        self.name = name
        self.debounce_s = max(0.0, float(debounce_s))
        self.handoff_wait_s = max(0.0, float(handoff_wait_s))
        self.handoff_retries = max(0, int(handoff_retries))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}
        self.log = logger or _root_log.child("DEDUP")

    def _expired(self, entry: _Entry, now: float) -> bool:
        return entry.done_at is not None and (now - entry.done_at) >= self.debounce_s

    def acquire(self, key: Hashable) -> Lease:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and entry.future.cancelled():
                self._entries.pop(key, None)
                entry = None
            if entry is not None and self._expired(entry, now):
                self._entries.pop(key, None)
                entry = None
            if entry is not None:
                return Lease(key=key, owner=False, entry=entry)
            entry = _Entry(future=Future(), started=now)
            self._entries[key] = entry
            return Lease(key=key, owner=True, entry=entry)

    def release(
        self,
        lease: Lease,
        result: Any = None,
        *,
        error: BaseException | None = None,
    ) -> None:
        if not lease.owner or lease.released:
            return
        lease.released = True
        fut = lease.entry.future
        if error is None:
            fut.set_result(result)
        elif isinstance(error, Exception):
            fut.set_exception(error)
        else:
            # KeyboardInterrupt / SystemExit: waiters re-acquire instead of inheriting it.
            fut.cancel()

        with self._lock:
            current = self._entries.get(lease.key)
            if current is not lease.entry:
                return
            if self.debounce_s > 0 and not fut.cancelled():
                current.done_at = self._clock()
            else:
                self._entries.pop(lease.key, None)

    def run(self, key: Hashable, fn: Callable[[], T]) -> T:
        """Execute ``fn`` once per concurrent burst for ``key`` and share its outcome."""
        for attempt in range(self.handoff_retries + 1):
            lease = self.acquire(key)
            if lease.owner:
                return self._run_owned(lease, fn)
            try:
                if lease.cached:
                    self.log.debug(f"{self.name}: reusing result for {key!r} (debounce)")
                else:
                    self.log.debug(f"{self.name}: {key!r} already in flight, waiting")
                return lease.wait()
            except CancelledError:
                self.log.warn(f"{self.name}: owner of {key!r} abandoned it, rechecking ({attempt + 1})")
                self._sleep(self.handoff_wait_s)
        self.log.warn(f"{self.name}: giving up on hand-off for {key!r}, running unguarded")
        return fn()

    def _run_owned(self, lease: Lease, fn: Callable[[], T]) -> T:
        try:
            result = fn()
        except BaseException as e:
            self.release(lease, error=e)
            raise
        self.release(lease, result)
        return result

    def pending(self) -> list[Hashable]:
        with self._lock:
            now = self._clock()
            return [k for k, e in self._entries.items() if not self._expired(e, now)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
