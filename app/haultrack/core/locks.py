"""Per-resource advisory locks for the task engine.

Every engine operation holds the lock of the task it mutates; deliveries also
hold the warehouse container lock and assignment/pickup hold the driver lock.
Keys are acquired in sorted order so two operations can never wait on each
other in a cycle.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from app.haultrack.core.config import settings
from app.haultrack.core.error_catalog import AppError, ErrorCatalog
from app.haultrack.core.metrics import metrics


def task_key(task_id) -> str:
    return f"task:{task_id}"


def driver_key(driver_id) -> str:
    return f"driver:{driver_id}"


def warehouse_key(container_id) -> str:
    return f"warehouse:{container_id}"


class _Entry:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.waiters = 0


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.waiters += 1
            return entry

    def _release(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.waiters -= 1
            if entry.waiters == 0:
                self._entries.pop(key, None)

    @contextmanager
    def hold(self, *keys: str, timeout: float | None = None):
        timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        deadline = time.monotonic() + timeout
        acquired: list[tuple[str, _Entry]] = []
        try:
            for key in sorted({key for key in keys if key}):
                entry = self._checkout(key)
                remaining = max(deadline - time.monotonic(), 0)
                if not entry.lock.acquire(timeout=remaining):
                    self._release(key, entry)
                    metrics.increment_lock_wait_timeout()
                    raise AppError(ErrorCatalog.LOCK_TIMEOUT, details={"key": key})
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._release(key, entry)

    def held_keys(self) -> set[str]:
        with self._guard:
            return {key for key, entry in self._entries.items() if entry.lock.locked()}


task_locks = KeyedLocks()
