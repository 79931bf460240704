"""core/sync.py — Periodic flush of the in-memory store to its backing file."""

from __future__ import annotations

import threading

from core.config import FLUSH_INTERVAL_S
from core.logger import LOGGER
from core.state import DurableStore

log = LOGGER.getChild("sync")


class CacheSynchronizer:
    """Flush ``store`` every ``interval`` seconds on a daemon thread until stopped."""

    def __init__(self, store: DurableStore, interval: float = FLUSH_INTERVAL_S) -> None:
        self.store = store
        self.interval = interval
        self.flushes = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="cache-sync")
        self._thread.start()
        log.info("Flushing %s every %ss", self.store.path, self.interval)

    def stop(self, final_flush: bool = True, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if final_flush:
            self.tick()

    def tick(self) -> bool:
        ok = self.store.flush()
        if ok:
            self.flushes += 1
        return ok

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                log.exception("Periodic flush of %s failed", self.store.path)
