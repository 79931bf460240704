"""
core/watcher.py — Background file watchers with debounced reload.

A FileWatcher polls one backing file's stat signature and content hash on a
daemon thread and reports every change.  A Debouncer turns a burst of those
reports into a single call once the file has been quiet for ``delay``
seconds.  watch_file() wires the two together for a reload callback.
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable
from pathlib import Path

from core.config import DEBOUNCE_S, POLL_INTERVAL_S
from core.errors import WatchError
from core.logger import LOGGER
from core.storage import fingerprint_bytes

log = LOGGER.getChild("watcher")


class Debouncer:
    """
    Per-file idle/pending state machine.

    trigger() moves idle -> pending, or restarts the timer if already
    pending.  Only the timer armed by the most recent trigger may run the
    action; older timers see a stale generation and do nothing.
    """

    def __init__(self, delay: float, action: Callable[[], object], name: str = "debounce") -> None:
        self.delay = delay
        self.name = name
        self._action = action
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def deadline(self) -> float | None:
        """time.monotonic() at which the pending action fires, or None when idle."""
        with self._lock:
            return self._deadline

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._deadline = time.monotonic() + self.delay
            timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            timer.daemon = True
            timer.name = f"debounce-{self.name}"
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._deadline = None
            self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._deadline = None
        # one action at a time, even if a new burst fires while this one runs
        with self._run_lock:
            try:
                self._action()
            except Exception:
                log.exception("Debounced action for %s failed", self.name)


class FileWatcher:
    """Poll ``path`` and call ``on_change`` whenever its stat signature or content hash moves."""

    def __init__(
        self,
        path: Path,
        on_change: Callable[[], object],
        poll_interval: float = POLL_INTERVAL_S,
        debouncer: Debouncer | None = None,
    ) -> None:
        self.path = Path(path)
        self.poll_interval = poll_interval
        self.debouncer = debouncer
        self._on_change = on_change
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last: tuple | None = None
        self._missing = False

    def _signature(self) -> tuple:
        st = os.stat(self.path)
        # a same-size rewrite inside one mtime tick only shows up in the bytes
        return (st.st_mtime_ns, st.st_size, st.st_ino, fingerprint_bytes(self.path.read_bytes()))

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Record the initial signature and start polling; WatchError if the file is unavailable."""
        try:
            self._last = self._signature()
        except OSError as exc:
            raise WatchError(f"Failed to add file to watcher: {self.path}: {exc}") from exc
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=f"watch-{self.path.name}")
        self._thread.start()
        log.info("Watching %s for changes", self.path)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self.debouncer is not None:
            self.debouncer.cancel()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def poll(self) -> bool:
        """Check the file once; return True if a change was reported."""
        try:
            current = self._signature()
        except OSError as exc:
            if not self._missing:
                log.warning("Watched file %s is unavailable: %s", self.path, exc)
                self._missing = True
            return False
        if self._missing:
            log.info("Watched file %s is available again", self.path)
            self._missing = False
        if current == self._last:
            return False
        self._last = current
        self._on_change()
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.poll_interval):
            try:
                self.poll()
            except Exception:
                log.exception("File watcher error for %s", self.path)
        log.debug("Stopped watching %s", self.path)


def watch_file(
    path: Path,
    reload: Callable[[], object],
    delay: float = DEBOUNCE_S,
    poll_interval: float = POLL_INTERVAL_S,
) -> FileWatcher:
    """Start a watcher that schedules ``reload`` ``delay`` seconds after the last change."""
    path = Path(path)
    debouncer = Debouncer(delay, reload, name=path.name)

    def _changed() -> None:
        log.info("File %s changed, scheduling reload...", path)
        debouncer.trigger()

    watcher = FileWatcher(path, _changed, poll_interval=poll_interval, debouncer=debouncer)
    watcher.start()
    return watcher
