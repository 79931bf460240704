"""
test_watcher.py — Unit tests for core/watcher.py

Tests cover the debounce state machine, change detection by polling, and
the watch_file() wiring that reloads a store after an external edit.
"""

import json
import logging
import os
import threading
import time

import pytest

from core.errors import WatchError
from core.state import DurableStore
from core.watcher import Debouncer, FileWatcher, watch_file


def wait_for(predicate, timeout=3.0, interval=0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class Counter:
    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.calls += 1


# ── Debouncer ──────────────────────────────────────────────────────────────────


class TestDebouncer:
    def test_burst_of_triggers_runs_action_once(self):
        """N triggers inside the window coalesce into exactly one action."""
        counter = Counter()
        d = Debouncer(0.1, counter, name="burst")
        for _ in range(20):
            d.trigger()
        assert wait_for(lambda: counter.calls >= 1)
        time.sleep(0.3)
        assert counter.calls == 1

    def test_trigger_restarts_the_timer(self):
        counter = Counter()
        d = Debouncer(0.4, counter, name="restart")
        d.trigger()
        first_deadline = d.deadline
        time.sleep(0.2)
        d.trigger()
        assert d.deadline > first_deadline
        time.sleep(0.3)
        assert counter.calls == 0  # the first timer would have fired by now
        assert wait_for(lambda: counter.calls == 1)

    def test_idle_pending_idle(self):
        counter = Counter()
        d = Debouncer(0.05, counter, name="states")
        assert d.pending is False and d.deadline is None
        d.trigger()
        assert d.pending is True and d.deadline is not None
        assert wait_for(lambda: counter.calls == 1)
        assert wait_for(lambda: d.pending is False)
        assert d.deadline is None

    def test_separate_bursts_run_separately(self):
        counter = Counter()
        d = Debouncer(0.05, counter, name="bursts")
        d.trigger()
        assert wait_for(lambda: counter.calls == 1)
        d.trigger()
        assert wait_for(lambda: counter.calls == 2)

    def test_cancel_drops_pending_action(self):
        counter = Counter()
        d = Debouncer(0.05, counter, name="cancel")
        d.trigger()
        d.cancel()
        time.sleep(0.2)
        assert counter.calls == 0
        assert d.pending is False

    def test_action_errors_are_logged_not_raised(self, caplog):
        fired = threading.Event()

        def boom():
            fired.set()
            raise RuntimeError("decode exploded")

        d = Debouncer(0.01, boom, name="boom")
        with caplog.at_level(logging.ERROR, logger="relay"):
            d.trigger()
            assert fired.wait(2)
            assert wait_for(lambda: "Debounced action for boom failed" in caplog.text)


# ── FileWatcher ────────────────────────────────────────────────────────────────


class TestFileWatcher:
    def test_start_on_missing_file_raises_watch_error(self, tmp_path):
        w = FileWatcher(tmp_path / "absent.json", Counter())
        with pytest.raises(WatchError):
            w.start()
        assert w.running is False

    def test_poll_reports_a_write(self, tmp_path):
        p = tmp_path / "data.json"
        p.write_text("{}")
        counter = Counter()
        w = FileWatcher(p, counter, poll_interval=60)
        w.start()
        try:
            assert w.poll() is False
            p.write_text('{"port": 1}')
            assert w.poll() is True
            assert w.poll() is False
            assert counter.calls == 1
        finally:
            w.stop()

    def test_same_size_rewrite_with_restored_mtime_is_reported(self, tmp_path):
        p = tmp_path / "data.json"
        p.write_text('{"port": 51000}')
        st = p.stat()
        counter = Counter()
        w = FileWatcher(p, counter, poll_interval=60)
        w.start()
        try:
            p.write_text('{"port": 52000}')
            os.utime(p, ns=(st.st_atime_ns, st.st_mtime_ns))
            assert p.stat().st_size == st.st_size
            assert w.poll() is True
            assert counter.calls == 1
        finally:
            w.stop()

    def test_vanished_file_is_warned_once_and_polling_continues(self, tmp_path, caplog):
        p = tmp_path / "data.json"
        p.write_text("{}")
        counter = Counter()
        w = FileWatcher(p, counter, poll_interval=60)
        w.start()
        try:
            p.unlink()
            with caplog.at_level(logging.WARNING, logger="relay"):
                assert w.poll() is False
                assert w.poll() is False
            assert caplog.text.count("is unavailable") == 1
            p.write_text('{"port": 2}')
            assert w.poll() is True
        finally:
            w.stop()

    def test_stop_ends_the_thread(self, tmp_path):
        p = tmp_path / "data.json"
        p.write_text("{}")
        w = FileWatcher(p, Counter(), poll_interval=0.01)
        w.start()
        assert w.running is True
        w.stop()
        assert w.running is False


# ── watch_file ─────────────────────────────────────────────────────────────────


class TestWatchFile:
    def test_external_edit_is_reloaded(self, tmp_path):
        p = tmp_path / "data.json"
        p.write_text(json.dumps({"port": 51000}))
        store = DurableStore(p)
        store.reload()
        w = watch_file(p, store.reload, delay=0.05, poll_interval=0.02)
        try:
            p.write_text(json.dumps({"port": 52000, "source": "operator"}))
            assert wait_for(lambda: store.get() == {"port": 52000, "source": "operator"})
        finally:
            w.stop()

    def test_burst_of_edits_reloads_once(self, tmp_path):
        p = tmp_path / "data.json"
        p.write_text(json.dumps({"port": 0}))
        reloads = Counter()
        w = watch_file(p, reloads, delay=0.3, poll_interval=0.01)
        try:
            for i in range(1, 6):
                p.write_text(json.dumps({"port": i * 1000}))
                time.sleep(0.03)
            assert wait_for(lambda: reloads.calls >= 1)
            time.sleep(0.4)
            assert reloads.calls == 1
        finally:
            w.stop()

    def test_stop_cancels_pending_reload(self, tmp_path):
        p = tmp_path / "data.json"
        p.write_text("{}")
        reloads = Counter()
        w = watch_file(p, reloads, delay=0.2, poll_interval=0.01)
        p.write_text('{"port": 1}')
        assert wait_for(lambda: w.debouncer.pending)
        w.stop()
        time.sleep(0.3)
        assert reloads.calls == 0
