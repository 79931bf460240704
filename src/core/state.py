"""
core/state.py — The relay's two file-backed, lock-guarded maps.

DurableStore    dynamic key/value state (chiefly ``"port"``), merged by the
                API, reloaded from disk on external edits, flushed to disk
                periodically.
DurableMapping  ``"*:<listen-port>" -> target base URL`` rules; only ever
                changes through edits to its backing file.

Both keep a fingerprint of the last bytes they read or wrote.  A reload whose
bytes hash to the recorded fingerprint is skipped, which also makes the
watcher event caused by our own flush a no-op.  Decoding happens outside the
lock; only the final swap takes the exclusive side.
"""

from __future__ import annotations

import math
import threading
from pathlib import Path
from typing import Any

from core.errors import InvalidPortError, MalformedHostError, MissingPortError
from core.hostport import split_host_port
from core.locks import ReadWriteLock
from core.logger import LOGGER
from core.storage import EmptyFileError, decode_object, fingerprint_bytes, write_object

PORT_KEY = "port"

_MISSING = object()


def expect_port(value: Any = _MISSING) -> int:
    """Return ``value`` as an integer port, or raise a named PortError."""
    if value is _MISSING:
        raise MissingPortError()
    # bool is an int subclass; JSON true is not a port
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidPortError(value)
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidPortError(value)
    return int(value)


class _FileBackedMap:
    """Shared reload/flush machinery; subclasses validate decoded documents."""

    label = "JSON"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = ReadWriteLock()
        self._data: dict = {}
        self._fingerprint: str | None = None
        self._fp_lock = threading.Lock()
        self._log = LOGGER.getChild("state")

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._data)

    @property
    def fingerprint(self) -> str | None:
        with self._fp_lock:
            return self._fingerprint

    def get(self) -> dict:
        """Shallow copy of the current map."""
        with self._lock.read():
            return dict(self._data)

    def _validate(self, data: dict) -> dict:
        return data

    def reload(self, force: bool = False) -> bool:
        """
        Re-read the backing file; return True only if memory was replaced.

        Unchanged content (same fingerprint) is skipped unless ``force``.  An
        empty file, unreadable file or undecodable document leaves the
        current map untouched.
        """
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            self._log.error("Failed to read %s file %s: %s", self.label, self.path, exc)
            return False

        current = fingerprint_bytes(raw)
        with self._fp_lock:
            if current == self._fingerprint and not force:
                return False
            self._fingerprint = current

        try:
            data = self._validate(decode_object(raw))
        except EmptyFileError:
            self._log.info("%s file %s is empty, skipping decode.", self.label, self.path)
            return False
        except ValueError as exc:
            self._log.error("Failed to decode %s file %s: %s", self.label, self.path, exc)
            return False

        with self._lock.write():
            self._data = data
        self._log.info("%s reloaded successfully from %s (%d keys).", self.label, self.path, len(data))
        return True

    def flush(self) -> bool:
        """Write the current map to the backing file; failures are logged, not raised."""
        with self._lock.read():
            try:
                written = write_object(self.path, self._data)
            except (OSError, TypeError, ValueError) as exc:
                self._log.error("Failed to write %s file %s: %s", self.label, self.path, exc)
                return False
            with self._fp_lock:
                self._fingerprint = written
        self._log.debug("%s flushed to %s.", self.label, self.path)
        return True


class DurableStore(_FileBackedMap):
    """Dynamic key/value state backed by data.json."""

    label = "Data"

    def merge(self, partial: dict) -> None:
        """Overwrite each key in ``partial``; keys not in it keep their values."""
        with self._lock.write():
            self._data.update(partial)

    def get_value(self, key: str, default: Any = None) -> Any:
        with self._lock.read():
            return self._data.get(key, default)

    def port(self) -> int:
        """The current dynamic port; raises MissingPortError / InvalidPortError."""
        with self._lock.read():
            value = self._data.get(PORT_KEY, _MISSING)
        return expect_port(value)


class DurableMapping(_FileBackedMap):
    """Redirect rules backed by redirect_mapping.json."""

    label = "Redirect mapping"

    def _validate(self, data: dict) -> dict:
        for key, value in data.items():
            if not isinstance(value, str):
                raise ValueError(f"rule {key!r} must map to a string, got {type(value).__name__}")
        return data

    def lookup(self, key: str) -> str | None:
        with self._lock.read():
            return self._data.get(key)

    def listen_ports(self) -> list[int]:
        """Distinct listen ports named by the rule keys, ascending; bad keys are skipped."""
        ports: set[int] = set()
        for key in self.get():
            try:
                _, port = split_host_port(key)
            except MalformedHostError:
                self._log.warning("Invalid key in %s: %s", self.path.name, key)
                continue
            number = int(port) if port.isascii() and port.isdigit() else 0
            # "*:033331" would listen on 33331 but the resolver builds "*:33331"
            if not 0 < number < 65536 or str(number) != port:
                self._log.warning("Invalid key in %s: %s", self.path.name, key)
                continue
            ports.add(number)
        return sorted(ports)
