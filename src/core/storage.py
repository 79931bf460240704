"""
core/storage.py — File I/O helpers for the relay's JSON backing files.

Handles:
  - Content fingerprints (MD5 hex of the raw bytes)
  - Decoding a backing file into a JSON object
  - Writing a JSON object with stable, human-readable formatting

Nothing here takes locks or logs; callers in core.state decide what a
failure means for their in-memory copy.
"""

import hashlib
import json
from pathlib import Path

__all__ = [
    "JSON_INDENT",
    "EmptyFileError",
    "fingerprint_bytes",
    "loads_strict", "decode_object", "encode_object", "write_object",
]

JSON_INDENT = 4


class EmptyFileError(ValueError):
    """The backing file exists but holds no bytes yet."""


# ── Fingerprints ───────────────────────────────────────────────────────────────


def fingerprint_bytes(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


# ── Decode / encode ────────────────────────────────────────────────────────────


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def loads_strict(raw):
    """json.loads that refuses NaN, Infinity and -Infinity."""
    return json.loads(raw, parse_constant=_reject_constant)


def decode_object(raw: bytes) -> dict:
    """
    Parse ``raw`` as a JSON object.

    Raises EmptyFileError for zero bytes and ValueError (json.JSONDecodeError
    included) for anything that is not a single JSON object.
    """
    if not raw:
        raise EmptyFileError("file is empty")
    data = loads_strict(raw.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def encode_object(data: dict) -> bytes:
    return (json.dumps(data, indent=JSON_INDENT, ensure_ascii=False, allow_nan=False) + "\n").encode("utf-8")


def write_object(path: Path, data: dict) -> str:
    """Write ``data`` to ``path`` and return the fingerprint of what was written."""
    raw = encode_object(data)
    path.write_bytes(raw)
    return fingerprint_bytes(raw)
