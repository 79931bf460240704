"""
conftest.py — Shared pytest fixtures for the portrelay unit tests.
"""

import json
import sys
from pathlib import Path

import pytest

# src/ is the Python root for all packages (core, relay, relayctl)
_SRC = Path(__file__).parent.parent.parent / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from core.state import DurableMapping, DurableStore  # noqa: E402


def write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data, indent=4))


@pytest.fixture
def data_file(tmp_path):
    """Store backing file holding {"port": 51000}."""
    p = tmp_path / "data.json"
    write_json(p, {"port": 51000})
    return p


@pytest.fixture
def mapping_file(tmp_path):
    """Mapping backing file with one rule."""
    p = tmp_path / "redirect_mapping.json"
    write_json(p, {"*:33331": "http://1.2.3.4"})
    return p


@pytest.fixture
def store(data_file):
    s = DurableStore(data_file)
    s.reload()
    return s


@pytest.fixture
def mapping(mapping_file):
    m = DurableMapping(mapping_file)
    m.reload()
    return m
