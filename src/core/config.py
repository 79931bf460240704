"""
core/config.py — Centralised path constants and environment defaults.

All other modules take their paths and tunables from here rather than
reading the environment themselves.  The defaults match the container
layout (everything lives under /app).

Usage::

    from core.config import load_settings

    settings = load_settings()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from core.errors import ConfigError

# ── Container layout ──────────────────────────────────────────────────────────

APP_DIR: Path = Path("/app")
DATA_FILE: Path = APP_DIR / "data.json"
MAPPING_FILE: Path = APP_DIR / "redirect_mapping.json"

# ── Defaults (overridable via env) ────────────────────────────────────────────

TOKEN_ENV: str = "BEARER_TOKEN"
LISTEN_HOST: str = "0.0.0.0"
API_PORT: int = 5000
FLUSH_INTERVAL_S: float = 30.0
DEBOUNCE_S: float = 0.1
POLL_INTERVAL_S: float = 0.25
LOG_LEVEL: str = "INFO"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    bearer_token: str
    data_file: Path
    mapping_file: Path
    host: str = LISTEN_HOST
    api_port: int = API_PORT
    flush_interval: float = FLUSH_INTERVAL_S
    debounce: float = DEBOUNCE_S
    poll_interval: float = POLL_INTERVAL_S
    log_level: str = LOG_LEVEL


def load_env_file(path: Path | None = None) -> None:
    """Seed os.environ from a KEY=VALUE file without overriding real env vars."""
    env_file = path or Path.cwd() / ".env"
    if not env_file.exists():
        return
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())


def _env_number(name: str, default, cast):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Build Settings from the environment; raise ConfigError when the token is missing."""
    token = os.environ.get(TOKEN_ENV, "").strip()
    if not token:
        raise ConfigError(f"{TOKEN_ENV} environment variable is not set")

    log_level = (os.environ.get("RELAY_LOG_LEVEL") or LOG_LEVEL).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(f"RELAY_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {log_level!r}")

    return Settings(
        bearer_token=token,
        data_file=Path(os.environ.get("RELAY_DATA_FILE") or DATA_FILE),
        mapping_file=Path(os.environ.get("RELAY_MAPPING_FILE") or MAPPING_FILE),
        host=os.environ.get("RELAY_HOST") or LISTEN_HOST,
        api_port=_env_number("RELAY_API_PORT", API_PORT, int),
        flush_interval=_env_number("RELAY_FLUSH_INTERVAL", FLUSH_INTERVAL_S, float),
        debounce=_env_number("RELAY_DEBOUNCE", DEBOUNCE_S, float),
        poll_interval=_env_number("RELAY_POLL_INTERVAL", POLL_INTERVAL_S, float),
        log_level=log_level,
    )
