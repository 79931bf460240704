"""core/errors.py — Exception hierarchy shared by the relay and its CLI."""


class RelayError(Exception):
    """Base class for every error raised by portrelay."""


# ── Fatal at startup ──────────────────────────────────────────────────────────


class ConfigError(RelayError):
    """Required configuration is missing or malformed."""


class WatchError(RelayError):
    """A backing file could not be watched."""


class ListenError(RelayError):
    """A listen socket could not be bound."""


# ── Request level ─────────────────────────────────────────────────────────────


class RequestError(RelayError):
    """An error surfaced to the HTTP caller as ``status_code``."""

    status_code = 500
    public_message = "Internal Server Error"


class MalformedHostError(RequestError):
    status_code = 400
    public_message = "Invalid Host"


class RuleNotFoundError(RequestError):
    status_code = 404
    public_message = "Not Found"

    def __init__(self, key: str) -> None:
        super().__init__(f"no redirect rule for {key}")
        self.key = key


class PortError(RequestError):
    """The dynamic port in the store cannot be used."""


class MissingPortError(PortError):
    def __init__(self) -> None:
        super().__init__("'port' key not found in store")


class InvalidPortError(PortError):
    def __init__(self, value) -> None:
        super().__init__(f"'port' value is not a number: {value!r}")
        self.value = value
