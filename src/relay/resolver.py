"""
relay/resolver.py — Turn an inbound Host header into a redirect URL.

Two ports are involved and they are deliberately independent:

  lookup port   which rule applies.  Taken from the Host header when it
                carries one, otherwise from the store's ``"port"``.
  target port   appended to the rule's target.  Always the store's
                ``"port"``, never the Host header's.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import RuleNotFoundError
from core.hostport import split_host_port
from core.logger import LOGGER
from core.state import DurableMapping, DurableStore

log = LOGGER.getChild("resolver")


@dataclass(frozen=True)
class Resolution:
    key: str
    location: str


def lookup_key(port) -> str:
    return f"*:{port}"


def inbound_port(host: str, store: DurableStore) -> str:
    """Port the client used: verbatim from ``host`` if present, else the store's port."""
    if ":" in host:
        _, port = split_host_port(host)
        return port
    return str(store.port())


_SCHEMES = ("http://", "https://")


def build_location(target: str, port: int) -> str:
    if not target.lower().startswith(_SCHEMES):
        target = f"http://{target}"
    if target.endswith("/"):
        target = target[:-1]
    return f"{target}:{port}"


def resolve(host: str, store: DurableStore, mapping: DurableMapping) -> Resolution:
    """
    Resolve ``host`` against the rules.

    Raises MalformedHostError (400), RuleNotFoundError (404) or a PortError
    (500) when the store has no usable ``"port"``.
    """
    key = lookup_key(inbound_port(host, store))
    log.info("Looking up redirect rule for key: %s", key)
    target = mapping.lookup(key)
    if target is None:
        raise RuleNotFoundError(key)
    return Resolution(key=key, location=build_location(target, store.port()))
