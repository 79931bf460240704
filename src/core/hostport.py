"""core/hostport.py — ``host:port`` splitting for Host headers and rule keys."""

from core.errors import MalformedHostError


def split_host_port(hostport: str) -> tuple[str, str]:
    """
    Split ``host:port`` into its parts.

    IPv6 hosts must be bracketed (``[::1]:8080``).  The port is returned
    verbatim and may be empty (``"example.com:"``).  Anything else raises
    MalformedHostError: a missing port, too many colons, stray brackets.
    """
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise MalformedHostError(f"missing ']' in address {hostport!r}")
        host, rest = hostport[1:end], hostport[end + 1:]
        if not rest.startswith(":"):
            raise MalformedHostError(f"missing port in address {hostport!r}")
        port = rest[1:]
        if ":" in port:
            raise MalformedHostError(f"too many colons in address {hostport!r}")
    else:
        host, sep, port = hostport.rpartition(":")
        if not sep:
            raise MalformedHostError(f"missing port in address {hostport!r}")
        if ":" in host:
            raise MalformedHostError(f"too many colons in address {hostport!r}")
        if "[" in host or "]" in host:
            raise MalformedHostError(f"unexpected bracket in address {hostport!r}")
    if "[" in port or "]" in port:
        raise MalformedHostError(f"unexpected bracket in address {hostport!r}")
    return host, port
