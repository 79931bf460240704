"""relayctl — operator CLI for portrelay."""

__version__ = "0.1.0"
