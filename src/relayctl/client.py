"""Thin httpx wrapper around the portrelay update API."""

from __future__ import annotations

from typing import Any

import httpx

from .display import spinner


class RelayAPIError(Exception):
    """Raised when the relay API returns an error or cannot be reached."""


class Client:
    """Authenticated client for /api/save, /api/get and /health."""

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout, transport=transport)

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            r = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RelayAPIError(f"Relay not reachable at {self.base_url}: {exc}") from exc
        if r.status_code == 401:
            raise RelayAPIError("Unauthorized — check --token / BEARER_TOKEN")
        if not r.is_success:
            raise RelayAPIError(f"{method} {path} failed ({r.status_code}): {r.text[:200]}")
        return r

    # ── Store ─────────────────────────────────────────────────────────────────

    def get(self) -> dict:
        with spinner("Fetching store"):
            return self._request("GET", "/api/get").json()

    def save(self, data: dict) -> dict:
        with spinner(f"Saving {len(data)} key(s)"):
            return self._request("POST", "/api/save", json=data).json()

    def set_port(self, port: int) -> dict:
        return self.save({"port": port})

    # ── Health ────────────────────────────────────────────────────────────────

    def health(self) -> dict:
        return self._request("GET", "/health").json()

    def is_alive(self) -> bool:
        try:
            self.health()
        except RelayAPIError:
            return False
        return True

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
