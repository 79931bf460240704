"""
relay/server.py — Composition root and process entry point.

Startup order:
  1. Load .env and Settings (BEARER_TOKEN is required)
  2. Build the store and mapping, hydrate both from disk
  3. Bind the API port and one port per mapping rule (fatal if any is taken)
  4. Start the file watchers (fatal if a file cannot be watched) and the
     periodic flusher
  5. Serve every socket with uvicorn on one event loop

Run:
  portrelay
  python -m relay.server
"""

from __future__ import annotations

import asyncio
import signal
import socket
import sys
from dataclasses import dataclass, field

import uvicorn

from core.config import Settings, load_env_file, load_settings
from core.errors import ConfigError, ListenError, WatchError
from core.logger import LOGGER, configure_logging
from core.state import DurableMapping, DurableStore
from core.sync import CacheSynchronizer
from core.watcher import FileWatcher, watch_file
from relay.api import create_api_app
from relay.redirect import create_redirect_app

log = LOGGER.getChild("server")

_BACKLOG = 2048


# ── Runtime ────────────────────────────────────────────────────────────────────


@dataclass
class Runtime:
    """Everything that lives for the whole process, owned by main()."""

    settings: Settings
    store: DurableStore
    mapping: DurableMapping
    synchronizer: CacheSynchronizer
    watchers: list[FileWatcher] = field(default_factory=list)

    def start(self) -> None:
        """Attach the watchers and start flushing; WatchError leaves nothing running."""
        try:
            for target in (self.mapping, self.store):
                self.watchers.append(
                    watch_file(
                        target.path,
                        target.reload,
                        delay=self.settings.debounce,
                        poll_interval=self.settings.poll_interval,
                    )
                )
        except WatchError:
            self.shutdown(final_flush=False)
            raise
        self.synchronizer.start()

    def shutdown(self, final_flush: bool = True) -> None:
        for watcher in self.watchers:
            watcher.stop()
        self.watchers.clear()
        self.synchronizer.stop(final_flush=final_flush)


def build_runtime(settings: Settings) -> Runtime:
    store = DurableStore(settings.data_file)
    mapping = DurableMapping(settings.mapping_file)
    store.reload()
    mapping.reload()
    return Runtime(
        settings=settings,
        store=store,
        mapping=mapping,
        synchronizer=CacheSynchronizer(store, settings.flush_interval),
    )


# ── Listeners ──────────────────────────────────────────────────────────────────


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``; ListenError if the port is unavailable."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(_BACKLOG)
    except OSError as exc:
        sock.close()
        raise ListenError(f"Failed to listen on port {port}: {exc}") from exc
    sock.set_inheritable(True)
    return sock


def open_listeners(host: str, ports: list[int]) -> dict[int, socket.socket]:
    """Bind every port or none of them."""
    sockets: dict[int, socket.socket] = {}
    try:
        for port in ports:
            if port in sockets:
                raise ListenError(f"Failed to listen on port {port}: configured twice")
            sockets[port] = bind_socket(host, port)
    except ListenError:
        for sock in sockets.values():
            sock.close()
        raise
    return sockets


async def serve(runtime: Runtime, api_sock: socket.socket, redirect_socks: dict[int, socket.socket]) -> None:
    """Serve the API and every redirect port until any server stops."""
    settings = runtime.settings
    level = settings.log_level.lower()
    api_app = create_api_app(runtime.store, runtime.mapping, settings.bearer_token)
    redirect_app = create_redirect_app(runtime.store, runtime.mapping)

    pairs = [(uvicorn.Server(uvicorn.Config(api_app, log_level=level)), api_sock)]
    for port, sock in redirect_socks.items():
        log.info("Starting HTTP server on port %s...", port)
        pairs.append((uvicorn.Server(uvicorn.Config(redirect_app, log_level=level)), sock))

    tasks = [asyncio.create_task(srv.serve(sockets=[sock])) for srv, sock in pairs]
    log.info("API server on port %s, redirect servers on %s",
             settings.api_port, ", ".join(str(p) for p in redirect_socks) or "no ports")
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # one server stopping (signal or failure) stops them all
        for srv, _ in pairs:
            srv.should_exit = True
        await asyncio.gather(*tasks, return_exceptions=True)


# ── Entry point ────────────────────────────────────────────────────────────────


def _exit_on_sigterm(signum, frame) -> None:  # noqa: ARG001
    raise SystemExit(0)


def main() -> None:
    load_env_file()
    try:
        settings = load_settings()
    except ConfigError as exc:
        log.critical("%s", exc)
        sys.exit(1)
    configure_logging(settings.log_level)

    runtime = build_runtime(settings)
    ports = runtime.mapping.listen_ports()
    if not ports:
        log.warning("No redirect rules in %s; only the API will listen", settings.mapping_file)

    try:
        sockets = open_listeners(settings.host, [settings.api_port, *ports])
    except ListenError as exc:
        log.critical("%s", exc)
        sys.exit(1)
    try:
        runtime.start()
    except WatchError as exc:
        for sock in sockets.values():
            sock.close()
        log.critical("%s", exc)
        sys.exit(1)

    api_sock = sockets.pop(settings.api_port)
    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    try:
        asyncio.run(serve(runtime, api_sock, sockets))
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    finally:
        runtime.shutdown()
        for sock in (api_sock, *sockets.values()):
            sock.close()
        log.info("Stopped")


if __name__ == "__main__":
    main()
