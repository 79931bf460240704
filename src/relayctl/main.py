"""
relayctl — CLI entry point.

Usage:
  relayctl get                          # show the live store
  relayctl set-port 51000               # push a new dynamic port
  relayctl save port=51000 note=stun    # merge arbitrary keys (JSON values)
  relayctl health
  relayctl rules                        # offline: show redirect rules
  relayctl resolve example.com:33331    # offline: where would this Host go?
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from core.config import DATA_FILE, MAPPING_FILE
from core.errors import RequestError
from core.logger import LOGGER
from core.state import DurableMapping, DurableStore
from core.storage import loads_strict
from relay.resolver import resolve as resolve_host

from . import __version__
from .client import Client, RelayAPIError
from .display import console, err, info, ok, print_health, print_rules, print_store

# ── App ───────────────────────────────────────────────────────────────────────

app = typer.Typer(
    name="relayctl",
    help="portrelay operator CLI",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# ── Shared options ────────────────────────────────────────────────────────────

URL_OPT = typer.Option("http://localhost:5000", "--url", "-u", help="Relay API URL", envvar="RELAY_URL")
TOKEN_OPT = typer.Option("", "--token", "-t", help="Bearer token (BEARER_TOKEN)", envvar="BEARER_TOKEN")
DATA_OPT = typer.Option(DATA_FILE, "--data-file", help="Store backing file", envvar="RELAY_DATA_FILE")
MAPPING_OPT = typer.Option(MAPPING_FILE, "--mapping-file", help="Redirect mapping file", envvar="RELAY_MAPPING_FILE")


@app.callback(invoke_without_command=True)
def root(
    version: bool = typer.Option(False, "--version", "-V", help="Print version and exit", is_eager=True),
) -> None:
    """[bold]portrelay[/bold] — push ports, inspect rules."""
    LOGGER.setLevel(logging.WARNING)
    if version:
        console.print(f"relayctl [bold]v{__version__}[/bold]")
        raise typer.Exit()


# ── API commands ──────────────────────────────────────────────────────────────


@app.command()
def get(url: str = URL_OPT, token: str = TOKEN_OPT) -> None:
    """Show the relay's current store."""
    with Client(base_url=url, token=token) as client:
        data = _call(client.get)
    print_store(data)


@app.command()
def save(
    pairs: Annotated[list[str], typer.Argument(help="KEY=VALUE pairs; VALUE is parsed as JSON when it can be")],
    url: str = URL_OPT,
    token: str = TOKEN_OPT,
) -> None:
    """Merge keys into the relay's store."""
    data = parse_pairs(pairs)
    with Client(base_url=url, token=token) as client:
        result = _call(client.save, data)
    ok(result.get("message", "Saved"))


@app.command("set-port")
def set_port(
    port: Annotated[int, typer.Argument(min=1, max=65535, help="New dynamic port")],
    url: str = URL_OPT,
    token: str = TOKEN_OPT,
) -> None:
    """Push a new dynamic port."""
    with Client(base_url=url, token=token) as client:
        _call(client.set_port, port)
    ok(f"Port set to [bold]{port}[/bold]")


@app.command()
def health(url: str = URL_OPT) -> None:
    """Check that the relay API is up."""
    with Client(base_url=url) as client:
        data = _call(client.health)
    print_health(data)


# ── Offline commands ──────────────────────────────────────────────────────────


@app.command()
def rules(data_file: Path = DATA_OPT, mapping_file: Path = MAPPING_OPT) -> None:
    """List redirect rules from the mapping file."""
    store, mapping = _load(data_file, mapping_file)
    try:
        port = store.port()
    except RequestError:
        port = None
    print_rules(mapping.get(), port)


@app.command()
def resolve(
    host: Annotated[str, typer.Argument(help="Host header value, e.g. example.com:33331")],
    data_file: Path = DATA_OPT,
    mapping_file: Path = MAPPING_OPT,
) -> None:
    """Show where a request with HOST would be redirected."""
    store, mapping = _load(data_file, mapping_file)
    try:
        resolution = resolve_host(host, store, mapping)
    except RequestError as exc:
        err(f"{exc.status_code} {exc.public_message} — {escape(str(exc))}")
        raise typer.Exit(1)
    info(f"rule [bold]{resolution.key}[/bold]")
    ok(f"302 → [bold]{resolution.location}[/bold]")


# ── Helpers ───────────────────────────────────────────────────────────────────


def parse_pairs(pairs: list[str]) -> dict:
    data: dict = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}")
        try:
            data[key] = loads_strict(raw)
        except ValueError:
            data[key] = raw
    return data


def _call(fn, *args):
    try:
        return fn(*args)
    except RelayAPIError as exc:
        err(str(exc))
        raise typer.Exit(1)


def _load(data_file: Path, mapping_file: Path) -> tuple[DurableStore, DurableMapping]:
    store = DurableStore(data_file)
    mapping = DurableMapping(mapping_file)
    if data_file.exists():
        store.reload()
    if not mapping_file.exists():
        err(f"Mapping file not found: {mapping_file}")
        raise typer.Exit(1)
    mapping.reload()
    return store, mapping


# ── Entry ─────────────────────────────────────────────────────────────────────


def main() -> None:
    app()


if __name__ == "__main__":
    main()
