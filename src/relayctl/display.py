"""Rich display helpers — tables and status lines for relayctl."""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from relay.resolver import build_location

THEME = Theme(
    {
        "relay.accent": "#4D8FFF",
        "relay.muted": "#5A6278",
        "relay.silver": "#A4B4CC",
        "relay.ok": "#3d9e5a",
        "relay.warn": "#d4a017",
        "relay.err": "#e05555",
    }
)

console = Console(theme=THEME, highlight=False)


def _fmt_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def print_store(data: dict) -> None:
    """Store entries, ``port`` first."""
    if not data:
        info("Store is empty.")
        return
    table = Table(box=box.SIMPLE_HEAD, header_style="relay.accent")
    table.add_column("Key", style="bold")
    table.add_column("Value", style="relay.silver")
    for key in sorted(data, key=lambda k: (k != "port", k)):
        table.add_row(key, _fmt_value(data[key]))
    console.print(table)


def print_rules(rules: dict, port: int | None = None) -> None:
    """Redirect rules with the URL each one currently redirects to."""
    if not rules:
        info("No redirect rules.")
        return
    table = Table(box=box.SIMPLE_HEAD, header_style="relay.accent")
    table.add_column("Rule", style="bold")
    table.add_column("Target", style="relay.silver")
    table.add_column("Redirects to")
    for key in sorted(rules):
        target = rules[key]
        location = build_location(target, port) if port is not None else "[relay.muted]no port[/relay.muted]"
        table.add_row(key, target, location)
    console.print(table)


def print_health(data: dict) -> None:
    status = data.get("status", "?")
    style = "relay.ok" if status == "ok" else "relay.err"
    console.print(
        f"  [{style}]{status}[/{style}]  "
        f"[relay.muted]store keys[/relay.muted] {data.get('store_keys', '?')}  "
        f"[relay.muted]rules[/relay.muted] {data.get('rules', '?')}"
    )


@contextmanager
def spinner(message: str):
    with console.status(f"[relay.muted]{message}…[/relay.muted]", spinner="dots"):
        yield


def ok(message: str) -> None:
    console.print(f"  [relay.ok]✓[/relay.ok]  {message}")


def warn(message: str) -> None:
    console.print(f"  [relay.warn]⚠[/relay.warn]  {message}")


def err(message: str) -> None:
    console.print(f"  [relay.err]✗[/relay.err]  [relay.err]{message}[/relay.err]")


def info(message: str) -> None:
    console.print(f"  [relay.muted]·[/relay.muted]  [relay.silver]{message}[/relay.silver]")
