"""Booking relay CLI — run the server and inspect a running one.

Usage:
    bookingrelay serve                    # Run the relay (uvicorn)
    bookingrelay status                   # Health + detector counters
    bookingrelay subscriptions            # Bookings currently being watched
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from bookingrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url() -> str:
    return os.environ.get("BOOKINGRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at a running relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=10.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (e.g. CliRunner
    inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


async def _get_json(path: str) -> dict:
    async with _client() as c:
        r = await c.get(path)
        r.raise_for_status()
        return r.json()


def _fetch(path: str) -> dict:
    try:
        return _run(_get_json(path))
    except httpx.HTTPError as e:
        click.secho(f"Error: cannot reach relay at {_api_url()}: {e}", fg="red", err=True)
        sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    return {"healthy": "green", "degraded": "yellow"}.get(status, "red")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="bookingrelay")
def main():
    """Booking relay — push driver assignment changes to subscribed clients."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: BOOKINGRELAY_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: BOOKINGRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from bookingrelay.config import settings

    uvicorn.run(
        "bookingrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def status(as_json: bool):
    """Show relay health and change detector counters."""
    data = _fetch("/api/v1/health")
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
        return

    click.secho(
        f"Relay {data.get('version', '?')}: {data['status']}",
        fg=_status_color(data["status"]),
        bold=True,
    )
    click.echo(f"  database: {data.get('database', '—')}")
    detector = data.get("detector", {})
    click.echo(
        f"  detector: ticks={detector.get('ticks', 0)} "
        f"queries={detector.get('queries', 0)} "
        f"transitions={detector.get('transitions', 0)} "
        f"errors={detector.get('errors', 0)}"
    )
    click.echo(f"  last tick: {detector.get('last_tick_at') or '—'}")


@main.command()
def subscriptions():
    """List bookings with at least one subscriber."""
    data = _fetch("/api/v1/subscriptions")
    if not data["topics"]:
        click.echo("No active subscriptions.")
        return
    _print_table(data["topics"], [("BOOKING", "topic", 24), ("SUBSCRIBERS", "subscribers", 11)])
    click.echo(
        f"\n{data['total_topics']} booking(s), "
        f"{data['total_subscriptions']} subscription(s)"
    )


if __name__ == "__main__":
    main()
