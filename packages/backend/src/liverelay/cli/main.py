"""LiveRelay CLI — run the relay and poke at it from a terminal.

Usage:
    liverelay serve                       # Run the relay server (uvicorn)
    liverelay start 12345                 # Pre-warm an upstream session
    liverelay stop 12345                  # Tear down an upstream session
    liverelay status [12345]              # Session overview
    liverelay games                       # Today's games (schedule passthrough)
    liverelay watch 12345                 # Follow a live scoreboard
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

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3001"


def _api_url() -> str:
    return os.environ.get("LIVERELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _state_color(state: str) -> str:
    colors = {
        "connecting": "yellow",
        "handshaking": "yellow",
        "subscribed": "green",
        "erroring": "red",
        "closing": "magenta",
        "closed": "white",
    }
    return colors.get(state, "white")


def _fail(resp: httpx.Response) -> None:
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error {resp.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def format_scoreboard(snap: dict) -> str:
    """One-line scoreboard: ``NYY 3 - 2 BOS | B2 S1 O1 | 1B -- 3B | play``."""
    bases = snap.get("bases", {})
    diamond = " ".join(
        label if bases.get(key) else "--"
        for key, label in (("first", "1B"), ("second", "2B"), ("third", "3B"))
    )
    line = (
        f"{snap.get('awayTeam', 'TBD')} {snap.get('awayScore', 0)} - "
        f"{snap.get('homeScore', 0)} {snap.get('homeTeam', 'TBD')} | "
        f"B{snap.get('balls', 0)} S{snap.get('strikes', 0)} O{snap.get('outs', 0)} | "
        f"{diamond}"
    )
    inning = snap.get("progress", {}).get("description")
    if inning:
        line += f" | {inning}"
    if snap.get("liveLastPlay"):
        line += f" | {snap['liveLastPlay']}"
    return line


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="liverelay")
def main():
    """LiveRelay — relay live scores from one upstream socket to many viewers."""


# ---------------------------------------------------------------------------
# liverelay serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: LIVERELAY_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: LIVERELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from liverelay.config import settings

    uvicorn.run(
        "liverelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
        reload=reload,
    )


# ---------------------------------------------------------------------------
# liverelay start / stop
# ---------------------------------------------------------------------------


@main.command()
@click.argument("event_id")
def start(event_id: str):
    """Start (pre-warm) the upstream session for EVENT_ID."""
    _run(_control_impl(event_id, "start"))


@main.command()
@click.argument("event_id")
def stop(event_id: str):
    """Stop the upstream session for EVENT_ID, even if viewers are connected."""
    _run(_control_impl(event_id, "stop"))


async def _control_impl(event_id: str, action: str):
    async with _client() as c:
        r = await c.post(f"/api/v1/sessions/{event_id}/{action}")
        if r.status_code != 200:
            _fail(r)
        body = r.json()

    if action == "start":
        state = body["state"]
        click.echo(f"Session {event_id}: {click.style(state, fg=_state_color(state))}")
    elif body["stopped"]:
        click.echo(f"Session {event_id} stopped.")
    else:
        click.echo(f"No session running for {event_id}.")


# ---------------------------------------------------------------------------
# liverelay status
# ---------------------------------------------------------------------------


@main.command()
@click.argument("event_id", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def status(event_id: Optional[str], as_json: bool):
    """Show upstream sessions (all, or just EVENT_ID)."""
    _run(_status_impl(event_id, as_json))


async def _status_impl(event_id: Optional[str], as_json: bool):
    async with _client() as c:
        path = f"/api/v1/sessions/{event_id}" if event_id else "/api/v1/sessions"
        r = await c.get(path)
        if r.status_code != 200:
            _fail(r)
        data = r.json()

    if as_json:
        click.echo(_pretty_json(data))
        return

    rows = [data] if event_id else data
    if not rows:
        click.echo("No sessions.")
        return

    click.secho(f"Sessions ({len(rows)}):", bold=True)
    for s in rows:
        state_str = click.style(f"{s['state']:12s}", fg=_state_color(s["state"]))
        flags = " keep-alive" if s["keep_alive"] else ""
        click.echo(
            f"  {s['event_id']:16s}  {state_str}  subscribers={s['subscribers']}  "
            f"retries={s['reconnect_attempts']}  published={s['snapshots_published']}{flags}"
        )


# ---------------------------------------------------------------------------
# liverelay games
# ---------------------------------------------------------------------------


@main.command()
def games():
    """List today's games from the provider schedule."""
    _run(_games_impl())


async def _games_impl():
    async with _client() as c:
        r = await c.get("/api/v1/games")
        if r.status_code != 200:
            _fail(r)
        data = r.json()

    if data.get("message"):
        click.echo(data["message"])
    if data.get("events"):
        click.echo(_pretty_json(data["events"]))


# ---------------------------------------------------------------------------
# liverelay watch
# ---------------------------------------------------------------------------


@main.command()
@click.argument("event_id")
@click.option("--count", "-n", type=int, default=0, help="Exit after N snapshots (0 = forever)")
def watch(event_id: str, count: int):
    """Follow the live scoreboard for EVENT_ID."""
    try:
        _run(_watch_impl(event_id, count))
    except KeyboardInterrupt:
        click.echo()


async def _watch_impl(event_id: str, count: int):
    seen = 0
    async with _client() as c:
        async with c.stream("GET", f"/api/v1/stream/{event_id}", timeout=None) as r:
            if r.status_code != 200:
                await r.aread()
                _fail(r)
            async for line in r.aiter_lines():
                # Blank lines separate events, ":" lines are keep-alives
                if not line.startswith("data:"):
                    continue
                snap = json.loads(line[len("data:"):].strip())
                click.echo(format_scoreboard(snap))
                seen += 1
                if count and seen >= count:
                    return


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
