"""TenderHub CLI — run the server, mint dev tokens, poke the API.

Usage:
    tenderhub serve                                  # Run the API with uvicorn
    tenderhub token --user-id c1 --role contractor   # Print a JWT
    tenderhub health                                 # Server status
    tenderhub bid TENDER_ID --price 100 --days 14 --comments "..." --token JWT
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

from tenderhub import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TENDERHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the TenderHub backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


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


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tenderhub")
def main():
    """TenderHub — tendering marketplace backend."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: TENDERHUB_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: TENDERHUB_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from tenderhub.config import settings

    uvicorn.run(
        "tenderhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.option("--user-id", "-u", required=True, help="User id to put in the sub claim")
@click.option(
    "--role", "-r",
    type=click.Choice(["client", "contractor"]),
    required=True,
)
@click.option("--minutes", "-m", type=int, default=None, help="Expiry in minutes")
def token(user_id: str, role: str, minutes: Optional[int]):
    """Print a signed access token (development use)."""
    from tenderhub.auth.jwt import create_access_token

    click.echo(create_access_token(user_id, role, expires_minutes=minutes))


@main.command()
def health():
    """Show server health."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        try:
            r = await c.get("/api/v1/health")
        except httpx.HTTPError as e:
            click.secho(f"Cannot reach {_api_url()}: {e}", fg="red", err=True)
            sys.exit(1)
        r.raise_for_status()
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("tender_id")
@click.option("--price", "-p", type=float, required=True)
@click.option("--days", "-d", "delivery_time", type=int, required=True, help="Delivery time in days")
@click.option("--comments", "-c", required=True)
@click.option("--token", "-t", "jwt_token", envvar="TENDERHUB_TOKEN", required=True,
              help="Contractor JWT (or set TENDERHUB_TOKEN)")
def bid(tender_id: str, price: float, delivery_time: int, comments: str, jwt_token: str):
    """Submit a bid on TENDER_ID."""
    _run(_bid_impl(tender_id, price, delivery_time, comments, jwt_token))


async def _bid_impl(tender_id: str, price: float, delivery_time: int,
                    comments: str, jwt_token: str):
    async with _client(jwt_token) as c:
        r = await c.post(
            f"/api/v1/contractor/tenders/{tender_id}/bid",
            json={"price": price, "delivery_time": delivery_time, "comments": comments},
        )
        if r.status_code == 429:
            body = r.json()
            click.secho(
                f"Rate limited. Retry in {r.headers.get('Retry-After', '?')}s "
                f"(window resets at {body.get('retry_after')})",
                fg="yellow",
                err=True,
            )
            sys.exit(2)
        if r.status_code >= 400:
            click.secho(f"Error {r.status_code}: {r.text}", fg="red", err=True)
            sys.exit(1)
        click.secho("Bid submitted", fg="green")
        click.echo(_pretty_json(r.json()))


if __name__ == "__main__":
    main()
