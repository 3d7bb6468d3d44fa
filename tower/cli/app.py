"""Click CLI commands for account and session management."""

from __future__ import annotations

import sys
from typing import Any

import click

from tower.cli.client import ApiError, ApiUnreachable, TowerClient
from tower.cli.credentials import CredentialFile, StoredAuth
from tower.config import get_settings


@click.group()
@click.option("--api-url", default=None, help="API root URL (default: TOWER_API_URL).")
@click.pass_context
def cli(ctx: click.Context, api_url: str | None) -> None:
    """Tower command-line client."""
    ctx.ensure_object(dict)
    if "client" not in ctx.obj:
        settings = get_settings()
        ctx.obj["client"] = TowerClient(
            api_url or settings.tower_api_url,
            timeout=settings.api_timeout_seconds,
        )
    ctx.obj.setdefault("credentials", CredentialFile())


@cli.group()
def auth() -> None:
    """Register, log in, log out, and inspect the stored session."""
    pass


def _fail(message: str, code: int = 1) -> None:
    click.echo(message, err=True)
    sys.exit(code)


def _store_pair(credentials: CredentialFile, body: dict[str, Any], username: str) -> None:
    if "accessToken" not in body or "refreshToken" not in body:
        _fail("Invalid response from server")
    credentials.save(body["accessToken"], body["refreshToken"], username)


@auth.command()
@click.argument("username")
@click.password_option(confirmation_prompt=True)
@click.pass_obj
def register(obj: dict, username: str, password: str) -> None:
    """Create an account and log in."""
    client: TowerClient = obj["client"]
    try:
        body = client.register(username, password)
    except ApiError as e:
        _fail(f"Registration failed: {e.detail}")
    except ApiUnreachable as e:
        _fail(str(e))

    _store_pair(obj["credentials"], body, username)
    click.echo(f"registered and logged in as {username}")


@auth.command()
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True)
@click.pass_obj
def login(obj: dict, username: str, password: str) -> None:
    """Log in and store a token pair."""
    client: TowerClient = obj["client"]
    try:
        body = client.login(username, password)
    except ApiError as e:
        _fail(f"Login failed: {e.detail}")
    except ApiUnreachable as e:
        _fail(str(e))

    _store_pair(obj["credentials"], body, username)
    click.echo(f"logged in as {username}")


@auth.command()
@click.pass_obj
def logout(obj: dict) -> None:
    """Revoke the stored session and remove local credentials.

    Local credentials are removed even if the server cannot be reached.
    """
    credentials: CredentialFile = obj["credentials"]
    stored = credentials.load()
    if stored is None:
        click.echo("not logged in")
        return

    try:
        obj["client"].logout(stored.refresh_token)
    except (ApiError, ApiUnreachable) as e:
        click.echo(f"warning: server logout failed ({e}); clearing local session", err=True)

    credentials.clear()
    click.echo("logged out")


@auth.command()
@click.pass_obj
def status(obj: dict) -> None:
    """Show whether a non-expired access token is stored."""
    credentials: CredentialFile = obj["credentials"]
    stored = credentials.load()
    if stored is None:
        click.echo("not logged in")
        return

    state = "active" if credentials.is_logged_in() else "access token expired"
    click.echo(f"{stored.username} ({state}, expires {stored.expires_at.isoformat()})")


def _refresh_stored(obj: dict, stored: StoredAuth) -> StoredAuth:
    """Rotate the stored refresh token and persist the new pair."""
    credentials: CredentialFile = obj["credentials"]
    try:
        body = obj["client"].refresh(stored.refresh_token)
    except ApiError as e:
        if e.status_code == 401:
            credentials.clear()
            _fail("Session expired, please log in again")
        _fail(f"Refresh failed: {e.detail}")
    except ApiUnreachable as e:
        _fail(str(e))

    return credentials.save(body["accessToken"], body["refreshToken"], stored.username)


@auth.command()
@click.pass_obj
def refresh(obj: dict) -> None:
    """Exchange the stored refresh token for a new pair."""
    stored = obj["credentials"].load()
    if stored is None:
        _fail("not logged in")

    _refresh_stored(obj, stored)
    click.echo("session refreshed")


@auth.command()
@click.pass_obj
def whoami(obj: dict) -> None:
    """Ask the server who the stored access token belongs to.

    Refreshes once if the access token is expired or rejected.
    """
    credentials: CredentialFile = obj["credentials"]
    stored = credentials.load()
    if stored is None:
        _fail("not logged in")

    refreshed = False
    if not credentials.is_logged_in():
        stored = _refresh_stored(obj, stored)
        refreshed = True

    client: TowerClient = obj["client"]
    try:
        body = client.me(stored.access_token)
    except ApiError as e:
        if e.status_code != 401 or refreshed:
            _fail(f"Request failed: {e.detail}")
        stored = _refresh_stored(obj, stored)
        try:
            body = client.me(stored.access_token)
        except (ApiError, ApiUnreachable) as retry_error:
            _fail(f"Request failed: {retry_error}")
    except ApiUnreachable as e:
        _fail(str(e))

    click.echo(f"{body['username']}\t{body['userId']}")
