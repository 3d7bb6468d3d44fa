"""CLI entry point.

Usage:
    python -m tower.cli auth <command> [OPTIONS]

Commands:
    register    Create an account and log in
    login       Log in and store a token pair
    logout      Revoke the session and clear local credentials
    status      Show the stored session
    refresh     Rotate the stored refresh token
    whoami      Show the identity of the stored access token
"""

from tower.cli.app import cli


def main() -> None:
    """Entry point for ``python -m tower.cli`` and the ``tower`` script."""
    cli()


if __name__ == "__main__":
    main()
