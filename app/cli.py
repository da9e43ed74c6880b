"""Operator commands: provisioning and the attendance-session expiry sweep.

Example usage:
    training-admin provision-users
    training-admin expire-sessions --max-age-hours 8
"""
import asyncio

import click

from app.db import db_shutdown, init_db


def _run(coro):
    async def runner():
        await init_db()
        try:
            return await coro
        finally:
            await db_shutdown()

    return asyncio.run(runner())


@click.group()
def cli():
    """Disaster-management training backend administration."""


@cli.command("provision-users")
def provision_users_command():
    """Create the demo trainer, authority and trainee accounts if missing."""
    from app.seed import provision_users

    for email, created in _run(provision_users()):
        click.echo(f"{'created' if created else 'exists '}  {email}")


@cli.command("expire-sessions")
@click.option("--max-age-hours", type=int, default=None, help="Override ATTENDANCE_SESSION_MAX_HOURS")
def expire_sessions_command(max_age_hours):
    """Mark active attendance sessions older than the limit as expired."""
    from app.services.sessions import expire_stale_sessions

    expired = _run(expire_stale_sessions(max_age_hours=max_age_hours))
    click.echo(f"Expired {expired} attendance session(s)")


if __name__ == "__main__":
    cli()
