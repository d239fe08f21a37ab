"""Flask CLI commands for user and session administration."""

from __future__ import annotations

import logging
import uuid

import click
from flask.cli import with_appcontext

from authcore.core.extensions import db
from authcore.core.logger import bind_request_id
from authcore.core.wiring import get_services
from authcore.models.user import Role
from authcore.services import RegistrationIn
from authcore.services._shared.errors import ServiceError

LOGGER = logging.getLogger(__name__)


def _echo_user(view) -> None:
    state = "enabled" if view.enabled else "disabled"
    roles = ",".join(sorted(view.roles))
    click.echo(f"{view.id}  {view.email:<32}  {view.username:<20}  {roles:<10}  {state}")


@click.group("users")
@click.pass_context
def users_cli(ctx: click.Context) -> None:
    """User and session administration commands."""
    # One correlation id per invocation
    ctx.with_resource(bind_request_id())


@users_cli.command("create-tables")
@with_appcontext
def create_tables_command() -> None:
    """Create the ``users`` and ``refresh_tokens`` tables if they are missing."""
    db.create_all()
    click.echo("Tables created.")


@users_cli.command("create-admin")
@click.option("--email", required=True)
@click.option("--username", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin_command(email: str, username: str, password: str) -> None:
    """Register a user and grant it the ADMIN role."""
    services = get_services()
    try:
        user = services.registration.register(
            RegistrationIn(username=username, email=email, password=password)
        )
        user = services.accounts.update_roles(user.id, [Role.USER, Role.ADMIN])
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("Admin created", extra={"event": "cli.admin_created", "user_id": str(user.id)})
    click.echo(f"Created admin {user.email} ({user.id})")


@users_cli.command("list")
@click.option("--page", default=1, show_default=True, type=int)
@click.option("--limit", default=50, show_default=True, type=int)
@with_appcontext
def list_command(page: int, limit: int) -> None:
    """List users, oldest first."""
    result = get_services().accounts.list_users(page=page, limit=limit)
    if not result.items:
        click.echo("(no users)")
        return
    for view in result.items:
        _echo_user(view)
    click.echo(f"page {result.page}, {len(result.items)} of {result.total}")


@users_cli.command("disable")
@click.argument("user_id", type=click.UUID)
@with_appcontext
def disable_command(user_id: uuid.UUID) -> None:
    """Disable a user and revoke its refresh tokens."""
    try:
        view = get_services().accounts.disable_user(user_id)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_user(view)


@users_cli.command("enable")
@click.argument("user_id", type=click.UUID)
@with_appcontext
def enable_command(user_id: uuid.UUID) -> None:
    """Re-enable a disabled user."""
    try:
        view = get_services().accounts.enable_user(user_id)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_user(view)


@users_cli.command("revoke-sessions")
@click.argument("user_id", type=click.UUID)
@with_appcontext
def revoke_sessions_command(user_id: uuid.UUID) -> None:
    """Revoke every refresh token of a user."""
    count = get_services().sessions.revoke_all_for_user(user_id)
    click.echo(f"Revoked {count} refresh token(s).")
