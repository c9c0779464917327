# Overview: Flask CLI command groups for bootstrap, user management, stock checks and maintenance.

# backend/dryclean/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--moderator-email mod@example.com --moderator-password "Password123"]
#   Create tables and the first MODERATOR (prompts for missing values).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email admin@example.com --password "Password123" --role ADMIN
# - python -m flask users deactivate admin@example.com --yes
#
# Inventory:
# - python -m flask inventory low-stock
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30

import click
from flask.cli import with_appcontext

from .extensions import db
from .formatting import format_quantity
from .models import User
from .permissions import ROLES, ROLE_MODERATOR
from .services.auth_service import create_user, deactivate_user, PasswordValidationError
from .services.inventory_service import get_low_stock_items
from .services.session_service import cleanup_expired_sessions, revoke_all_user_sessions
from .validation import ValidationError, ConflictError, NotFoundError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--moderator-email', help='Email of the first MODERATOR')
@click.option('--moderator-password', help='Password of the first MODERATOR')
@with_appcontext
def init_system(moderator_email, moderator_password):
    """
    Create all tables and, if no MODERATOR exists yet, the first one.

    Safe to run repeatedly. The MODERATOR can then register ADMIN accounts
    from the dashboard.
    """
    click.echo("START Initializing dry-cleaning admin...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(role=ROLE_MODERATOR).first()
    if existing:
        click.echo(f"PASS Using existing moderator: {existing.email}")
        return

    if not moderator_email:
        moderator_email = click.prompt("Moderator email")
    if not moderator_password:
        moderator_password = click.prompt("Moderator password", hide_input=True, confirmation_prompt=True)

    try:
        user = create_user(moderator_email, moderator_password, ROLE_MODERATOR)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created moderator: {user.email}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and management."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and active status."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Email':<40} {'Role':<12} {'Active'}")
    click.echo("="*72)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<40} {user.role:<12} {active_str}")
    click.echo("="*72 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES), case_sensitive=False), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, password, role):
    """
    Create a user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    try:
        user = create_user(email=email, password=password, role=role.upper())
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} with role '{user.role}'")


@users_group.command('deactivate')
@click.argument('email')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def deactivate_user_cli(email, yes):
    """Deactivate a user and revoke all of their sessions."""
    if not yes:
        click.confirm(f"WARN Deactivate {email}?", abort=True)

    try:
        user = deactivate_user(email)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    revoked = revoke_all_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated {user.email} ({revoked} sessions revoked)")


@click.group('inventory')
def inventory_group():
    """Inventory inspection."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """Print active items at or below their reorder level."""
    items = get_low_stock_items()
    if not items:
        click.echo("No items at or below reorder level.")
        return

    for item in items:
        click.echo(
            f"LOW {item.name}: {format_quantity(item.quantity, item.unit or '')} "
            f"(reorder at {format_quantity(item.reorder_level, item.unit or '')})"
        )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired or revoked sessions older than the retention window."""
    deleted = cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(maintenance_group)
