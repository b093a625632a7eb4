# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/phoneshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --username owner --password "Password123!"
#   Create all tables (if missing) and the first OWNER account. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--all]
#   List users with role and active status.
# - python -m flask users create --username cashier1 --password "Password123!" --role CASHIER
#   Create a user (prompts if options are omitted).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import Role, ALL_ROLES
from .services.auth_service import create_user, list_users as list_user_rows, PasswordValidationError
from .validation import ValidationError, ConflictError


def _rounds() -> int:
    return current_app.config.get("BCRYPT_ROUNDS", 12)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='owner', show_default=True, help='Username for the first OWNER')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password for the first OWNER')
@with_appcontext
def init_system(username, password):
    """
    Create the schema and the first OWNER account.

    Safe to re-run: existing tables and an existing OWNER are left alone.
    For managed deployments prefer 'flask db upgrade' for the schema.
    """
    click.echo("START Initializing phone shop backend...")

    db.create_all()
    click.echo("PASS Tables ready")

    owner = db.session.query(User).filter_by(role=Role.OWNER, is_active=True).first()
    if owner:
        click.echo(f"PASS Using existing owner: {owner.username} (ID: {owner.id})")
        return

    try:
        owner = create_user(username, password, Role.OWNER, bcrypt_rounds=_rounds())
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created owner: {owner.username} (ID: {owner.id})")
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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to create an owner.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(ALL_ROLES), case_sensitive=False), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username, password, role, bcrypt_rounds=_rounds())
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


@users_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated users')
@with_appcontext
def list_users(include_inactive):
    """List users with their roles."""
    users = list_user_rows(include_inactive=include_inactive)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Username':<24} {'Role':<12} {'Active'}")
    click.echo("="*60)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<12} {active_str}")

    click.echo("="*60 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
