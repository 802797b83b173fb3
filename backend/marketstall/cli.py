# Overview: Flask CLI command groups for bootstrap, inspection, and settlement runs.

# backend/marketstall/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "marketstall:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent: creates an admin and three owners (Alice, Bob, Carla).
#
# Users:
# - python -m flask users create --name Alice --email alice@example.com --password "Password123" [--admin]
# - python -m flask users list
# - python -m flask users deactivate --email alice@example.com
#
# Settlement:
# - python -m flask settlements run --email admin@example.com
#   Net the unprocessed backlog as the given administrator.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, normalize_email, PasswordValidationError
from .services import settlement_service
from .services.settlement_service import SettlementError
from .validation import PermissionDeniedError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to add users.")


@system_group.command('seed')
@click.option('--password', default='Password123', help='Password for every seeded user')
@with_appcontext
def seed(password):
    """Create a default admin and three owners. Existing e-mails are skipped."""
    default_users = [
        ("Admin", "admin@example.com", True),
        ("Alice", "alice@example.com", False),
        ("Bob", "bob@example.com", False),
        ("Carla", "carla@example.com", False),
    ]

    for name, email, is_admin in default_users:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(name, email, password, is_admin=is_admin)
            click.echo(f"PASS Created user: {name} ({email}){' [admin]' if is_admin else ''}")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {str(e)}")

    click.echo("\nSECURITY Change the seeded passwords before using this outside development.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--admin', 'is_admin', is_flag=True, help='Allow running settlements')
@click.option('--iban', default=None)
@with_appcontext
def create_user_cli(name, email, password, is_admin, iban):
    """Create a user."""
    try:
        user = create_user(name, email, password, is_admin=is_admin, iban=iban)
        click.echo(f"PASS Created user: {user.name} ({user.email}) ID: {user.id}")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.name.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Active':<8} {'Admin'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        admin_str = "Yes" if user.is_admin else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<30} {active_str:<8} {admin_str}")

    click.echo("="*80 + "\n")


@users_group.command('deactivate')
@click.option('--email', required=True)
@with_appcontext
def deactivate_user(email):
    """Deactivate a user (rows referencing them are kept)."""
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    user.is_active = False
    db.session.commit()
    click.echo(f"PASS Deactivated {user.name} ({user.email})")


@click.group('settlements')
def settlements_group():
    """Settlement commands."""


@settlements_group.command('run')
@click.option('--email', required=True, help='Administrator running the settlement')
@with_appcontext
def run_settlement(email):
    """Net the unprocessed backlog and print the resulting debts."""
    user = db.session.query(User).filter_by(email=normalize_email(email), is_active=True).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    try:
        rows = settlement_service.process_settlement(actor_user_id=user.id, is_admin=user.is_admin)
    except PermissionDeniedError as e:
        click.echo(f"FAIL {str(e)}")
        return
    except SettlementError as e:
        click.echo(f"FAIL {str(e)}")
        return

    if not rows:
        click.echo("Nothing to settle.")
        return

    for row in rows:
        entry = row.to_dict()
        click.echo(
            f"{entry['from_user_name']} -> {entry['to_user_name']}: "
            f"{entry['amount']:.2f} ({len(entry['sales_ids'])} sales)"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(settlements_group)
