# Overview: `flask system|users|orders` command groups.

# backend/rebates/cli.py
# Run from backend/ with FLASK_APP=wsgi.py:
#
# Database and settings:
# - flask system init-db
#   Create missing tables and seed default system settings (idempotent).
# - flask system reset-db --yes
#   Development only. Drops every table, recreates them and reseeds settings.
# - flask system settings
#   Print the effective rebate settings.
#
# Accounts:
# - flask users list [--role staff]
#   List users with role, capabilities and active status.
# - flask users create --email admin@example.com --full-name "Admin" --password "secret123" --role admin
#   Create a user (prompts if options are omitted).
#
# Order maintenance:
# - flask orders lock-sweep
#   Lock every pending order older than auto_lock_days.
# - flask orders send-reminders
#   Send confirmation reminders for pending orders older than order_reminder_days.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User
from .permissions import ROLES
from .services import auth_service, order_service, reminder_service, settings_service


@click.group('system')
def system_group():
    """Schema and settings commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and seed default settings. Safe to run more than once."""
    db.create_all()
    added = settings_service.seed_defaults()
    click.echo("PASS Tables created")
    click.echo(f"PASS Seeded {added} default setting(s)")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table, then reseed settings. Orders, contracts and users are lost."""
    if not yes:
        click.confirm("WARN Every order, contract and user will be deleted. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    added = settings_service.seed_defaults()
    click.echo(f"PASS Schema rebuilt, {added} default setting(s) seeded")


@system_group.command('settings')
@with_appcontext
def show_settings():
    """Print the effective settings (stored values over catalog defaults)."""
    for row in settings_service.list_settings():
        marker = " (default)" if row["is_default"] else ""
        click.echo(f"{row['key']:<30} {row['value']}{marker}")


@click.group('users')
def users_group():
    """Account bootstrap and listing."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, full_name, password, role):
    """
    Create a user directly, bypassing registration and role requests.

    Use it to bootstrap the first admin.
    """
    try:
        user = auth_service.create_user(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            email_verified=True,
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created user: {user.full_name} ({user.email}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """Table of users with role, active flag and granted capabilities."""
    query = db.session.query(User).order_by(User.id.asc())
    if role:
        query = query.filter(User.role == role)
    users = query.all()
    if not users:
        click.echo("No users found.")
        return

    rule = "-" * 96
    click.echo(rule)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Role':<9} {'Active':<8} {'Capabilities'}")
    click.echo(rule)
    for user in users:
        capabilities = ", ".join(sorted(user.capability_codes())) or "-"
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.full_name or '-':<24} {user.role:<9} "
            f"{'yes' if user.is_active else 'no':<8} {capabilities}"
        )
    click.echo(rule)


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('lock-sweep')
@with_appcontext
def lock_sweep_cli():
    """Lock pending orders that passed the auto-lock window."""
    settings = settings_service.load_settings(use_cache=False)
    locked = order_service.apply_auto_lock(settings)
    click.echo(f"Locked {locked} order(s) older than {settings.auto_lock_days} day(s).")


@orders_group.command('send-reminders')
@with_appcontext
def send_reminders_cli():
    """Send confirmation reminders for long-pending orders."""
    settings = settings_service.load_settings(use_cache=False)
    result = reminder_service.send_order_reminders(settings)
    click.echo(result["message"])
    if not result["success"]:
        raise SystemExit(1)


def register_commands(app):
    """Attach the command groups to app.cli."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(orders_group)
