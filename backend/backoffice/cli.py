# Overview: Flask CLI command groups for bootstrap, inspection, and ledger maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--username admin --email admin@backoffice.local --password "Password123!"]
#   Create tables (if missing) and a bootstrap admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with active status.
# - python -m flask users create --username kassa --email kassa@backoffice.local --password "Password123!"
#   Create a user (prompts if options are omitted).
# - python -m flask users deactivate kassa
#   Disable a user and revoke every open session.
#
# Ledger maintenance:
# - python -m flask ledger reconcile
#   List clients whose stored balance differs from the sum of their open debts.
# - python -m flask ledger reconcile --fix
#   Overwrite those balances with the sum of their open debts.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, PasswordValidationError
from .services import ledger_service
from .services import session_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', help='Bootstrap admin username')
@click.option('--email', default='admin@backoffice.local', help='Bootstrap admin email')
@click.option('--password', default='Password123!', help='Bootstrap admin password')
@with_appcontext
def init_system(username, email, password):
    """
    Initialize the back office: tables and a bootstrap admin user.

    Idempotent: an existing user with the same username is left alone.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing back office...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        click.echo(f"WARN  User '{username}' already exists, skipping...")
        return

    try:
        user = create_user(username=username, email=email, password=password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed for '{username}': {str(e)}")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create user '{username}': {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} ({user.email})")
    click.echo("\nSECURITY WARNING: change the bootstrap password in production!")


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
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, email, password):
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
        user = create_user(username=username, email=email, password=password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {active_str}")

    click.echo("="*80 + "\n")


@users_group.command('deactivate')
@click.argument('username')
@with_appcontext
def deactivate_user(username):
    """Disable a user and revoke all of their sessions."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated '{username}', revoked {revoked} session(s)")


@click.group('ledger')
def ledger_group():
    """Client balance reconciliation commands."""


@ledger_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Overwrite mismatched balances with the sum of open debts')
@with_appcontext
def reconcile(fix):
    """
    Compare each client's stored balance with the sum of its open debts.

    Mismatches come from absorbed overpayments and from cash-in/cash-out
    entries recorded against a client. --fix applies the same re-sum that
    editing a debtor does.
    """
    rows = ledger_service.find_unbalanced_clients()
    if not rows:
        click.echo("PASS All client balances match their open debts.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Client':<8} {'Stored':>16} {'Debtors':>16} {'Ledger':>16}")
    click.echo("="*80)
    for row in rows:
        click.echo(
            f"{row['client_id']:<8} {row['stored_balance']:>16.2f} "
            f"{row['debtor_balance']:>16.2f} {row['ledger_balance']:>16.2f}"
        )
    click.echo("="*80)

    if not fix:
        click.echo(f"WARN {len(rows)} client(s) out of balance. Re-run with --fix to overwrite.")
        return

    for row in rows:
        ledger_service.reconcile_client(row["client_id"])
    click.echo(f"PASS Reconciled {len(rows)} client(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
