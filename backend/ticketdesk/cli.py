# Overview: Flask CLI command groups for event sessions, reference data and bulk uploads.

# backend/ticketdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Event sessions:
# - python -m flask scopes list
#   List event sessions; the active one is marked.
# - python -m flask scopes create --name "Summer Fair 2026" --start 2026-07-01 [--end 2026-07-14] [--activate]
#   Create an event session.
# - python -m flask scopes activate 2
#   Make session 2 the single writable session.
#
# Reference data:
# - python -m flask staff create --name "Dana" [--phone ...] [--role ...]
# - python -m flask rides create --name "Ferris Wheel" --rate 10.00
#
# Bulk uploads (all-or-nothing; the first bad row aborts the whole file):
# - python -m flask stock import stock.csv --scope-id 1
#   Lines: price,color,startSerial,endSerial
# - python -m flask distributions import dist.csv --scope-id 1
#   Lines: date,staffName,rideName,startSerial
# - python -m flask sales import sales.csv --scope-id 1
#   Lines: date,rideName,rate,ticketsSold[,electronic]

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import TicketingError
from .validation import ValidationError, ConflictError, parse_money_cents
from .services import scope_service, staff_service, rate_service, bulk_upload_service


def _fail(e: Exception):
    raise click.ClickException(f"FAIL {e}")


@click.group('system')
def system_group():
    """Database maintenance commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask scopes create' to start a session.")


@click.group('scopes')
def scopes_group():
    """Event session management."""


@scopes_group.command('list')
@with_appcontext
def list_scopes_cli():
    scopes = scope_service.list_scopes()
    if not scopes:
        click.echo("No event sessions found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Start':<12} {'End':<12} {'Active'}")
    click.echo("=" * 70)
    for s in scopes:
        end = s.end_date.isoformat() if s.end_date else "-"
        click.echo(f"{s.id:<5} {s.name:<30} {s.start_date.isoformat():<12} {end:<12} {'*' if s.is_active else ''}")
    click.echo("=" * 70 + "\n")


@scopes_group.command('create')
@click.option('--name', required=True, help='Session name (unique)')
@click.option('--start', 'start_date', required=True, type=click.DateTime(formats=["%Y-%m-%d"]), help='Start date')
@click.option('--end', 'end_date', type=click.DateTime(formats=["%Y-%m-%d"]), help='End date')
@click.option('--activate', is_flag=True, help='Make this the active session')
@with_appcontext
def create_scope_cli(name, start_date, end_date, activate):
    """
    Create an event session.

    Example:
        flask scopes create --name "Summer Fair 2026" --start 2026-07-01 --activate
    """
    try:
        scope = scope_service.create_scope(
            name,
            start_date.date(),
            end_date.date() if end_date else None,
            activate=activate,
        )
    except (TicketingError, ValidationError, ConflictError) as e:
        _fail(e)
    click.echo(f"PASS Created event session: {scope.name} (ID: {scope.id}){' [active]' if scope.is_active else ''}")


@scopes_group.command('activate')
@click.argument('scope_id', type=int)
@with_appcontext
def activate_scope_cli(scope_id):
    try:
        scope = scope_service.activate_scope(scope_id)
    except TicketingError as e:
        _fail(e)
    click.echo(f"PASS Active event session is now: {scope.name} (ID: {scope.id})")


@click.group('staff')
def staff_group():
    """Staff directory."""


@staff_group.command('create')
@click.option('--name', required=True)
@click.option('--phone')
@click.option('--role')
@with_appcontext
def create_staff_cli(name, phone, role):
    try:
        staff = staff_service.create_staff(name, phone=phone, role=role)
    except (ValidationError, ConflictError) as e:
        _fail(e)
    click.echo(f"PASS Created staff member: {staff.name} (ID: {staff.id})")


@click.group('rides')
def rides_group():
    """Ride rate catalog."""


@rides_group.command('create')
@click.option('--name', required=True)
@click.option('--rate', required=True, help='Unit price, e.g. 10.00')
@with_appcontext
def create_ride_cli(name, rate):
    try:
        ride = rate_service.create_ride(name, parse_money_cents(rate, "rate"))
    except (ValidationError, ConflictError) as e:
        _fail(e)
    click.echo(f"PASS Created ride: {ride.name} at {ride.rate_cents / 100:.2f} (ID: {ride.id})")


def _run_import(loader, path, scope_id, label):
    with open(path, encoding="utf-8-sig") as fh:
        text = fh.read()
    try:
        rows = loader(scope_id, text)
    except (TicketingError, ValidationError, ConflictError) as e:
        _fail(e)
    click.echo(f"PASS Imported {len(rows)} {label} into session {scope_id}")


@click.group('stock')
def stock_group():
    """Ticket stock uploads."""


@stock_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--scope-id', type=int, required=True, help='Event session ID')
@with_appcontext
def import_stock_cli(path, scope_id):
    """Load bundles from price,color,startSerial,endSerial lines."""
    _run_import(bulk_upload_service.bulk_create_stock, path, scope_id, "stock bundle(s)")


@click.group('distributions')
def distributions_group():
    """Ticket distribution uploads."""


@distributions_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--scope-id', type=int, required=True, help='Event session ID')
@with_appcontext
def import_distributions_cli(path, scope_id):
    """Distribute bundles from date,staffName,rideName,startSerial lines."""
    _run_import(bulk_upload_service.bulk_distribute, path, scope_id, "distribution(s)")


@click.group('sales')
def sales_group():
    """Legacy sales uploads."""


@sales_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--scope-id', type=int, required=True, help='Event session ID')
@with_appcontext
def import_sales_cli(path, scope_id):
    """Import settled sales from date,rideName,rate,ticketsSold[,electronic] lines."""
    _run_import(bulk_upload_service.bulk_import_sales, path, scope_id, "sale(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(scopes_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(rides_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(distributions_group)
    app.cli.add_command(sales_group)
