# Overview: Flask CLI command groups for bootstrap, OPEX setup and earnings views.

# backend/kashpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent: creates tables, default payment methods, customer types and flags.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system set-flag dine_in_takeout_enabled true
#   Change a runtime flag.
#
# Operating expenses:
# - python -m flask opex list
# - python -m flask opex add --name "Rent" --monthly-cost 15000
# - python -m flask opex set-target --amount 120000
#   Monthly sales goal shown next to break-even.
#
# Earnings:
# - python -m flask earnings today
# - python -m flask earnings break-even --month 2026-03
# - python -m flask earnings watch --interval 30
#   Re-print today's earnings every interval seconds until Ctrl+C.

from decimal import Decimal, InvalidOperation

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import settings_service
from .services.breakeven_service import compute_break_even
from .services.earnings_service import compute_today
from .services.live_refresh import LiveEarningsPoller
from .services.record_store import FetchError
from .services.sql_store import get_record_store
from .time_utils import business_date, parse_month, to_business_time, utcnow


def _to_cents(value: str) -> int:
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise click.BadParameter(f"{value!r} is not an amount")
    if amount < 0:
        raise click.BadParameter("amount cannot be negative")
    return int((amount * 100).quantize(Decimal("1")))


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database: tables, default payment methods (Cash, Card,
    GCash), customer types (Regular, Student, Senior) and runtime flags.
    """
    click.echo("START Initializing KashPOS...")
    db.create_all()
    created = settings_service.seed_defaults()
    click.echo(
        f"PASS Seeded {created['payment_methods']} payment methods, "
        f"{created['customer_types']} customer types, {created['settings']} settings"
    )


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


@system_group.command('set-flag')
@click.argument('key')
@click.argument('value')
@with_appcontext
def set_flag(key, value):
    """Set a runtime flag (e.g. dine_in_takeout_enabled true)."""
    row = settings_service.set_setting(key, value)
    click.echo(f"PASS {row.key} = {row.value}")


# =============================================================================
# OPEX
# =============================================================================

@click.group('opex')
def opex_group():
    """Monthly operating expenses used as the break-even target."""


@opex_group.command('list')
@with_appcontext
def list_opex():
    items = settings_service.list_opex_items()
    if not items:
        click.echo("No OPEX items found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<35} {'Monthly cost':>18}")
    click.echo("="*60)
    for item in items:
        click.echo(f"{item.id:<5} {item.name:<35} {_money(item.monthly_cost_cents):>18}")
    click.echo("="*60)
    click.echo(f"{'':<5} {'Total':<35} {_money(settings_service.get_opex_target_cents()):>18}")
    click.echo(f"Target monthly sales: {_money(settings_service.get_target_monthly_sales_cents())}")


@opex_group.command('add')
@click.option('--name', required=True, help='Expense name')
@click.option('--monthly-cost', required=True, help='Monthly cost, e.g. 15000 or 1250.50')
@with_appcontext
def add_opex(name, monthly_cost):
    try:
        item = settings_service.add_opex_item(name, _to_cents(monthly_cost))
    except settings_service.SettingsError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Added {item.name}: {_money(item.monthly_cost_cents)} / month")


@opex_group.command('set-target')
@click.option('--amount', required=True, help='Target monthly sales')
@with_appcontext
def set_target(amount):
    try:
        row = settings_service.set_target_monthly_sales_cents(_to_cents(amount))
    except settings_service.SettingsError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Target monthly sales set to {_money(row.target_monthly_sales_cents)}")


# =============================================================================
# Earnings
# =============================================================================

@click.group('earnings')
def earnings_group():
    """Earnings and break-even views."""


def _print_summary(summary) -> None:
    click.echo(f"Revenue:      {_money(summary.revenue_cents):>14}")
    click.echo(f"Item cost:    {_money(summary.item_cost_cents):>14}")
    click.echo(f"Gross margin: {_money(summary.gross_margin_cents):>14}")
    click.echo(f"Lines:        {summary.line_count:>14}")
    for title, counts in (
        ("Customer", summary.by_customer_type),
        ("Payment", summary.by_payment_method),
        ("Order", summary.by_order_type),
    ):
        if counts:
            parts = ", ".join(f"{k}: {v}" for k, v in sorted(counts.items()))
            click.echo(f"{title + ':':<14}{parts}")


@earnings_group.command('today')
@with_appcontext
def today_cmd():
    tz = current_app.config["BUSINESS_TIMEZONE"]
    try:
        summary = compute_today(get_record_store(), utcnow(), tz)
    except FetchError as e:
        raise click.ClickException(str(e))
    _print_summary(summary)


@earnings_group.command('break-even')
@click.option('--month', help='YYYY-MM (default: current month)')
@with_appcontext
def break_even_cmd(month):
    tz = current_app.config["BUSINESS_TIMEZONE"]
    now = utcnow()
    if month:
        try:
            year, month_num = parse_month(month)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--month")
    else:
        today = business_date(now, tz)
        year, month_num = today.year, today.month

    target = settings_service.get_opex_target_cents()
    try:
        status = compute_break_even(get_record_store(), target, year, month_num, as_of=now, tz_name=tz)
    except FetchError as e:
        raise click.ClickException(str(e))

    click.echo(f"Month:          {year:04d}-{month_num:02d}")
    click.echo(f"OPEX target:    {_money(status.opex_target_cents):>14}")
    click.echo(f"Gross margin:   {_money(status.gross_margin_cents):>14}")
    click.echo(f"Remaining OPEX: {_money(status.remaining_opex_cents):>14}")
    click.echo(f"Net profit:     {_money(status.net_profit_cents):>14}")
    if status.break_even_at:
        local = to_business_time(status.break_even_at, tz)
        click.echo(f"Break-even at:  {local:%Y-%m-%d %H:%M} ({tz})")
    else:
        click.echo("Break-even at:  not reached")


@earnings_group.command('watch')
@click.option('--interval', type=int, default=None, help='Seconds between refreshes')
@click.option('--count', type=int, default=None, help='Stop after this many refreshes')
@with_appcontext
def watch_cmd(interval, count):
    """Print today's earnings, refreshing until interrupted."""
    tz = current_app.config["BUSINESS_TIMEZONE"]
    interval = interval or current_app.config["LIVE_REFRESH_SECONDS"]

    def _fetch():
        return compute_today(get_record_store(), utcnow(), tz)

    def _on_update(summary):
        click.echo(f"\n--- {to_business_time(utcnow(), tz):%H:%M:%S} ---")
        _print_summary(summary)
        # Output reached the terminal: the viewer is still there
        poller.heartbeat()

    def _on_error(exc):
        click.echo(f"WARN refresh failed, retrying in {interval}s: {exc}", err=True)
        poller.heartbeat()

    poller = LiveEarningsPoller(
        _fetch,
        interval=interval,
        idle_timeout=interval * 3,
        on_update=_on_update,
        on_error=_on_error,
    )
    try:
        poller.run(max_polls=count)
    except KeyboardInterrupt:
        poller.stop()


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(opex_group)
    app.cli.add_command(earnings_group)
