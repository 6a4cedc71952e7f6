# Overview: Flask CLI command group for desk bootstrap, inspection, and maintenance.

# backend/otc_desk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask desk <command> [options]
#
# - python -m flask desk init
#   Create tables (when not using migrations) and seed the inventory/settings rows.
# - python -m flask desk set-price 3.85
#   Set the quoted sell price (ILS per USDT).
# - python -m flask desk add-batch 1000 3.72 --note "Binance P2P"
#   Record a purchased USDT batch.
# - python -m flask desk summary
#   Print inventory, order counts and all-time profit.
# - python -m flask desk reconcile
#   Compare ledger sums with the running inventory balance.
# - python -m flask desk reset --confirm DELETE_ALL_DATA_FOREVER
#   DEV/TEST only: delete all orders and inventory data (settings are kept).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import inventory_service, maintenance_service, reporting_service, settings_service


def _fail(result) -> None:
    """Print a failed OperationResult and exit non-zero."""
    click.echo(f"FAIL {result.error.code}: {result.error}", err=True)
    raise SystemExit(1)


@click.group('desk')
def desk_group():
    """OTC desk bootstrap, inspection, and maintenance commands."""


@desk_group.command('init')
@with_appcontext
def init_desk():
    """Create tables and seed the singleton rows. Safe to re-run."""
    click.echo("START Initializing OTC desk...")
    db.create_all()
    created = maintenance_service.initialize_store()
    for name, was_created in created.items():
        click.echo(f"PASS {name}: {'created' if was_created else 'exists'}")
    click.echo("PASS Desk initialized.")


@desk_group.command('set-price')
@click.argument('price')
@with_appcontext
def set_price(price):
    """Set the quoted sell price (ILS per USDT)."""
    result = settings_service.set_sell_price(price)
    if not result.ok:
        _fail(result)
    click.echo(f"PASS Sell price set to {result.value.sell_price_ils_per_usdt} ILS/USDT")


@desk_group.command('add-batch')
@click.argument('amount')
@click.argument('price')
@click.option('--note', default=None, help='Free-text note (supplier, reference)')
@with_appcontext
def add_batch(amount, price, note):
    """Record a purchased batch of AMOUNT USDT at PRICE ILS per USDT."""
    result = inventory_service.add_batch(amount, price, note=note)
    if not result.ok:
        _fail(result)
    state = inventory_service.get_inventory_state()
    click.echo(
        f"PASS Batch recorded: +{result.value.amount_usdt} USDT @ {result.value.unit_price_ils_per_usdt}"
    )
    click.echo(f"     Balance {state.usdt_balance} USDT, avg cost {state.avg_cost_ils_per_usdt} ILS/USDT")


@desk_group.command('summary')
@with_appcontext
def summary():
    """Print inventory, order counts and all-time profit."""
    data = reporting_service.dashboard_summary()
    inventory = data["inventory"]
    profit = data["profit"]

    click.echo("Inventory:")
    click.echo(f"  balance:   {inventory['usdt_balance']} USDT")
    click.echo(f"  cost:      {inventory['total_cost_ils']} ILS")
    click.echo(f"  avg cost:  {inventory['avg_cost_ils_per_usdt']} ILS/USDT")
    click.echo("Orders:")
    for status, count in data["order_counts"].items():
        click.echo(f"  {status:<10} {count}")
    click.echo("Profit (completed orders):")
    click.echo(f"  sold:      {profit['total_sold_usdt']} USDT")
    click.echo(f"  profit:    {profit['total_profit_ils']} ILS / {profit['total_profit_usd']} USD")
    click.echo(f"  avg sell:  {profit['avg_sell_price'] or '-'} ILS/USDT")


@desk_group.command('reconcile')
@with_appcontext
def reconcile():
    """Compare ledger sums with InventoryState; exits 1 on mismatch."""
    data = inventory_service.reconcile()
    click.echo(f"USDT: ledger={data['ledger_usdt']} state={data['state_usdt']}")
    click.echo(f"ILS:  ledger={data['ledger_cost_ils']} state={data['state_cost_ils']}")
    if not data["balanced"]:
        click.echo("FAIL Ledger and inventory state disagree", err=True)
        raise SystemExit(1)
    click.echo("PASS Ledger balanced")


@desk_group.command('reset')
@click.option('--confirm', required=True, help=f'Must be {maintenance_service.RESET_CONFIRM_TEXT}')
@with_appcontext
def reset(confirm):
    """
    DANGER: Delete all orders, ledger entries and inventory state.

    Settings are kept.
    """
    result = maintenance_service.reset_all_data(confirm)
    if not result.ok:
        _fail(result)
    counts = result.value
    click.echo(
        f"PASS Reset complete: orders={counts['orders']} "
        f"ledger={counts['inventory_ledger']} state={counts['inventory_state']}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(desk_group)
