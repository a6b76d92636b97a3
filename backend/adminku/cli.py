# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--sample-categories]
#   Idempotent bootstrap: creates tables, config defaults and base units (pcs, gr).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Units:
# - python -m flask units list
# - python -m flask units add kg --base gr --factor 1000
# - python -m flask units convert 2500 gr kg [--exact]
#
# Categories:
# - python -m flask categories tree [--root-id 1]
# - python -m flask categories add "Sepatu" --parent-id 1
# - python -m flask categories move 7 --parent-id 3   (omit --parent-id to make it a root)
#
# Stock:
# - python -m flask stock show 12
# - python -m flask stock history 12 --limit 20
# - python -m flask stock prune --days 365 --yes
#   Delete ledger rows older than the window. Cached product stock is NOT re-synced.

from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services.bootstrap_service import seed_defaults
from .services.concurrency import run_with_retry
from .time_utils import to_utc_z, utcnow


def _services():
    return current_app.extensions["adminku"]


def _fail(exc: Exception):
    raise click.ClickException(str(exc))


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--sample-categories', is_flag=True, help='Also seed the sample category tree')
@with_appcontext
def init_system(sample_categories):
    """
    Initialize the inventory database.

    Creates:
    - All tables (if missing)
    - Config row max_category_depth=5
    - Base units: pcs, gr
    - Optionally the sample categories (Fashion, Electronics, Grocery, ...)
    """
    click.echo("START Initializing inventory...")
    db.create_all()

    created = run_with_retry(lambda: seed_defaults(_services(), sample_categories=sample_categories))
    click.echo(
        f"PASS settings={created['settings']} units={created['units']} categories={created['categories']}"
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


@click.group('units')
def units_group():
    """Unit of measure commands."""


@units_group.command('list')
@with_appcontext
def list_units():
    units = _services().units.list_units()
    if not units:
        click.echo("No units. Run 'python -m flask system init'.")
        return
    for u in units:
        click.echo(f"{u.id:>4}  {u.display_text}")


@units_group.command('add')
@click.argument('name')
@click.option('--base', 'base_unit', default=None, help='Existing base unit name (omit for a new base unit)')
@click.option('--factor', type=int, default=1, show_default=True, help='How many base units one of this unit holds')
@with_appcontext
def add_unit(name, base_unit, factor):
    try:
        unit = run_with_retry(lambda: _services().units.create(name, base_unit, factor))
    except ValueError as exc:
        _fail(exc)
    click.echo(f"PASS Created unit {unit.display_text} (ID: {unit.id})")


@units_group.command('convert')
@click.argument('quantity', type=int)
@click.argument('from_unit')
@click.argument('to_unit')
@click.option('--exact', is_flag=True, help='Fail instead of reporting a remainder')
@with_appcontext
def convert_units(quantity, from_unit, to_unit, exact):
    try:
        result = _services().units.convert(quantity, from_unit, to_unit, exact=exact)
    except ValueError as exc:
        _fail(exc)
    line = f"{quantity} {from_unit} = {result.quantity} {to_unit}"
    if not result.exact:
        line += f" (remainder {result.remainder} {result.base_unit})"
    click.echo(line)


@click.group('categories')
def categories_group():
    """Category tree commands."""


@categories_group.command('tree')
@click.option('--root-id', type=int, default=None, help='Print only this subtree')
@with_appcontext
def print_tree(root_id):
    categories = _services().categories
    try:
        if root_id is None:
            tops = categories.roots()
        else:
            tops = [categories.get(root_id)]
    except ValueError as exc:
        _fail(exc)

    if not tops:
        click.echo("No categories.")
        return
    for top in tops:
        click.echo(f"{top.name} (ID: {top.id})")
        for node in categories.subtree(top.id):
            indent = "  " * (node.level - top.level)
            click.echo(f"{indent}{node.name} (ID: {node.id})")


@categories_group.command('add')
@click.argument('name')
@click.option('--parent-id', type=int, default=None, help='Parent category ID (omit for a root)')
@click.option('--description', default=None)
@with_appcontext
def add_category(name, parent_id, description):
    try:
        category = run_with_retry(
            lambda: _services().categories.create_category(parent_id, name, description)
        )
    except ValueError as exc:
        _fail(exc)
    click.echo(f"PASS Created category {category.name} (ID: {category.id}, level {category.level})")


@categories_group.command('move')
@click.argument('category_id', type=int)
@click.option('--parent-id', type=int, default=None, help='New parent ID (omit to make it a root)')
@with_appcontext
def move_category(category_id, parent_id):
    categories = _services().categories
    try:
        category = run_with_retry(lambda: categories.move_category(category_id, parent_id))
    except ValueError as exc:
        _fail(exc)
    click.echo(f"PASS {categories.breadcrumb(category.id)} (level {category.level})")


@click.group('stock')
def stock_group():
    """Stock ledger inspection and maintenance."""


@stock_group.command('show')
@click.argument('product_id', type=int)
@with_appcontext
def show_stock(product_id):
    services = _services()
    try:
        product = services.catalog.get(product_id)
        level = services.ledger.current_stock(product_id)
        summary = services.ledger.summary_by_unit(product_id)
    except ValueError as exc:
        _fail(exc)

    click.echo(f"{product.name} [{product.barcode}]")
    click.echo(f"  stock: {level.quantity} {level.unit_name} (cached {product.stock})")
    if level.remainder_in_base:
        click.echo(f"  remainder: {level.remainder_in_base} base units")
    for row in summary:
        click.echo(f"  {row.unit_name:>8}: {row.quantity:+d}")


@stock_group.command('history')
@click.argument('product_id', type=int)
@click.option('--limit', type=int, default=50, show_default=True)
@click.option('--offset', type=int, default=0, show_default=True)
@with_appcontext
def stock_history(product_id, limit, offset):
    try:
        rows = _services().ledger.history(product_id, limit=limit, offset=offset)
    except ValueError as exc:
        _fail(exc)
    if not rows:
        click.echo("No transactions.")
        return
    for tx in rows:
        note = f"  {tx.note}" if tx.note else ""
        click.echo(f"{tx.id:>6}  {to_utc_z(tx.occurred_at)}  {tx.type:<6} {tx.quantity:>8} {tx.unit.name}{note}")


@stock_group.command('prune')
@click.option('--days', type=int, required=True, help='Delete rows older than this many days')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def prune_stock(days, yes):
    """
    Delete ledger rows older than the retention window.

    Pruning past a product's latest ADJUST changes its derived stock, and the
    cached Product.stock is not re-synced.
    """
    if days < 0:
        _fail(ValueError("days must be >= 0"))
    if not yes:
        click.confirm(f"WARN Delete stock transactions older than {days} days?", abort=True)

    cutoff = utcnow() - timedelta(days=days)
    deleted = run_with_retry(lambda: _services().ledger.prune(cutoff))
    click.echo(f"PASS Deleted {deleted} stock transactions older than {to_utc_z(cutoff)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(units_group)
    app.cli.add_command(categories_group)
    app.cli.add_command(stock_group)
