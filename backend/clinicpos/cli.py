# Overview: Flask CLI command groups for bootstrap, stock inspection and checkout diagnostics.

# backend/clinicpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to clinicpos (PowerShell: $env:FLASK_APP="clinicpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--store-name "Danesha Clinic"]
#   Create tables (if missing) and seed categories, therapist levels, operators and settings.
# - python -m flask system set-commission 12.5
#   Set the store-wide default commission percent.
#
# Stock:
# - python -m flask stock show [--product-id 1]
#   Print ledger-derived stock levels.
# - python -m flask stock adjust --product-id 1 --type IN --quantity 10 --note "Initial stock"
#   Append a manual IN / OUT / ADJUST movement.
#
# Checkout diagnostics:
# - python -m flask checkout failures --limit 20
#   List recent rejected checkouts recorded by the diagnostics sink.

import click
from flask.cli import with_appcontext

from .errors import CheckoutError
from .extensions import db
from .models import Product
from .services import bootstrap_service, diagnostics_service, settings_service, stock_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--store-name', default=None, help='Store name for the settings row')
@with_appcontext
def init_system(store_name):
    """Create tables and seed reference data. Idempotent."""
    click.echo("START Initializing checkout core...")
    db.create_all()
    created = bootstrap_service.seed_defaults(store_name)
    click.echo(f"PASS Categories created: {created['categories']}")
    click.echo(f"PASS Therapist levels created: {created['therapist_levels']}")
    click.echo(f"PASS Operators created: {created['users']}")
    click.echo(f"PASS Default commission: {settings_service.get_default_commission_percent()}%")


@system_group.command('set-commission')
@click.argument('percent')
@with_appcontext
def set_commission(percent):
    """Set the store-wide default commission percent."""
    try:
        settings = settings_service.set_default_commission_percent(percent)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Default commission set to {settings.commission_default_percent}%")


@click.group('stock')
def stock_group():
    """Stock ledger commands."""


@stock_group.command('show')
@click.option('--product-id', type=int, default=None)
@with_appcontext
def show_stock(product_id):
    """Print ledger-derived stock levels."""
    if product_id is not None:
        product = db.session.get(Product, product_id)
        if not product:
            raise click.ClickException(f"Product {product_id} not found")
        click.echo(f"{product.id:>5}  {product.name:<40} {stock_service.current_stock(product.id):>6}")
        return

    stocks = stock_service.all_stocks()
    for product in db.session.query(Product).order_by(Product.name).all():
        click.echo(f"{product.id:>5}  {product.name:<40} {stocks.get(product.id, 0):>6}")


@stock_group.command('adjust')
@click.option('--product-id', type=int, required=True)
@click.option('--type', 'kind', type=click.Choice(['IN', 'OUT', 'ADJUST'], case_sensitive=False), required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--note', required=True)
@click.option('--user-id', type=int, default=None)
@with_appcontext
def adjust_stock(product_id, kind, quantity, note, user_id):
    """Append a manual stock movement."""
    try:
        movement = stock_service.adjust_stock(
            product_id=product_id,
            kind=kind,
            quantity=quantity,
            note=note,
            user_id=user_id,
        )
    except CheckoutError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS {movement.type} {movement.quantity} recorded; "
        f"stock now {stock_service.current_stock(product_id)}"
    )


@click.group('checkout')
def checkout_group():
    """Checkout diagnostics commands."""


@checkout_group.command('failures')
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_failures(limit):
    """List recent rejected checkouts."""
    rows = diagnostics_service.list_checkout_failures(limit)
    if not rows:
        click.echo("No checkout failures recorded.")
        return
    for row in rows:
        click.echo(f"{row.id:>5}  {row.created_at}  {row.code or '-':<24} {row.checkout_session_id or '-':<36} {row.reason}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(checkout_group)
