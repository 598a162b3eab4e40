# Overview: Flask CLI command groups for bootstrap, catalog seeding and stock maintenance.

# backend/kasir/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stores:
# - python -m flask stores create --name "Toko Utama" --code MAIN --tax-rate 11
# - python -m flask stores list
#
# Products:
# - python -m flask products create --store-id 1 --name "Kopi Susu" --price 18000 --cost 9000 --stock 50
# - python -m flask products list --store-id 1
#
# Stock:
# - python -m flask stock in --store-id 1 --product-id 1 --quantity 10 --notes "Delivery"
# - python -m flask stock out --store-id 1 --product-id 1 --quantity 2 --notes "Damaged"
# - python -m flask stock low --store-id 1

from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Store
from .services import products_service, stock_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# STORE COMMANDS
# =============================================================================

@click.group('stores')
def stores_group():
    """Store (tenant) commands."""


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', default=None, help='Short code (unique)')
@click.option('--tax-rate', type=Decimal, default=Decimal("0"), show_default=True, help='Tax rate percent')
@click.option('--timezone', 'tz', default=None, help='IANA timezone (default from config)')
@with_appcontext
def create_store(name, code, tax_rate, tz):
    """Create a store."""
    if tax_rate < 0:
        click.echo("FAIL tax rate cannot be negative")
        raise SystemExit(1)
    if code and db.session.query(Store).filter_by(code=code).first():
        click.echo(f"FAIL Store with code '{code}' already exists")
        raise SystemExit(1)

    store = Store(
        name=name,
        code=code,
        tax_rate=tax_rate,
        timezone=tz or current_app.config["DEFAULT_TIMEZONE"],
        currency=current_app.config["DEFAULT_CURRENCY"],
    )
    db.session.add(store)
    db.session.commit()
    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List stores."""
    stores = db.session.query(Store).order_by(Store.id.asc()).all()
    if not stores:
        click.echo("No stores found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<10} {'Tax %':<8} {'Timezone'}")
    for store in stores:
        click.echo(f"{store.id:<5} {store.name:<30} {store.code or '-':<10} {str(store.tax_rate):<8} {store.timezone}")


# =============================================================================
# PRODUCT COMMANDS
# =============================================================================

@click.group('products')
def products_group():
    """Catalog seeding commands."""


@products_group.command('create')
@click.option('--store-id', type=int, required=True)
@click.option('--name', required=True)
@click.option('--price', type=int, required=True, help='Unit price (whole currency units)')
@click.option('--cost', type=int, default=0, show_default=True)
@click.option('--stock', type=int, default=0, show_default=True)
@click.option('--min-stock', type=int, default=0, show_default=True)
@click.option('--no-track-stock', is_flag=True, help='Do not enforce stock for this product')
@click.option('--sku', default=None)
@with_appcontext
def create_product(store_id, name, price, cost, stock, min_stock, no_track_stock, sku):
    """Create a product."""
    try:
        product = products_service.create_product(
            store_id=store_id,
            name=name,
            price=price,
            cost=cost,
            stock=stock,
            min_stock=min_stock,
            track_stock=not no_track_stock,
            sku=sku,
        )
    except PosError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, stock {product.stock})")


@products_group.command('list')
@click.option('--store-id', type=int, required=True)
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products(store_id, include_inactive):
    """List products of a store."""
    products = products_service.list_products(store_id, include_inactive=include_inactive)
    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Price':>12} {'Stock':>8} {'Min':>6} {'Track'}")
    for p in products:
        click.echo(f"{p.id:<5} {p.name:<30} {p.price:>12} {p.stock:>8} {p.min_stock:>6} {'yes' if p.track_stock else 'no'}")


# =============================================================================
# STOCK COMMANDS
# =============================================================================

@click.group('stock')
def stock_group():
    """Manual stock ledger commands."""


def _stock_options(f):
    f = click.option('--notes', default=None)(f)
    f = click.option('--quantity', type=int, required=True)(f)
    f = click.option('--product-id', type=int, required=True)(f)
    f = click.option('--store-id', type=int, required=True)(f)
    return f


def _run_movement(operation, store_id, product_id, quantity, notes):
    try:
        movement = operation(
            store_id=store_id,
            product_id=product_id,
            quantity=quantity,
            notes=notes,
        )
    except PosError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(
        f"PASS {movement.type.upper()} {movement.quantity}: "
        f"stock {movement.stock_before} -> {movement.stock_after}"
    )


@stock_group.command('in')
@_stock_options
@with_appcontext
def stock_in(store_id, product_id, quantity, notes):
    """Add stock to a product."""
    _run_movement(stock_service.stock_in, store_id, product_id, quantity, notes)


@stock_group.command('out')
@_stock_options
@with_appcontext
def stock_out(store_id, product_id, quantity, notes):
    """Remove stock from a product."""
    _run_movement(stock_service.stock_out, store_id, product_id, quantity, notes)


@stock_group.command('low')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def low_stock(store_id):
    """List tracked products at or below minimum stock."""
    products = stock_service.list_low_stock(store_id)
    if not products:
        click.echo("No low-stock products.")
        return
    for p in products:
        click.echo(f"{p.id:<5} {p.name:<30} stock {p.stock} (min {p.min_stock})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
