# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/imeipos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-catalog
#   Insert a small demo catalog (products + variants) if the catalog is empty.
#
# Inventory inspection:
# - python -m flask inventory reconcile [--imei 123456789012345 ...]
#   Compare each unit's ledger sum with its status; exit code 1 on discrepancies.
# - python -m flask inventory history 123456789012345
#   Print the stock movement history of one IMEI.
# - python -m flask inventory check-imeis 123456789012345 123456789012346
#   Intake preflight classification for a list of IMEIs.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, ProductVariant
from .services import imei_service, inventory_service, stock_ledger_service
from .time_utils import to_utc_z


DEMO_CATALOG = [
    ("iPhone 15 Pro", "Apple", [
        ("IP15P-128-BLK", "Black Titanium", "128GB", 28_990_000),
        ("IP15P-256-NAT", "Natural Titanium", "256GB", 31_990_000),
    ]),
    ("Galaxy S24 Ultra", "Samsung", [
        ("S24U-256-GRY", "Titanium Gray", "256GB", 33_990_000),
    ]),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-catalog' for demo data.")


@system_group.command('seed-catalog')
@with_appcontext
def seed_catalog():
    """Insert a demo catalog when no products exist."""
    if db.session.query(Product).count():
        click.echo("SKIP Catalog already has products.")
        return

    for name, brand, variants in DEMO_CATALOG:
        product = Product(name=name, brand=brand, is_active=True)
        db.session.add(product)
        db.session.flush()
        for sku, color, storage, price in variants:
            db.session.add(ProductVariant(
                product_id=product.id,
                sku=sku,
                color_name=color,
                storage_capacity=storage,
                retail_price=price,
                is_active=True,
            ))
        click.echo(f"PASS {name}: {len(variants)} variant(s)")
    db.session.commit()


@click.group('inventory')
def inventory_group():
    """Inventory ledger inspection commands."""


@inventory_group.command('reconcile')
@click.option('--imei', 'imeis', multiple=True, help='Limit to these IMEIs')
@with_appcontext
def reconcile(imeis):
    """Check that every IMEI's ledger sum matches its status."""
    discrepancies = stock_ledger_service.reconcile(list(imeis) if imeis else None)
    if not discrepancies:
        click.echo("PASS Ledger reconciles with unit store.")
        return

    click.echo(f"FAIL {len(discrepancies)} discrepancy(ies):")
    for d in discrepancies:
        click.echo(f"  {d.imei}  status={d.status}  ledger={d.ledger_sum}  expected={d.expected}")
    raise SystemExit(1)


@inventory_group.command('history')
@click.argument('imei')
@with_appcontext
def history(imei):
    """Print the movement history for one IMEI."""
    imei = imei_service.normalize_imei(imei)
    unit = inventory_service.find_unit_by_imei(imei)
    if unit is None:
        click.echo(f"FAIL No unit with IMEI {imei}")
        raise SystemExit(1)

    click.echo(f"{unit.imei}  {unit.product_name} {unit.variant_sku}  status={unit.status}  location={unit.current_location}")
    running = 0
    for m in stock_ledger_service.get_imei_history(imei):
        running += m.quantity_change
        click.echo(
            f"  {to_utc_z(m.occurred_at)}  {m.movement_type:<12} {m.quantity_change:+d} "
            f"(={running})  {m.previous_status or '-'} -> {m.new_status}  actor={m.actor_id or '-'}"
        )


@inventory_group.command('check-imeis')
@click.argument('imeis', nargs=-1, required=True)
@with_appcontext
def check_imeis(imeis):
    """Intake preflight for a list of IMEIs."""
    for result in imei_service.preflight_imeis(imeis):
        suffix = f" ({result.current_status})" if result.current_status else ""
        click.echo(f"{result.imei:<17} {result.classification}{suffix}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
