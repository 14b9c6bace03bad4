# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/chemflo/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent demo catalog: 8 categories and 12 chemicals with opening stock.
#
# Ledger maintenance:
# - python -m flask inventory verify [--product-id 3]
#   Replay movements and report products whose stored stock disagrees.

import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Product
from .services import category_service
from .services import products_service
from .services.inventory_service import StockLedger, format_quantity


SEED_CATEGORIES = [
    ("Acids", "Corrosive substances with pH less than 7", "#ef4444"),
    ("Bases", "Alkaline substances with pH greater than 7", "#3b82f6"),
    ("Solvents", "Liquids used to dissolve other substances", "#8b5cf6"),
    ("Salts", "Ionic compounds formed from acid-base reactions", "#22c55e"),
    ("Oxidizers", "Substances that can cause or contribute to combustion", "#f97316"),
    ("Polymers", "Large molecules composed of repeating structural units", "#ec4899"),
    ("Catalysts", "Substances that increase the rate of chemical reactions", "#14b8a6"),
    ("Petrochemicals", "Chemical products derived from petroleum", "#eab308"),
]

# (name, cas_number, unit, description, category, low_stock_threshold, initial_stock)
SEED_PRODUCTS = [
    ("Sulfuric Acid", "7664-93-9", "LITRE", "Strong mineral acid used in various industrial processes", "Acids", 50, 500),
    ("Hydrochloric Acid", "7647-01-0", "LITRE", "Strong acid used in pH control and regeneration of ion exchangers", "Acids", 30, 300),
    ("Sodium Hydroxide", "1310-73-2", "KG", "Strong base used in manufacturing of paper, textiles, and detergents", "Bases", 100, 1000),
    ("Potassium Hydroxide", "1310-58-3", "KG", "Strong base used in fertilizers and as an electrolyte", "Bases", 50, 200),
    ("Acetone", "67-64-1", "LITRE", "Common solvent used in cleaning and as a chemical intermediate", "Solvents", 100, 800),
    ("Ethanol", "64-17-5", "LITRE", "Versatile solvent and fuel additive", "Solvents", 200, 1500),
    ("Methanol", "67-56-1", "LITRE", "Industrial solvent and antifreeze component", "Solvents", 100, 600),
    ("Sodium Chloride", "7647-14-5", "KG", "Common salt used in food processing and chemical manufacturing", "Salts", 500, 5000),
    ("Hydrogen Peroxide", "7722-84-1", "LITRE", "Oxidizer used in bleaching and disinfection", "Oxidizers", 50, 25),
    ("Polyethylene", "9002-88-4", "KG", "Most common plastic polymer", "Polymers", 200, 2000),
    ("Toluene", "108-88-3", "LITRE", "Aromatic hydrocarbon used as industrial solvent", "Petrochemicals", 100, 400),
    ("Benzene", "71-43-2", "LITRE", "Basic petrochemical used in manufacturing plastics and resins", "Petrochemicals", 50, 150),
]


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' for demo data.")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Load the demo chemical catalog.

    Existing categories (by name) and products (by CAS number) are skipped, so
    the command can be re-run safely.
    """
    click.echo("START Seeding chemical catalog...")

    category_ids = {}
    for name, description, color in SEED_CATEGORIES:
        existing = db.session.query(Category).filter_by(name=name).first()
        if existing:
            category_ids[name] = existing.id
            click.echo(f"SKIP Category exists: {name}")
            continue
        created = category_service.create_category(
            patch={"name": name, "description": description, "color": color}
        )
        category_ids[name] = created["id"]
        click.echo(f"PASS Created category: {name}")

    for name, cas, unit, description, category, threshold, initial_stock in SEED_PRODUCTS:
        if products_service.cas_number_exists(cas):
            click.echo(f"SKIP Product exists: {name} ({cas})")
            continue
        products_service.create_product(
            patch={
                "name": name,
                "cas_number": cas,
                "unit": unit,
                "description": description,
                "category_id": category_ids.get(category),
                "low_stock_threshold": threshold,
            },
            initial_stock=float(initial_stock),
        )
        click.echo(f"PASS Created product: {name} (Stock: {initial_stock} {unit})")

    click.echo("DONE Seed complete.")


@click.group('inventory')
def inventory_group():
    """Stock ledger maintenance commands."""


@inventory_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Only check this product')
@with_appcontext
def verify_ledger(product_id):
    """Replay movement history and compare it with stored stock."""
    if product_id is not None and db.session.get(Product, product_id) is None:
        click.echo(f"FAIL Product {product_id} not found")
        sys.exit(1)

    mismatches = StockLedger(db.session).verify(product_id=product_id)
    if not mismatches:
        click.echo("PASS Ledger consistent with movement history.")
        return

    for m in mismatches:
        click.echo(
            f"FAIL Product {m['productId']}: stored={format_quantity(m['currentStock'])} "
            f"replayed={format_quantity(m['replayedStock'])}"
        )
    click.echo(f"FAIL {len(mismatches)} product(s) out of balance.")
    sys.exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
