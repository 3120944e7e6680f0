# Overview: Flask CLI commands for bootstrap and inspection.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="stockroom:create_app").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask stock init-db
#   Create all tables (development; use `flask db upgrade` for managed schemas).
# - python -m flask stock seed
#   Idempotent sample data: categories, suppliers and items with opening stock.
# - python -m flask stock movements [--item-id 3] [--limit 50]
#   Print the stock movement log, oldest first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Supplier, Item
from .services.item_ledger_service import create_item
from .services.stock_movement_service import list_stock_movements
from .time_utils import to_utc_z


SEED_CATEGORIES = [
    ("Electronics", "Electronic devices and components"),
    ("Office Supplies", "Office and stationery items"),
    ("Furniture", "Office furniture and fixtures"),
]

SEED_SUPPLIERS = [
    ("Tech Distributors Inc.", "John Smith", "john@techdist.com", "+1-555-0100", "123 Tech Street, Silicon Valley, CA"),
    ("Office Plus Supplies", "Jane Doe", "jane@officeplus.com", "+1-555-0200", "456 Office Ave, New York, NY"),
]

# (category, name, description, unit, min_stock, opening_stock, location)
SEED_ITEMS = [
    ("Electronics", "Laptop Dell XPS 15", "High-performance laptop", "unit", 5, 15, "Warehouse A, Shelf 1"),
    ("Electronics", "Wireless Mouse", "Ergonomic wireless mouse", "unit", 20, 50, "Warehouse A, Shelf 2"),
    ("Office Supplies", "A4 Paper (Ream)", "500 sheets of A4 paper", "ream", 100, 250, "Warehouse B, Shelf 1"),
    ("Office Supplies", "Ballpoint Pens (Box)", "Box of 50 ballpoint pens", "box", 30, 8, "Warehouse B, Shelf 2"),
    ("Furniture", "Office Chair", "Ergonomic office chair", "unit", 10, 25, "Warehouse C, Section 1"),
]


@click.group('stock')
def stock_group():
    """Warehouse stock bootstrap and inspection commands."""


@stock_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created")


@stock_group.command('seed')
@with_appcontext
def seed():
    """Insert sample categories, suppliers and items (skips existing rows)."""
    categories = {}
    for name, description in SEED_CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if category is None:
            category = Category(name=name, description=description)
            db.session.add(category)
            db.session.flush()
            click.echo(f"PASS Created category: {name}")
        categories[name] = category

    for name, contact, email, phone, address in SEED_SUPPLIERS:
        if db.session.query(Supplier).filter_by(name=name).first() is None:
            db.session.add(Supplier(name=name, contact_person=contact, email=email, phone=phone, address=address))
            click.echo(f"PASS Created supplier: {name}")

    for category_name, name, description, unit, min_stock, opening, location in SEED_ITEMS:
        if db.session.query(Item).filter_by(name=name).first() is not None:
            click.echo(f"WARN  Item '{name}' already exists, skipping...")
            continue
        item = create_item(
            name=name,
            description=description,
            category_id=categories[category_name].id,
            unit=unit,
            min_stock=min_stock,
            initial_stock=opening,
            location=location,
        )
        click.echo(f"PASS Created item: {item.sku} {name} (stock {opening})")

    db.session.commit()
    click.echo("DONE Seeding completed")


@stock_group.command('movements')
@click.option('--item-id', type=int, default=None, help='Only this item')
@click.option('--limit', type=int, default=100, show_default=True)
@with_appcontext
def movements(item_id, limit):
    """Print the stock movement log, oldest first."""
    rows = list_stock_movements(item_id, limit=limit)
    if not rows:
        click.echo("No stock movements")
        return
    for m in rows:
        sign = "+" if m.direction == "in" else "-"
        click.echo(
            f"{to_utc_z(m.created_at)}  item={m.item_id:<5} {sign}{m.quantity:<6} "
            f"{m.previous_stock:>6} -> {m.new_stock:<6} {m.reference}  by={m.performed_by_user_id}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(stock_group)
