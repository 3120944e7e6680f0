"""
Alembic revisions applied through Flask-Migrate against a file database.
"""

from pathlib import Path

from flask_migrate import check, downgrade, upgrade
from sqlalchemy import inspect

from stockroom import create_app
from stockroom.extensions import db


MIGRATIONS_DIR = str(Path(__file__).resolve().parents[1] / "migrations")

EXPECTED_TABLES = {
    "categories",
    "suppliers",
    "items",
    "incoming_goods",
    "incoming_goods_lines",
    "outgoing_goods",
    "outgoing_goods_lines",
    "item_requests",
    "item_request_lines",
    "purchase_orders",
    "purchase_order_lines",
    "stock_movements",
}


def _migrated_app(tmp_path):
    return create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'migrated.sqlite3'}",
        "LOG_LEVEL": "WARNING",
    })


def test_upgrade_builds_schema_matching_models(tmp_path):
    migrated = _migrated_app(tmp_path)

    with migrated.app_context():
        upgrade(directory=MIGRATIONS_DIR)
        tables = set(inspect(db.engine).get_table_names())

        # Exits non-zero if the models and the head revision differ
        check(directory=MIGRATIONS_DIR)

    assert EXPECTED_TABLES <= tables
    assert "alembic_version" in tables


def test_downgrade_to_base_drops_schema(tmp_path):
    migrated = _migrated_app(tmp_path)

    with migrated.app_context():
        upgrade(directory=MIGRATIONS_DIR)
        downgrade(directory=MIGRATIONS_DIR, revision="base")
        tables = set(inspect(db.engine).get_table_names())

    assert not EXPECTED_TABLES & tables
