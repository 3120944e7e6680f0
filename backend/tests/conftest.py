"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database, sample catalog rows and a test client.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Category, Supplier, Item
from stockroom.services import transaction_service, approval_service


APPROVER_ID = 7
CREATOR_ID = 3


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test, schema kept."""
    app.config['ALLOW_NEGATIVE_OUTGOING'] = False
    app.config['DELETE_DRAFT_ONLY'] = False

    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Electronics", description="Electronic devices and components")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Tech Distributors Inc.", contact_person="John Smith")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def make_item(db_session, category):
    """Factory for items with a given opening stock."""
    counter = {"n": 0}

    def _make(current_stock=0, min_stock=0, name=None):
        counter["n"] += 1
        item = Item(
            sku=f"ELEC-{counter['n']:03d}",
            name=name or f"Item {counter['n']}",
            category_id=category.id,
            unit="unit",
            min_stock=min_stock,
            current_stock=current_stock,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def item_a(make_item):
    """Item A: stock 15, min stock 5."""
    return make_item(current_stock=15, min_stock=5, name="Laptop Dell XPS 15")


@pytest.fixture(scope='function')
def item_b(make_item):
    """Item B: stock 2."""
    return make_item(current_stock=2, name="Wireless Mouse")


@pytest.fixture(scope='function')
def header_for(supplier):
    """Minimal valid header for each transaction kind."""
    def _header(kind_name: str) -> dict:
        return {
            "incoming_goods": {"supplier_id": supplier.id, "reference_number": "INV-001"},
            "outgoing_goods": {"destination": "Branch Office", "recipient_name": "Budi"},
            "item_request": {"requested_by": "Siti", "department": "Finance"},
            "purchase_order": {"supplier_id": supplier.id, "expected_date": "2026-11-01"},
        }[kind_name]

    return _header


@pytest.fixture(scope='function')
def submitted(header_for):
    """Create and submit a transaction; returns the submitted transaction."""
    def _submitted(kind_name: str, lines: list[dict]):
        tx = transaction_service.create_transaction(
            kind_name, header_for(kind_name), lines, creator_id=CREATOR_ID,
        )
        return transaction_service.submit_transaction(kind_name, tx.id)

    return _submitted


@pytest.fixture(scope='function')
def approve():
    def _approve(kind_name, tx_id, rejected=(), signature=None):
        return approval_service.approve_transaction(
            kind_name, tx_id, list(rejected), signature, approver_id=APPROVER_ID,
        )

    return _approve


def principal_headers(user_id: int = CREATOR_ID, role: str = "warehouse_staff") -> dict:
    """Headers the upstream auth layer forwards for an authenticated caller."""
    return {"X-User-Id": str(user_id), "X-User-Role": role}
