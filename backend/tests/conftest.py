"""
Pytest fixtures for ChemFlo backend tests.

Provides test database setup, catalog fixtures, and test client.
"""

import pytest
from chemflo import create_app
from chemflo.extensions import db
from chemflo.models import Category, Product
from chemflo.services import category_service
from chemflo.services import products_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def create_chemical(
    name: str,
    cas_number: str,
    *,
    unit: str = "LITRE",
    category: Category | None = None,
    threshold: int = 10,
    initial_stock: float = 0.0,
) -> Product:
    """Create a product through the catalog service (ledger row included)."""
    created = products_service.create_product(
        patch={
            "name": name,
            "cas_number": cas_number,
            "unit": unit,
            "category_id": category.id if category else None,
            "low_stock_threshold": threshold,
        },
        initial_stock=initial_stock,
    )
    return db.session.get(Product, created["id"])


@pytest.fixture(scope='function')
def acids(db_session):
    """Acids category."""
    created = category_service.create_category(
        patch={"name": "Acids", "description": "Corrosive substances", "color": "#ef4444"}
    )
    return db_session.get(Category, created["id"])


@pytest.fixture(scope='function')
def oxidizers(db_session):
    """Oxidizers category."""
    created = category_service.create_category(patch={"name": "Oxidizers", "color": "#f97316"})
    return db_session.get(Category, created["id"])


@pytest.fixture(scope='function')
def sulfuric_acid(db_session, acids):
    """500 LITRE on hand, threshold 50 (comfortably in stock)."""
    return create_chemical(
        "Sulfuric Acid", "7664-93-9",
        category=acids, threshold=50, initial_stock=500,
    )


@pytest.fixture(scope='function')
def hydrogen_peroxide(db_session, oxidizers):
    """25 LITRE on hand, threshold 50 (critically low)."""
    return create_chemical(
        "Hydrogen Peroxide", "7722-84-1",
        category=oxidizers, threshold=50, initial_stock=25,
    )
