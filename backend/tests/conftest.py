"""
Pytest fixtures for the inventory core tests.

Provides an in-memory database, the wired services bundle, and a few common
rows (units, a category, a product).
"""

import pytest

from adminku import create_app
from adminku.extensions import db


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


@pytest.fixture(scope='function')
def services(app, db_session):
    """The Services bundle built by create_app()."""
    return app.extensions['adminku']


@pytest.fixture(scope='function')
def gram_units(services):
    """gr (base), kg = 1000 gr, ons = 100 gr."""
    gr = services.units.create("gr")
    kg = services.units.create("kg", "gr", 1000)
    ons = services.units.create("ons", "gr", 100)
    return {"gr": gr, "kg": kg, "ons": ons}


@pytest.fixture(scope='function')
def pcs(services):
    return services.units.create("pcs")


@pytest.fixture(scope='function')
def root_category(services):
    return services.categories.create_category(None, "Grocery")


@pytest.fixture(scope='function')
def rice(services, gram_units, root_category):
    """A product stocked in grams."""
    return services.catalog.create("Beras", root_category.id, gram_units["gr"].id)
