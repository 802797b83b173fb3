"""
Pytest fixtures for marketstall backend tests.

Provides the in-memory database, per-test table cleanup, stall users
(owner, cashier, admin) and bearer-token headers for the test client.
"""

from datetime import datetime

import pytest
from sqlalchemy import event

from marketstall import create_app
from marketstall.extensions import db
from marketstall.models import User, SaleRecord
from marketstall.services import session_service


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
        'BCRYPT_ROUNDS': 4,
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
    """Empty every table before each test."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


def make_user(session, name, *, is_admin=False, is_active=True):
    user = User(
        name=name,
        email=f"{name.lower()}@stall.test",
        password_hash="x",
        is_admin=is_admin,
        is_active=is_active,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    """Alice consigns items."""
    return make_user(db_session, "Alice")


@pytest.fixture(scope='function')
def cashier(db_session):
    """Bob rings up sales."""
    return make_user(db_session, "Bob")


@pytest.fixture(scope='function')
def admin(db_session):
    """Admin may run settlements."""
    return make_user(db_session, "Admin", is_admin=True)


@pytest.fixture(scope='function')
def make_sale(db_session):
    """Insert a completed sale row directly, bypassing the lifecycle service."""
    def _make(owner, cashier, price_cents, *, sold_at=None, deleted=False, qr_id=None):
        sale = SaleRecord(
            description="Item",
            price_cents=price_cents,
            owner_user_id=owner.id,
            cashier_user_id=cashier.id if cashier else None,
            qr_id=qr_id,
            sold_at=sold_at or datetime(2024, 6, 10, 12, 0),
            deleted=deleted,
        )
        db_session.add(sale)
        db_session.commit()
        return sale
    return _make


@pytest.fixture(scope='function')
def sql_log(app):
    """Every SQL statement sent to the database while the test runs."""
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db.engine, "before_cursor_execute", _record)
    yield statements
    event.remove(db.engine, "before_cursor_execute", _record)


def auth_headers(user) -> dict:
    """Helper to create Authorization headers for a fresh session of `user`."""
    _, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}
