"""
Pytest fixtures for Kora backend tests.

Provides test database setup, two tenants with staff in every role, a
platform boss, and logged-in test clients.
"""

import re
from datetime import timedelta

import pytest

from kora import create_app
from kora.extensions import db
from kora.models import Boss, Company, CompanyUser, Product, ProductPrice, Shop, User
from kora.services.auth_service import hash_password
from kora.services.mail_service import OUTBOX_KEY
from kora.time_utils import utcnow

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_BACKEND': 'memory',
        'BCRYPT_ROUNDS': 4,
        'SESSION_SECRET': 'test-session-secret',
        'BOSS_SESSION_SECRET': 'test-boss-secret',
        'BASE_URL': 'http://kora.test',
        'ALLOW_CANCEL_AFTER_SHIP': False,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
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
        app.extensions[OUTBOX_KEY].clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def outbox(app):
    return app.extensions[OUTBOX_KEY]


def create_company(session, name, slug, *, staff_limit=5, ends_in=timedelta(days=30), suspended=False):
    company = Company(
        name=name,
        slug=slug,
        status="active",
        staff_limit=staff_limit,
        subscription_ends_at=utcnow() + ends_in if ends_in is not None else None,
        subscription_suspended=suspended,
    )
    session.add(company)
    session.commit()
    return company


def create_member(session, company, *, email, role, status="active", full_name=None, verified=True):
    user = session.query(User).filter_by(email=email).first()
    if user is None:
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0].title(),
            password_hash=hash_password(PASSWORD),
            email_verified_at=utcnow() if verified else None,
        )
        session.add(user)
        session.flush()
    membership = CompanyUser(
        company_id=company.id,
        user_id=user.id,
        role=role,
        status=status,
        phone="+9779800000000",
    )
    session.add(membership)
    session.commit()
    return membership


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant), 30 days of subscription left."""
    return create_company(db_session, "Acme Traders", "acme")


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    return create_company(db_session, "Beta Distributors", "beta")


@pytest.fixture(scope='function')
def boss_a(db_session, company_a):
    return create_member(db_session, company_a, email="owner@acme.test", role="boss")


@pytest.fixture(scope='function')
def manager_a(db_session, company_a):
    return create_member(db_session, company_a, email="manager@acme.test", role="manager")


@pytest.fixture(scope='function')
def rep_a(db_session, company_a):
    return create_member(db_session, company_a, email="rep1@acme.test", role="rep", full_name="Ram Rep")


@pytest.fixture(scope='function')
def rep_a2(db_session, company_a):
    return create_member(db_session, company_a, email="rep2@acme.test", role="rep", full_name="Sita Rep")


@pytest.fixture(scope='function')
def back_office_a(db_session, company_a):
    return create_member(db_session, company_a, email="office@acme.test", role="back_office")


@pytest.fixture(scope='function')
def manager_b(db_session, company_b):
    return create_member(db_session, company_b, email="manager@beta.test", role="manager")


@pytest.fixture(scope='function')
def shop_a(db_session, company_a):
    shop = Shop(company_id=company_a.id, name="Hari Kirana", latitude=27.7, longitude=85.3)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session, company_b):
    shop = Shop(company_id=company_b.id, name="Beta Mart", latitude=27.6, longitude=85.4)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def product_a(db_session, company_a):
    """Product in Company A priced at 100.00."""
    product = Product(company_id=company_a.id, sku="TEA-500", name="Tea 500g", unit="pack")
    db_session.add(product)
    db_session.flush()
    db_session.add(ProductPrice(
        company_id=company_a.id,
        product_id=product.id,
        price=100,
        currency_code="NPR",
        starts_at=utcnow() - timedelta(days=1),
    ))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, company_b):
    product = Product(company_id=company_b.id, sku="TEA-500", name="Beta Tea", unit="pack")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def platform_boss(db_session):
    boss = Boss(email="ops@kora.test", full_name="Ops", password_hash=hash_password(PASSWORD))
    db_session.add(boss)
    db_session.commit()
    return boss


@pytest.fixture(scope='function')
def login(app):
    """Return a helper that opens a tenant session in a fresh client."""
    def _login(membership_or_email, password=PASSWORD, company_slug=None):
        if isinstance(membership_or_email, CompanyUser):
            email = membership_or_email.user.email
        else:
            email = membership_or_email
        c = app.test_client()
        body = {"email": email, "password": password}
        if company_slug:
            body["company_slug"] = company_slug
        resp = c.post("/api/auth/login", json=body)
        assert resp.status_code == 200, resp.get_json()
        return c
    return _login


@pytest.fixture(scope='function')
def boss_client(app, platform_boss):
    c = app.test_client()
    resp = c.post("/api/boss/auth/login", json={"email": platform_boss.email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return c


def verification_token(message) -> str:
    """Pull the token out of a verification mail."""
    match = re.search(r"token=([A-Za-z0-9_\-]+)", message.text)
    assert match, message.text
    return match.group(1)
