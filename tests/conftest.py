"""
Shared pytest fixtures for the Seisan test suite.

All tests run against an in-memory SQLite database (TestingConfig). One app
context is pushed for the whole session so SQLAlchemy objects stay attached;
clean_db wipes every table after each test. Outbound HTTP is patched per test.
"""
from datetime import date
from decimal import Decimal

import pytest

from seisan import create_app
from seisan import db as _db


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    application = create_app("testing")
    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


@pytest.fixture(autouse=True)
def storage_root(app, tmp_path, monkeypatch):
    monkeypatch.setitem(app.config, "STORAGE_ROOT", str(tmp_path / "storage"))
    return tmp_path / "storage"


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    """Any HTTP call a test did not patch fails like an unreachable host."""
    import requests

    def refuse(*args, **kwargs):
        raise requests.ConnectionError("network disabled in tests")

    monkeypatch.setattr(requests.Session, "request", refuse)


@pytest.fixture
def client(app):
    # Flask-Login caches the user on ``g``, which lives on the shared app context.
    from flask import g
    g.pop("_login_user", None)
    yield app.test_client()
    g.pop("_login_user", None)


# ---------------------------------------------------------------------------
# Common model helpers
# ---------------------------------------------------------------------------

FREEE_SETTINGS = {
    "accounting": {
        "default_service": "freee",
        "services": {"freee": {"access_token": "token-123", "company_id": 4242}},
    }
}


@pytest.fixture
def organization(app):
    from seisan.models import Organization
    org = Organization(name="賢者商事", settings=FREEE_SETTINGS)
    _db.session.add(org)
    _db.session.commit()
    return org


def _make_user(organization, email, name, role, department=None):
    from seisan.models import User, UserRole
    user = User(
        email=email,
        full_name=name,
        department=department,
        role=UserRole(role),
        organization_id=organization.id,
    )
    user.set_password("TestPass1!")
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture
def employee(organization):
    return _make_user(organization, "hanako@seisan.co.jp", "山田 花子", "employee", "営業部")


@pytest.fixture
def manager(organization):
    return _make_user(organization, "taro@seisan.co.jp", "鈴木 太郎", "manager", "営業部")


@pytest.fixture
def admin(organization):
    return _make_user(organization, "admin@seisan.co.jp", "管理者", "admin")


@pytest.fixture
def outsider(app):
    from seisan.models import Organization
    other = Organization(name="別会社", settings={})
    _db.session.add(other)
    _db.session.commit()
    return _make_user(other, "other@seisan.co.jp", "外部 者", "manager")


@pytest.fixture
def employee_actor(employee):
    from seisan.services.context import Actor
    return Actor.from_user(employee)


@pytest.fixture
def manager_actor(manager):
    from seisan.services.context import Actor
    return Actor.from_user(manager)


@pytest.fixture
def admin_actor(admin):
    from seisan.services.context import Actor
    return Actor.from_user(admin)


@pytest.fixture
def expense_application(employee_actor):
    """Draft expense application with items 3000 + 4500."""
    from seisan.services import application_service
    return application_service.create_application(
        employee_actor,
        "expense",
        "大阪出張 経費",
        {
            "expense_items": [
                {"date": "2026-10-01", "amount": 3000, "description": "タクシー"},
                {"date": "2026-10-02", "amount": 4500, "description": "会食"},
            ]
        },
    )


@pytest.fixture
def pending_application(employee_actor, expense_application):
    from seisan.services import application_service
    return application_service.submit_application(employee_actor, expense_application.id)


@pytest.fixture
def trip_payload():
    return {
        "destination": "大阪",
        "start_date": date(2026, 10, 5).isoformat(),
        "end_date": date(2026, 10, 7).isoformat(),
        "purpose": "顧客訪問",
        "estimated_daily_allowance": Decimal("15000"),
        "estimated_transportation": Decimal("22500"),
        "estimated_accommodation": Decimal("15000"),
    }


@pytest.fixture
def login_as(client):
    def _login(user, password="TestPass1!"):
        response = client.post("/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.get_json()
        return client
    return _login
