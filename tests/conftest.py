# tests/conftest.py
"""
Shared fixtures. Every test gets a private in-memory SQLite database and,
for HTTP tests, a TestClient with fresh rate-limit windows.
"""
import os

# Must be set before ezfoia modules are imported (they read env at import time)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MOCK_LLM"] = "false"
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient

from ezfoia import db as dbmod
from ezfoia.app import app
from ezfoia.connectors.supabase import AuthUser
from ezfoia.dependencies import admin_user, current_user

USER = AuthUser(id="user-1", email="jane@example.com", user_metadata={"full_name": "Jane Doe"})
OTHER_USER = AuthUser(id="user-2", email="sam@example.com")
ADMIN = AuthUser(id="admin-1", email="admin@example.com")

VALID_FIELDS = {
    "agencyName": "Federal Bureau of Investigation",
    "agencyType": "federal",
    "recordType": "emails",
    "recordDescription": "All emails about the 2023 downtown zoning variance hearing.",
}


@pytest.fixture
def fresh_db():
    dbmod.reconfigure("sqlite://")
    dbmod.init_db()
    yield dbmod


@pytest.fixture
def client(fresh_db):
    app.dependency_overrides.clear()
    for limiter in app.state.rate_limiters.values():
        limiter.reset()
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def as_user(client):
    app.dependency_overrides[current_user] = lambda: USER
    return USER


@pytest.fixture
def as_admin(client):
    app.dependency_overrides[current_user] = lambda: ADMIN
    app.dependency_overrides[admin_user] = lambda: ADMIN
    return ADMIN


def add_rows(*rows):
    """Insert ORM rows directly (profiles, roles, documents)."""
    with dbmod.session_scope() as db:
        for row in rows:
            db.add(row)
