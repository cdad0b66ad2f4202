"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Every integration test runs twice, once per repository backend:
      "sqlalchemy" → Flask-SQLAlchemy over TEST_DATABASE_URL (SQLite in
                     memory by default), tables from db.create_all()
      "memory"     → the process-local InMemoryRepository
  - One app per backend per session, created with create_app("testing").
  - Categories are seeded once; they are global and never deleted.
  - Between tests, SQL rows are deleted in FK-safe order and the memory
    backend is replaced by a fresh, freshly seeded instance.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)    → {"user": {...}, "access_token": "..."}
  - login(client, ...)       → {"user": {...}, "access_token": "..."}
  - auth_headers(token)      → {"Authorization": "Bearer <token>"}
  - make_group(client, ...)  → group dict
  - add_member(...)          → HTTP response
  - make_expense(...)        → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from spendshare.app import create_app
from spendshare.app.extensions import db as _db
from spendshare.app.repository import MEMORY_EXTENSION_KEY, get_repository
from spendshare.app.repository.memory import InMemoryRepository
from spendshare.app.seed import seed_categories

# Category ids after seeding, in DEFAULT_CATEGORIES order.
FOOD_CATEGORY_ID = 1
TRAVEL_CATEGORY_ID = 9


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture, one per backend
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session", params=["sqlalchemy", "memory"])
def app(request):
    """
    Creates the Flask application in 'testing' mode once per backend.

    SQL backend: tables are created with db.create_all() and dropped at
    teardown. The memory backend is seeded by the app factory itself.
    """
    flask_app = create_app("testing", overrides={"LEDGER_REPOSITORY": request.param})

    if request.param == "sqlalchemy":
        with flask_app.app_context():
            _db.create_all()
            seed_categories(get_repository())

    yield flask_app

    if request.param == "sqlalchemy":
        with flask_app.app_context():
            _db.session.remove()
            _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Resets ledger state after EVERY test.

    Delete order respects FK RESTRICT constraints: splits and expenses go
    before memberships and groups, which go before users.
    """
    yield  # run the test

    if app.config["LEDGER_REPOSITORY"] == "memory":
        repository = InMemoryRepository()
        seed_categories(repository)
        app.extensions[MEMORY_EXTENSION_KEY] = repository
        return

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        _db.session.remove()

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM expense_splits"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM group_members"))
            conn.execute(text("DELETE FROM groups"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    name: str | None = None,
) -> dict:
    """
    Registers a new user and returns the response data dict.
    Returns: {"user": {...}, "access_token": "..."}
    """
    if email is None:
        email = f"{username}@test.com"
    if name is None:
        name = username.title()
    resp = client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": email, "name": name, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, username: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_group(
    client,
    token: str,
    name: str = "Test Group",
    members: list[int] | None = None,
) -> dict:
    """
    Creates a group and returns the group data dict.
    The caller (token owner) becomes the first member.
    """
    payload: dict = {"name": name}
    if members is not None:
        payload["members"] = members
    resp = client.post(
        "/api/v1/groups/",
        json=payload,
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_member(client, token: str, group_id: int, user_id: int):
    """Adds a user to a group (member token required). Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"user_id": user_id},
        headers=auth_headers(token),
    )


def make_expense(
    client,
    token: str,
    amount: str,
    title: str = "Test Expense",
    date: str = "2026-04-02",
    category_id: int = FOOD_CATEGORY_ID,
    group_id: int | None = None,
    splits: list[dict] | None = None,
    notes: str | None = None,
):
    """
    Creates an expense and returns the HTTP response.
    With group_id and splits=None the server splits equally across members.
    """
    payload: dict = {
        "title": title,
        "amount": amount,
        "date": date,
        "category_id": category_id,
    }
    if group_id is not None:
        payload["group_id"] = group_id
    if splits is not None:
        payload["splits"] = splits
    if notes is not None:
        payload["notes"] = notes

    return client.post(
        "/api/v1/expenses/",
        json=payload,
        headers=auth_headers(token),
    )
