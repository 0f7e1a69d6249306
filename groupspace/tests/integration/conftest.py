"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig points at in-memory SQLite unless TEST_DATABASE_URL names
    a real PostgreSQL database.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
  - On PostgreSQL the member_role_enum type is created explicitly before
    db.create_all() because it is defined in the Alembic migration
    (create_type=False in the model).

Identity comes from an external provider, so tests mint their own HS256
tokens with the testing secret instead of calling a login endpoint.

Helper functions (not fixtures) are provided for common operations:
  - make_token(app, user_id)     → signed access token
  - auth_headers(token)          → {"Authorization": "Bearer <token>"}
  - make_user(client, app, uid)  → token for a provisioned user
  - make_group(client, token)    → group dict
  - join(client, token, gid)     → HTTP response
  - make_discussion(...)         → discussion dict
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from groupspace.app import create_app
from groupspace.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        if _db.engine.dialect.name == "postgresql":
            from sqlalchemy import text

            with _db.engine.connect() as conn:
                conn.execute(text(
                    "DO $$ BEGIN "
                    "CREATE TYPE member_role_enum AS ENUM ('ADMIN', 'MEMBER'); "
                    "EXCEPTION WHEN duplicate_object THEN NULL; "
                    "END $$;"
                ))
                conn.commit()

        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test, children before parents, so the
    RESTRICT foreign keys never fire.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(table.delete())
        _db.session.commit()


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

def make_token(
    app,
    user_id: str,
    name: str | None = None,
    expires_in: timedelta = timedelta(hours=1),
    **extra_claims,
) -> str:
    """Signs a token the way the identity provider would."""
    payload = {
        "sub": user_id,
        "name": name if name is not None else user_id.title(),
        "email": f"{user_id}@test.com",
        "exp": datetime.now(timezone.utc) + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, app.config["JWT_SECRET_KEY"], algorithm="HS256")


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_user(client, app, user_id: str) -> str:
    """
    Returns a token for `user_id` after one authenticated request, so the
    local users row exists before other users refer to it.
    """
    token = make_token(app, user_id)
    resp = client.get("/api/v1/users/me", headers=auth_headers(token))
    assert resp.status_code == 200, f"make_user failed: {resp.get_json()}"
    return token


def make_group(
    client,
    token: str,
    name: str = "Test Group",
    private: bool = False,
    password: str | None = None,
    description: str | None = None,
) -> dict:
    """
    Creates a group and returns the group data dict.
    The caller (token owner) becomes the group's first ADMIN.
    """
    payload: dict = {"name": name, "private": private}
    if password is not None:
        payload["password"] = password
    if description is not None:
        payload["description"] = description

    resp = client.post("/api/v1/groups/", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join(client, token: str, group_id: int, password: str | None = None):
    """Joins a group as MEMBER. Returns the HTTP response."""
    url = f"/api/v1/groups/join-group/{group_id}"
    query = {"password": password} if password is not None else None
    return client.post(url, query_string=query, headers=auth_headers(token))


def leave(client, token: str, group_id: int):
    return client.post(f"/api/v1/groups/leave-group/{group_id}", headers=auth_headers(token))


def make_discussion(client, token: str, group_id: int, title: str = "Kickoff", content: str | None = None) -> dict:
    payload: dict = {"title": title}
    if content is not None:
        payload["content"] = content
    resp = client.post(
        f"/api/v1/groups/{group_id}/discussions",
        json=payload,
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_discussion failed: {resp.get_json()}"
    return resp.get_json()["data"]


def member_roles(client, token: str, group_id: int) -> dict[str, str]:
    """{user_id: role} for every member of the group, as seen by `token`."""
    resp = client.get(f"/api/v1/groups/{group_id}/members", headers=auth_headers(token))
    assert resp.status_code == 200, f"member_roles failed: {resp.get_json()}"
    return {m["user_id"]: m["role"] for m in resp.get_json()["data"]}
