"""
tests/integration/test_concurrency.py — Simultaneous membership changes on one group.

Each request runs in its own thread with its own test client, so each gets
its own app context, session and database connection. The group row lock
serialises them; the database decides the winner.

Row locks mean nothing on SQLite, so these run only against PostgreSQL
(TEST_DATABASE_URL=postgresql://...).
"""

from __future__ import annotations

import threading

import pytest

from groupspace.app.extensions import db

from .conftest import auth_headers, join, leave, make_group, make_user, member_roles


@pytest.fixture(autouse=True)
def _postgresql_only(app):
    with app.app_context():
        if db.engine.dialect.name != "postgresql":
            pytest.skip("row locking needs PostgreSQL; set TEST_DATABASE_URL")


def _run_together(app, *calls):
    """
    Runs every call(client) in its own thread, released at the same moment.
    Returns the responses in call order.
    """
    barrier = threading.Barrier(len(calls))
    responses: list = [None] * len(calls)
    failures: list[BaseException] = []

    def worker(index, call):
        client = app.test_client()
        try:
            barrier.wait(timeout=10)
            responses[index] = call(client)
        except BaseException as exc:
            failures.append(exc)

    threads = [
        threading.Thread(target=worker, args=(i, call))
        for i, call in enumerate(calls)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not failures, failures
    return responses


class TestConcurrentLeave:

    def test_sole_member_leaving_twice_deletes_once(self, client, app):
        alice = make_user(client, app, "alice")
        group = make_group(client, alice)

        first, second = _run_together(
            app,
            lambda c: leave(c, alice, group["id"]),
            lambda c: leave(c, alice, group["id"]),
        )

        statuses = sorted([first.status_code, second.status_code])
        assert statuses == [200, 404]

        winner = first if first.status_code == 200 else second
        loser = second if winner is first else first
        assert winner.get_json()["data"]["outcome"] == "group_deleted"
        assert loser.get_json()["error"]["code"] == "GROUP_NOT_FOUND"

        gone = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(alice))
        assert gone.status_code == 404

    def test_admin_and_last_member_leaving_together_leave_no_orphan(self, client, app):
        alice = make_user(client, app, "alice")
        bob = make_user(client, app, "bob")
        group = make_group(client, alice)
        assert join(client, bob, group["id"]).status_code == 201

        first, second = _run_together(
            app,
            lambda c: leave(c, alice, group["id"]),
            lambda c: leave(c, bob, group["id"]),
        )

        assert first.status_code == 200
        assert second.status_code == 200
        outcomes = sorted([
            first.get_json()["data"]["outcome"],
            second.get_json()["data"]["outcome"],
        ])
        assert outcomes == ["group_deleted", "left"]

        gone = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(alice))
        assert gone.status_code == 404

    def test_sole_admin_leaving_beside_joiner_keeps_an_admin(self, client, app):
        alice = make_user(client, app, "alice")
        bob = make_user(client, app, "bob")
        carol = make_user(client, app, "carol")
        group = make_group(client, alice)
        assert join(client, bob, group["id"]).status_code == 201

        first, second = _run_together(
            app,
            lambda c: leave(c, alice, group["id"]),
            lambda c: join(c, carol, group["id"]),
        )

        assert first.status_code == 200
        assert second.status_code == 201

        roles = member_roles(client, bob, group["id"])
        assert "alice" not in roles
        assert "ADMIN" in roles.values()


class TestConcurrentJoin:

    def test_double_join_admits_once(self, client, app):
        alice = make_user(client, app, "alice")
        bob = make_user(client, app, "bob")
        group = make_group(client, alice)

        first, second = _run_together(
            app,
            lambda c: join(c, bob, group["id"]),
            lambda c: join(c, bob, group["id"]),
        )

        statuses = sorted([first.status_code, second.status_code])
        assert statuses == [201, 400]

        loser = first if first.status_code == 400 else second
        assert loser.get_json()["error"]["code"] == "ALREADY_MEMBER"

        assert member_roles(client, alice, group["id"]) == {"alice": "ADMIN", "bob": "MEMBER"}
