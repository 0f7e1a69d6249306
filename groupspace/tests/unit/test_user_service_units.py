"""
Unit tests for user_service.sync_user: first-sight provisioning and the
insert race between two first requests of the same new user.

These tests run DB-free with a mocked session.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from groupspace.app.services import user_service


def _duplicate_key() -> IntegrityError:
    return IntegrityError("INSERT INTO users ...", {}, Exception("duplicate key"))


def test_first_sight_inserts_and_reports_write():
    session = MagicMock()
    session.get.return_value = None

    assert user_service.sync_user("alice", {"name": "Alice", "email": "a@x.io"}, session) is True

    added = session.add.call_args.args[0]
    assert added.id == "alice"
    assert added.name == "Alice"
    session.flush.assert_called_once()


def test_lost_insert_race_rereads_winner_row():
    winner = SimpleNamespace(id="alice", email="a@x.io", image=None)
    session = MagicMock()
    session.get.side_effect = [None, winner]
    session.flush.side_effect = _duplicate_key()

    assert user_service.sync_user("alice", {"email": "a@x.io"}, session) is False

    session.rollback.assert_called_once()
    assert session.get.call_count == 2


def test_lost_insert_race_still_refreshes_changed_email():
    winner = SimpleNamespace(id="alice", email="old@x.io", image=None)
    session = MagicMock()
    session.get.side_effect = [None, winner]
    session.flush.side_effect = [_duplicate_key(), None]

    assert user_service.sync_user("alice", {"email": "new@x.io"}, session) is True
    assert winner.email == "new@x.io"


def test_integrity_error_without_a_winner_row_propagates():
    session = MagicMock()
    session.get.return_value = None
    session.flush.side_effect = _duplicate_key()

    with pytest.raises(IntegrityError):
        user_service.sync_user("alice", {}, session)
