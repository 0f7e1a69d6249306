"""
Unit tests for access_gate: membership predicates, the author-or-admin rule,
and private-group passwords.

These tests run DB-free with mocked session/query behavior.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.membership import MemberRole
from groupspace.app.services import access_gate


def _session_returning(membership) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = membership
    return session


def test_is_member_true_when_row_exists():
    session = _session_returning(SimpleNamespace(role=MemberRole.MEMBER))
    assert access_gate.is_member("alice", 1, session) is True


def test_role_of_none_when_not_member():
    session = _session_returning(None)
    assert access_gate.role_of("alice", 1, session) is None


def test_require_member_raises_forbidden_when_missing():
    session = _session_returning(None)

    with pytest.raises(AppError) as exc_info:
        access_gate.require_member("eve", 1, session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert exc_info.value.http_status == 403


def test_require_admin_rejects_plain_member():
    session = _session_returning(SimpleNamespace(role=MemberRole.MEMBER))

    with pytest.raises(AppError) as exc_info:
        access_gate.require_admin("bob", 1, session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN


def test_require_admin_returns_membership():
    membership = SimpleNamespace(role=MemberRole.ADMIN)
    session = _session_returning(membership)
    assert access_gate.require_admin("alice", 1, session) is membership


# ── author OR admin ────────────────────────────────────────────────────────

def test_author_may_mutate_without_role_lookup():
    session = MagicMock()
    discussion = SimpleNamespace(author_id="bob", group_id=7)

    assert access_gate.can_mutate_discussion("bob", discussion, session) is True
    session.execute.assert_not_called()


@patch("groupspace.app.services.access_gate.role_of")
def test_admin_may_mutate_others_discussion(mock_role_of):
    mock_role_of.return_value = MemberRole.ADMIN
    discussion = SimpleNamespace(author_id="bob", group_id=7)
    session = MagicMock()

    assert access_gate.can_mutate_discussion("alice", discussion, session) is True
    mock_role_of.assert_called_once_with("alice", 7, session)


@patch("groupspace.app.services.access_gate.role_of")
def test_member_may_not_mutate_others_discussion(mock_role_of):
    mock_role_of.return_value = MemberRole.MEMBER
    discussion = SimpleNamespace(author_id="bob", group_id=7)

    assert access_gate.can_mutate_discussion("carol", discussion, MagicMock()) is False


@patch("groupspace.app.services.access_gate.role_of")
def test_comment_rule_uses_parent_discussion_group(mock_role_of):
    mock_role_of.return_value = MemberRole.ADMIN
    comment = SimpleNamespace(author_id="bob", discussion=SimpleNamespace(group_id=42))
    session = MagicMock()

    assert access_gate.can_mutate_comment("alice", comment, session) is True
    mock_role_of.assert_called_once_with("alice", 42, session)


# ── passwords ──────────────────────────────────────────────────────────────

def test_hash_is_not_the_plaintext_and_verifies():
    hashed = access_gate.hash_password("p123", rounds=4)
    group = SimpleNamespace(private=True, password_hash=hashed)

    assert hashed != "p123"
    assert access_gate.password_matches(group, "p123") is True
    assert access_gate.password_matches(group, "p124") is False


def test_private_group_rejects_missing_password():
    group = SimpleNamespace(private=True, password_hash=access_gate.hash_password("x", rounds=4))
    assert access_gate.password_matches(group, None) is False


def test_private_group_without_hash_rejects_everything():
    group = SimpleNamespace(private=True, password_hash=None)
    assert access_gate.password_matches(group, "anything") is False


def test_public_group_accepts_anything():
    group = SimpleNamespace(private=False, password_hash=None)
    assert access_gate.password_matches(group, None) is True
    assert access_gate.password_matches(group, "whatever") is True


def test_overlong_password_never_matches():
    group = SimpleNamespace(private=True, password_hash=access_gate.hash_password("p123", rounds=4))
    assert access_gate.password_matches(group, "y" * 100) is False


def test_multibyte_password_counts_bytes_not_characters():
    # 37 characters, 74 bytes
    assert access_gate.password_too_long("é" * 37) is True
    assert access_gate.password_too_long("é" * 36) is False


def test_hash_rejects_overlong_password():
    with pytest.raises(AppError) as exc_info:
        access_gate.hash_password("x" * 73, rounds=4)

    assert exc_info.value.code == ErrorCode.INVALID_REQUEST
    assert exc_info.value.http_status == 400
