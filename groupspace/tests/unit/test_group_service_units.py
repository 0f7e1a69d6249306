"""
Unit tests for group_service branches that are lightly exercised by integration tests.

These tests run DB-free with mocked session/query behavior.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.group import Group
from groupspace.app.models.membership import GroupMember, MemberRole
from groupspace.app.services import group_service

_MODULE = "groupspace.app.services.group_service"


def test_get_group_or_404_raises_when_group_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.get_group_or_404(group_id=404, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


def test_lock_group_or_404_raises_when_group_gone():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.lock_group_or_404(group_id=9, session=session)

    assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND


# ═══════════════════════════════════════════════════════════════════════════
# create_group
# ═══════════════════════════════════════════════════════════════════════════

def test_create_group_blank_name_raises_invalid_request():
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        group_service.create_group(founder_id="alice", name="   ", session=session)

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_REQUEST
    assert err.field == "name"
    session.add.assert_not_called()


def test_create_group_private_without_password_raises():
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        group_service.create_group("alice", "Secret", session, private=True, password=None)

    assert exc_info.value.field == "password"
    session.add.assert_not_called()


def test_create_group_adds_group_then_admin_membership():
    session = MagicMock()
    added = []

    def _add(obj):
        if isinstance(obj, Group):
            obj.id = 12
        added.append(obj)

    session.add.side_effect = _add

    result = group_service.create_group("alice", " Readers ", session, description="Books")

    group, founder = added
    assert isinstance(group, Group)
    assert group.name == "Readers"
    assert group.password_hash is None
    assert isinstance(founder, GroupMember)
    assert founder.user_id == "alice"
    assert founder.group_id == 12
    assert founder.role == MemberRole.ADMIN
    assert result["role"] == "ADMIN"
    assert result["member_count"] == 1


@patch(f"{_MODULE}.access_gate.hash_password", return_value="$2b$hash")
def test_create_private_group_stores_hash_only(mock_hash):
    session = MagicMock()
    added = []
    session.add.side_effect = added.append

    result = group_service.create_group(
        "alice", "Secret", session, private=True, password="p123", password_rounds=4,
    )

    mock_hash.assert_called_once_with("p123", 4)
    assert added[0].password_hash == "$2b$hash"
    assert "password_hash" not in result
    assert "password" not in result


# ═══════════════════════════════════════════════════════════════════════════
# get_group / update_group
# ═══════════════════════════════════════════════════════════════════════════

@patch(f"{_MODULE}.list_member_rows")
@patch(f"{_MODULE}.access_gate.require_member")
@patch(f"{_MODULE}.get_group_or_404")
def test_get_group_returns_members_and_caller_role(
    mock_get_group_or_404,
    mock_require_member,
    mock_list_member_rows,
):
    session = MagicMock()
    ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
    mock_get_group_or_404.return_value = SimpleNamespace(
        id=11, name="Trip", description=None, private=False, created_at=ts, updated_at=ts,
    )
    mock_require_member.return_value = SimpleNamespace(role=MemberRole.MEMBER)
    alice = SimpleNamespace(id="alice", name="Alice", email=None, image=None)
    mock_list_member_rows.return_value = [
        (SimpleNamespace(id=1, user_id="alice", group_id=11, role=MemberRole.ADMIN, joined_at=ts), alice),
    ]

    result = group_service.get_group(group_id=11, caller_id="bob", session=session)

    assert result["role"] == "MEMBER"
    assert result["member_count"] == 1
    assert result["members"][0]["user"]["name"] == "Alice"
    mock_require_member.assert_called_once_with("bob", 11, session)


@patch(f"{_MODULE}.access_gate.require_admin")
@patch(f"{_MODULE}.lock_group_or_404")
def test_update_group_to_public_clears_hash(mock_lock, _mock_admin):
    group = SimpleNamespace(
        id=3, name="Club", description=None, private=True, password_hash="$2b$old",
        created_at=None, updated_at=None,
    )
    mock_lock.return_value = group

    result = group_service.update_group(3, "alice", {"private": False}, MagicMock())

    assert group.private is False
    assert group.password_hash is None
    assert result["private"] is False


@patch(f"{_MODULE}.access_gate.require_admin")
@patch(f"{_MODULE}.lock_group_or_404")
def test_update_private_group_keeps_existing_hash(mock_lock, _mock_admin):
    group = SimpleNamespace(
        id=3, name="Club", description=None, private=True, password_hash="$2b$old",
        created_at=None, updated_at=None,
    )
    mock_lock.return_value = group

    group_service.update_group(3, "alice", {"name": "Renamed"}, MagicMock())

    assert group.name == "Renamed"
    assert group.password_hash == "$2b$old"


# ═══════════════════════════════════════════════════════════════════════════
# cascade_delete_group
# ═══════════════════════════════════════════════════════════════════════════

def _cascade_session(rowcount: int = 1) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.rowcount = rowcount
    return session


def test_cascade_deletes_tables_in_fk_order():
    session = _cascade_session()

    deleted = group_service.cascade_delete_group(
        SimpleNamespace(id=4), session, skip_auth_check=True,
    )

    assert list(deleted) == [
        "group_members",
        "resources",
        "files",
        "comments",
        "discussions",
        "invitations",
        "join_requests",
        "groups",
    ]
    tables = [call.args[0].table.name for call in session.execute.call_args_list]
    assert tables == list(deleted)


@patch(f"{_MODULE}.access_gate.require_admin")
def test_cascade_checks_admin_unless_skipped(mock_require_admin):
    session = _cascade_session()
    mock_require_admin.side_effect = AppError(ErrorCode.FORBIDDEN, "no", 403)

    with pytest.raises(AppError):
        group_service.cascade_delete_group(SimpleNamespace(id=4), session, actor_id="bob")

    session.execute.assert_not_called()


@patch(f"{_MODULE}.access_gate.require_admin")
def test_cascade_skip_auth_check_never_consults_roles(mock_require_admin):
    group_service.cascade_delete_group(SimpleNamespace(id=4), _cascade_session(), skip_auth_check=True)
    mock_require_admin.assert_not_called()


@patch(f"{_MODULE}.cascade_delete_group")
@patch(f"{_MODULE}.lock_group_or_404")
def test_delete_group_uses_shared_cascade_with_auth(mock_lock, mock_cascade):
    group = SimpleNamespace(id=4)
    mock_lock.return_value = group
    mock_cascade.return_value = {"groups": 1}
    session = MagicMock()

    result = group_service.delete_group(4, "alice", session)

    mock_cascade.assert_called_once_with(group, session, actor_id="alice")
    assert result == {"group_id": 4, "deleted": {"groups": 1}}
