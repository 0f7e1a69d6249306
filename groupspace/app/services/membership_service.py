"""
services/membership_service.py — Join, leave, remove and role changes.

Invariants enforced here:
  - Every group with at least one member has at least one ADMIN.
  - A user holds at most one membership per group (UNIQUE(user_id, group_id)
    backs the ALREADY_MEMBER check against concurrent joins).

Policy when the sole admin goes away (deliberately asymmetric):
  - leave_group():   the sole admin leaving hands ADMIN to the earliest-joined
                     remaining member; if nobody remains, the group is
                     cascade-deleted.
  - remove_member(): removing the sole admin is rejected outright with
                     CANNOT_REMOVE_LAST_ADMIN.
  - change_role():   demoting the sole admin is rejected the same way.

Every public function locks the group row first (see group_service), so the
admin count read and the mutation that depends on it see the same state.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import enum
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.membership import GroupMember, MemberRole
from groupspace.app.services import access_gate, group_service

logger = logging.getLogger(__name__)


class LeaveOutcome(str, enum.Enum):
    LEFT          = "left"
    GROUP_DELETED = "group_deleted"


# ── Private helpers ────────────────────────────────────────────────────────

def _get_membership_or_404(user_id: str, group_id: int, session: Session) -> GroupMember:
    """Returns the membership or raises NOT_A_MEMBER (404)."""
    membership = access_gate.get_membership(user_id, group_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.NOT_A_MEMBER,
            f"User {user_id} is not a member of group {group_id}.",
            404,
        )
    return membership


def _count_admins(group_id: int, session: Session) -> int:
    return session.execute(
        select(func.count(GroupMember.id)).where(
            GroupMember.group_id == group_id,
            GroupMember.role == MemberRole.ADMIN,
        )
    ).scalar_one()


def _pick_successor(group_id: int, leaving_user_id: str, session: Session) -> GroupMember | None:
    """
    Returns the remaining MEMBER who inherits ADMIN, or None.

    Earliest joined_at wins, then lowest id, so succession is reproducible.
    Correctness does not depend on which member is chosen.
    """
    return session.execute(
        select(GroupMember)
        .where(
            GroupMember.group_id == group_id,
            GroupMember.user_id != leaving_user_id,
            GroupMember.role == MemberRole.MEMBER,
        )
        .order_by(GroupMember.joined_at.asc(), GroupMember.id.asc())
        .limit(1)
    ).scalar_one_or_none()


def _parse_role(requested_role) -> MemberRole:
    """Accepts a MemberRole or its string value; raises INVALID_REQUEST otherwise."""
    try:
        return MemberRole(requested_role)
    except ValueError:
        raise AppError(
            ErrorCode.INVALID_REQUEST,
            f"Role must be one of: {', '.join(r.value for r in MemberRole)}.",
            400,
            field="role",
        )


# ── Public service functions ───────────────────────────────────────────────

def join_group(
        group_id: int,
        user_id: str,
        session: Session,
        password: str | None = None,
) -> dict:
    """
    Adds the caller to a group as a MEMBER.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(INVALID_PASSWORD, 403) — private group, password missing or wrong
      AppError(ALREADY_MEMBER, 400)   — caller already belongs to the group
    """
    group = group_service.lock_group_or_404(group_id, session)

    if not access_gate.password_matches(group, password):
        raise AppError(
            ErrorCode.INVALID_PASSWORD,
            f"The password for group {group_id} is incorrect.",
            403,
            field="password",
        )

    if access_gate.is_member(user_id, group_id, session):
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User {user_id} is already a member of group {group_id}.",
            400,
        )

    membership = GroupMember(user_id=user_id, group_id=group_id, role=MemberRole.MEMBER)
    session.add(membership)
    try:
        session.flush()
    except IntegrityError:
        # A concurrent join for the same (user, group) won the unique constraint.
        session.rollback()
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User {user_id} is already a member of group {group_id}.",
            400,
        )

    logger.info("User %s joined group %s", user_id, group_id)
    return {
        "group_id": group_id,
        "user_id": user_id,
        "role": membership.role.value,
        "joined_at": membership.joined_at.isoformat() if membership.joined_at else None,
    }


def leave_group(group_id: int, user_id: str, session: Session) -> dict:
    """
    Removes the caller from a group while keeping at least one ADMIN.

      MEMBER                       → membership deleted
      ADMIN, other admins remain   → membership deleted
      sole ADMIN, members remain   → earliest member promoted, then deleted
      sole ADMIN, last member      → whole group cascade-deleted

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(NOT_A_MEMBER, 404)

    Returns: {"group_id", "user_id", "outcome": "left"|"group_deleted",
              "promoted_user_id": str | None}
    """
    group = group_service.lock_group_or_404(group_id, session)
    membership = _get_membership_or_404(user_id, group_id, session)

    result = {
        "group_id": group_id,
        "user_id": user_id,
        "outcome": LeaveOutcome.LEFT.value,
        "promoted_user_id": None,
    }

    if membership.role == MemberRole.ADMIN and _count_admins(group_id, session) == 1:
        successor = _pick_successor(group_id, user_id, session)

        if successor is None:
            group_service.cascade_delete_group(
                group, session, actor_id=user_id, skip_auth_check=True,
            )
            result["outcome"] = LeaveOutcome.GROUP_DELETED.value
            logger.info("Last member %s left group %s; group deleted", user_id, group_id)
            return result

        successor.role = MemberRole.ADMIN
        session.flush()
        result["promoted_user_id"] = successor.user_id
        logger.info(
            "Sole admin %s left group %s; %s promoted to admin",
            user_id, group_id, successor.user_id,
        )

    session.delete(membership)
    session.flush()
    return result


def remove_member(
        group_id: int,
        caller_id: str,
        target_user_id: str,
        session: Session,
) -> None:
    """
    Expels another user from a group. ADMIN only.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)                — caller is not an admin
      AppError(INVALID_REQUEST, 400)          — caller targeted themselves; use leave
      AppError(NOT_A_MEMBER, 404)             — target has no membership
      AppError(CANNOT_REMOVE_LAST_ADMIN, 403) — target is the sole admin
    """
    group_service.lock_group_or_404(group_id, session)
    access_gate.require_admin(caller_id, group_id, session)

    if target_user_id == caller_id:
        raise AppError(
            ErrorCode.INVALID_REQUEST,
            "You cannot remove yourself. Leave the group instead.",
            400,
        )

    membership = _get_membership_or_404(target_user_id, group_id, session)

    if membership.role == MemberRole.ADMIN and _count_admins(group_id, session) <= 1:
        raise AppError(
            ErrorCode.CANNOT_REMOVE_LAST_ADMIN,
            f"User {target_user_id} is the only admin of group {group_id}.",
            403,
        )

    session.delete(membership)
    session.flush()
    logger.info("User %s removed from group %s by %s", target_user_id, group_id, caller_id)


def change_role(
        group_id: int,
        caller_id: str,
        target_user_id: str,
        requested_role,
        session: Session,
) -> dict:
    """
    Sets a member's role to the requested value. ADMIN only.

    Raises:
      AppError(INVALID_REQUEST, 400)          — role is not ADMIN or MEMBER
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)                — caller is not an admin
      AppError(NOT_A_MEMBER, 404)             — target has no membership
      AppError(CANNOT_REMOVE_LAST_ADMIN, 403) — would demote the sole admin
    """
    role = _parse_role(requested_role)

    group_service.lock_group_or_404(group_id, session)
    access_gate.require_admin(caller_id, group_id, session)

    membership = _get_membership_or_404(target_user_id, group_id, session)

    demoting_admin = membership.role == MemberRole.ADMIN and role == MemberRole.MEMBER
    if demoting_admin and _count_admins(group_id, session) <= 1:
        raise AppError(
            ErrorCode.CANNOT_REMOVE_LAST_ADMIN,
            f"User {target_user_id} is the only admin of group {group_id}.",
            403,
        )

    membership.role = role
    session.flush()

    return {
        "group_id": group_id,
        "user_id": target_user_id,
        "role": membership.role.value,
    }


def list_members(group_id: int, caller_id: str, session: Session) -> list[dict]:
    """
    Returns the members of a group, oldest membership first.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is not a member
    """
    group_service.get_group_or_404(group_id, session)
    access_gate.require_member(caller_id, group_id, session)

    return [
        group_service.build_member_dict(m, u)
        for m, u in group_service.list_member_rows(group_id, session)
    ]
