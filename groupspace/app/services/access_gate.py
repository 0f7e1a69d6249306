"""
services/access_gate.py — Membership, role and password predicates.

Stateless helpers shared by every service that needs to answer
"may this user do this to that group?". Nothing here mutates state.

  is_member / role_of          — plain lookups
  require_member / require_admin — raise FORBIDDEN (403)
  can_mutate_discussion        — author OR group ADMIN
  can_mutate_comment           — author OR ADMIN of the parent discussion's group
  can_mutate_resource / can_mutate_file — adder/uploader OR group ADMIN
  hash_password / password_matches — bcrypt for private-group passwords

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
"""

from __future__ import annotations

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.membership import GroupMember, MemberRole


def get_membership(user_id: str, group_id: int, session: Session) -> GroupMember | None:
    """Returns the GroupMember row for (user_id, group_id), or None."""
    return session.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def is_member(user_id: str, group_id: int, session: Session) -> bool:
    return get_membership(user_id, group_id, session) is not None


def role_of(user_id: str, group_id: int, session: Session) -> MemberRole | None:
    """Returns the user's role in the group, or None when not a member."""
    membership = get_membership(user_id, group_id, session)
    return membership.role if membership is not None else None


def require_member(user_id: str, group_id: int, session: Session) -> GroupMember:
    """Raises FORBIDDEN (403) if user_id is not a member of group_id."""
    membership = get_membership(user_id, group_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )
    return membership


def require_admin(user_id: str, group_id: int, session: Session) -> GroupMember:
    """Raises FORBIDDEN (403) unless user_id holds the ADMIN role in group_id."""
    membership = get_membership(user_id, group_id, session)
    if membership is None or membership.role != MemberRole.ADMIN:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"Only an admin of group {group_id} may perform this action.",
            403,
        )
    return membership


def _is_author_or_admin(user_id: str, author_id: str, group_id: int, session: Session) -> bool:
    if user_id == author_id:
        return True
    return role_of(user_id, group_id, session) == MemberRole.ADMIN


def can_mutate_discussion(user_id: str, discussion, session: Session) -> bool:
    return _is_author_or_admin(user_id, discussion.author_id, discussion.group_id, session)


def can_mutate_comment(user_id: str, comment, session: Session) -> bool:
    """Same rule as discussions, against the group of the parent discussion."""
    return _is_author_or_admin(
        user_id, comment.author_id, comment.discussion.group_id, session,
    )


def can_mutate_resource(user_id: str, resource, session: Session) -> bool:
    return _is_author_or_admin(user_id, resource.added_by_id, resource.group_id, session)


def can_mutate_file(user_id: str, file, session: Session) -> bool:
    return _is_author_or_admin(user_id, file.uploaded_by_id, file.group_id, session)


# ── Private-group passwords ────────────────────────────────────────────────

# bcrypt only looks at the first 72 bytes; current releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def password_too_long(raw_password: str) -> bool:
    return len(raw_password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(raw_password: str, rounds: int = 12) -> str:
    """
    bcrypt hash of a group password. The raw value is never stored or logged.

    Raises:
      AppError(INVALID_REQUEST, 400) — password longer than 72 UTF-8 bytes
    """
    if password_too_long(raw_password):
        raise AppError(
            ErrorCode.INVALID_REQUEST,
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes.",
            400,
            field="password",
        )
    return bcrypt.hashpw(
        raw_password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def password_matches(group, supplied: str | None) -> bool:
    """
    True if `supplied` opens `group`.

    Public groups accept anything. A private group without a stored hash
    accepts nothing, and no stored password is longer than 72 bytes, so a
    longer one never matches.
    """
    if not group.private:
        return True
    if supplied is None or group.password_hash is None:
        return False
    if password_too_long(supplied):
        return False
    return bcrypt.checkpw(
        supplied.encode("utf-8"),
        group.password_hash.encode("utf-8"),
    )
