"""
services/group_service.py — Group lifecycle: create, read, update, search, delete.

Invariants enforced here:
  - A group is created together with its founding ADMIN membership, in the
    same unit of work. There is never a committed group without an admin.
  - A group is only ever removed by cascade_delete_group(), which deletes
    every dependant in FK order before the group row. The same routine
    serves admin-initiated deletion and the last-member leave path.

Authorization rules:
  - Read group / list members: any member (FORBIDDEN otherwise)
  - Update / delete group:     ADMIN only

Concurrency:
  Every mutation starts with lock_group_or_404(), a SELECT ... FOR UPDATE on
  the group row. Concurrent mutations of the same group therefore run one
  after the other, and the later one re-reads the state the earlier one
  committed (including "the group is gone" → GROUP_NOT_FOUND).

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.comment import Comment
from groupspace.app.models.discussion import Discussion
from groupspace.app.models.file import File
from groupspace.app.models.group import Group
from groupspace.app.models.invitation import Invitation
from groupspace.app.models.join_request import JoinRequest
from groupspace.app.models.membership import GroupMember, MemberRole
from groupspace.app.models.resource import Resource
from groupspace.app.models.user import User
from groupspace.app.services import access_gate

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def lock_group_or_404(group_id: int, session: Session) -> Group:
    """
    Returns the Group with its row locked FOR UPDATE, or raises GROUP_NOT_FOUND.

    populate_existing forces a fresh read even if the group is already in the
    identity map, so the caller always sees the committed state it waited for.
    """
    group = session.execute(
        select(Group)
        .where(Group.id == group_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def _validate_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise AppError(
            ErrorCode.INVALID_REQUEST,
            "Group name must not be empty.",
            400,
            field="name",
        )
    return name.strip()


def _member_counts(group_ids: list[int], session: Session) -> dict[int, int]:
    """Returns {group_id: member_count} for the given groups."""
    if not group_ids:
        return {}
    rows = session.execute(
        select(GroupMember.group_id, func.count(GroupMember.id))
        .where(GroupMember.group_id.in_(group_ids))
        .group_by(GroupMember.group_id)
    ).all()
    return {group_id: count for group_id, count in rows}


def _build_group_dict(group: Group) -> dict:
    """Serialises a Group to a plain dict. The password hash never leaves here."""
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "private": group.private,
        "created_at": group.created_at.isoformat() if group.created_at else None,
        "updated_at": group.updated_at.isoformat() if group.updated_at else None,
    }


def build_member_dict(membership: GroupMember, user: User | None) -> dict:
    """Serialises a membership row with the member's public profile."""
    return {
        "id": membership.id,
        "user_id": membership.user_id,
        "group_id": membership.group_id,
        "role": membership.role.value,
        "joined_at": membership.joined_at.isoformat() if membership.joined_at else None,
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "image": user.image,
        } if user is not None else None,
    }


def list_member_rows(group_id: int, session: Session) -> list[tuple[GroupMember, User]]:
    """All (membership, user) pairs of a group, oldest membership first."""
    stmt = (
        select(GroupMember, User)
        .join(User, User.id == GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at.asc(), GroupMember.id.asc())
    )
    return [(m, u) for m, u in session.execute(stmt).all()]


# ── Public service functions ───────────────────────────────────────────────

def create_group(
        founder_id: str,
        name: str,
        session: Session,
        description: str | None = None,
        private: bool = False,
        password: str | None = None,
        password_rounds: int = 12,
) -> dict:
    """
    Creates a group and makes the founder its first ADMIN.

    Both rows are flushed in the caller's transaction; the route commits
    once, so either both persist or neither does.

    Raises:
      AppError(INVALID_REQUEST, 400) — blank name, or private without a password

    Returns: dict with group details, the founder's role and member_count=1.
    """
    clean_name = _validate_name(name)

    if private and not password:
        raise AppError(
            ErrorCode.INVALID_REQUEST,
            "A private group requires a password.",
            400,
            field="password",
        )

    group = Group(
        name=clean_name,
        description=description or None,
        private=bool(private),
        password_hash=access_gate.hash_password(password, password_rounds) if private else None,
    )
    session.add(group)
    session.flush()  # populate group.id before creating the membership

    founder = GroupMember(user_id=founder_id, group_id=group.id, role=MemberRole.ADMIN)
    session.add(founder)
    session.flush()

    logger.info("Group %s created by user %s (private=%s)", group.id, founder_id, group.private)

    return {
        **_build_group_dict(group),
        "role": MemberRole.ADMIN.value,
        "member_count": 1,
    }


def list_groups(user_id: str, session: Session) -> list[dict]:
    """
    Returns all groups the user belongs to, oldest first, each with the
    caller's role and the group's member count.
    """
    stmt = (
        select(Group, GroupMember.role)
        .join(GroupMember, Group.id == GroupMember.group_id)
        .where(GroupMember.user_id == user_id)
        .order_by(Group.created_at.asc(), Group.id.asc())
    )
    rows = session.execute(stmt).all()
    counts = _member_counts([g.id for g, _ in rows], session)

    return [
        {
            **_build_group_dict(g),
            "role": role.value,
            "member_count": counts.get(g.id, 0),
        }
        for g, role in rows
    ]


def get_group(group_id: int, caller_id: str, session: Session) -> dict:
    """
    Returns group details including the member list.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is not a member
    """
    group = get_group_or_404(group_id, session)
    membership = access_gate.require_member(caller_id, group_id, session)

    members = [build_member_dict(m, u) for m, u in list_member_rows(group_id, session)]
    return {
        **_build_group_dict(group),
        "role": membership.role.value,
        "member_count": len(members),
        "members": members,
    }


def update_group(
        group_id: int,
        caller_id: str,
        data: dict,
        session: Session,
        password_rounds: int = 12,
) -> dict:
    """
    Partially updates a group's name, description and privacy. ADMIN only.

    Privacy rules:
      - Switching to private requires a password unless one is already stored.
      - Switching to public clears the stored password hash.
      - A new password on a private group replaces the stored hash.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)        — caller is not an admin
      AppError(INVALID_REQUEST, 400)  — blank name, private without password
    """
    group = lock_group_or_404(group_id, session)
    access_gate.require_admin(caller_id, group_id, session)

    if "name" in data:
        group.name = _validate_name(data["name"])

    if "description" in data:
        group.description = data["description"] or None

    private = data.get("private", group.private)
    password = data.get("password")

    if private:
        if password:
            group.password_hash = access_gate.hash_password(password, password_rounds)
        elif group.password_hash is None:
            raise AppError(
                ErrorCode.INVALID_REQUEST,
                "A private group requires a password.",
                400,
                field="password",
            )
        group.private = True
    else:
        group.private = False
        group.password_hash = None

    group.updated_at = datetime.now(timezone.utc)
    session.flush()

    return _build_group_dict(group)


def search_groups(
        user_id: str,
        query: str,
        session: Session,
        limit: int = 20,
) -> list[dict]:
    """
    Finds groups the user is NOT a member of whose name contains `query`
    (case-insensitive). A blank query matches every group. At most `limit`
    results, ordered by name, each annotated with member_count.
    """
    own_group_ids = select(GroupMember.group_id).where(GroupMember.user_id == user_id)

    stmt = select(Group).where(Group.id.not_in(own_group_ids))

    needle = (query or "").strip().lower()
    if needle:
        stmt = stmt.where(func.lower(Group.name).contains(needle, autoescape=True))

    stmt = stmt.order_by(Group.name.asc(), Group.id.asc()).limit(limit)
    groups = list(session.execute(stmt).scalars().all())
    counts = _member_counts([g.id for g in groups], session)

    return [
        {**_build_group_dict(g), "member_count": counts.get(g.id, 0)}
        for g in groups
    ]


def cascade_delete_group(
        group: Group,
        session: Session,
        actor_id: str | None = None,
        skip_auth_check: bool = False,
) -> dict:
    """
    Deletes a group and everything beneath it, in FK dependency order:

        memberships → resources → files → comments → discussions
        → invitations → join requests → group

    skip_auth_check=True is used only by the last-member leave path, where
    the caller has already been established as the group's sole admin.

    Everything is flushed in the caller's transaction; a failure at any step
    leaves the whole cascade uncommitted.

    Returns: {table_name: rows_deleted}
    """
    if not skip_auth_check:
        access_gate.require_admin(actor_id, group.id, session)

    group_id = group.id
    discussion_ids = select(Discussion.id).where(Discussion.group_id == group_id)

    statements = [
        ("group_members", delete(GroupMember).where(GroupMember.group_id == group_id)),
        ("resources",     delete(Resource).where(Resource.group_id == group_id)),
        ("files",         delete(File).where(File.group_id == group_id)),
        ("comments",      delete(Comment).where(Comment.discussion_id.in_(discussion_ids))),
        ("discussions",   delete(Discussion).where(Discussion.group_id == group_id)),
        ("invitations",   delete(Invitation).where(Invitation.group_id == group_id)),
        ("join_requests", delete(JoinRequest).where(JoinRequest.group_id == group_id)),
        ("groups",        delete(Group).where(Group.id == group_id)),
    ]

    deleted: dict[str, int] = {}
    for table_name, stmt in statements:
        result = session.execute(stmt.execution_options(synchronize_session="fetch"))
        deleted[table_name] = result.rowcount

    session.flush()
    logger.info("Group %s deleted (actor=%s): %s", group_id, actor_id, deleted)
    return deleted


def delete_group(group_id: int, caller_id: str, session: Session) -> dict:
    """
    Admin-initiated deletion of a group and all of its content.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is not an admin
    """
    group = lock_group_or_404(group_id, session)
    deleted = cascade_delete_group(group, session, actor_id=caller_id)
    return {"group_id": group_id, "deleted": deleted}
