"""
services/discussion_service.py — Discussions and comments.

Authorization rules:
  - Create discussion / comment:   caller must be a current group member
  - Read:                          caller must be a current group member
  - Edit / soft-delete discussion: author OR group ADMIN (access_gate.can_mutate_discussion)
  - Edit / soft-delete comment:    author OR ADMIN of the parent discussion's group
  Edits and deletes also require current membership, so an author who has
  left the group can no longer touch what they wrote.

Soft delete:
  DELETE sets deleted_at. Every read filters deleted_at IS NULL, so a
  soft-deleted row behaves as absent (404) until its group is cascade-deleted.

Lookups are always scoped by group: a discussion requested under a group it
does not belong to is DISCUSSION_NOT_FOUND (404), never FORBIDDEN, so the
existence of discussions in other groups does not leak.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.comment import Comment
from groupspace.app.models.discussion import Discussion
from groupspace.app.models.user import User
from groupspace.app.services import access_gate, group_service


# ── Private helpers ────────────────────────────────────────────────────────

def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_active_discussion_or_404(
        group_id: int,
        discussion_id: int,
        session: Session,
) -> Discussion:
    """
    Returns an active discussion of `group_id`, or raises DISCUSSION_NOT_FOUND.
    Missing, soft-deleted and other-group discussions are indistinguishable.
    """
    discussion = session.execute(
        select(Discussion).where(
            Discussion.id == discussion_id,
            Discussion.group_id == group_id,
            Discussion.deleted_at.is_(None),
        )
    ).scalar_one_or_none()
    if discussion is None:
        raise AppError(
            ErrorCode.DISCUSSION_NOT_FOUND,
            f"Discussion {discussion_id} does not exist in group {group_id}.",
            404,
        )
    return discussion


def _get_active_comment_or_404(
        discussion: Discussion,
        comment_id: int,
        session: Session,
) -> Comment:
    comment = session.execute(
        select(Comment).where(
            Comment.id == comment_id,
            Comment.discussion_id == discussion.id,
            Comment.deleted_at.is_(None),
        )
    ).scalar_one_or_none()
    if comment is None:
        raise AppError(
            ErrorCode.COMMENT_NOT_FOUND,
            f"Comment {comment_id} does not exist in discussion {discussion.id}.",
            404,
        )
    return comment


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise AppError(
            ErrorCode.INVALID_REQUEST,
            f"{field} must not be empty.",
            400,
            field=field,
        )
    return value.strip()


def _count_active_comments(discussion_id: int, session: Session) -> int:
    return session.execute(
        select(func.count(Comment.id)).where(
            Comment.discussion_id == discussion_id,
            Comment.deleted_at.is_(None),
        )
    ).scalar_one()


def _author_dict(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "image": user.image}


def _build_comment_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "discussion_id": comment.discussion_id,
        "author_id": comment.author_id,
        "author": _author_dict(comment.author),
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
    }


def _build_discussion_dict(
        discussion: Discussion,
        comment_count: int | None = None,
        comments: list[Comment] | None = None,
) -> dict:
    payload = {
        "id": discussion.id,
        "title": discussion.title,
        "content": discussion.content,
        "group_id": discussion.group_id,
        "author_id": discussion.author_id,
        "author": _author_dict(discussion.author),
        "created_at": discussion.created_at.isoformat() if discussion.created_at else None,
        "updated_at": discussion.updated_at.isoformat() if discussion.updated_at else None,
    }
    if comment_count is not None:
        payload["comment_count"] = comment_count
    if comments is not None:
        payload["comments"] = [_build_comment_dict(c) for c in comments]
    return payload


def _list_active_discussions(stmt, session: Session) -> list[dict]:
    """Runs a discussion query and annotates each row with its active comment count."""
    discussions = list(session.execute(stmt).scalars().all())
    if not discussions:
        return []

    counts = dict(session.execute(
        select(Comment.discussion_id, func.count(Comment.id))
        .where(
            Comment.discussion_id.in_([d.id for d in discussions]),
            Comment.deleted_at.is_(None),
        )
        .group_by(Comment.discussion_id)
    ).all())

    return [_build_discussion_dict(d, comment_count=counts.get(d.id, 0)) for d in discussions]


def _require_group_member(group_id: int, user_id: str, session: Session) -> None:
    group_service.get_group_or_404(group_id, session)
    access_gate.require_member(user_id, group_id, session)


# ── Discussions ────────────────────────────────────────────────────────────

def create_discussion(
        group_id: int,
        caller_id: str,
        data: dict,
        session: Session,
) -> dict:
    """
    Starts a discussion in a group. Caller must be a member.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)       — caller is not a member
      AppError(INVALID_REQUEST, 400) — blank title
    """
    _require_group_member(group_id, caller_id, session)

    discussion = Discussion(
        title=_require_text(data.get("title"), "title"),
        content=data.get("content") or None,
        group_id=group_id,
        author_id=caller_id,
    )
    session.add(discussion)
    session.flush()
    session.refresh(discussion)

    return _build_discussion_dict(discussion, comment_count=0)


def list_discussions(group_id: int, caller_id: str, session: Session) -> list[dict]:
    """Returns a group's active discussions, newest first, with comment counts."""
    _require_group_member(group_id, caller_id, session)

    stmt = (
        select(Discussion)
        .where(
            Discussion.group_id == group_id,
            Discussion.deleted_at.is_(None),
        )
        .order_by(Discussion.created_at.desc(), Discussion.id.desc())
    )
    return _list_active_discussions(stmt, session)


def list_discussions_by_author(
        group_id: int,
        author_id: str,
        caller_id: str,
        session: Session,
) -> dict:
    """
    Returns one author's active discussions in a group.

    Raises:
      AppError(USER_NOT_FOUND, 404) — author unknown
    """
    _require_group_member(group_id, caller_id, session)

    author = session.get(User, author_id)
    if author is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {author_id} does not exist.",
            404,
        )

    stmt = (
        select(Discussion)
        .where(
            Discussion.group_id == group_id,
            Discussion.author_id == author_id,
            Discussion.deleted_at.is_(None),
        )
        .order_by(Discussion.created_at.desc(), Discussion.id.desc())
    )
    return {
        "author": _author_dict(author),
        "discussions": _list_active_discussions(stmt, session),
    }


def get_discussion(
        group_id: int,
        discussion_id: int,
        caller_id: str,
        session: Session,
) -> dict:
    """Returns an active discussion with its active comments, oldest comment first."""
    _require_group_member(group_id, caller_id, session)
    discussion = get_active_discussion_or_404(group_id, discussion_id, session)

    comments = list(session.execute(
        select(Comment)
        .where(
            Comment.discussion_id == discussion.id,
            Comment.deleted_at.is_(None),
        )
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    ).scalars().all())

    return _build_discussion_dict(discussion, comment_count=len(comments), comments=comments)


def update_discussion(
        group_id: int,
        discussion_id: int,
        caller_id: str,
        data: dict,
        session: Session,
) -> dict:
    """
    Edits title and/or content.

    Raises:
      AppError(DISCUSSION_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is neither the author nor an admin
    """
    _require_group_member(group_id, caller_id, session)
    discussion = get_active_discussion_or_404(group_id, discussion_id, session)

    if not access_gate.can_mutate_discussion(caller_id, discussion, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the author or a group admin may edit this discussion.",
            403,
        )

    if "title" in data:
        discussion.title = _require_text(data["title"], "title")
    if "content" in data:
        discussion.content = data["content"] or None

    discussion.updated_at = _now()
    session.flush()

    return _build_discussion_dict(
        discussion, comment_count=_count_active_comments(discussion.id, session),
    )


def delete_discussion(
        group_id: int,
        discussion_id: int,
        caller_id: str,
        session: Session,
) -> None:
    """
    Soft-deletes a discussion (sets deleted_at). Its comments stay in place
    and become unreachable with it.

    Raises:
      AppError(DISCUSSION_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is neither the author nor an admin
    """
    _require_group_member(group_id, caller_id, session)
    discussion = get_active_discussion_or_404(group_id, discussion_id, session)

    if not access_gate.can_mutate_discussion(caller_id, discussion, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the author or a group admin may delete this discussion.",
            403,
        )

    discussion.deleted_at = _now()
    session.flush()


# ── Comments ───────────────────────────────────────────────────────────────

def add_comment(
        group_id: int,
        discussion_id: int,
        caller_id: str,
        content: str,
        session: Session,
) -> dict:
    """
    Adds a comment to an active discussion. Caller must be a member.

    Raises:
      AppError(DISCUSSION_NOT_FOUND, 404) — includes soft-deleted discussions
      AppError(FORBIDDEN, 403)
      AppError(INVALID_REQUEST, 400)      — blank content
    """
    _require_group_member(group_id, caller_id, session)
    discussion = get_active_discussion_or_404(group_id, discussion_id, session)

    comment = Comment(
        content=_require_text(content, "content"),
        discussion_id=discussion.id,
        author_id=caller_id,
    )
    session.add(comment)
    session.flush()
    session.refresh(comment)

    return _build_comment_dict(comment)


def update_comment(
        group_id: int,
        discussion_id: int,
        comment_id: int,
        caller_id: str,
        content: str,
        session: Session,
) -> dict:
    """
    Raises:
      AppError(COMMENT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is neither the author nor an admin
    """
    _require_group_member(group_id, caller_id, session)
    discussion = get_active_discussion_or_404(group_id, discussion_id, session)
    comment = _get_active_comment_or_404(discussion, comment_id, session)

    if not access_gate.can_mutate_comment(caller_id, comment, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the author or a group admin may edit this comment.",
            403,
        )

    comment.content = _require_text(content, "content")
    comment.updated_at = _now()
    session.flush()

    return _build_comment_dict(comment)


def delete_comment(
        group_id: int,
        discussion_id: int,
        comment_id: int,
        caller_id: str,
        session: Session,
) -> dict:
    """
    Soft-deletes a comment.

    Returns: {"discussion_id", "comment_count"} — the remaining active count,
    so a client can update its badge without refetching the discussion.
    """
    _require_group_member(group_id, caller_id, session)
    discussion = get_active_discussion_or_404(group_id, discussion_id, session)
    comment = _get_active_comment_or_404(discussion, comment_id, session)

    if not access_gate.can_mutate_comment(caller_id, comment, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the author or a group admin may delete this comment.",
            403,
        )

    comment.deleted_at = _now()
    session.flush()

    return {
        "discussion_id": discussion.id,
        "comment_count": _count_active_comments(discussion.id, session),
    }
