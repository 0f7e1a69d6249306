"""
services/user_service.py — Local user rows for externally authenticated users.

The identity provider owns accounts and sessions. This service keeps a local
copy of the profile fields other tables need (name, email, image), keyed by
the provider's subject id, and serves the caller's own profile.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the caller's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.user import User

logger = logging.getLogger(__name__)


def _display_name(user_id: str, claims: dict) -> str:
    """Name claim, else the local part of the email, else the subject id."""
    name = (claims.get("name") or "").strip()
    if name:
        return name[:100]
    email = claims.get("email") or ""
    if "@" in email:
        return email.split("@", 1)[0][:100]
    return user_id[:100]


def _build_user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def sync_user(user_id: str, claims: dict, session: Session) -> bool:
    """
    Creates the local row for `user_id` on first sight, and refreshes email /
    image when the provider reports new values.

    The display name is only taken from claims at creation time; afterwards
    it is owned by PUT /users/me.

    Two first requests from the same new user can race on the insert. The
    loser rolls back and carries on with the row the winner created.

    Returns: True if anything was written (the caller should commit).
    """
    user = session.get(User, user_id)

    if user is None:
        session.add(User(
            id=user_id,
            name=_display_name(user_id, claims),
            email=claims.get("email"),
            image=claims.get("picture") or claims.get("image"),
        ))
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            user = session.get(User, user_id)
            if user is None:
                raise
            logger.info("Local user %s was provisioned concurrently", user_id)
        else:
            logger.info("Provisioned local user %s", user_id)
            return True

    changed = False
    email = claims.get("email")
    if email and email != user.email:
        user.email = email
        changed = True
    image = claims.get("picture") or claims.get("image")
    if image and image != user.image:
        user.image = image
        changed = True

    if changed:
        session.flush()
    return changed


def get_profile(user_id: str, session: Session) -> dict:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404) — no local row for the token's subject
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return _build_user_dict(user)


def update_profile(user_id: str, data: dict, session: Session) -> dict:
    """Updates the caller's display name and/or avatar URL."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )

    if "name" in data:
        user.name = data["name"].strip()
    if "image" in data:
        user.image = data["image"] or None

    session.flush()
    return _build_user_dict(user)
