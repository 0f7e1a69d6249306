"""
models/join_request.py — Pending request to join a group.

Reserved, like Invitation: cleared by the group cascade, never populated
by the join flow.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from groupspace.app.extensions import db


class JoinRequest(db.Model):
    __tablename__ = "join_requests"

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_join_requests_user_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<JoinRequest id={self.id} group_id={self.group_id} user_id={self.user_id!r}>"
