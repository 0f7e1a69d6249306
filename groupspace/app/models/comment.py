"""
models/comment.py — Comment table definition.

Same soft-delete discipline as Discussion. The owning group is reached
through the parent discussion; there is no group_id column.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupspace.app.extensions import db


class Comment(db.Model):
    __tablename__ = "comments"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(content)) > 0",
            name="ck_comments_content_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    discussion_id: Mapped[int] = mapped_column(
        ForeignKey("discussions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    author_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    discussion: Mapped["Discussion"] = relationship(  # noqa: F821
        "Discussion",
        back_populates="comments",
    )

    author: Mapped["User"] = relationship("User")  # noqa: F821

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Comment id={self.id} "
            f"discussion_id={self.discussion_id} "
            f"deleted={self.is_deleted}>"
        )
