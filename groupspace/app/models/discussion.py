"""
models/discussion.py — Discussion table definition.

No business logic. No imports from services or routes.

`deleted_at` is NULL for active discussions and non-null for soft-deleted
ones. Soft-deleted rows are excluded from every read but stay in the table
until their group is deleted.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupspace.app.extensions import db


class Discussion(db.Model):
    __tablename__ = "discussions"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_discussions_title_nonempty",
        ),
        Index(
            "idx_discussions_active",
            "group_id",
            postgresql_where="deleted_at IS NULL",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    author_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
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

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="discussions",
    )

    author: Mapped["User"] = relationship("User")  # noqa: F821

    comments: Mapped[list["Comment"]] = relationship(  # noqa: F821
        "Comment",
        back_populates="discussion",
        passive_deletes=True,
    )

    @property
    def is_deleted(self) -> bool:
        """True if this discussion has been soft-deleted."""
        return self.deleted_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Discussion id={self.id} "
            f"group_id={self.group_id} "
            f"deleted={self.is_deleted}>"
        )
