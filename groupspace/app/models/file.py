"""
models/file.py — File metadata table definition.

The bytes live in external storage; this row only records where they are
and who uploaded them. A file may optionally be attached to a discussion.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupspace.app.extensions import db


class File(db.Model):
    __tablename__ = "files"

    __table_args__ = (
        CheckConstraint("size >= 0", name="ck_files_size_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    discussion_id: Mapped[int | None] = mapped_column(
        ForeignKey("discussions.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    uploaded_by_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    url: Mapped[str] = mapped_column(String(2048), nullable=False)

    size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    uploaded_by: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<File id={self.id} group_id={self.group_id} name={self.name!r}>"
