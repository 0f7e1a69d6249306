"""
models/group.py — Group table definition.

No business logic. No imports from services or routes.

FK policy: every table that references groups.id uses ON DELETE RESTRICT.
A group is only ever removed by the explicit cascade in
services/group_service.py, which deletes dependants in FK order first.

Password policy: only a bcrypt hash is stored, and only for private groups.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupspace.app.extensions import db


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        # Also enforced by the marshmallow schema and the service layer.
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    private: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    # NULL for public groups.
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["GroupMember"]] = relationship(  # noqa: F821
        "GroupMember",
        back_populates="group",
        passive_deletes=True,
    )

    discussions: Mapped[list["Discussion"]] = relationship(  # noqa: F821
        "Discussion",
        back_populates="group",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r} private={self.private}>"
