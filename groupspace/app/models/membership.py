"""
models/membership.py — GroupMember junction table definition.

No business logic. No imports from services or routes.

Invariants backed by the schema:
  - UNIQUE(user_id, group_id): a user joins a group at most once.
  - role is one of MemberRole.

The "at least one ADMIN per non-empty group" invariant cannot be expressed
as a constraint; it is maintained by services/membership_service.py.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupspace.app.extensions import db


class MemberRole(str, enum.Enum):
    """member_role_enum AS ENUM ('ADMIN', 'MEMBER')"""
    ADMIN  = "ADMIN"
    MEMBER = "MEMBER"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not member names."""
    return [member.value for member in enum_cls]


class GroupMember(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        Enum(
            MemberRole,
            name="member_role_enum",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=MemberRole.MEMBER,
        server_default=MemberRole.MEMBER.value,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupMember id={self.id} "
            f"user_id={self.user_id!r} "
            f"group_id={self.group_id} "
            f"role={self.role.value if self.role else None}>"
        )
