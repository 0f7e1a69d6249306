"""Initial schema — all tables, the role enum, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. PostgreSQL enum type member_role_enum
  2. Tables in FK dependency order (users → groups → group_members →
     discussions → comments, resources, files, invitations, join_requests)
  3. Indexes (including the partial index idx_discussions_active)

ON DELETE policy:
  Every foreign key is RESTRICT. A group and its dependants are removed only
  by the explicit, ordered cascade in services/group_service.py, so the
  database refuses any deletion that would orphan a row.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _fk(column: str, target: str, name: str, nullable: bool = False, type_=None) -> sa.Column:
    return sa.Column(
        column,
        type_ if type_ is not None else sa.Integer(),
        sa.ForeignKey(target, ondelete="RESTRICT", name=name),
        nullable=nullable,
    )


def _user_fk(column: str, name: str) -> sa.Column:
    return _fk(column, "users.id", name, type_=sa.String(64))


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def upgrade() -> None:
    """
    Apply the full initial schema.

    The enum type is created via op.execute() and referenced with
    create_type=False, matching the model definition.
    """

    # ── Step 1: PostgreSQL enum type ──────────────────────────────────────
    op.execute("""
        CREATE TYPE member_role_enum AS ENUM ('ADMIN', 'MEMBER')
    """)

    # ── Step 2: users ──────────────────────────────────────────────────────
    # id is the identity provider's subject, not a local sequence.

    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("image", sa.String(500), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )

    # ── Step 3: groups ─────────────────────────────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "private",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.Column("password_hash", sa.String(255), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── Step 4: group_members ──────────────────────────────────────────────
    # UNIQUE(user_id, group_id) backs the ALREADY_MEMBER check under races.

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "fk_group_members_user"),
        _fk("group_id", "groups.id", "fk_group_members_group"),
        sa.Column(
            "role",
            postgresql.ENUM("ADMIN", "MEMBER", name="member_role_enum", create_type=False),
            nullable=False,
            server_default="MEMBER",
        ),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
    )

    # ── Step 5: discussions ────────────────────────────────────────────────
    # deleted_at IS NULL = active; non-null = soft-deleted.

    op.create_table(
        "discussions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        _fk("group_id", "groups.id", "fk_discussions_group"),
        _user_fk("author_id", "fk_discussions_author"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_discussions"),
        sa.CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_discussions_title_nonempty",
        ),
    )

    # ── Step 6: comments ───────────────────────────────────────────────────

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _fk("discussion_id", "discussions.id", "fk_comments_discussion"),
        _user_fk("author_id", "fk_comments_author"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_comments"),
        sa.CheckConstraint(
            "LENGTH(TRIM(content)) > 0",
            name="ck_comments_content_nonempty",
        ),
    )

    # ── Step 7: resources ──────────────────────────────────────────────────

    op.create_table(
        "resources",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("url", sa.String(2048), nullable=False),
        _fk("group_id", "groups.id", "fk_resources_group"),
        _user_fk("added_by_id", "fk_resources_added_by"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_resources"),
    )

    # ── Step 8: files ──────────────────────────────────────────────────────
    # Metadata only; the bytes live in external storage.

    op.create_table(
        "files",
        sa.Column("id", sa.Integer(), nullable=False),
        _fk("group_id", "groups.id", "fk_files_group"),
        _fk("discussion_id", "discussions.id", "fk_files_discussion", nullable=True),
        _user_fk("uploaded_by_id", "fk_files_uploaded_by"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("content_type", sa.String(255), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_files"),
        sa.CheckConstraint("size >= 0", name="ck_files_size_non_negative"),
    )

    # ── Step 9: invitations, join_requests ─────────────────────────────────

    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), nullable=False),
        _fk("group_id", "groups.id", "fk_invitations_group"),
        _user_fk("invited_user_id", "fk_invitations_invited_user"),
        _user_fk("invited_by_id", "fk_invitations_invited_by"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_invitations"),
    )

    op.create_table(
        "join_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        _fk("group_id", "groups.id", "fk_join_requests_group"),
        _user_fk("user_id", "fk_join_requests_user"),
        sa.Column("message", sa.String(500), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_join_requests"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_join_requests_user_group"),
    )

    # ── Step 10: Indexes ───────────────────────────────────────────────────

    # group_members: list members (by group) and list groups (by user).
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_user_id",  "group_members", ["user_id"])

    op.create_index("ix_discussions_group_id", "discussions", ["group_id"])
    op.create_index("ix_discussions_author_id", "discussions", ["author_id"])
    # Partial index: every discussion read filters deleted_at IS NULL.
    op.create_index(
        "idx_discussions_active",
        "discussions",
        ["group_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_index("ix_comments_discussion_id",  "comments",      ["discussion_id"])
    op.create_index("ix_resources_group_id",      "resources",     ["group_id"])
    op.create_index("ix_files_group_id",          "files",         ["group_id"])
    op.create_index("ix_files_discussion_id",     "files",         ["discussion_id"])
    op.create_index("ix_invitations_group_id",    "invitations",   ["group_id"])
    op.create_index("ix_join_requests_group_id",  "join_requests", ["group_id"])


def downgrade() -> None:
    """Drop everything created in upgrade(), in reverse dependency order."""

    op.drop_index("ix_join_requests_group_id",  table_name="join_requests")
    op.drop_index("ix_invitations_group_id",    table_name="invitations")
    op.drop_index("ix_files_discussion_id",     table_name="files")
    op.drop_index("ix_files_group_id",          table_name="files")
    op.drop_index("ix_resources_group_id",      table_name="resources")
    op.drop_index("ix_comments_discussion_id",  table_name="comments")
    op.drop_index("idx_discussions_active",     table_name="discussions")
    op.drop_index("ix_discussions_author_id",   table_name="discussions")
    op.drop_index("ix_discussions_group_id",    table_name="discussions")
    op.drop_index("ix_group_members_user_id",   table_name="group_members")
    op.drop_index("ix_group_members_group_id",  table_name="group_members")

    op.drop_table("join_requests")
    op.drop_table("invitations")
    op.drop_table("files")
    op.drop_table("resources")
    op.drop_table("comments")
    op.drop_table("discussions")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS member_role_enum")
