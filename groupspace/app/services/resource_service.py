"""
services/resource_service.py — Shared links (resources) and file metadata.

Authorization rules:
  - List / get / create:  caller must be a member of the owning group
  - Update / delete:      adder (or uploader) OR group ADMIN

Files: the upload itself happens in external storage. This service only
records and lists the resulting metadata. Resources and files are hard-deleted;
both are also removed by the group cascade.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupspace.app.errors import AppError, ErrorCode
from groupspace.app.models.file import File
from groupspace.app.models.membership import GroupMember
from groupspace.app.models.resource import Resource
from groupspace.app.services import access_gate, discussion_service, group_service


# ── Private helpers ────────────────────────────────────────────────────────

def _get_resource_or_404(resource_id: int, session: Session) -> Resource:
    resource = session.get(Resource, resource_id)
    if resource is None:
        raise AppError(
            ErrorCode.RESOURCE_NOT_FOUND,
            f"Resource {resource_id} does not exist.",
            404,
        )
    return resource


def _get_file_or_404(group_id: int, file_id: int, session: Session) -> File:
    file = session.execute(
        select(File).where(File.id == file_id, File.group_id == group_id)
    ).scalar_one_or_none()
    if file is None:
        raise AppError(
            ErrorCode.FILE_NOT_FOUND,
            f"File {file_id} does not exist in group {group_id}.",
            404,
        )
    return file


def _build_resource_dict(resource: Resource) -> dict:
    return {
        "id": resource.id,
        "title": resource.title,
        "description": resource.description,
        "url": resource.url,
        "group_id": resource.group_id,
        "added_by_id": resource.added_by_id,
        "added_by": resource.added_by.name if resource.added_by else None,
        "created_at": resource.created_at.isoformat() if resource.created_at else None,
        "updated_at": resource.updated_at.isoformat() if resource.updated_at else None,
    }


def _build_file_dict(file: File) -> dict:
    return {
        "id": file.id,
        "group_id": file.group_id,
        "discussion_id": file.discussion_id,
        "name": file.name,
        "url": file.url,
        "size": file.size,
        "content_type": file.content_type,
        "uploaded_by_id": file.uploaded_by_id,
        "uploaded_by": file.uploaded_by.name if file.uploaded_by else None,
        "created_at": file.created_at.isoformat() if file.created_at else None,
    }


# ── Resources ──────────────────────────────────────────────────────────────

def list_resources(user_id: str, session: Session) -> list[dict]:
    """Returns resources from every group the user belongs to, newest first."""
    stmt = (
        select(Resource)
        .join(GroupMember, GroupMember.group_id == Resource.group_id)
        .where(GroupMember.user_id == user_id)
        .order_by(Resource.created_at.desc(), Resource.id.desc())
    )
    return [_build_resource_dict(r) for r in session.execute(stmt).scalars().all()]


def get_resource(resource_id: int, caller_id: str, session: Session) -> dict:
    """
    Raises:
      AppError(RESOURCE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is not a member of the resource's group
    """
    resource = _get_resource_or_404(resource_id, session)
    access_gate.require_member(caller_id, resource.group_id, session)
    return _build_resource_dict(resource)


def create_resource(caller_id: str, data: dict, session: Session) -> dict:
    """
    Shares a link with a group. Caller must be a member.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    group_id = data["group_id"]
    group_service.get_group_or_404(group_id, session)
    access_gate.require_member(caller_id, group_id, session)

    resource = Resource(
        title=data["title"].strip(),
        description=data.get("description") or None,
        url=data["url"],
        group_id=group_id,
        added_by_id=caller_id,
    )
    session.add(resource)
    session.flush()
    session.refresh(resource)
    return _build_resource_dict(resource)


def update_resource(
        resource_id: int,
        caller_id: str,
        data: dict,
        session: Session,
) -> dict:
    """
    Partially updates a resource. Adder or group ADMIN only.

    Raises:
      AppError(RESOURCE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    resource = _get_resource_or_404(resource_id, session)

    if not access_gate.can_mutate_resource(caller_id, resource, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the member who added this resource or a group admin may update it.",
            403,
        )

    if data.get("title"):
        resource.title = data["title"].strip()
    if "description" in data:
        resource.description = data["description"] or None
    if data.get("url"):
        resource.url = data["url"]

    resource.updated_at = datetime.now(timezone.utc)
    session.flush()
    return _build_resource_dict(resource)


def delete_resource(resource_id: int, caller_id: str, session: Session) -> None:
    """
    Raises:
      AppError(RESOURCE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    resource = _get_resource_or_404(resource_id, session)

    if not access_gate.can_mutate_resource(caller_id, resource, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the member who added this resource or a group admin may delete it.",
            403,
        )

    session.delete(resource)
    session.flush()


# ── Files ──────────────────────────────────────────────────────────────────

def list_files(
        group_id: int,
        caller_id: str,
        session: Session,
        discussion_id: int | None = None,
) -> list[dict]:
    """Returns a group's file metadata, newest first, optionally for one discussion."""
    group_service.get_group_or_404(group_id, session)
    access_gate.require_member(caller_id, group_id, session)

    stmt = select(File).where(File.group_id == group_id)
    if discussion_id is not None:
        stmt = stmt.where(File.discussion_id == discussion_id)
    stmt = stmt.order_by(File.created_at.desc(), File.id.desc())

    return [_build_file_dict(f) for f in session.execute(stmt).scalars().all()]


def record_file(
        group_id: int,
        caller_id: str,
        data: dict,
        session: Session,
) -> dict:
    """
    Records metadata for a file already uploaded to external storage.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(DISCUSSION_NOT_FOUND, 404) — discussion_id not an active
                                            discussion of this group
    """
    group_service.get_group_or_404(group_id, session)
    access_gate.require_member(caller_id, group_id, session)

    discussion_id = data.get("discussion_id")
    if discussion_id is not None:
        discussion_service.get_active_discussion_or_404(group_id, discussion_id, session)

    file = File(
        group_id=group_id,
        discussion_id=discussion_id,
        uploaded_by_id=caller_id,
        name=data["name"].strip(),
        url=data["url"],
        size=data["size"],
        content_type=data.get("content_type"),
    )
    session.add(file)
    session.flush()
    session.refresh(file)
    return _build_file_dict(file)


def delete_file(group_id: int, file_id: int, caller_id: str, session: Session) -> None:
    """
    Deletes file metadata. Uploader or group ADMIN only.

    Raises:
      AppError(FILE_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
    """
    group_service.get_group_or_404(group_id, session)
    access_gate.require_member(caller_id, group_id, session)
    file = _get_file_or_404(group_id, file_id, session)

    if not access_gate.can_mutate_file(caller_id, file, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the uploader or a group admin may delete this file.",
            403,
        )

    session.delete(file)
    session.flush()
