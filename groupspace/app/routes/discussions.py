"""
routes/discussions.py — Discussion and comment route handlers.

Registered at url_prefix=/api/v1/groups; every path is group-scoped.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints:
  GET    /groups/:id/discussions                          → 200  list active
  POST   /groups/:id/discussions                          → 201  create
  GET    /groups/:id/discussions/by-author/:uid           → 200  one author's discussions
  GET    /groups/:id/discussions/:did                     → 200  discussion + comments
  PUT    /groups/:id/discussions/:did                     → 200  edit (author or admin)
  DELETE /groups/:id/discussions/:did                     → 200  soft delete (author or admin)
  POST   /groups/:id/discussions/:did/comments            → 201  add comment
  PUT    /groups/:id/discussions/:did/comments/:cid       → 200  edit comment
  DELETE /groups/:id/discussions/:did/comments/:cid       → 200  soft delete comment
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupspace.app.extensions import db
from groupspace.app.middleware.auth_middleware import require_auth
from groupspace.app.schemas.discussion_schema import (
    CommentSchema,
    CreateDiscussionSchema,
    UpdateDiscussionSchema,
)
from groupspace.app.services import discussion_service

discussions_bp = Blueprint("discussions", __name__)


@discussions_bp.route("/<int:group_id>/discussions", methods=["GET"])
@require_auth
def list_discussions(group_id: int):
    """GET /groups/:id/discussions — Active discussions, newest first."""
    result = discussion_service.list_discussions(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@discussions_bp.route("/<int:group_id>/discussions", methods=["POST"])
@require_auth
def create_discussion(group_id: int):
    """POST /groups/:id/discussions — Start a discussion. Members only."""
    data = CreateDiscussionSchema().load(request.get_json(force=True) or {})
    result = discussion_service.create_discussion(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@discussions_bp.route("/<int:group_id>/discussions/by-author/<string:author_id>", methods=["GET"])
@require_auth
def list_discussions_by_author(group_id: int, author_id: str):
    """GET /groups/:id/discussions/by-author/:uid"""
    result = discussion_service.list_discussions_by_author(
        group_id=group_id,
        author_id=author_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@discussions_bp.route("/<int:group_id>/discussions/<int:discussion_id>", methods=["GET"])
@require_auth
def get_discussion(group_id: int, discussion_id: int):
    """GET /groups/:id/discussions/:did — Discussion with its active comments."""
    result = discussion_service.get_discussion(
        group_id=group_id,
        discussion_id=discussion_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@discussions_bp.route("/<int:group_id>/discussions/<int:discussion_id>", methods=["PUT"])
@require_auth
def update_discussion(group_id: int, discussion_id: int):
    """PUT /groups/:id/discussions/:did — Author or group admin."""
    data = UpdateDiscussionSchema().load(request.get_json(force=True) or {})
    result = discussion_service.update_discussion(
        group_id=group_id,
        discussion_id=discussion_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@discussions_bp.route("/<int:group_id>/discussions/<int:discussion_id>", methods=["DELETE"])
@require_auth
def delete_discussion(group_id: int, discussion_id: int):
    """DELETE /groups/:id/discussions/:did — Soft delete (sets deleted_at)."""
    discussion_service.delete_discussion(
        group_id=group_id,
        discussion_id=discussion_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "discussion_id": discussion_id,
        },
        "warnings": [],
    }), 200


@discussions_bp.route("/<int:group_id>/discussions/<int:discussion_id>/comments", methods=["POST"])
@require_auth
def add_comment(group_id: int, discussion_id: int):
    """POST /groups/:id/discussions/:did/comments — Members only."""
    data = CommentSchema().load(request.get_json(force=True) or {})
    result = discussion_service.add_comment(
        group_id=group_id,
        discussion_id=discussion_id,
        caller_id=g.user_id,
        content=data["content"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@discussions_bp.route(
    "/<int:group_id>/discussions/<int:discussion_id>/comments/<int:comment_id>",
    methods=["PUT"],
)
@require_auth
def update_comment(group_id: int, discussion_id: int, comment_id: int):
    """PUT .../comments/:cid — Author or group admin."""
    data = CommentSchema().load(request.get_json(force=True) or {})
    result = discussion_service.update_comment(
        group_id=group_id,
        discussion_id=discussion_id,
        comment_id=comment_id,
        caller_id=g.user_id,
        content=data["content"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@discussions_bp.route(
    "/<int:group_id>/discussions/<int:discussion_id>/comments/<int:comment_id>",
    methods=["DELETE"],
)
@require_auth
def delete_comment(group_id: int, discussion_id: int, comment_id: int):
    """DELETE .../comments/:cid — Soft delete; returns the remaining comment count."""
    result = discussion_service.delete_comment(
        group_id=group_id,
        discussion_id=discussion_id,
        comment_id=comment_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
