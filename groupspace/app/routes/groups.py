"""
routes/groups.py — Group lifecycle and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups                            → 201  create group (caller becomes ADMIN)
  GET    /groups                            → 200  list caller's groups
  GET    /groups/search?query=              → 200  groups the caller can join
  GET    /groups/:id                        → 200  group + members (members only)
  PUT    /groups/:id                        → 200  update group (admin only)
  DELETE /groups/:id                        → 200  cascade delete (admin only)
  POST   /groups/join-group/:id?password=   → 201  join
  POST   /groups/leave-group/:id            → 200  leave (may promote or delete)
  GET    /groups/:id/members                → 200  list members
  PUT    /groups/:id/members/:uid/role      → 200  change role (admin only)
  DELETE /groups/:id/members/:uid           → 200  remove member (admin only)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from marshmallow import EXCLUDE

from groupspace.app.extensions import db
from groupspace.app.middleware.auth_middleware import require_auth
from groupspace.app.schemas.group_schema import (
    ChangeRoleSchema,
    CreateGroupSchema,
    JoinGroupSchema,
    SearchGroupsSchema,
    UpdateGroupSchema,
)
from groupspace.app.services import group_service, membership_service

groups_bp = Blueprint("groups", __name__)


# ── Groups ─────────────────────────────────────────────────────────────────

@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a group. Caller becomes its first ADMIN."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        founder_id=g.user_id,
        name=data["name"],
        description=data["description"],
        private=data["private"],
        password=data["password"],
        password_rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    """GET /groups — List all groups the authenticated user belongs to."""
    result = group_service.list_groups(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/search", methods=["GET"])
@require_auth
def search_groups():
    """GET /groups/search?query= — Joinable groups whose name contains the query."""
    args = SearchGroupsSchema().load(request.args.to_dict(), unknown=EXCLUDE)
    result = group_service.search_groups(
        user_id=g.user_id,
        query=args["query"],
        limit=current_app.config["SEARCH_RESULT_LIMIT"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    """GET /groups/:id — Group details with member list. Caller must be a member."""
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["PUT"])
@require_auth
def update_group(group_id: int):
    """PUT /groups/:id — Update name, description or privacy. Admin only."""
    data = UpdateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.update_group(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        password_rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: int):
    """DELETE /groups/:id — Delete the group and everything in it. Admin only."""
    group_service.delete_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "group_id": group_id,
        },
        "warnings": [],
    }), 200


# ── Membership ─────────────────────────────────────────────────────────────

@groups_bp.route("/join-group/<int:group_id>", methods=["POST"])
@require_auth
def join_group(group_id: int):
    """POST /groups/join-group/:id?password= — Join as MEMBER."""
    args = JoinGroupSchema().load(request.args.to_dict(), unknown=EXCLUDE)
    result = membership_service.join_group(
        group_id=group_id,
        user_id=g.user_id,
        password=args["password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/leave-group/<int:group_id>", methods=["POST"])
@require_auth
def leave_group(group_id: int):
    """
    POST /groups/leave-group/:id — Leave a group.

    data.outcome is "left", or "group_deleted" when the caller was the last
    member and the group was removed with them.
    """
    result = membership_service.leave_group(
        group_id=group_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["GET"])
@require_auth
def list_members(group_id: int):
    """GET /groups/:id/members — Members with roles. Caller must be a member."""
    result = membership_service.list_members(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members/<string:target_uid>/role", methods=["PUT"])
@require_auth
def change_role(group_id: int, target_uid: str):
    """PUT /groups/:id/members/:uid/role — Set a member's role. Admin only."""
    data = ChangeRoleSchema().load(request.get_json(force=True) or {})
    result = membership_service.change_role(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        requested_role=data["role"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members/<string:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, target_uid: str):
    """DELETE /groups/:id/members/:uid — Expel another member. Admin only."""
    membership_service.remove_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "group_id": group_id,
            "user_id": target_uid,
        },
        "warnings": [],
    }), 200
