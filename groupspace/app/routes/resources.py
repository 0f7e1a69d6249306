"""
routes/resources.py — Shared link and file metadata route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns both
/resources/... and the group-scoped /groups/:id/files paths.

Endpoints:
  GET    /resources                  → 200  resources across the caller's groups
  POST   /resources                  → 201  share a link (members only)
  GET    /resources/:id              → 200
  PUT    /resources/:id              → 200  adder or group admin
  DELETE /resources/:id              → 200  adder or group admin
  GET    /groups/:id/files           → 200  file metadata (?discussion_id=)
  POST   /groups/:id/files           → 201  record uploaded file metadata
  DELETE /groups/:id/files/:fid      → 200  uploader or group admin
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request
from marshmallow import EXCLUDE

from groupspace.app.extensions import db
from groupspace.app.middleware.auth_middleware import require_auth
from groupspace.app.schemas.resource_schema import (
    CreateResourceSchema,
    ListFilesSchema,
    RecordFileSchema,
    UpdateResourceSchema,
)
from groupspace.app.services import resource_service

resources_bp = Blueprint("resources", __name__)


# ── Resources ──────────────────────────────────────────────────────────────

@resources_bp.route("/resources", methods=["GET"])
@require_auth
def list_resources():
    result = resource_service.list_resources(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@resources_bp.route("/resources", methods=["POST"])
@require_auth
def create_resource():
    data = CreateResourceSchema().load(request.get_json(force=True) or {})
    result = resource_service.create_resource(
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@resources_bp.route("/resources/<int:resource_id>", methods=["GET"])
@require_auth
def get_resource(resource_id: int):
    result = resource_service.get_resource(
        resource_id=resource_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@resources_bp.route("/resources/<int:resource_id>", methods=["PUT"])
@require_auth
def update_resource(resource_id: int):
    data = UpdateResourceSchema().load(request.get_json(force=True) or {})
    result = resource_service.update_resource(
        resource_id=resource_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@resources_bp.route("/resources/<int:resource_id>", methods=["DELETE"])
@require_auth
def delete_resource(resource_id: int):
    resource_service.delete_resource(
        resource_id=resource_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"deleted": True, "resource_id": resource_id},
        "warnings": [],
    }), 200


# ── Files ──────────────────────────────────────────────────────────────────

@resources_bp.route("/groups/<int:group_id>/files", methods=["GET"])
@require_auth
def list_files(group_id: int):
    args = ListFilesSchema().load(request.args.to_dict(), unknown=EXCLUDE)
    result = resource_service.list_files(
        group_id=group_id,
        caller_id=g.user_id,
        discussion_id=args["discussion_id"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@resources_bp.route("/groups/<int:group_id>/files", methods=["POST"])
@require_auth
def record_file(group_id: int):
    """POST /groups/:id/files — called after the external upload completes."""
    data = RecordFileSchema().load(request.get_json(force=True) or {})
    result = resource_service.record_file(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@resources_bp.route("/groups/<int:group_id>/files/<int:file_id>", methods=["DELETE"])
@require_auth
def delete_file(group_id: int, file_id: int):
    resource_service.delete_file(
        group_id=group_id,
        file_id=file_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"deleted": True, "file_id": file_id},
        "warnings": [],
    }), 200
