"""
routes/users.py — The caller's own profile.

  GET /users/me  → 200
  PUT /users/me  → 200  update display name / avatar
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupspace.app.extensions import db
from groupspace.app.middleware.auth_middleware import require_auth
from groupspace.app.schemas.user_schema import UpdateProfileSchema
from groupspace.app.services import user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/me", methods=["GET"])
@require_auth
def get_me():
    result = user_service.get_profile(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me", methods=["PUT"])
@require_auth
def update_me():
    data = UpdateProfileSchema().load(request.get_json(force=True) or {})
    result = user_service.update_profile(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
