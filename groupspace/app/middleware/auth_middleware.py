"""
middleware/auth_middleware.py — JWT authentication decorator.

Accounts and sessions belong to the external identity provider. It issues
HS256 JWTs signed with a secret shared with this service. The
@require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT signature, expiry and (optionally) audience
  3. Attaches the subject (user id, a string) to flask.g.user_id
  4. Provisions / refreshes the local user row from the token claims
  5. Raises the appropriate 401 error if any step fails

Strict responsibility boundary:
  - Middleware = authentication (401). Services = authorization (403).
  - Services receive user_id as a plain string argument, with no knowledge
    of JWT or HTTP headers.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, invalid signature, or bad payload
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from groupspace.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Usage:
        @groups_bp.route("/", methods=["GET"])
        @require_auth
        def list_groups():
            user_id = g.user_id  # always a non-empty str when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        _provision_user()
        return f(*args, **kwargs)

    return decorated


def _decode_token(raw_token: str) -> dict:
    options = {"require": ["exp", "sub"]}
    audience = current_app.config.get("JWT_AUDIENCE") or None
    if audience is None:
        options["verify_aud"] = False

    return jwt.decode(
        raw_token,
        current_app.config["JWT_SECRET_KEY"],
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        audience=audience,
        options=options,
    )


def _authenticate_request() -> None:
    """
    Performs the full JWT authentication sequence and sets flask.g.user_id
    and flask.g.user_claims.

    Raises AppError on any authentication failure (never returns a response
    directly — error propagates to the global Flask error handler).
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    try:
        payload = _decode_token(parts[1])
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Sign in again to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        # Covers: bad signature, malformed token, missing claims, wrong audience.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    # ── Step 4: Extract the sub (user_id) claim ───────────────────────────
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip() or len(sub) > 64:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
            401,
        )

    g.user_id = sub
    g.user_claims = payload


def _provision_user() -> None:
    """Makes sure a local users row exists for the authenticated subject."""
    from groupspace.app.extensions import db
    from groupspace.app.services import user_service

    if user_service.sync_user(g.user_id, g.user_claims, db.session):
        db.session.commit()
