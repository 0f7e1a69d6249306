"""
schemas/user_schema.py — Marshmallow schema for the caller's own profile.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from groupspace.app.schemas.group_schema import validate_non_empty_after_trim


class UpdateProfileSchema(Schema):
    """PUT /users/me"""

    name = fields.Str(validate=[validate.Length(min=1, max=100), validate_non_empty_after_trim])
    image = fields.Url(allow_none=True, validate=validate.Length(max=500))
