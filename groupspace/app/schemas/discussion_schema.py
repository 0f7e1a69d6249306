"""
schemas/discussion_schema.py — Marshmallow schemas for discussions and comments.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from groupspace.app.schemas.group_schema import validate_non_empty_after_trim


class CreateDiscussionSchema(Schema):
    """POST /groups/:id/discussions"""

    title = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=200), validate_non_empty_after_trim],
    )
    content = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=20000))


class UpdateDiscussionSchema(Schema):
    """PUT /groups/:id/discussions/:did — partial."""

    title = fields.Str(validate=[validate.Length(min=1, max=200), validate_non_empty_after_trim])
    content = fields.Str(allow_none=True, validate=validate.Length(max=20000))


class CommentSchema(Schema):
    """POST and PUT on /groups/:id/discussions/:did/comments"""

    content = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=5000), validate_non_empty_after_trim],
    )
