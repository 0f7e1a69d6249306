"""
schemas/resource_schema.py — Marshmallow schemas for resources and file metadata.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from groupspace.app.schemas.group_schema import validate_non_empty_after_trim


class CreateResourceSchema(Schema):
    """POST /resources"""

    title = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=200), validate_non_empty_after_trim],
    )
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))
    url = fields.Url(required=True, validate=validate.Length(max=2048))
    group_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="group_id must be a positive integer."),
    )


class UpdateResourceSchema(Schema):
    """PUT /resources/:id — partial; group_id cannot change."""

    title = fields.Str(validate=[validate.Length(min=1, max=200), validate_non_empty_after_trim])
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    url = fields.Url(validate=validate.Length(max=2048))


class RecordFileSchema(Schema):
    """POST /groups/:id/files — metadata returned by the upload service."""

    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=255), validate_non_empty_after_trim],
    )
    url = fields.Url(required=True, validate=validate.Length(max=2048))
    size = fields.Int(required=True, strict=True, validate=validate.Range(min=0))
    content_type = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))
    discussion_id = fields.Int(load_default=None, allow_none=True, strict=True)


class ListFilesSchema(Schema):
    """GET /groups/:id/files?discussion_id="""

    discussion_id = fields.Int(load_default=None)
