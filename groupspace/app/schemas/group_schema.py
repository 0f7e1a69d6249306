"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim),
    role values.
  - services/: everything that needs the database (existence, membership,
    admin rights, the admin invariant).

The services repeat the cheap checks (blank name, bad role) so they hold
when called without going through a route.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from groupspace.app.models.membership import MemberRole


def validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    validate.Length(min=1) alone lets "   " through.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def validate_password_bytes(value: str) -> None:
    """bcrypt refuses passwords over 72 bytes, so the limit is on the UTF-8 encoding."""
    if len(value.encode("utf-8")) > 72:
        raise ValidationError("Password must be at most 72 bytes.")


_PASSWORD_VALIDATORS = [validate.Length(min=1), validate_password_bytes]


_NAME_FIELD_KWARGS = dict(
    validate=[
        validate.Length(
            min=1,
            max=100,
            error="Group name must be between 1 and 100 characters.",
        ),
        validate_non_empty_after_trim,
    ],
)


class CreateGroupSchema(Schema):
    """POST /groups"""

    name = fields.Str(required=True, **_NAME_FIELD_KWARGS)
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=2000))
    private = fields.Bool(load_default=False)
    password = fields.Str(
        load_default=None,
        allow_none=True,
        validate=_PASSWORD_VALIDATORS,
    )

    @validates_schema
    def _private_requires_password(self, data, **kwargs):
        if data.get("private") and not data.get("password"):
            raise ValidationError("A private group requires a password.", "password")


class UpdateGroupSchema(Schema):
    """
    PUT /groups/:id

    Every field is optional; only the keys present are changed. Whether a
    switch to private needs a new password depends on the stored state, so
    that rule lives in group_service.update_group().
    """

    name = fields.Str(**_NAME_FIELD_KWARGS)
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    private = fields.Bool()
    password = fields.Str(allow_none=True, validate=_PASSWORD_VALIDATORS)


class ChangeRoleSchema(Schema):
    """PUT /groups/:id/members/:user_id/role"""

    role = fields.Str(
        required=True,
        validate=validate.OneOf(
            [r.value for r in MemberRole],
            error="Role must be one of: {choices}.",
        ),
    )


class SearchGroupsSchema(Schema):
    """GET /groups/search?query="""

    query = fields.Str(load_default="", validate=validate.Length(max=100))


class JoinGroupSchema(Schema):
    """POST /groups/join-group/:id?password="""

    password = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=128))
