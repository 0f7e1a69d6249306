"""
tests/unit/test_validation_schemas.py — Unit tests for the marshmallow schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Every schema rejects invalid input with a ValidationError on the right field
  - Rules that need the database (membership, admin count) are NOT tested
    here; they belong to the services

No database, no Flask application context: the schemas inherit from
marshmallow.Schema directly.
"""

from __future__ import annotations

import pytest
from marshmallow import EXCLUDE, ValidationError

from groupspace.app.schemas.discussion_schema import (
    CommentSchema,
    CreateDiscussionSchema,
    UpdateDiscussionSchema,
)
from groupspace.app.schemas.group_schema import (
    ChangeRoleSchema,
    CreateGroupSchema,
    JoinGroupSchema,
    SearchGroupsSchema,
    UpdateGroupSchema,
)
from groupspace.app.schemas.resource_schema import (
    CreateResourceSchema,
    ListFilesSchema,
    RecordFileSchema,
)
from groupspace.app.schemas.user_schema import UpdateProfileSchema


# ═══════════════════════════════════════════════════════════════════════════
# CreateGroupSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateGroupSchema:

    def _load(self, data: dict):
        return CreateGroupSchema().load(data)

    def test_defaults_to_public(self):
        result = self._load({"name": "Chess"})
        assert result["private"] is False
        assert result["password"] is None
        assert result["description"] is None

    def test_private_with_password(self):
        result = self._load({"name": "Secret", "private": True, "password": "p123"})
        assert result["private"] is True
        assert result["password"] == "p123"

    def test_private_without_password_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Secret", "private": True})
        assert "password" in exc_info.value.messages

    def test_password_over_72_bytes_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Secret", "private": True, "password": "x" * 100})
        assert "password" in exc_info.value.messages

    def test_password_of_72_bytes_accepted(self):
        result = self._load({"name": "Secret", "private": True, "password": "x" * 72})
        assert result["password"] == "x" * 72

    def test_missing_name(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({})
        assert exc_info.value.messages["name"][0].startswith("Missing data for required field")

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    def test_bad_names(self, name):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": name})
        assert "name" in exc_info.value.messages


class TestUpdateGroupSchema:

    def test_all_fields_optional(self):
        assert UpdateGroupSchema().load({}) == {}

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            UpdateGroupSchema().load({"name": " "})

    def test_multibyte_password_over_72_bytes_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateGroupSchema().load({"password": "\u00e9" * 37})
        assert "password" in exc_info.value.messages


class TestChangeRoleSchema:

    @pytest.mark.parametrize("role", ["ADMIN", "MEMBER"])
    def test_valid_roles(self, role):
        assert ChangeRoleSchema().load({"role": role}) == {"role": role}

    @pytest.mark.parametrize("role", ["OWNER", "admin", ""])
    def test_invalid_roles(self, role):
        with pytest.raises(ValidationError) as exc_info:
            ChangeRoleSchema().load({"role": role})
        assert "role" in exc_info.value.messages


class TestQueryStringSchemas:

    def test_search_query_defaults_to_empty(self):
        assert SearchGroupsSchema().load({}) == {"query": ""}

    def test_search_ignores_unknown_params(self):
        result = SearchGroupsSchema().load({"query": "club", "page": "2"}, unknown=EXCLUDE)
        assert result == {"query": "club"}

    def test_join_password_optional(self):
        assert JoinGroupSchema().load({}) == {"password": None}

    def test_list_files_parses_discussion_id(self):
        assert ListFilesSchema().load({"discussion_id": "7"}) == {"discussion_id": 7}


# ═══════════════════════════════════════════════════════════════════════════
# Discussions and comments
# ═══════════════════════════════════════════════════════════════════════════

class TestDiscussionSchemas:

    def test_create_requires_title(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateDiscussionSchema().load({"content": "body only"})
        assert "title" in exc_info.value.messages

    def test_create_content_optional(self):
        result = CreateDiscussionSchema().load({"title": "Hello"})
        assert result == {"title": "Hello", "content": None}

    def test_update_partial(self):
        assert UpdateDiscussionSchema().load({"content": "new"}) == {"content": "new"}

    def test_whitespace_comment_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CommentSchema().load({"content": "\n\t "})
        assert "content" in exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Resources, files, profile
# ═══════════════════════════════════════════════════════════════════════════

class TestResourceSchemas:

    def test_valid_resource(self):
        result = CreateResourceSchema().load({
            "title": "Docs",
            "url": "https://example.com/docs",
            "group_id": 3,
        })
        assert result["group_id"] == 3
        assert result["description"] is None

    def test_group_id_must_be_integer(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateResourceSchema().load({"title": "Docs", "url": "https://example.com", "group_id": "3"})
        assert "group_id" in exc_info.value.messages

    def test_file_size_non_negative(self):
        with pytest.raises(ValidationError) as exc_info:
            RecordFileSchema().load({"name": "a.txt", "url": "https://f.example.com/a.txt", "size": -5})
        assert "size" in exc_info.value.messages

    def test_profile_image_must_be_url(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateProfileSchema().load({"image": "not-a-url"})
        assert "image" in exc_info.value.messages
