"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/membership_service.py:
      - caller must be a member to read or add (FORBIDDEN, 403)
      - USER_NOT_FOUND / GROUP_NOT_FOUND (need a repository lookup)
      - ALREADY_MEMBER (raised by the repository)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    # validate.Length(min=1) alone lets "   " through.
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _user_id_field(**kwargs) -> fields.Int:
    return fields.Int(
        strict=True,  # reject floats like 1.0
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
        **kwargs,
    )


class CreateGroupSchema(Schema):
    """
    POST /groups

      name    : non-empty after trim, max 100 chars
      members : optional list of user ids added alongside the creator
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    members = fields.List(_user_id_field(), load_default=list)


class AddMemberSchema(Schema):
    """POST /groups/:id/members — only user_id is accepted."""

    user_id = _user_id_field(required=True)
