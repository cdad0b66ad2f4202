"""
routes/groups.py — Group and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, return envelope.
  - No business logic. No storage access beyond get_repository().

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups                → 201  create group (creator + optional members)
  GET    /groups                → 200  list caller's groups
  GET    /groups/:id            → 200  group + members + expenses (members only)
  POST   /groups/:id/members    → 201  add member (members only)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from spendshare.app.middleware.auth_middleware import require_auth
from spendshare.app.repository import get_repository
from spendshare.app.schemas.group_schema import AddMemberSchema, CreateGroupSchema
from spendshare.app.services import membership_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a group. Caller becomes the first member."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = membership_service.create_group(
        name=data["name"].strip(),
        creator_id=g.user_id,
        repository=get_repository(),
        member_ids=data["members"],
    )
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    """GET /groups — Groups the authenticated user belongs to."""
    result = membership_service.list_groups(
        user_id=g.user_id,
        repository=get_repository(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    """GET /groups/:id — Group details. Caller must be a member."""
    result = membership_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        repository=get_repository(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    """POST /groups/:id/members — Add a user. Caller must be a member."""
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    result = membership_service.add_group_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=data["user_id"],
        repository=get_repository(),
    )
    return jsonify({"data": result, "warnings": []}), 201
