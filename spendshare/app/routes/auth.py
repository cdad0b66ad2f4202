"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function with the request's repository
  - Return the standard response envelope: {"data": {...}, "warnings": []}

No business logic here. Writes are committed by the repository.
AppError propagates to the global error handler in app/__init__.py.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from spendshare.app.middleware.auth_middleware import require_auth
from spendshare.app.repository import get_repository
from spendshare.app.schemas.auth_schema import LoginSchema, RegisterSchema
from spendshare.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return an access token."""
    data = RegisterSchema().load(request.get_json(force=True) or {})
    result = auth_service.register_user(
        username=data["username"],
        email=data["email"],
        name=data["name"],
        password=data["password"],
        repository=get_repository(),
    )
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return an access token."""
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login_user(
        username=data["username"],
        password=data["password"],
        repository=get_repository(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return current user profile."""
    result = auth_service.get_current_user(
        user_id=g.user_id,
        repository=get_repository(),
    )
    return jsonify({"data": result, "warnings": []}), 200
