"""
routes/users.py — User lookup.

Endpoints (url_prefix=/api/v1/users):
  GET /users/by-username/:username → 200  resolve a username before adding
                                          that user to a group
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from spendshare.app.middleware.auth_middleware import require_auth
from spendshare.app.repository import get_repository
from spendshare.app.services import auth_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/by-username/<string:username>", methods=["GET"])
@require_auth
def get_user_by_username(username: str):
    result = auth_service.get_user_by_username(username, repository=get_repository())
    return jsonify({"data": result, "warnings": []}), 200
