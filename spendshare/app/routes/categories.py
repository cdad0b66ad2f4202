"""
routes/categories.py — Read-only category list.

Endpoints (url_prefix=/api/v1/categories):
  GET /categories → 200  all categories ordered by id
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from spendshare.app.middleware.auth_middleware import require_auth
from spendshare.app.repository import get_repository
from spendshare.app.services import expense_service

categories_bp = Blueprint("categories", __name__)


@categories_bp.route("/", methods=["GET"])
@require_auth
def list_categories():
    categories = expense_service.list_categories(get_repository())
    return jsonify({
        "data": [
            {"id": c.id, "name": c.name, "icon": c.icon, "color": c.color}
            for c in categories
        ],
        "warnings": [],
    }), 200
