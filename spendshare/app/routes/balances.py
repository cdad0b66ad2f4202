"""
routes/balances.py — Balance route handler.

Layer rules:
  - Call ONE service, return envelope.
  - Balances are recomputed on every request; nothing is cached.

Endpoints (url_prefix=/api/v1/balances):
  GET /balances → 200  {total_spent, you_owe, you_are_owed, total_by_category}
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from spendshare.app.middleware.auth_middleware import require_auth
from spendshare.app.repository import get_repository
from spendshare.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/", methods=["GET"])
@require_auth
def get_balances():
    report = balance_service.get_balances(g.user_id, get_repository())
    return jsonify({"data": report.to_dict(), "warnings": []}), 200
