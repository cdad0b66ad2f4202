"""
routes/expenses.py — Expense route handlers.

Layer rules:
  - Parse, validate, call ONE service, return envelope.
  - No business logic. No storage access beyond get_repository().
  - The _serialize_* helpers are pure data-shape helpers, not business logic.

Endpoints (url_prefix=/api/v1/expenses):
  GET    /expenses                          → 200  list the caller's expenses
  POST   /expenses                          → 201  create expense (+ splits)
  GET    /expenses/:id                      → 200  get expense + splits
  DELETE /expenses/:id                      → 200  delete expense and splits
  PATCH  /expenses/:id/splits/:split_id     → 200  set the split's paid flag
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from spendshare.app.middleware.auth_middleware import require_auth
from spendshare.app.repository import get_repository
from spendshare.app.repository.base import ExpenseRecord, SplitRecord
from spendshare.app.schemas.expense_schema import (
    CreateExpenseSchema,
    ExpenseQuerySchema,
    SplitPaidSchema,
)
from spendshare.app.services import expense_service
from spendshare.app.services.expense_service import ExpenseDetail

expenses_bp = Blueprint("expenses", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────
# Amounts as strings, dates as ISO 8601.

def _serialize_expense(expense: ExpenseRecord) -> dict:
    return {
        "id": expense.id,
        "title": expense.title,
        "amount": str(expense.amount),
        "date": expense.date.isoformat(),
        "category_id": expense.category_id,
        "user_id": expense.user_id,
        "notes": expense.notes,
        "is_split": expense.is_split,
        "group_id": expense.group_id,
    }


def _serialize_split(split: SplitRecord, usernames: dict[int, str] | None = None) -> dict:
    payload = {
        "id": split.id,
        "expense_id": split.expense_id,
        "user_id": split.user_id,
        "amount": str(split.amount),
        "paid": split.paid,
    }
    if usernames is not None:
        payload["username"] = usernames.get(split.user_id)
    return payload


def _serialize_detail(detail: ExpenseDetail) -> dict:
    payload = _serialize_expense(detail.expense)
    payload["owner_username"] = detail.usernames.get(detail.expense.user_id)
    payload["splits"] = [_serialize_split(s, detail.usernames) for s in detail.splits]
    return payload


# ── Collection routes ──────────────────────────────────────────────────────

@expenses_bp.route("/", methods=["GET"])
@require_auth
def list_expenses():
    """GET /expenses — The caller's own expenses, newest first."""
    query = ExpenseQuerySchema().load(request.args)
    expenses = expense_service.list_expenses(
        user_id=g.user_id,
        repository=get_repository(),
        period=query["period"],
        start_date=query["start_date"],
        end_date=query["end_date"],
    )
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


@expenses_bp.route("/", methods=["POST"])
@require_auth
def create_expense():
    """
    POST /expenses — Record a new expense.
    With group_id and no splits, the server splits equally across members.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    repository = get_repository()
    expense = expense_service.create_expense(
        owner_id=g.user_id,
        data=data,
        repository=repository,
    )
    detail = expense_service.describe_expense(expense, repository)
    return jsonify({"data": _serialize_detail(detail), "warnings": []}), 201


# ── Expense-ID routes ──────────────────────────────────────────────────────

@expenses_bp.route("/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: int):
    """GET /expenses/:id — Expense detail including splits."""
    detail = expense_service.get_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        repository=get_repository(),
    )
    return jsonify({"data": _serialize_detail(detail), "warnings": []}), 200


@expenses_bp.route("/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    """DELETE /expenses/:id — Owner only. Splits go with the expense."""
    expense_service.delete_expense(
        expense_id=expense_id,
        requester_id=g.user_id,
        repository=get_repository(),
    )
    return jsonify({
        "data": {
            "deleted": True,
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200


@expenses_bp.route("/<int:expense_id>/splits/<int:split_id>", methods=["PATCH"])
@require_auth
def set_split_paid(expense_id: int, split_id: int):
    """PATCH /expenses/:id/splits/:split_id — Body: {"paid": true|false}."""
    data = SplitPaidSchema().load(request.get_json(force=True) or {})
    split = expense_service.set_split_paid(
        expense_id=expense_id,
        split_id=split_id,
        caller_id=g.user_id,
        paid=data["paid"],
        repository=get_repository(),
    )
    return jsonify({"data": _serialize_split(split), "warnings": []}), 200
