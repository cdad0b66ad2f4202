"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, decimal precision
      - DUPLICATE_SPLIT_USER (400) — request shape rule
      - Listing query field types and the period name (INVALID_PERIOD, 400)
      - Non-empty-after-trim enforcement for title
  - services/expense_service.py:
      - CATEGORY_NOT_FOUND / GROUP_NOT_FOUND (need a repository lookup)
      - SPLIT_USER_NOT_MEMBER (422) — needs the membership snapshot
      - FORBIDDEN (403) — owner must belong to the group
      - period_window(): a period without start_date, reversed windows
  - repository (check_splits):
      - SPLIT_SUM_MISMATCH (422), SPLITS_WITHOUT_GROUP (422)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from spendshare.app.errors import ErrorCode
from spendshare.app.services.expense_service import PERIODS


# ── Shared monetary validators ─────────────────────────────────────────────
# Input with more than 2 decimal places is REJECTED, never rounded.
# Raising the ErrorCode constant as the message lets the app factory's
# handler report that code instead of INVALID_FIELD.

def _validate_precision(value: Decimal) -> None:
    # Decimal("10.123").as_tuple().exponent == -3 → reject
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_expense_amount(value: Decimal) -> None:
    if value <= Decimal("0"):
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    _validate_precision(value)


def _validate_split_amount(value: Decimal) -> None:
    # A zero share is allowed: someone in the split who owes nothing.
    if value < Decimal("0"):
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    _validate_precision(value)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


# ── Sub-schema: one entry in the `splits` array ───────────────────────────

class SplitInputSchema(Schema):

    user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )
    amount = fields.Decimal(required=True, validate=_validate_split_amount)
    paid = fields.Bool(load_default=False)


# ── Create expense ─────────────────────────────────────────────────────────

class CreateExpenseSchema(Schema):
    """
    POST /expenses

    Split behaviour:
      - no group_id                → personal expense, no splits
      - group_id, no splits        → server splits equally across members
      - group_id, splits           → caller-supplied shares, validated
    """

    title = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Title must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    amount = fields.Decimal(required=True, validate=_validate_expense_amount)

    date = fields.Date(required=True)

    category_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="category_id must be a positive integer."),
    )

    notes = fields.Str(load_default=None, allow_none=True)

    group_id = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(min=1, error="group_id must be a positive integer."),
    )

    splits = fields.List(fields.Nested(SplitInputSchema), load_default=None, allow_none=True)

    @validates_schema
    def validate_unique_split_users(self, data: dict, **kwargs) -> None:
        splits = data.get("splits") or []
        user_ids = [s["user_id"] for s in splits]
        if len(user_ids) != len(set(user_ids)):
            raise ValidationError({"splits": [ErrorCode.DUPLICATE_SPLIT_USER]})


# ── Listing query ──────────────────────────────────────────────────────────

class ExpenseQuerySchema(Schema):
    """
    GET /expenses?period=&start_date=&end_date=

      period=day|week|month with start_date → window anchored at start_date
      start_date and/or end_date alone      → inclusive custom window
      nothing                               → every expense the user owns
    """

    period = fields.Str(
        load_default=None,
        validate=validate.OneOf(PERIODS, error=ErrorCode.INVALID_PERIOD),
    )
    start_date = fields.Date(load_default=None)
    end_date = fields.Date(load_default=None)


# ── Split paid flag ────────────────────────────────────────────────────────

class SplitPaidSchema(Schema):
    """PATCH /expenses/:id/splits/:split_id"""

    paid = fields.Bool(required=True)
