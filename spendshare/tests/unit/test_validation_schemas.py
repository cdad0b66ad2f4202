"""
tests/unit/test_validation_schemas.py — Unit tests for all marshmallow schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Every schema rejects invalid input with a marshmallow ValidationError
  - Field-level rules (type, length, decimal precision, period) live in schemas
  - Where a schema raises a registered error code as its message, the code
    matches the constant in errors.py
  - Cross-entity rules (membership, split sum) are NOT tested here; they
    belong to services and the repository

No database, no Flask application context: schemas inherit from
marshmallow.Schema directly, not ma.Schema.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from marshmallow import ValidationError

from spendshare.app.errors import ErrorCode
from spendshare.app.schemas.auth_schema import LoginSchema, RegisterSchema
from spendshare.app.schemas.expense_schema import (
    CreateExpenseSchema,
    ExpenseQuerySchema,
    SplitInputSchema,
    SplitPaidSchema,
)
from spendshare.app.schemas.group_schema import AddMemberSchema, CreateGroupSchema


# ═══════════════════════════════════════════════════════════════════════════
# RegisterSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    _VALID = {
        "username": "alice_99",
        "email": "alice@example.com",
        "name": "Alice",
        "password": "Secure1!",
    }

    def _load(self, **overrides):
        data = {**self._VALID, **overrides}
        return RegisterSchema().load(data)

    def test_valid_payload(self):
        result = self._load()
        assert result["username"] == "alice_99"
        assert result["name"] == "Alice"

    def test_username_too_short_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(username="ab")
        assert "username" in exc_info.value.messages

    def test_username_invalid_chars_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(username="alice-99")
        assert "username" in exc_info.value.messages

    def test_username_exactly_50_chars_passes(self):
        assert len(self._load(username="a" * 50)["username"]) == 50

    def test_invalid_email_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(email="not-an-email")
        assert "email" in exc_info.value.messages

    def test_blank_name_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(name="   ")
        assert "name" in exc_info.value.messages

    @pytest.mark.parametrize("password", ["Short1", "NoDigitsHere", "12345678"])
    def test_weak_password_raises(self, password):
        with pytest.raises(ValidationError) as exc_info:
            self._load(password=password)
        assert "password" in exc_info.value.messages

    def test_missing_name_raises(self):
        data = dict(self._VALID)
        del data["name"]
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(data)
        assert "name" in exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# LoginSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestLoginSchema:

    def _load(self, data: dict):
        return LoginSchema().load(data)

    def test_valid_payload(self):
        assert self._load({"username": "alice", "password": "x"})["username"] == "alice"

    def test_empty_payload_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({})
        assert set(exc_info.value.messages) == {"username", "password"}


# ═══════════════════════════════════════════════════════════════════════════
# CreateGroupSchema / AddMemberSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateGroupSchema:

    def _load(self, data: dict):
        return CreateGroupSchema().load(data)

    def test_valid_name_defaults_to_no_members(self):
        assert self._load({"name": "Flatmates"}) == {"name": "Flatmates", "members": []}

    def test_initial_members_accepted(self):
        assert self._load({"name": "Trip", "members": [2, 3]})["members"] == [2, 3]

    def test_whitespace_only_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "   "})
        assert "name" in exc_info.value.messages

    def test_name_101_chars_raises(self):
        with pytest.raises(ValidationError):
            self._load({"name": "x" * 101})

    def test_non_integer_member_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Trip", "members": ["bob"]})
        assert "members" in exc_info.value.messages


class TestAddMemberSchema:

    def _load(self, data: dict):
        return AddMemberSchema().load(data)

    def test_valid_user_id(self):
        assert self._load({"user_id": 4}) == {"user_id": 4}

    def test_missing_user_id_raises(self):
        with pytest.raises(ValidationError):
            self._load({})

    @pytest.mark.parametrize("user_id", [0, -1, 1.0, "2"])
    def test_bad_user_id_raises(self, user_id):
        with pytest.raises(ValidationError):
            self._load({"user_id": user_id})


# ═══════════════════════════════════════════════════════════════════════════
# SplitInputSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestSplitInputSchema:

    def _load(self, data: dict):
        return SplitInputSchema().load(data)

    def test_valid_split_defaults_to_unpaid(self):
        result = self._load({"user_id": 1, "amount": "12.50"})
        assert result == {"user_id": 1, "amount": Decimal("12.50"), "paid": False}
        assert isinstance(result["amount"], Decimal)

    def test_zero_amount_passes(self):
        assert self._load({"user_id": 1, "amount": "0.00"})["amount"] == Decimal("0.00")

    def test_negative_amount_raises_invalid_amount(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"user_id": 1, "amount": "-1.00"})
        assert exc_info.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT]

    def test_too_many_decimal_places_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"user_id": 1, "amount": "1.234"})
        assert exc_info.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]


# ═══════════════════════════════════════════════════════════════════════════
# CreateExpenseSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateExpenseSchema:

    def _load(self, **overrides):
        data = {
            "title": "Coffee",
            "amount": "4.50",
            "date": "2026-04-02",
            "category_id": 1,
        }
        data.update(overrides)
        return CreateExpenseSchema().load(data)

    def test_personal_expense_defaults(self):
        result = self._load()
        assert result["amount"] == Decimal("4.50")
        assert result["date"] == dt.date(2026, 4, 2)
        assert result["group_id"] is None
        assert result["splits"] is None
        assert result["notes"] is None

    def test_group_expense_with_splits(self):
        result = self._load(
            group_id=3,
            amount="31.00",
            splits=[
                {"user_id": 1, "amount": "15.50"},
                {"user_id": 2, "amount": "15.50", "paid": True},
            ],
        )
        assert result["splits"][1] == {"user_id": 2, "amount": Decimal("15.50"), "paid": True}

    @pytest.mark.parametrize("amount", ["0", "0.00", "-3.00"])
    def test_non_positive_amount_raises_invalid_amount(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            self._load(amount=amount)
        assert exc_info.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT]

    def test_three_decimal_places_raises_precision(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(amount="10.005")
        assert exc_info.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_blank_title_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(title="  ")
        assert "title" in exc_info.value.messages

    def test_bad_date_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(date="02/04/2026")
        assert "date" in exc_info.value.messages

    def test_missing_category_raises(self):
        data = {"title": "Coffee", "amount": "4.50", "date": "2026-04-02"}
        with pytest.raises(ValidationError) as exc_info:
            CreateExpenseSchema().load(data)
        assert "category_id" in exc_info.value.messages

    def test_duplicate_split_user_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load(
                group_id=3,
                amount="10.00",
                splits=[
                    {"user_id": 1, "amount": "5.00"},
                    {"user_id": 1, "amount": "5.00"},
                ],
            )
        assert exc_info.value.messages["splits"] == [ErrorCode.DUPLICATE_SPLIT_USER]


# ═══════════════════════════════════════════════════════════════════════════
# ExpenseQuerySchema / SplitPaidSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestExpenseQuerySchema:

    def _load(self, data: dict):
        return ExpenseQuerySchema().load(data)

    def test_empty_query_is_unbounded(self):
        assert self._load({}) == {"period": None, "start_date": None, "end_date": None}

    def test_period_with_start_date(self):
        result = self._load({"period": "week", "start_date": "2026-03-09"})
        assert result["period"] == "week"
        assert result["start_date"] == dt.date(2026, 3, 9)

    def test_unknown_period_raises_invalid_period(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"period": "year", "start_date": "2026-01-01"})
        assert exc_info.value.messages["period"] == [ErrorCode.INVALID_PERIOD]

    def test_window_coherence_is_left_to_the_service(self):
        # period_window() owns the start_date and ordering rules.
        assert self._load({"period": "month"})["start_date"] is None
        result = self._load({"start_date": "2026-02-01", "end_date": "2026-01-01"})
        assert result["start_date"] > result["end_date"]


class TestSplitPaidSchema:

    def test_paid_flag_required(self):
        with pytest.raises(ValidationError):
            SplitPaidSchema().load({})

    def test_paid_flag_loaded(self):
        assert SplitPaidSchema().load({"paid": True}) == {"paid": True}
