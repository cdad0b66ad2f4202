"""
Unit tests for expense_service.

Runs against InMemoryRepository, so no Flask app and no database are
needed. Users: 1 alice, 2 bob, 3 carol (outsider). Group 1 = {alice, bob}.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from spendshare.app.errors import AppError, ErrorCode
from spendshare.app.repository.memory import InMemoryRepository
from spendshare.app.services import expense_service

ALICE, BOB, CAROL = 1, 2, 3


@pytest.fixture()
def repo() -> InMemoryRepository:
    repository = InMemoryRepository()
    for username in ("alice", "bob", "carol"):
        repository.create_user(username, f"{username}@example.com", username.title(), "x")
    repository.create_category("Food & Drinks", "ri-restaurant-2-line", "#FF9800")
    repository.create_group("Flat", created_by=ALICE, member_ids=[BOB])
    return repository


def _data(amount: str = "31.00", **overrides) -> dict:
    data = {
        "title": "Dinner",
        "amount": Decimal(amount),
        "date": dt.date(2026, 4, 2),
        "category_id": 1,
        "notes": None,
        "group_id": None,
        "splits": None,
    }
    data.update(overrides)
    return data


def _assert_error(exc_info, code: str, status: int, field: str | None = None) -> None:
    err = exc_info.value
    assert err.code == code
    assert err.http_status == status
    if field is not None:
        assert err.field == field


# ── period_window ──────────────────────────────────────────────────────────

def test_period_window_day():
    day = dt.date(2026, 3, 9)
    assert expense_service.period_window("day", day, None) == (day, day)


def test_period_window_week_spans_seven_days():
    start = dt.date(2026, 3, 9)
    assert expense_service.period_window("week", start, None) == (start, dt.date(2026, 3, 15))


def test_period_window_month_covers_calendar_month():
    assert expense_service.period_window("month", dt.date(2024, 2, 17), None) == (
        dt.date(2024, 2, 1),
        dt.date(2024, 2, 29),
    )


def test_period_window_without_period_passes_bounds_through():
    start, end = dt.date(2026, 1, 1), dt.date(2026, 1, 31)
    assert expense_service.period_window(None, start, end) == (start, end)
    assert expense_service.period_window(None, None, None) == (None, None)


@pytest.mark.parametrize("period, start, end", [
    ("year", dt.date(2026, 1, 1), None),
    ("week", None, None),
    (None, dt.date(2026, 2, 1), dt.date(2026, 1, 1)),
])
def test_period_window_rejects_bad_queries(period, start, end):
    with pytest.raises(AppError) as exc_info:
        expense_service.period_window(period, start, end)
    _assert_error(exc_info, ErrorCode.INVALID_PERIOD, 400)


# ── create_expense ─────────────────────────────────────────────────────────

def test_personal_expense_has_no_splits(repo):
    expense = expense_service.create_expense(ALICE, _data("4.50"), repo)

    assert expense.is_split is False
    assert expense.group_id is None
    assert repo.list_splits_for_expense(expense.id) == []


def test_group_expense_without_splits_is_split_equally(repo):
    expense = expense_service.create_expense(ALICE, _data("31.00", group_id=1), repo)

    assert expense.is_split is True
    splits = repo.list_splits_for_expense(expense.id)
    assert [(s.user_id, s.amount) for s in splits] == [
        (ALICE, Decimal("15.50")),
        (BOB, Decimal("15.50")),
    ]


def test_equal_split_remainder_goes_to_lowest_user_id(repo):
    repo.add_membership(1, CAROL)

    expense = expense_service.create_expense(ALICE, _data("10.00", group_id=1), repo)

    amounts = [s.amount for s in repo.list_splits_for_expense(expense.id)]
    assert amounts == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]


def test_explicit_splits_are_stored_as_given(repo):
    splits = [
        {"user_id": ALICE, "amount": Decimal("10.00"), "paid": False},
        {"user_id": BOB, "amount": Decimal("21.00"), "paid": True},
    ]
    expense = expense_service.create_expense(ALICE, _data(group_id=1, splits=splits), repo)

    stored = repo.list_splits_for_expense(expense.id)
    assert [(s.user_id, s.amount, s.paid) for s in stored] == [
        (ALICE, Decimal("10.00"), False),
        (BOB, Decimal("21.00"), True),
    ]


def test_explicit_split_sum_mismatch_writes_nothing(repo):
    splits = [
        {"user_id": ALICE, "amount": Decimal("10.00")},
        {"user_id": BOB, "amount": Decimal("20.99")},
    ]
    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(ALICE, _data(group_id=1, splits=splits), repo)

    _assert_error(exc_info, ErrorCode.SPLIT_SUM_MISMATCH, 422, "splits")
    assert repo.list_expenses_by_owner(ALICE) == []


def test_split_participant_outside_group_rejected(repo):
    splits = [
        {"user_id": ALICE, "amount": Decimal("15.50")},
        {"user_id": CAROL, "amount": Decimal("15.50")},
    ]
    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(ALICE, _data(group_id=1, splits=splits), repo)

    _assert_error(exc_info, ErrorCode.SPLIT_USER_NOT_MEMBER, 422, "splits")


def test_splits_without_group_rejected(repo):
    splits = [{"user_id": BOB, "amount": Decimal("31.00")}]
    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(ALICE, _data(splits=splits), repo)

    _assert_error(exc_info, ErrorCode.SPLITS_WITHOUT_GROUP, 422)


def test_non_member_cannot_post_group_expense(repo):
    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(CAROL, _data(group_id=1), repo)

    _assert_error(exc_info, ErrorCode.FORBIDDEN, 403)


def test_unknown_group_is_404(repo):
    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(ALICE, _data(group_id=77), repo)

    _assert_error(exc_info, ErrorCode.GROUP_NOT_FOUND, 404, "group_id")


def test_unknown_category_is_404(repo):
    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(ALICE, _data(category_id=42), repo)

    _assert_error(exc_info, ErrorCode.CATEGORY_NOT_FOUND, 404, "category_id")


@pytest.mark.parametrize("amount, code", [
    ("0.00", ErrorCode.INVALID_AMOUNT),
    ("-1.00", ErrorCode.INVALID_AMOUNT),
    ("1.005", ErrorCode.INVALID_AMOUNT_PRECISION),
])
def test_bad_amount_rejected_before_any_read(amount, code):
    repository = MagicMock()

    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(ALICE, _data(amount), repository)

    _assert_error(exc_info, code, 400, "amount")
    repository.get_category.assert_not_called()
    repository.create_expense_with_splits.assert_not_called()


# ── get / delete / list ────────────────────────────────────────────────────

def test_get_expense_visible_to_participant_and_hidden_from_outsider(repo):
    expense = expense_service.create_expense(ALICE, _data(group_id=1), repo)

    detail = expense_service.get_expense(expense.id, BOB, repo)
    assert detail.expense == expense
    assert detail.usernames == {ALICE: "alice", BOB: "bob"}

    with pytest.raises(AppError) as exc_info:
        expense_service.get_expense(expense.id, CAROL, repo)
    _assert_error(exc_info, ErrorCode.FORBIDDEN, 403)


def test_get_missing_expense_is_404(repo):
    with pytest.raises(AppError) as exc_info:
        expense_service.get_expense(999, ALICE, repo)
    _assert_error(exc_info, ErrorCode.EXPENSE_NOT_FOUND, 404)


def test_delete_expense_by_owner_removes_splits(repo):
    expense = expense_service.create_expense(ALICE, _data(group_id=1), repo)

    expense_service.delete_expense(expense.id, ALICE, repo)

    assert repo.get_expense(expense.id) is None
    assert repo.list_splits_for_participant(BOB) == []


def test_delete_expense_by_participant_is_forbidden(repo):
    expense = expense_service.create_expense(ALICE, _data(group_id=1), repo)

    with pytest.raises(AppError) as exc_info:
        expense_service.delete_expense(expense.id, BOB, repo)

    _assert_error(exc_info, ErrorCode.FORBIDDEN, 403)
    assert repo.get_expense(expense.id) is not None


def test_list_expenses_applies_month_window(repo):
    expense_service.create_expense(ALICE, _data(date=dt.date(2026, 3, 31)), repo)
    april = expense_service.create_expense(ALICE, _data(date=dt.date(2026, 4, 15)), repo)

    rows = expense_service.list_expenses(
        ALICE, repo, period="month", start_date=dt.date(2026, 4, 1),
    )

    assert [e.id for e in rows] == [april.id]


# ── set_split_paid ─────────────────────────────────────────────────────────

def test_participant_can_mark_own_split_paid(repo):
    expense = expense_service.create_expense(ALICE, _data(group_id=1), repo)
    bob_split = next(s for s in repo.list_splits_for_expense(expense.id) if s.user_id == BOB)

    updated = expense_service.set_split_paid(expense.id, bob_split.id, BOB, True, repo)

    assert updated.paid is True


def test_outsider_cannot_mark_split_paid(repo):
    expense = expense_service.create_expense(ALICE, _data(group_id=1), repo)
    split = repo.list_splits_for_expense(expense.id)[0]

    with pytest.raises(AppError) as exc_info:
        expense_service.set_split_paid(expense.id, split.id, CAROL, True, repo)

    _assert_error(exc_info, ErrorCode.FORBIDDEN, 403)


def test_split_from_another_expense_is_404(repo):
    first = expense_service.create_expense(ALICE, _data(group_id=1), repo)
    second = expense_service.create_expense(ALICE, _data(group_id=1), repo)
    foreign_split = repo.list_splits_for_expense(second.id)[0]

    with pytest.raises(AppError) as exc_info:
        expense_service.set_split_paid(first.id, foreign_split.id, ALICE, True, repo)

    _assert_error(exc_info, ErrorCode.SPLIT_NOT_FOUND, 404)
