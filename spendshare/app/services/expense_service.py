"""
services/expense_service.py — Expense business logic.

Rules enforced here:
  - amount is a positive Decimal with at most two fractional digits
    (INVALID_AMOUNT / INVALID_AMOUNT_PRECISION, 400)
  - category_id must exist (CATEGORY_NOT_FOUND, 404)
  - a group expense requires the group to exist (GROUP_NOT_FOUND, 404) and
    the owner to be a member (FORBIDDEN, 403)
  - every explicit split participant is the owner or a group member
    (SPLIT_USER_NOT_MEMBER, 422)
  - sum(splits.amount) == amount exactly (SPLIT_SUM_MISMATCH, 422), checked
    again by the repository at the write boundary

Authorization rules:
  - Delete:   expense owner only
  - Read:     owner, any split participant, or a member of the expense's group
  - Paid flag: expense owner or the split's own participant

Equal split computation:
  - With a group and no explicit splits, the membership snapshot is fetched
    ONCE and handed to split_allocator.allocate() in ascending user id order.
    The owner is a member, so the owner's own share is one of the splits.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts plus an ExpenseRepository; returns records.
"""

from __future__ import annotations

import calendar
import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal

from spendshare.app.errors import ErrorCode, Forbidden, NotFound, ValidationError
from spendshare.app.repository.base import (
    CategoryRecord,
    ExpenseRecord,
    ExpenseRepository,
    NewExpense,
    NewSplit,
    SplitRecord,
)
from spendshare.app.services import membership_service
from spendshare.app.services.split_allocator import allocate

logger = logging.getLogger(__name__)

PERIODS = ("day", "week", "month")


@dataclass(frozen=True)
class ExpenseDetail:
    """An expense together with its splits and the participants' usernames."""
    expense: ExpenseRecord
    splits: list[SplitRecord]
    usernames: dict[int, str]


# ── Private helpers ────────────────────────────────────────────────────────

def _get_expense_or_404(expense_id: int, repository: ExpenseRepository) -> ExpenseRecord:
    expense = repository.get_expense(expense_id)
    if expense is None:
        raise NotFound(ErrorCode.EXPENSE_NOT_FOUND, f"Expense {expense_id} does not exist.")
    return expense


def _validate_amount(amount) -> None:
    """Raises INVALID_AMOUNT / INVALID_AMOUNT_PRECISION (400)."""
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise ValidationError(
            "Amount must be a decimal number.", code=ErrorCode.INVALID_AMOUNT, field="amount",
        )
    if amount <= 0:
        raise ValidationError(
            f"Amount must be greater than zero, got {amount}.",
            code=ErrorCode.INVALID_AMOUNT,
            field="amount",
        )
    if amount.as_tuple().exponent < -2:
        raise ValidationError(
            f"Amount {amount} has more than two decimal places.",
            code=ErrorCode.INVALID_AMOUNT_PRECISION,
            field="amount",
        )


def _validate_split_users(
        splits: list[dict],
        owner_id: int,
        group_id: int,
        member_ids: list[int],
) -> None:
    """Raises SPLIT_USER_NOT_MEMBER (422) for the first participant outside the group."""
    allowed = set(member_ids) | {owner_id}
    for split in splits:
        if split["user_id"] not in allowed:
            raise ValidationError(
                f"User {split['user_id']} is not a member of group {group_id}.",
                code=ErrorCode.SPLIT_USER_NOT_MEMBER,
                http_status=422,
                field="splits",
            )


def _build_splits(
        amount: Decimal,
        owner_id: int,
        group_id: int | None,
        raw_splits: list[dict] | None,
        repository: ExpenseRepository,
) -> list[NewSplit]:
    """
    Decides the split rows for a new expense.

    No group             → no splits (explicit splits are rejected by the
                           repository with SPLITS_WITHOUT_GROUP)
    Group, no splits     → equal allocation across the current members
    Group, splits given  → validated caller-supplied amounts
    """
    if group_id is None:
        return [NewSplit(user_id=s["user_id"], amount=s["amount"]) for s in raw_splits or []]

    if repository.get_group(group_id) is None:
        raise NotFound(
            ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", field="group_id",
        )

    # One membership read per creation flow; reused for allocation and checks.
    member_ids = membership_service.members(group_id, repository)
    if owner_id not in member_ids:
        raise Forbidden(f"You are not a member of group {group_id}.")

    if not raw_splits:
        return [NewSplit(user_id=uid, amount=share) for uid, share in allocate(amount, member_ids)]

    _validate_split_users(raw_splits, owner_id, group_id, member_ids)
    return [
        NewSplit(user_id=s["user_id"], amount=s["amount"], paid=s.get("paid", False))
        for s in raw_splits
    ]


def period_window(
        period: str | None,
        start_date: dt.date | None,
        end_date: dt.date | None,
) -> tuple[dt.date | None, dt.date | None]:
    """
    Translates a listing query into an inclusive (start, end) date window.

      day    → (start_date, start_date)
      week   → (start_date, start_date + 6 days)
      month  → first and last day of start_date's month
      none   → (start_date, end_date) as given; either side may be open

    Raises:
        ValidationError(INVALID_PERIOD) — unknown period, a period without
        start_date, or start_date after end_date.
    """
    if period is None:
        if start_date and end_date and start_date > end_date:
            raise ValidationError(
                "start_date must not be after end_date.",
                code=ErrorCode.INVALID_PERIOD,
                field="start_date",
            )
        return start_date, end_date

    if period not in PERIODS:
        raise ValidationError(
            f"'{period}' is not a valid period. Valid values: {', '.join(PERIODS)}.",
            code=ErrorCode.INVALID_PERIOD,
            field="period",
        )
    if start_date is None:
        raise ValidationError(
            f"Period '{period}' requires start_date.",
            code=ErrorCode.INVALID_PERIOD,
            field="start_date",
        )

    if period == "day":
        return start_date, start_date
    if period == "week":
        return start_date, start_date + dt.timedelta(days=6)

    last_day = calendar.monthrange(start_date.year, start_date.month)[1]
    return start_date.replace(day=1), start_date.replace(day=last_day)


# ── Public service functions ───────────────────────────────────────────────

def create_expense(owner_id: int, data: dict, repository: ExpenseRepository) -> ExpenseRecord:
    """
    Records a new expense owned by owner_id.

    Args:
        owner_id:   The authenticated user (flask.g.user_id, passed as an int).
        data:       Validated dict from CreateExpenseSchema: title, amount,
                    date, category_id, notes?, group_id?, splits?.
        repository: Storage boundary; expense and splits are written in one
                    create_expense_with_splits() call.

    Returns:
        The stored ExpenseRecord. is_split is true iff split rows were written.
    """
    amount: Decimal = data["amount"]
    _validate_amount(amount)

    category_id: int = data["category_id"]
    if repository.get_category(category_id) is None:
        raise NotFound(
            ErrorCode.CATEGORY_NOT_FOUND,
            f"Category {category_id} does not exist.",
            field="category_id",
        )

    group_id: int | None = data.get("group_id")
    splits = _build_splits(amount, owner_id, group_id, data.get("splits"), repository)

    expense = repository.create_expense_with_splits(
        NewExpense(
            title=data["title"],
            amount=amount,
            date=data["date"],
            category_id=category_id,
            user_id=owner_id,
            notes=data.get("notes"),
            group_id=group_id,
        ),
        splits,
    )
    logger.info(
        "User %s created expense %s (%s, %d split(s))",
        owner_id, expense.id, expense.amount, len(splits),
    )
    return expense


def describe_expense(expense: ExpenseRecord, repository: ExpenseRepository) -> ExpenseDetail:
    """Loads the splits and participant usernames for an already-authorized expense."""
    splits = repository.list_splits_for_expense(expense.id)
    users = repository.get_users({s.user_id for s in splits} | {expense.user_id})
    return ExpenseDetail(
        expense=expense,
        splits=splits,
        usernames={uid: u.username for uid, u in users.items()},
    )


def get_expense(expense_id: int, caller_id: int, repository: ExpenseRepository) -> ExpenseDetail:
    """
    Returns an expense with its splits.

    Readable by the owner, any split participant, or any member of the
    expense's group; everyone else gets FORBIDDEN (403).
    """
    expense = _get_expense_or_404(expense_id, repository)
    detail = describe_expense(expense, repository)

    allowed = (
        caller_id == expense.user_id
        or any(s.user_id == caller_id for s in detail.splits)
        or (
            expense.group_id is not None
            and membership_service.is_member(caller_id, expense.group_id, repository)
        )
    )
    if not allowed:
        raise Forbidden(f"You may not view expense {expense_id}.")
    return detail


def list_expenses(
        user_id: int,
        repository: ExpenseRepository,
        period: str | None = None,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
) -> list[ExpenseRecord]:
    """Expenses owned by user_id inside the requested window, newest first."""
    start, end = period_window(period, start_date, end_date)
    return repository.list_expenses_by_owner(user_id, start, end)


def delete_expense(expense_id: int, requester_id: int, repository: ExpenseRepository) -> None:
    """
    Hard-deletes an expense and all of its splits in one repository call.

    Raises:
        NotFound(EXPENSE_NOT_FOUND) — expense does not exist.
        Forbidden                   — requester is not the owner.
    """
    expense = _get_expense_or_404(expense_id, repository)
    if expense.user_id != requester_id:
        raise Forbidden("Only the owner may delete this expense.")

    repository.delete_expense(expense_id)
    logger.info("User %s deleted expense %s", requester_id, expense_id)


def set_split_paid(
        expense_id: int,
        split_id: int,
        caller_id: int,
        paid: bool,
        repository: ExpenseRepository,
) -> SplitRecord:
    """
    Marks one split as paid or unpaid.

    Raises:
        NotFound(EXPENSE_NOT_FOUND) — expense does not exist.
        NotFound(SPLIT_NOT_FOUND)   — split does not exist or belongs to
                                      another expense.
        Forbidden                   — caller is neither the expense owner
                                      nor the split's participant.
    """
    expense = _get_expense_or_404(expense_id, repository)

    split = repository.get_split(split_id)
    if split is None or split.expense_id != expense_id:
        raise NotFound(
            ErrorCode.SPLIT_NOT_FOUND,
            f"Split {split_id} does not exist on expense {expense_id}.",
        )

    if caller_id not in (expense.user_id, split.user_id):
        raise Forbidden("Only the expense owner or the split participant may change it.")

    updated = repository.set_split_paid(split_id, paid)
    logger.info("User %s set split %s paid=%s", caller_id, split_id, paid)
    return updated


def list_categories(repository: ExpenseRepository) -> list[CategoryRecord]:
    return repository.list_categories()
