"""
repository/base.py — The Expense Repository contract.

The ledger never talks to a storage technology directly. Services receive an
ExpenseRepository and call the narrow set of operations defined here. Two
implementations exist:

  InMemoryRepository   (repository/memory.py) — integer-indexed tables with
                       monotonic counters per entity; tests and local runs.
  SqlAlchemyRepository (repository/sql.py)    — Flask-SQLAlchemy models;
                       production.

Every read returns immutable *Record objects, never ORM instances, so the
balance engine and its tests are identical across backends.

Write atomicity is part of the contract, not caller discipline:
  - create_expense_with_splits() writes the expense and all its splits, or
    nothing at all.
  - create_group() writes the group and the creator's membership (plus any
    initial members), or nothing at all.
  - delete_expense() removes the expense and all its splits together.

Failures at the storage boundary (connection loss, timeouts) surface as
RepositoryUnavailable. Implementations never retry.
"""

from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from spendshare.app.errors import ErrorCode, ValidationError

# Storage scale for every monetary column, matching Numeric(12, 2).
CENT = Decimal("0.01")


# ── Records ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    email: str
    name: str
    password_hash: str
    created_at: dt.datetime


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    name: str
    icon: str
    color: str


@dataclass(frozen=True)
class GroupRecord:
    id: int
    name: str
    created_by: int
    created_at: dt.datetime
    is_active: bool = True


@dataclass(frozen=True)
class MembershipRecord:
    id: int
    group_id: int
    user_id: int
    joined_at: dt.datetime


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    title: str
    amount: Decimal
    date: dt.date
    category_id: int
    user_id: int
    notes: str | None = None
    is_split: bool = False
    group_id: int | None = None


@dataclass(frozen=True)
class SplitRecord:
    id: int
    expense_id: int
    user_id: int
    amount: Decimal
    paid: bool = False


# ── Write payloads ─────────────────────────────────────────────────────────
# What callers hand to the repository before ids exist.

@dataclass(frozen=True)
class NewExpense:
    title: str
    amount: Decimal
    date: dt.date
    category_id: int
    user_id: int
    notes: str | None = None
    group_id: int | None = None


@dataclass(frozen=True)
class NewSplit:
    user_id: int
    amount: Decimal
    paid: bool = False


def check_splits(expense: NewExpense, splits: Sequence[NewSplit]) -> None:
    """
    Write-boundary guard shared by every implementation.

    Rejects a split list that would break the ledger, whoever built it:
      - split rows on an expense with no group (nobody to share with)
      - the same participant twice
      - a negative share, or one with more than two decimal places
      - sum(splits.amount) != expense.amount, exact Decimal comparison

    An empty list is always valid: it means an unsplit expense.
    """
    if not splits:
        return

    if expense.group_id is None:
        raise ValidationError(
            "Only group expenses can be split.",
            code=ErrorCode.SPLITS_WITHOUT_GROUP,
            http_status=422,
            field="group_id",
        )

    seen: set[int] = set()
    for split in splits:
        if split.user_id in seen:
            raise ValidationError(
                f"User {split.user_id} appears more than once in the splits.",
                code=ErrorCode.DUPLICATE_SPLIT_USER,
                field="splits",
            )
        seen.add(split.user_id)

        if not split.amount.is_finite() or split.amount < 0:
            raise ValidationError(
                f"Split amount for user {split.user_id} must be zero or more, got {split.amount}.",
                code=ErrorCode.INVALID_AMOUNT,
                field="splits",
            )
        if split.amount.as_tuple().exponent < -2:
            raise ValidationError(
                f"Split amount {split.amount} has more than two decimal places.",
                code=ErrorCode.INVALID_AMOUNT_PRECISION,
                field="splits",
            )

    total = sum((s.amount for s in splits), Decimal("0.00"))
    if total != expense.amount:
        raise ValidationError(
            f"Split amounts ({total}) do not equal expense amount ({expense.amount}).",
            code=ErrorCode.SPLIT_SUM_MISMATCH,
            http_status=422,
            field="splits",
        )


# ── Contract ───────────────────────────────────────────────────────────────

class ExpenseRepository(ABC):

    # ── Users ──────────────────────────────────────────────────────────────

    @abstractmethod
    def create_user(self, username: str, email: str, name: str, password_hash: str) -> UserRecord:
        ...

    @abstractmethod
    def get_user(self, user_id: int) -> UserRecord | None:
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> UserRecord | None:
        ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> UserRecord | None:
        ...

    @abstractmethod
    def get_users(self, user_ids: Iterable[int]) -> dict[int, UserRecord]:
        """Returns {id: user} for the ids that exist; unknown ids are skipped."""

    # ── Categories ─────────────────────────────────────────────────────────

    @abstractmethod
    def create_category(self, name: str, icon: str, color: str) -> CategoryRecord:
        ...

    @abstractmethod
    def get_category(self, category_id: int) -> CategoryRecord | None:
        ...

    @abstractmethod
    def list_categories(self) -> list[CategoryRecord]:
        """All categories ordered by id."""

    # ── Groups & membership ────────────────────────────────────────────────

    @abstractmethod
    def create_group(
            self,
            name: str,
            created_by: int,
            member_ids: Sequence[int] = (),
    ) -> GroupRecord:
        """
        Creates a group with `created_by` as its first member, then adds
        `member_ids` in order. One atomic write.
        """

    @abstractmethod
    def get_group(self, group_id: int) -> GroupRecord | None:
        ...

    @abstractmethod
    def list_groups_for_user(self, user_id: int) -> list[GroupRecord]:
        """Groups the user belongs to, oldest first."""

    @abstractmethod
    def add_membership(self, group_id: int, user_id: int) -> MembershipRecord:
        """Raises AlreadyMember if the (group, user) pair exists."""

    @abstractmethod
    def has_membership(self, group_id: int, user_id: int) -> bool:
        ...

    @abstractmethod
    def list_memberships(self, group_id: int) -> list[MembershipRecord]:
        """Memberships of a group ordered by ascending user id."""

    # ── Expenses & splits ──────────────────────────────────────────────────

    @abstractmethod
    def create_expense_with_splits(
            self,
            expense: NewExpense,
            splits: Sequence[NewSplit] = (),
    ) -> ExpenseRecord:
        """
        Persists an expense and its splits as one unit. `is_split` is derived
        from `splits`. Implementations call check_splits() first.
        """

    @abstractmethod
    def get_expense(self, expense_id: int) -> ExpenseRecord | None:
        ...

    @abstractmethod
    def delete_expense(self, expense_id: int) -> None:
        """Removes the expense and all of its splits. No-op if absent."""

    @abstractmethod
    def list_expenses_by_owner(
            self,
            user_id: int,
            start: dt.date | None = None,
            end: dt.date | None = None,
    ) -> list[ExpenseRecord]:
        """
        Expenses owned by `user_id`, optionally limited to start <= date <= end
        (both inclusive). Newest first: date desc, then id desc.
        """

    @abstractmethod
    def list_expenses_by_ids(self, expense_ids: Iterable[int]) -> list[ExpenseRecord]:
        ...

    @abstractmethod
    def list_group_expenses(self, group_id: int) -> list[ExpenseRecord]:
        """Expenses attached to a group. Newest first."""

    @abstractmethod
    def list_splits_for_expenses(self, expense_ids: Iterable[int]) -> list[SplitRecord]:
        """Splits of the given expenses ordered by split id."""

    def list_splits_for_expense(self, expense_id: int) -> list[SplitRecord]:
        return self.list_splits_for_expenses([expense_id])

    @abstractmethod
    def list_splits_for_participant(self, user_id: int) -> list[SplitRecord]:
        """Every split naming `user_id`, whoever owns the expense."""

    @abstractmethod
    def get_split(self, split_id: int) -> SplitRecord | None:
        ...

    @abstractmethod
    def set_split_paid(self, split_id: int, paid: bool) -> SplitRecord:
        ...
