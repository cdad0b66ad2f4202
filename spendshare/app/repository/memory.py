"""
repository/memory.py — In-process ExpenseRepository.

Arena of integer-indexed tables (plain dicts), one monotonic counter per
entity type, guarded by a single re-entrant lock. Ids start at 1 and are
never reused, mirroring a SERIAL column.

Atomic writes: every record of a multi-row write is built and validated
before any table is touched, and all tables are updated under the lock, so
a failure leaves no partial state and readers never see half a write.
"""

from __future__ import annotations

import datetime as dt
import itertools
import logging
import threading
from dataclasses import replace
from typing import Iterable, Sequence

from spendshare.app.errors import AlreadyMember, ErrorCode, NotFound
from spendshare.app.repository.base import (
    CENT,
    CategoryRecord,
    ExpenseRecord,
    ExpenseRepository,
    GroupRecord,
    MembershipRecord,
    NewExpense,
    NewSplit,
    SplitRecord,
    UserRecord,
    check_splits,
)

logger = logging.getLogger(__name__)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _newest_first(expenses: Iterable[ExpenseRecord]) -> list[ExpenseRecord]:
    return sorted(expenses, key=lambda e: (e.date, e.id), reverse=True)


class InMemoryRepository(ExpenseRepository):

    def __init__(self) -> None:
        self._lock = threading.RLock()

        self._users: dict[int, UserRecord] = {}
        self._categories: dict[int, CategoryRecord] = {}
        self._groups: dict[int, GroupRecord] = {}
        self._memberships: dict[int, MembershipRecord] = {}
        self._expenses: dict[int, ExpenseRecord] = {}
        self._splits: dict[int, SplitRecord] = {}

        self._user_ids = itertools.count(1)
        self._category_ids = itertools.count(1)
        self._group_ids = itertools.count(1)
        self._membership_ids = itertools.count(1)
        self._expense_ids = itertools.count(1)
        self._split_ids = itertools.count(1)

    # ── Users ──────────────────────────────────────────────────────────────

    def create_user(self, username: str, email: str, name: str, password_hash: str) -> UserRecord:
        with self._lock:
            user = UserRecord(
                id=next(self._user_ids),
                username=username,
                email=email,
                name=name,
                password_hash=password_hash,
                created_at=_now(),
            )
            self._users[user.id] = user
            return user

    def get_user(self, user_id: int) -> UserRecord | None:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> UserRecord | None:
        with self._lock:
            return next((u for u in self._users.values() if u.username == username), None)

    def get_user_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def get_users(self, user_ids: Iterable[int]) -> dict[int, UserRecord]:
        with self._lock:
            return {uid: self._users[uid] for uid in user_ids if uid in self._users}

    # ── Categories ─────────────────────────────────────────────────────────

    def create_category(self, name: str, icon: str, color: str) -> CategoryRecord:
        with self._lock:
            category = CategoryRecord(
                id=next(self._category_ids), name=name, icon=icon, color=color,
            )
            self._categories[category.id] = category
            return category

    def get_category(self, category_id: int) -> CategoryRecord | None:
        return self._categories.get(category_id)

    def list_categories(self) -> list[CategoryRecord]:
        with self._lock:
            return sorted(self._categories.values(), key=lambda c: c.id)

    # ── Groups & membership ────────────────────────────────────────────────

    def create_group(
            self,
            name: str,
            created_by: int,
            member_ids: Sequence[int] = (),
    ) -> GroupRecord:
        with self._lock:
            ordered = [created_by]
            for uid in member_ids:
                if uid not in ordered:
                    ordered.append(uid)

            missing = [uid for uid in ordered if uid not in self._users]
            if missing:
                raise NotFound(
                    ErrorCode.USER_NOT_FOUND,
                    f"User {missing[0]} does not exist.",
                    field="members",
                )

            now = _now()
            group = GroupRecord(
                id=next(self._group_ids),
                name=name,
                created_by=created_by,
                created_at=now,
            )
            memberships = [
                MembershipRecord(
                    id=next(self._membership_ids),
                    group_id=group.id,
                    user_id=uid,
                    joined_at=now,
                )
                for uid in ordered
            ]

            self._groups[group.id] = group
            for membership in memberships:
                self._memberships[membership.id] = membership
            return group

    def get_group(self, group_id: int) -> GroupRecord | None:
        return self._groups.get(group_id)

    def list_groups_for_user(self, user_id: int) -> list[GroupRecord]:
        with self._lock:
            group_ids = {
                m.group_id for m in self._memberships.values() if m.user_id == user_id
            }
            groups = [self._groups[gid] for gid in group_ids if gid in self._groups]
            return sorted(groups, key=lambda g: (g.created_at, g.id))

    def add_membership(self, group_id: int, user_id: int) -> MembershipRecord:
        with self._lock:
            if self.has_membership(group_id, user_id):
                raise AlreadyMember(group_id, user_id)
            membership = MembershipRecord(
                id=next(self._membership_ids),
                group_id=group_id,
                user_id=user_id,
                joined_at=_now(),
            )
            self._memberships[membership.id] = membership
            return membership

    def has_membership(self, group_id: int, user_id: int) -> bool:
        with self._lock:
            return any(
                m.group_id == group_id and m.user_id == user_id
                for m in self._memberships.values()
            )

    def list_memberships(self, group_id: int) -> list[MembershipRecord]:
        with self._lock:
            rows = [m for m in self._memberships.values() if m.group_id == group_id]
            return sorted(rows, key=lambda m: m.user_id)

    # ── Expenses & splits ──────────────────────────────────────────────────

    def create_expense_with_splits(
            self,
            expense: NewExpense,
            splits: Sequence[NewSplit] = (),
    ) -> ExpenseRecord:
        check_splits(expense, splits)

        with self._lock:
            record = ExpenseRecord(
                id=next(self._expense_ids),
                title=expense.title,
                amount=expense.amount.quantize(CENT),
                date=expense.date,
                category_id=expense.category_id,
                user_id=expense.user_id,
                notes=expense.notes,
                is_split=bool(splits),
                group_id=expense.group_id,
            )
            split_records = [
                SplitRecord(
                    id=next(self._split_ids),
                    expense_id=record.id,
                    user_id=s.user_id,
                    amount=s.amount.quantize(CENT),
                    paid=s.paid,
                )
                for s in splits
            ]

            self._expenses[record.id] = record
            for split in split_records:
                self._splits[split.id] = split

        logger.debug("Stored expense %s with %d split(s)", record.id, len(split_records))
        return record

    def get_expense(self, expense_id: int) -> ExpenseRecord | None:
        return self._expenses.get(expense_id)

    def delete_expense(self, expense_id: int) -> None:
        with self._lock:
            split_ids = [s.id for s in self._splits.values() if s.expense_id == expense_id]
            for split_id in split_ids:
                del self._splits[split_id]
            self._expenses.pop(expense_id, None)

    def list_expenses_by_owner(
            self,
            user_id: int,
            start: dt.date | None = None,
            end: dt.date | None = None,
    ) -> list[ExpenseRecord]:
        with self._lock:
            rows = [
                e for e in self._expenses.values()
                if e.user_id == user_id
                and (start is None or e.date >= start)
                and (end is None or e.date <= end)
            ]
        return _newest_first(rows)

    def list_expenses_by_ids(self, expense_ids: Iterable[int]) -> list[ExpenseRecord]:
        with self._lock:
            return [self._expenses[eid] for eid in set(expense_ids) if eid in self._expenses]

    def list_group_expenses(self, group_id: int) -> list[ExpenseRecord]:
        with self._lock:
            rows = [e for e in self._expenses.values() if e.group_id == group_id]
        return _newest_first(rows)

    def list_splits_for_expenses(self, expense_ids: Iterable[int]) -> list[SplitRecord]:
        wanted = set(expense_ids)
        with self._lock:
            rows = [s for s in self._splits.values() if s.expense_id in wanted]
        return sorted(rows, key=lambda s: s.id)

    def list_splits_for_participant(self, user_id: int) -> list[SplitRecord]:
        with self._lock:
            rows = [s for s in self._splits.values() if s.user_id == user_id]
        return sorted(rows, key=lambda s: s.id)

    def get_split(self, split_id: int) -> SplitRecord | None:
        return self._splits.get(split_id)

    def set_split_paid(self, split_id: int, paid: bool) -> SplitRecord:
        with self._lock:
            split = self._splits.get(split_id)
            if split is None:
                raise NotFound(ErrorCode.SPLIT_NOT_FOUND, f"Split {split_id} does not exist.")
            updated = replace(split, paid=paid)
            self._splits[split_id] = updated
            return updated
