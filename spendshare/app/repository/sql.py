"""
repository/sql.py — ExpenseRepository backed by Flask-SQLAlchemy.

One repository instance wraps one request-scoped session (db.session).
Each write method is its own transaction: it commits on success and rolls
back on any error, so the atomicity promised by the contract is structural.
Reads run in the session's implicit transaction and are not
snapshot-isolated across calls.

Error translation at the storage boundary:
  IntegrityError on the membership unique constraint → AlreadyMember
  any other DBAPIError / pool TimeoutError          → RepositoryUnavailable
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Sequence

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from spendshare.app.errors import AlreadyMember, ErrorCode, NotFound, RepositoryUnavailable
from spendshare.app.models.category import Category
from spendshare.app.models.expense import Expense
from spendshare.app.models.group import Group
from spendshare.app.models.membership import Membership
from spendshare.app.models.split import ExpenseSplit
from spendshare.app.models.user import User
from spendshare.app.repository.base import (
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


# ── Row → record converters ────────────────────────────────────────────────

def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        password_hash=user.password_hash,
        created_at=user.created_at,
    )


def _category_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=category.id, name=category.name, icon=category.icon, color=category.color,
    )


def _group_record(group: Group) -> GroupRecord:
    return GroupRecord(
        id=group.id,
        name=group.name,
        created_by=group.created_by,
        created_at=group.created_at,
        is_active=group.is_active,
    )


def _membership_record(membership: Membership) -> MembershipRecord:
    return MembershipRecord(
        id=membership.id,
        group_id=membership.group_id,
        user_id=membership.user_id,
        joined_at=membership.joined_at,
    )


def _expense_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=expense.id,
        title=expense.title,
        amount=expense.amount,
        date=expense.date,
        category_id=expense.category_id,
        user_id=expense.user_id,
        notes=expense.notes,
        is_split=expense.is_split,
        group_id=expense.group_id,
    )


def _split_record(split: ExpenseSplit) -> SplitRecord:
    return SplitRecord(
        id=split.id,
        expense_id=split.expense_id,
        user_id=split.user_id,
        amount=split.amount,
        paid=split.paid,
    )


class SqlAlchemyRepository(ExpenseRepository):

    def __init__(self, session: Session) -> None:
        self.session = session

    # ── Transaction helpers ────────────────────────────────────────────────

    @contextmanager
    def _write(self) -> Iterator[None]:
        """Commit on success; roll back and translate storage failures."""
        try:
            yield
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        except (DBAPIError, PoolTimeoutError) as exc:
            self.session.rollback()
            logger.error("Write to expense store failed: %s", exc)
            raise RepositoryUnavailable() from exc
        except Exception:
            self.session.rollback()
            raise

    @contextmanager
    def _read(self) -> Iterator[None]:
        try:
            yield
        except (DBAPIError, PoolTimeoutError) as exc:
            self.session.rollback()
            logger.error("Read from expense store failed: %s", exc)
            raise RepositoryUnavailable() from exc

    def _scalars(self, stmt) -> list:
        with self._read():
            return list(self.session.execute(stmt).scalars().all())

    def _get(self, model, ident: int):
        with self._read():
            return self.session.get(model, ident)

    # ── Users ──────────────────────────────────────────────────────────────

    def create_user(self, username: str, email: str, name: str, password_hash: str) -> UserRecord:
        user = User(username=username, email=email, name=name, password_hash=password_hash)
        with self._write():
            self.session.add(user)
        return _user_record(user)

    def get_user(self, user_id: int) -> UserRecord | None:
        user = self._get(User, user_id)
        return _user_record(user) if user is not None else None

    def get_user_by_username(self, username: str) -> UserRecord | None:
        rows = self._scalars(select(User).where(User.username == username))
        return _user_record(rows[0]) if rows else None

    def get_user_by_email(self, email: str) -> UserRecord | None:
        rows = self._scalars(select(User).where(User.email == email))
        return _user_record(rows[0]) if rows else None

    def get_users(self, user_ids: Iterable[int]) -> dict[int, UserRecord]:
        ids = set(user_ids)
        if not ids:
            return {}
        rows = self._scalars(select(User).where(User.id.in_(ids)))
        return {u.id: _user_record(u) for u in rows}

    # ── Categories ─────────────────────────────────────────────────────────

    def create_category(self, name: str, icon: str, color: str) -> CategoryRecord:
        category = Category(name=name, icon=icon, color=color)
        with self._write():
            self.session.add(category)
        return _category_record(category)

    def get_category(self, category_id: int) -> CategoryRecord | None:
        category = self._get(Category, category_id)
        return _category_record(category) if category is not None else None

    def list_categories(self) -> list[CategoryRecord]:
        rows = self._scalars(select(Category).order_by(Category.id.asc()))
        return [_category_record(c) for c in rows]

    # ── Groups & membership ────────────────────────────────────────────────

    def create_group(
            self,
            name: str,
            created_by: int,
            member_ids: Sequence[int] = (),
    ) -> GroupRecord:
        ordered = [created_by]
        for uid in member_ids:
            if uid not in ordered:
                ordered.append(uid)

        found = set(self._scalars(select(User.id).where(User.id.in_(ordered))))
        missing = [uid for uid in ordered if uid not in found]
        if missing:
            raise NotFound(
                ErrorCode.USER_NOT_FOUND,
                f"User {missing[0]} does not exist.",
                field="members",
            )

        group = Group(name=name, created_by=created_by)
        with self._write():
            self.session.add(group)
            self.session.flush()  # populate group.id before creating memberships
            for uid in ordered:
                self.session.add(Membership(group_id=group.id, user_id=uid))
        return _group_record(group)

    def get_group(self, group_id: int) -> GroupRecord | None:
        group = self._get(Group, group_id)
        return _group_record(group) if group is not None else None

    def list_groups_for_user(self, user_id: int) -> list[GroupRecord]:
        stmt = (
            select(Group)
            .join(Membership, Group.id == Membership.group_id)
            .where(Membership.user_id == user_id)
            .order_by(Group.created_at.asc(), Group.id.asc())
        )
        return [_group_record(g) for g in self._scalars(stmt)]

    def add_membership(self, group_id: int, user_id: int) -> MembershipRecord:
        if self.has_membership(group_id, user_id):
            raise AlreadyMember(group_id, user_id)

        membership = Membership(group_id=group_id, user_id=user_id)
        try:
            with self._write():
                self.session.add(membership)
        except IntegrityError as exc:
            # Lost the race against a concurrent add of the same pair.
            raise AlreadyMember(group_id, user_id) from exc
        return _membership_record(membership)

    def has_membership(self, group_id: int, user_id: int) -> bool:
        stmt = (
            select(Membership.id)
            .where(Membership.group_id == group_id, Membership.user_id == user_id)
            .limit(1)
        )
        return bool(self._scalars(stmt))

    def list_memberships(self, group_id: int) -> list[MembershipRecord]:
        stmt = (
            select(Membership)
            .where(Membership.group_id == group_id)
            .order_by(Membership.user_id.asc())
        )
        return [_membership_record(m) for m in self._scalars(stmt)]

    # ── Expenses & splits ──────────────────────────────────────────────────

    def create_expense_with_splits(
            self,
            expense: NewExpense,
            splits: Sequence[NewSplit] = (),
    ) -> ExpenseRecord:
        check_splits(expense, splits)

        row = Expense(
            title=expense.title,
            amount=expense.amount,
            date=expense.date,
            category_id=expense.category_id,
            user_id=expense.user_id,
            notes=expense.notes,
            is_split=bool(splits),
            group_id=expense.group_id,
        )
        row.splits = [
            ExpenseSplit(user_id=s.user_id, amount=s.amount, paid=s.paid)
            for s in splits
        ]
        with self._write():
            self.session.add(row)

        logger.debug("Stored expense %s with %d split(s)", row.id, len(splits))
        return _expense_record(row)

    def get_expense(self, expense_id: int) -> ExpenseRecord | None:
        expense = self._get(Expense, expense_id)
        return _expense_record(expense) if expense is not None else None

    def delete_expense(self, expense_id: int) -> None:
        expense = self._get(Expense, expense_id)
        if expense is None:
            return
        with self._write():
            # cascade="all, delete-orphan" removes the splits in the same flush.
            self.session.delete(expense)

    def list_expenses_by_owner(
            self,
            user_id: int,
            start: dt.date | None = None,
            end: dt.date | None = None,
    ) -> list[ExpenseRecord]:
        stmt = select(Expense).where(Expense.user_id == user_id)
        if start is not None:
            stmt = stmt.where(Expense.date >= start)
        if end is not None:
            stmt = stmt.where(Expense.date <= end)
        stmt = stmt.order_by(Expense.date.desc(), Expense.id.desc())
        return [_expense_record(e) for e in self._scalars(stmt)]

    def list_expenses_by_ids(self, expense_ids: Iterable[int]) -> list[ExpenseRecord]:
        ids = set(expense_ids)
        if not ids:
            return []
        rows = self._scalars(select(Expense).where(Expense.id.in_(ids)))
        return [_expense_record(e) for e in rows]

    def list_group_expenses(self, group_id: int) -> list[ExpenseRecord]:
        stmt = (
            select(Expense)
            .where(Expense.group_id == group_id)
            .order_by(Expense.date.desc(), Expense.id.desc())
        )
        return [_expense_record(e) for e in self._scalars(stmt)]

    def list_splits_for_expenses(self, expense_ids: Iterable[int]) -> list[SplitRecord]:
        ids = set(expense_ids)
        if not ids:
            return []
        stmt = (
            select(ExpenseSplit)
            .where(ExpenseSplit.expense_id.in_(ids))
            .order_by(ExpenseSplit.id.asc())
        )
        return [_split_record(s) for s in self._scalars(stmt)]

    def list_splits_for_participant(self, user_id: int) -> list[SplitRecord]:
        stmt = (
            select(ExpenseSplit)
            .where(ExpenseSplit.user_id == user_id)
            .order_by(ExpenseSplit.id.asc())
        )
        return [_split_record(s) for s in self._scalars(stmt)]

    def get_split(self, split_id: int) -> SplitRecord | None:
        split = self._get(ExpenseSplit, split_id)
        return _split_record(split) if split is not None else None

    def set_split_paid(self, split_id: int, paid: bool) -> SplitRecord:
        split = self._get(ExpenseSplit, split_id)
        if split is None:
            raise NotFound(ErrorCode.SPLIT_NOT_FOUND, f"Split {split_id} does not exist.")
        with self._write():
            split.paid = paid
        return _split_record(split)

