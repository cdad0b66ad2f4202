"""
services/balance_service.py — Per-user balance computation.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
The formula must not be reimplemented elsewhere in the codebase.

Two steps, deliberately separated:
  fetch_balance_inputs()    — three repository reads (owned expenses, splits
                              naming the user with their owning expenses,
                              splits on the user's own expenses).
  compute_balance_report()  — pure aggregation over those collections.
                              No I/O, fully unit-testable with plain records.

Balances are never stored and never cached. Every call recomputes from the
current repository state. The reads are not wrapped in one snapshot, so a
write landing mid-computation may or may not be reflected.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives user_id (int) and an ExpenseRepository as arguments.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from spendshare.app.errors import ErrorCode, NotFound
from spendshare.app.repository.base import ExpenseRecord, ExpenseRepository, SplitRecord

ZERO = Decimal("0.00")


# ── Report types ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DebtSummary:
    """
    One side of the ledger for a user.

    total  — sum of the unpaid split amounts
    count  — number of split rows (obligation instances, not distinct people)
    groups — number of distinct groups those splits' expenses belong to
    """
    total: Decimal = ZERO
    count: int = 0
    groups: int = 0

    def to_dict(self) -> dict:
        return {"total": str(self.total), "count": self.count, "groups": self.groups}


@dataclass(frozen=True)
class BalanceReport:
    total_spent: Decimal = ZERO
    you_owe: DebtSummary = field(default_factory=DebtSummary)
    you_are_owed: DebtSummary = field(default_factory=DebtSummary)
    # Sparse: categories with no spend are absent, callers treat absence as zero.
    total_by_category: dict[int, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_spent": str(self.total_spent),
            "you_owe": self.you_owe.to_dict(),
            "you_are_owed": self.you_are_owed.to_dict(),
            # JSON object keys are strings; ordered by category id.
            "total_by_category": {
                str(category_id): str(amount)
                for category_id, amount in sorted(self.total_by_category.items())
            },
        }


@dataclass(frozen=True)
class BalanceInputs:
    """Everything compute_balance_report() needs, already fetched."""
    owned_expenses: list[ExpenseRecord]
    # Splits naming the user, each paired with the expense it belongs to.
    participations: list[tuple[SplitRecord, ExpenseRecord]]
    # Splits on the user's own expenses (any participant).
    owned_splits: list[SplitRecord]


# ── Data access ────────────────────────────────────────────────────────────

def fetch_balance_inputs(user_id: int, repository: ExpenseRepository) -> BalanceInputs:
    """
    Reads the three collections the report is built from.

    A RepositoryUnavailable from any read propagates unchanged: a partial
    balance is worse than no balance.
    """
    owned_expenses = repository.list_expenses_by_owner(user_id)

    participant_splits = repository.list_splits_for_participant(user_id)
    parents = {
        e.id: e
        for e in repository.list_expenses_by_ids({s.expense_id for s in participant_splits})
    }
    # A split whose expense vanished between the two reads is skipped.
    participations = [
        (split, parents[split.expense_id])
        for split in participant_splits
        if split.expense_id in parents
    ]

    owned_splits = repository.list_splits_for_expenses([e.id for e in owned_expenses])

    return BalanceInputs(
        owned_expenses=owned_expenses,
        participations=participations,
        owned_splits=owned_splits,
    )


# ── Core algorithm ─────────────────────────────────────────────────────────

def _summarise(splits: list[SplitRecord], group_of: dict[int, int | None]) -> DebtSummary:
    """Totals unpaid `splits`; `group_of` maps expense_id → group_id."""
    total = sum((s.amount for s in splits), ZERO)
    groups = {group_of[s.expense_id] for s in splits} - {None}
    return DebtSummary(total=total, count=len(splits), groups=len(groups))


def compute_balance_report(user_id: int, inputs: BalanceInputs) -> BalanceReport:
    """
    Canonical balance computation for one user.

    total_spent / total_by_category:
        every expense the user owns, split or not. This is the user's cash
        outlay, not their net share.
    you_owe:
        unpaid splits naming the user on expenses owned by someone else.
    you_are_owed:
        unpaid splits naming someone else on expenses the user owns.

    Self-splits (participant == owner) land on neither side. Unsplit
    expenses have no splits, so they only ever reach the spending totals.
    """
    total_spent = ZERO
    by_category: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for expense in inputs.owned_expenses:
        total_spent += expense.amount
        by_category[expense.category_id] += expense.amount

    owing = [
        split for split, expense in inputs.participations
        if expense.user_id != user_id and not split.paid
    ]
    owing_groups = {expense.id: expense.group_id for _, expense in inputs.participations}

    owed = [
        split for split in inputs.owned_splits
        if split.user_id != user_id and not split.paid
    ]
    owed_groups = {expense.id: expense.group_id for expense in inputs.owned_expenses}

    return BalanceReport(
        total_spent=total_spent,
        you_owe=_summarise(owing, owing_groups),
        you_are_owed=_summarise(owed, owed_groups),
        total_by_category=dict(by_category),
    )


def get_balances(user_id: int, repository: ExpenseRepository) -> BalanceReport:
    """
    Builds the balance report for GET /balances.

    Raises:
        NotFound(USER_NOT_FOUND)  — user_id does not exist.
        RepositoryUnavailable     — any read failed; no partial report.
    """
    if repository.get_user(user_id) is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, f"User {user_id} does not exist.")

    return compute_balance_report(user_id, fetch_balance_inputs(user_id, repository))
