"""
services/split_allocator.py — Equal split allocation.

allocate() is the only place split amounts are computed. Weighted or custom
allocation strategies belong here too; the balance engine only ever sees
the resulting split rows.

Algorithm (all arithmetic in integer cents):
  base      = floor(total_cents / n)
  remainder = total_cents - base * n        (0 <= remainder < n)
  every participant gets `base`; the first `remainder` participants, in the
  order given, get one extra cent.

Callers pass participants in membership order (ascending user id), so the
same inputs always produce the same output and sum(result) == total exactly.

Layer rules:
  - No Flask imports, no repository access. Pure function.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from spendshare.app.errors import InvalidAllocation
from spendshare.app.repository.base import CENT


def to_cents(amount: Decimal) -> int:
    """Converts a Decimal with at most 2 fractional digits to integer cents."""
    return int(amount.scaleb(2))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) * CENT).quantize(CENT)


def allocate(total: Decimal, participant_ids: Sequence[int]) -> list[tuple[int, Decimal]]:
    """
    Splits `total` across `participant_ids` so the shares sum to `total`.

    Args:
        total:           Positive Decimal with at most 2 fractional digits.
        participant_ids: Ordered, duplicate-free user ids. Order decides who
                         receives the remainder cents.

    Returns:
        [(user_id, amount), ...] in the same order as `participant_ids`.

    Raises:
        InvalidAllocation — no participants, duplicate participants,
                            non-positive total, or sub-cent precision.
    """
    n = len(participant_ids)
    if n == 0:
        raise InvalidAllocation("Cannot allocate an expense across zero participants.")
    if len(set(participant_ids)) != n:
        raise InvalidAllocation("Each participant may appear only once.", field="participants")
    if not isinstance(total, Decimal):
        raise InvalidAllocation(f"Total must be a Decimal, got {type(total).__name__}.")
    if total <= 0:
        raise InvalidAllocation(f"Total must be greater than zero, got {total}.", field="amount")
    if total.as_tuple().exponent < -2:
        raise InvalidAllocation(
            f"Total {total} has more than two decimal places.", field="amount",
        )

    base, remainder = divmod(to_cents(total), n)

    return [
        (user_id, from_cents(base + 1 if index < remainder else base))
        for index, user_id in enumerate(participant_ids)
    ]
