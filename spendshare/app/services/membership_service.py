"""
services/membership_service.py — Group membership facts and group operations.

Resolver (used by the expense service and the routes):
  is_member(user_id, group_id)   → bool
  members(group_id)              → member user ids, ascending
  add_member(group_id, user_id)  → MembershipRecord

Authorization rules:
  - Reading a group or adding a member: caller must already be a member.
    Non-members receive 403, not 404, once the group is known to exist.

Layer rules:
  - No Flask imports. Receives plain ints and an ExpenseRepository.
  - The repository commits; nothing here touches a session.
"""

from __future__ import annotations

import logging
from typing import Sequence

from spendshare.app.errors import ErrorCode, Forbidden, NotFound
from spendshare.app.repository.base import (
    ExpenseRecord,
    ExpenseRepository,
    GroupRecord,
    MembershipRecord,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_group_or_404(group_id: int, repository: ExpenseRepository) -> GroupRecord:
    group = repository.get_group(group_id)
    if group is None:
        raise NotFound(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.")
    return group


def _require_member(group_id: int, user_id: int, repository: ExpenseRepository) -> None:
    if not repository.has_membership(group_id, user_id):
        raise Forbidden(f"You are not a member of group {group_id}.")


def _build_group_dict(group: GroupRecord) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "created_by": group.created_by,
        "created_at": group.created_at.isoformat(),
        "is_active": group.is_active,
    }


def _build_expense_summary(expense: ExpenseRecord) -> dict:
    return {
        "id": expense.id,
        "title": expense.title,
        "amount": str(expense.amount),
        "date": expense.date.isoformat(),
        "user_id": expense.user_id,
        "category_id": expense.category_id,
        "is_split": expense.is_split,
    }


def _build_member_dicts(
        memberships: list[MembershipRecord],
        repository: ExpenseRepository,
) -> list[dict]:
    users = repository.get_users(m.user_id for m in memberships)
    return [
        {
            "user_id": m.user_id,
            "username": users[m.user_id].username if m.user_id in users else None,
            "name": users[m.user_id].name if m.user_id in users else None,
            "joined_at": m.joined_at.isoformat(),
        }
        for m in memberships
    ]


# ── Resolver ───────────────────────────────────────────────────────────────

def is_member(user_id: int, group_id: int, repository: ExpenseRepository) -> bool:
    return repository.has_membership(group_id, user_id)


def members(group_id: int, repository: ExpenseRepository) -> list[int]:
    """
    Member user ids of a group in ascending order.

    This ordering is what the split allocator uses to hand out remainder
    cents, so it must stay stable across backends.
    """
    return [m.user_id for m in repository.list_memberships(group_id)]


def add_member(group_id: int, user_id: int, repository: ExpenseRepository) -> MembershipRecord:
    """
    Raises:
        NotFound(GROUP_NOT_FOUND)  — group does not exist
        NotFound(USER_NOT_FOUND)   — user does not exist
        AlreadyMember              — the pair already exists
    """
    _get_group_or_404(group_id, repository)
    if repository.get_user(user_id) is None:
        raise NotFound(
            ErrorCode.USER_NOT_FOUND, f"User {user_id} does not exist.", field="user_id",
        )

    membership = repository.add_membership(group_id, user_id)
    logger.info("User %s joined group %s", user_id, group_id)
    return membership


# ── Group operations ───────────────────────────────────────────────────────

def create_group(
        name: str,
        creator_id: int,
        repository: ExpenseRepository,
        member_ids: Sequence[int] = (),
) -> dict:
    """
    Creates a group. The creator becomes the first member in the same write;
    `member_ids` are added alongside (duplicates and the creator are ignored).

    Raises:
        NotFound(USER_NOT_FOUND) — one of member_ids does not exist; nothing
                                   is written.
    """
    group = repository.create_group(name, creator_id, member_ids)
    logger.info("User %s created group %s", creator_id, group.id)

    payload = _build_group_dict(group)
    payload["members"] = _build_member_dicts(repository.list_memberships(group.id), repository)
    return payload


def list_groups(user_id: int, repository: ExpenseRepository) -> list[dict]:
    """Groups the user belongs to, oldest first. No member lists."""
    return [_build_group_dict(g) for g in repository.list_groups_for_user(user_id)]


def get_group(group_id: int, caller_id: int, repository: ExpenseRepository) -> dict:
    """Group details with members and the group's expenses, newest first."""
    group = _get_group_or_404(group_id, repository)
    _require_member(group_id, caller_id, repository)

    payload = _build_group_dict(group)
    payload["members"] = _build_member_dicts(repository.list_memberships(group_id), repository)
    payload["expenses"] = [
        _build_expense_summary(e) for e in repository.list_group_expenses(group_id)
    ]
    return payload


def add_group_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        repository: ExpenseRepository,
) -> dict:
    """
    Adds target_user_id to the group on behalf of caller_id.

    Raises:
        NotFound(GROUP_NOT_FOUND)  — group does not exist
        Forbidden                  — caller is not a member
        NotFound(USER_NOT_FOUND)   — target user does not exist
        AlreadyMember              — target is already a member
    """
    _get_group_or_404(group_id, repository)
    _require_member(group_id, caller_id, repository)

    membership = add_member(group_id, target_user_id, repository)
    target = repository.get_user(target_user_id)
    return {
        "group_id": membership.group_id,
        "user_id": membership.user_id,
        "username": target.username if target is not None else None,
        "joined_at": membership.joined_at.isoformat(),
    }
