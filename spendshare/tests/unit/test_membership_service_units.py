"""
Unit tests for membership_service branches that integration tests touch lightly.

The repository is either an InMemoryRepository or a MagicMock; no Flask.
"""

from __future__ import annotations

import datetime as dt
from unittest.mock import MagicMock

import pytest

from spendshare.app.errors import AppError, ErrorCode
from spendshare.app.repository.base import GroupRecord, MembershipRecord
from spendshare.app.repository.memory import InMemoryRepository
from spendshare.app.services import membership_service


@pytest.fixture()
def repo() -> InMemoryRepository:
    repository = InMemoryRepository()
    for username in ("alice", "bob", "carol"):
        repository.create_user(username, f"{username}@example.com", username.title(), "x")
    return repository


def test_get_group_or_404_raises_when_group_missing():
    repository = MagicMock()
    repository.get_group.return_value = None

    with pytest.raises(AppError) as exc_info:
        membership_service._get_group_or_404(group_id=404, repository=repository)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


def test_require_member_raises_forbidden_when_missing():
    repository = MagicMock()
    repository.has_membership.return_value = False

    with pytest.raises(AppError) as exc_info:
        membership_service._require_member(group_id=1, user_id=999, repository=repository)

    err = exc_info.value
    assert err.code == ErrorCode.FORBIDDEN
    assert err.http_status == 403
    repository.has_membership.assert_called_once_with(1, 999)


def test_members_are_ascending_user_ids():
    repository = MagicMock()
    ts = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
    repository.list_memberships.return_value = [
        MembershipRecord(id=3, group_id=1, user_id=2, joined_at=ts),
        MembershipRecord(id=1, group_id=1, user_id=5, joined_at=ts),
    ]

    assert membership_service.members(1, repository) == [2, 5]


def test_list_groups_serializes_groups():
    repository = MagicMock()
    ts = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
    repository.list_groups_for_user.return_value = [
        GroupRecord(id=1, name="Trip", created_by=10, created_at=ts),
    ]

    assert membership_service.list_groups(10, repository) == [
        {
            "id": 1,
            "name": "Trip",
            "created_by": 10,
            "created_at": ts.isoformat(),
            "is_active": True,
        },
    ]


def test_create_group_makes_creator_a_member(repo):
    payload = membership_service.create_group("Trip", 1, repo, member_ids=[3])

    assert payload["name"] == "Trip"
    assert payload["created_by"] == 1
    assert [m["username"] for m in payload["members"]] == ["alice", "carol"]
    assert membership_service.is_member(1, payload["id"], repo) is True
    assert membership_service.is_member(2, payload["id"], repo) is False


def test_add_member_unknown_user_is_404(repo):
    group = repo.create_group("Trip", created_by=1)

    with pytest.raises(AppError) as exc_info:
        membership_service.add_member(group.id, 42, repo)

    err = exc_info.value
    assert err.code == ErrorCode.USER_NOT_FOUND
    assert err.field == "user_id"


def test_add_member_twice_is_conflict(repo):
    group = repo.create_group("Trip", created_by=1)
    membership_service.add_member(group.id, 2, repo)

    with pytest.raises(AppError) as exc_info:
        membership_service.add_member(group.id, 2, repo)

    assert exc_info.value.code == ErrorCode.ALREADY_MEMBER
    assert exc_info.value.http_status == 409


def test_add_group_member_requires_caller_membership(repo):
    group = repo.create_group("Trip", created_by=1)

    with pytest.raises(AppError) as exc_info:
        membership_service.add_group_member(group.id, caller_id=2, target_user_id=3, repository=repo)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert membership_service.members(group.id, repo) == [1]


def test_add_group_member_returns_membership_payload(repo):
    group = repo.create_group("Trip", created_by=1)

    payload = membership_service.add_group_member(group.id, 1, 3, repo)

    assert payload["group_id"] == group.id
    assert payload["user_id"] == 3
    assert payload["username"] == "carol"
    assert membership_service.members(group.id, repo) == [1, 3]


def test_get_group_lists_members_and_expenses(repo):
    group = repo.create_group("Trip", created_by=1, member_ids=[2])

    payload = membership_service.get_group(group.id, 2, repo)

    assert [m["user_id"] for m in payload["members"]] == [1, 2]
    assert payload["expenses"] == []

    with pytest.raises(AppError) as exc_info:
        membership_service.get_group(group.id, 3, repo)
    assert exc_info.value.http_status == 403
