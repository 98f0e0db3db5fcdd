# tests/test_groups.py
"""Tests for group administration and the admin-only access rules."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from minichat.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from minichat.models import Group, GroupMember, Message
from minichat.models.base import utcnow
from minichat.repositories.group_repository import GroupRepository
from minichat.schemas.group import HistoryOption
from minichat.services.access import can_manage_group, is_message_owner
from minichat.services.groups import GroupService
from tests.conftest import create_message

pytestmark = pytest.mark.asyncio


async def test_creator_becomes_the_only_admin(db_session, alice, bob, carol) -> None:
    group = await GroupService(db_session).create_group(alice.id, "  Book club ", [bob.id, carol.id, bob.id])

    members = await GroupRepository(db_session).get_members(group.id)

    assert group.name == "Book club"
    assert [(m.user_id, m.is_admin) for m in members] == [(alice.id, True), (bob.id, False), (carol.id, False)]
    assert all(m.chat_history_visible_from is not None for m in members)


async def test_create_with_unknown_member_is_not_found(db_session, alice) -> None:
    with pytest.raises(NotFoundError):
        await GroupService(db_session).create_group(alice.id, "Ghosts", [777])


async def test_create_with_blank_name_is_rejected(db_session, alice) -> None:
    with pytest.raises(ValidationFailedError):
        await GroupService(db_session).create_group(alice.id, " ", [])


async def test_can_manage_group_requires_admin_membership(db_session, alice, bob, carol, group) -> None:
    assert await can_manage_group(db_session, group.id, alice.id) is True
    assert await can_manage_group(db_session, group.id, bob.id) is False
    assert await can_manage_group(db_session, group.id, carol.id) is False


async def test_is_message_owner(db_session, alice, bob) -> None:
    message = await create_message(db_session, alice, "mine", receiver=bob)

    assert is_message_owner(message, alice.id)
    assert not is_message_owner(message, bob.id)


async def test_adding_existing_member_is_a_conflict(db_session, alice, bob, group) -> None:
    with pytest.raises(ConflictError):
        await GroupService(db_session).add_member(group.id, alice.id, bob.id)

    result = await db_session.execute(
        select(func.count()).select_from(GroupMember).where(
            GroupMember.group_id == group.id, GroupMember.user_id == bob.id
        )
    )
    assert result.scalar() == 1


async def test_only_admins_may_add_members(db_session, bob, carol, group) -> None:
    for actor in (bob, carol):
        with pytest.raises(ForbiddenError):
            await GroupService(db_session).add_member(group.id, actor.id, carol.id)

    assert await GroupRepository(db_session).get_membership(group.id, carol.id) is None


async def test_add_to_missing_group_or_user_is_not_found(db_session, alice, group) -> None:
    service = GroupService(db_session)

    with pytest.raises(NotFoundError):
        await service.add_member(uuid.uuid4(), alice.id, alice.id)
    with pytest.raises(NotFoundError):
        await service.add_member(group.id, alice.id, 31337)


async def test_show_all_uses_earliest_visibility_in_group(db_session, alice, carol, group) -> None:
    member = await GroupService(db_session).add_member(group.id, alice.id, carol.id, HistoryOption.SHOW_ALL)

    earliest = await GroupRepository(db_session).get_earliest_visible_from(group.id)
    assert member.chat_history_visible_from == earliest
    assert member.chat_history_visible_from < utcnow() - timedelta(minutes=59)
    assert member.is_admin is False


async def test_show_days_reaches_back_the_given_days(db_session, alice, carol, group) -> None:
    before = utcnow()
    member = await GroupService(db_session).add_member(
        group.id, alice.id, carol.id, HistoryOption.SHOW_DAYS, days=3
    )

    expected = before - timedelta(days=3)
    assert abs(member.chat_history_visible_from - expected) < timedelta(seconds=5)


async def test_show_days_requires_a_day_count(db_session, alice, carol, group) -> None:
    with pytest.raises(ValidationFailedError):
        await GroupService(db_session).add_member(group.id, alice.id, carol.id, HistoryOption.SHOW_DAYS)


async def test_no_history_starts_from_now(db_session, alice, carol, group) -> None:
    before = utcnow()
    member = await GroupService(db_session).add_member(group.id, alice.id, carol.id, HistoryOption.NO_HISTORY)

    assert member.chat_history_visible_from >= before


async def test_remove_member(db_session, alice, bob, group) -> None:
    service = GroupService(db_session)

    await service.remove_member(group.id, alice.id, bob.id)

    assert await GroupRepository(db_session).get_membership(group.id, bob.id) is None
    with pytest.raises(NotFoundError):
        await service.remove_member(group.id, alice.id, bob.id)


async def test_plain_member_cannot_remove_admin(db_session, alice, bob, group) -> None:
    with pytest.raises(ForbiddenError):
        await GroupService(db_session).remove_member(group.id, bob.id, alice.id)


async def test_make_admin_promotes_member(db_session, alice, bob, group) -> None:
    service = GroupService(db_session)

    member = await service.make_admin(group.id, alice.id, bob.id)

    assert member.is_admin is True
    assert await can_manage_group(db_session, group.id, bob.id) is True


async def test_make_admin_of_non_member_is_not_found(db_session, alice, carol, group) -> None:
    with pytest.raises(NotFoundError):
        await GroupService(db_session).make_admin(group.id, alice.id, carol.id)


async def test_make_admin_by_plain_member_is_forbidden(db_session, bob, group) -> None:
    with pytest.raises(ForbiddenError):
        await GroupService(db_session).make_admin(group.id, bob.id, bob.id)


async def test_rename_is_reserved_to_admins(db_session, alice, bob, group) -> None:
    service = GroupService(db_session)

    with pytest.raises(ForbiddenError):
        await service.rename_group(group.id, bob.id, "Bob's team")

    renamed = await service.rename_group(group.id, alice.id, "Core team")
    assert renamed.name == "Core team"


async def test_delete_removes_messages_and_memberships(db_session, alice, bob, group) -> None:
    await create_message(db_session, alice, "bye", group=group)
    direct = await create_message(db_session, alice, "still here", receiver=bob)

    await GroupService(db_session).delete_group(group.id, alice.id)

    assert await GroupRepository(db_session).get_by_id(group.id) is None
    members = await db_session.execute(select(func.count()).select_from(GroupMember))
    messages = await db_session.execute(select(Message.id))
    assert members.scalar() == 0
    assert list(messages.scalars().all()) == [direct.id]


async def test_delete_by_plain_member_is_forbidden(db_session, bob, group) -> None:
    with pytest.raises(ForbiddenError):
        await GroupService(db_session).delete_group(group.id, bob.id)

    assert await db_session.get(Group, group.id) is not None


async def test_get_group_requires_membership(db_session, bob, carol, group) -> None:
    service = GroupService(db_session)

    assert (await service.get_group(group.id, bob.id)).name == "Team"
    with pytest.raises(ForbiddenError):
        await service.get_group(group.id, carol.id)


@pytest.mark.parametrize("days", [36501, 10**6])
async def test_show_days_beyond_a_century_is_rejected(db_session, alice, carol, group, days) -> None:
    with pytest.raises(ValidationFailedError):
        await GroupService(db_session).add_member(group.id, alice.id, carol.id, HistoryOption.SHOW_DAYS, days)

    assert await GroupRepository(db_session).get_membership(group.id, carol.id) is None
