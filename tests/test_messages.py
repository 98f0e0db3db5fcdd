# tests/test_messages.py
"""Tests for message mutations and the broadcasts that follow them."""

import uuid

import pytest
from sqlalchemy import func, select

from minichat.exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from minichat.models import Message
from minichat.services.messages import (
    FILE_UPLOADED,
    MESSAGE_CREATED,
    MESSAGE_DELETED,
    MESSAGE_EDITED,
    MessageService,
)
from minichat.services.storage import FileStorage, original_file_name
from minichat.services.targets import GroupTarget, UserTarget
from tests.conftest import FailingHub, create_message

pytestmark = pytest.mark.asyncio


async def count_messages(session) -> int:
    result = await session.execute(select(func.count(Message.id)))
    return result.scalar()


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
async def test_blank_content_is_rejected_and_not_stored(db_session, alice, bob, hub, content) -> None:
    service = MessageService(db_session, hub=hub)

    with pytest.raises(ValidationFailedError):
        await service.send_message(alice.id, UserTarget(bob.id), content)

    assert await count_messages(db_session) == 0
    assert hub.events == []


async def test_overlong_content_is_rejected(db_session, alice, bob, hub) -> None:
    with pytest.raises(ValidationFailedError):
        await MessageService(db_session, hub=hub).send_message(alice.id, UserTarget(bob.id), "x" * 1001)


async def test_direct_send_persists_then_notifies_both_participants(db_session, alice, bob, carol, hub) -> None:
    message = await MessageService(db_session, hub=hub).send_message(alice.id, UserTarget(bob.id), "hello")

    stored = await db_session.get(Message, message.id)
    assert stored.receiver_id == bob.id
    assert stored.group_id is None

    [event] = hub.events
    assert event["type"] == MESSAGE_CREATED
    assert event["conversation"] == f"direct:{alice.id}:{bob.id}"
    assert event["recipients"] == sorted([alice.id, bob.id])
    assert carol.id not in event["recipients"]
    assert event["data"]["content"] == "hello"


async def test_group_send_notifies_members_only(db_session, alice, bob, carol, group, hub) -> None:
    message = await MessageService(db_session, hub=hub).send_message(alice.id, GroupTarget(group.id), "team")

    assert message.group_id == group.id
    assert message.receiver_id is None
    [event] = hub.events
    assert event["conversation"] == f"group:{group.id}"
    assert event["recipients"] == sorted([alice.id, bob.id])


async def test_group_send_by_outsider_is_forbidden(db_session, carol, group, hub) -> None:
    with pytest.raises(ForbiddenError):
        await MessageService(db_session, hub=hub).send_message(carol.id, GroupTarget(group.id), "let me in")


async def test_send_to_unknown_targets(db_session, alice, hub) -> None:
    service = MessageService(db_session, hub=hub)

    with pytest.raises(NotFoundError):
        await service.send_message(alice.id, UserTarget(4242), "anyone?")
    with pytest.raises(NotFoundError):
        await service.send_message(alice.id, GroupTarget(uuid.uuid4()), "anyone?")


async def test_failed_broadcast_does_not_undo_send(db_session, alice, bob) -> None:
    message = await MessageService(db_session, hub=FailingHub()).send_message(alice.id, UserTarget(bob.id), "still here")

    assert (await db_session.get(Message, message.id)).content == "still here"


async def test_owner_edit_changes_only_content(db_session, alice, bob, hub) -> None:
    original = await create_message(db_session, alice, "typo", receiver=bob, minutes_ago=5)
    original_timestamp = original.timestamp

    edited = await MessageService(db_session, hub=hub).edit_message(original.id, "fixed", alice.id)

    assert edited.id == original.id
    assert edited.content == "fixed"
    assert edited.sender_id == alice.id
    assert edited.timestamp == original_timestamp
    assert hub.events[0]["type"] == MESSAGE_EDITED
    assert hub.events[0]["data"]["content"] == "fixed"


async def test_non_owner_edit_is_forbidden(db_session, alice, bob, hub) -> None:
    message = await create_message(db_session, alice, "mine", receiver=bob)

    with pytest.raises(ForbiddenError):
        await MessageService(db_session, hub=hub).edit_message(message.id, "yours now", bob.id)

    await db_session.refresh(message)
    assert message.content == "mine"
    assert hub.events == []


async def test_edit_missing_message_is_not_found(db_session, alice, hub) -> None:
    with pytest.raises(NotFoundError):
        await MessageService(db_session, hub=hub).edit_message(12345, "ghost", alice.id)


async def test_edit_to_blank_content_is_rejected(db_session, alice, bob, hub) -> None:
    message = await create_message(db_session, alice, "keep me", receiver=bob)

    with pytest.raises(ValidationFailedError):
        await MessageService(db_session, hub=hub).edit_message(message.id, "  ", alice.id)


async def test_delete_twice_reports_not_found(db_session, alice, bob, hub) -> None:
    message = await create_message(db_session, alice, "short lived", receiver=bob)
    service = MessageService(db_session, hub=hub)

    await service.delete_message(message.id, alice.id)

    assert await db_session.get(Message, message.id) is None
    assert hub.events == [{
        "type": MESSAGE_DELETED,
        "conversation": f"direct:{alice.id}:{bob.id}",
        "recipients": sorted([alice.id, bob.id]),
        "data": {"id": message.id},
    }]
    with pytest.raises(NotFoundError):
        await service.delete_message(message.id, alice.id)


async def test_delete_by_non_owner_is_forbidden(db_session, alice, bob, hub) -> None:
    message = await create_message(db_session, alice, "not yours", receiver=bob)

    with pytest.raises(ForbiddenError):
        await MessageService(db_session, hub=hub).delete_message(message.id, bob.id)

    assert await db_session.get(Message, message.id) is not None


async def test_upload_stores_blob_and_file_row(db_session, alice, bob, hub, tmp_path) -> None:
    service = MessageService(db_session, hub=hub, storage=FileStorage(str(tmp_path)))

    message = await service.upload_file(alice.id, UserTarget(bob.id), "notes.txt", b"remember the milk")

    assert message.content is None
    assert message.is_file
    assert original_file_name(message.file_path) == "notes.txt"
    assert (tmp_path / message.file_path).read_bytes() == b"remember the milk"
    assert hub.events[0]["type"] == FILE_UPLOADED
    assert hub.events[0]["data"]["file_name"] == "notes.txt"

    path, file_name = await service.get_file(message.id, bob.id)
    assert path == tmp_path / message.file_path
    assert file_name == "notes.txt"


async def test_upload_rejects_empty_file(db_session, alice, bob, hub, tmp_path) -> None:
    service = MessageService(db_session, hub=hub, storage=FileStorage(str(tmp_path)))

    with pytest.raises(ValidationFailedError):
        await service.upload_file(alice.id, UserTarget(bob.id), "empty.bin", b"")


async def test_file_is_hidden_from_outsiders(db_session, alice, bob, carol, hub, tmp_path) -> None:
    service = MessageService(db_session, hub=hub, storage=FileStorage(str(tmp_path)))
    message = await service.upload_file(alice.id, UserTarget(bob.id), "secret.txt", b"psst")

    with pytest.raises(ForbiddenError):
        await service.get_file(message.id, carol.id)


async def test_search_covers_direct_and_group_conversations(db_session, alice, bob, carol, group, hub) -> None:
    await create_message(db_session, bob, "lunch at noon?", receiver=alice, minutes_ago=3)
    await create_message(db_session, bob, "team lunch friday", group=group, minutes_ago=2)
    await create_message(db_session, bob, "lunch with carol", receiver=carol, minutes_ago=1)

    found = await MessageService(db_session, hub=hub).search_messages(alice.id, "lunch")

    assert [m.content for m in found] == ["team lunch friday", "lunch at noon?"]


async def test_search_without_matches_is_not_found(db_session, alice, hub) -> None:
    with pytest.raises(NotFoundError):
        await MessageService(db_session, hub=hub).search_messages(alice.id, "nothing")


async def test_file_messages_cannot_be_edited(db_session, alice, bob, hub, tmp_path) -> None:
    service = MessageService(db_session, hub=hub, storage=FileStorage(str(tmp_path)))
    message = await service.upload_file(alice.id, UserTarget(bob.id), "photo.png", b"\x89PNG")

    with pytest.raises(ValidationFailedError):
        await service.edit_message(message.id, "caption", alice.id)

    await db_session.refresh(message)
    assert message.content is None
    assert message.is_file
