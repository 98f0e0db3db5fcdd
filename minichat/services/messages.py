import logging
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from minichat.config import settings
from minichat.exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from minichat.models.message import Message
from minichat.repositories.group_repository import GroupRepository
from minichat.repositories.message_repository import MessageRepository
from minichat.repositories.user_repository import UserRepository
from minichat.services.access import is_message_owner
from minichat.services.storage import FileStorage, original_file_name
from minichat.services.targets import (
    GroupTarget,
    Target,
    UserTarget,
    direct_conversation_key,
    group_conversation_key,
)
from minichat.websocket_manager import ConnectionManager, manager

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message_created"
MESSAGE_EDITED = "message_edited"
MESSAGE_DELETED = "message_deleted"
FILE_UPLOADED = "file_uploaded"


def serialize_message(message: Message) -> dict:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "group_id": message.group_id,
        "content": message.content,
        "file_path": message.file_path,
        "file_name": original_file_name(message.file_path) if message.is_file else None,
        "timestamp": message.timestamp
    }


class MessageService:
    """Persists message mutations and then notifies the conversation's live participants."""

    def __init__(
        self,
        db: AsyncSession,
        hub: ConnectionManager = manager,
        storage: Optional[FileStorage] = None
    ):
        self.db = db
        self.hub = hub
        self.storage = storage or FileStorage(settings.UPLOAD_DIRECTORY)
        self.messages = MessageRepository(db)
        self.groups = GroupRepository(db)
        self.users = UserRepository(db)

    async def send_message(self, sender_id: int, target: Target, content: Optional[str]) -> Message:
        content = self._validate_content(content)
        await self._check_can_post(sender_id, target)

        if isinstance(target, UserTarget):
            message = await self.messages.create(sender_id, content=content, receiver_id=target.user_id)
        else:
            message = await self.messages.create(sender_id, content=content, group_id=target.group_id)

        logger.info("Message %s sent by user %s", message.id, sender_id)
        await self._broadcast(MESSAGE_CREATED, message, serialize_message(message))
        return message

    async def edit_message(self, message_id: int, new_content: Optional[str], requester_id: int) -> Message:
        message = await self._get_owned_message(message_id, requester_id)
        if message.is_file:
            raise ValidationFailedError("File messages cannot be edited.")
        new_content = self._validate_content(new_content)

        message = await self.messages.update_content(message, new_content)
        logger.info("Message %s edited by user %s", message.id, requester_id)
        await self._broadcast(MESSAGE_EDITED, message, serialize_message(message))
        return message

    async def delete_message(self, message_id: int, requester_id: int) -> Message:
        message = await self._get_owned_message(message_id, requester_id)

        await self.messages.delete(message)
        logger.info("Message %s deleted by user %s", message_id, requester_id)
        await self._broadcast(MESSAGE_DELETED, message, {"id": message_id})
        return message

    async def upload_file(self, sender_id: int, target: Target, file_name: str, data: bytes) -> Message:
        if not data:
            raise ValidationFailedError("No file selected or the file is empty.")
        await self._check_can_post(sender_id, target)

        stored_name = await self.storage.save(file_name, data)
        if isinstance(target, UserTarget):
            message = await self.messages.create(sender_id, receiver_id=target.user_id, file_path=stored_name)
        else:
            message = await self.messages.create(sender_id, group_id=target.group_id, file_path=stored_name)

        await self._broadcast(FILE_UPLOADED, message, serialize_message(message))
        return message

    async def get_file(self, message_id: int, requester_id: int) -> Tuple[Path, str]:
        """Path and original name of an attachment the requester is allowed to see."""
        message = await self.messages.get_by_id(message_id)
        if message is None or not message.is_file:
            raise NotFoundError("File not found")
        await self._check_can_read(requester_id, message)

        path = self.storage.path_for(message.file_path)
        if path is None:
            raise NotFoundError("File not found")
        return path, original_file_name(message.file_path)

    async def search_messages(self, requester_id: int, query: str) -> List[Message]:
        if not query or not query.strip():
            raise ValidationFailedError("Search query must not be empty.")
        messages = await self.messages.search(requester_id, query.strip())
        if not messages:
            raise NotFoundError("No message is found with this keyword")
        return messages

    def _validate_content(self, content: Optional[str]) -> str:
        if content is None or not content.strip():
            raise ValidationFailedError("Message content must not be empty.")
        if len(content) > settings.MAX_MESSAGE_LENGTH:
            raise ValidationFailedError(
                f"Message content must not exceed {settings.MAX_MESSAGE_LENGTH} characters."
            )
        return content

    async def _check_can_post(self, sender_id: int, target: Target):
        if isinstance(target, UserTarget):
            if not await self.users.exists(target.user_id):
                raise NotFoundError("Receiver not found.")
            return

        if await self.groups.get_by_id(target.group_id) is None:
            raise NotFoundError("Group not found.")
        if await self.groups.get_membership(target.group_id, sender_id) is None:
            raise ForbiddenError("You are not a member of this group.")

    async def _check_can_read(self, requester_id: int, message: Message):
        if message.group_id is None:
            if requester_id not in (message.sender_id, message.receiver_id):
                raise ForbiddenError("Unauthorized access.")
            return

        membership = await self.groups.get_membership(message.group_id, requester_id)
        if membership is None:
            raise ForbiddenError("Unauthorized access.")
        visible_from = membership.chat_history_visible_from
        if visible_from is not None and message.timestamp < visible_from:
            raise ForbiddenError("Unauthorized access.")

    async def _get_owned_message(self, message_id: int, requester_id: int) -> Message:
        message = await self.messages.get_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found.")
        if not is_message_owner(message, requester_id):
            raise ForbiddenError("Unauthorized access.")
        return message

    async def _recipients(self, message: Message) -> Tuple[str, List[int]]:
        if message.group_id is not None:
            member_ids = await self.groups.get_member_ids(message.group_id)
            return group_conversation_key(message.group_id), member_ids
        participants = [message.sender_id]
        if message.receiver_id is not None:
            participants.append(message.receiver_id)
            return direct_conversation_key(message.sender_id, message.receiver_id), participants
        return f"user:{message.sender_id}", participants

    async def _broadcast(self, event_type: str, message: Message, data: dict):
        """Best-effort fan-out after commit; failures are logged and never undo the mutation."""
        try:
            conversation, recipients = await self._recipients(message)
            await self.hub.publish(event_type, conversation, recipients, data)
        except Exception:
            logger.exception("Broadcast of %s for message %s failed", event_type, message.id)
