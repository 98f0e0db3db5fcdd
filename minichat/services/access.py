import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from minichat.models.message import Message
from minichat.repositories.group_repository import GroupRepository


async def can_manage_group(db: AsyncSession, group_id: uuid.UUID, user_id: int) -> bool:
    """Only admin members may manage a group; a caller without a membership row may not."""
    membership = await GroupRepository(db).get_membership(group_id, user_id)
    return membership is not None and membership.is_admin


def is_message_owner(message: Message, user_id: int) -> bool:
    return message.sender_id == user_id
