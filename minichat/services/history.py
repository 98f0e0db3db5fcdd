import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from minichat.config import settings
from minichat.exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from minichat.models.base import utcnow
from minichat.models.group_member import GroupMember
from minichat.models.message import Message
from minichat.repositories.group_repository import GroupRepository
from minichat.repositories.message_repository import MessageRepository
from minichat.repositories.user_repository import UserRepository
from minichat.schemas.message import SortOrder
from minichat.services.targets import GroupTarget, Target, UserTarget

logger = logging.getLogger(__name__)

NO_MORE_MESSAGES = "No more conversation found."
HISTORY_RETRIEVED = "Conversation history retrieved successfully"


@dataclass
class ConversationHistory:
    messages: List[Message]
    # Only populated for group conversations
    members: Optional[List[GroupMember]] = None
    status: str = field(default=HISTORY_RETRIEVED)

    @property
    def is_empty(self) -> bool:
        return not self.messages


class HistoryAssembler:
    """Selects the slice of a conversation a requester is allowed to see.

    Paging is fixed as follows: messages with ``timestamp <= before`` are
    ordered newest first, the first ``count`` are kept, and that page is then
    returned in the requested ``sort_order``. A page therefore always holds the
    ``count`` messages closest to ``before``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.messages = MessageRepository(db)
        self.groups = GroupRepository(db)
        self.users = UserRepository(db)

    async def get_history(
        self,
        requester_id: int,
        target: Target,
        before: Optional[datetime] = None,
        count: Optional[int] = None,
        sort_order: SortOrder = SortOrder.ASC
    ) -> ConversationHistory:
        before = before or utcnow()
        count = settings.DEFAULT_HISTORY_COUNT if count is None else count
        if count < 1:
            raise ValidationFailedError("Count must be a positive number.")

        if isinstance(target, UserTarget):
            history = await self._direct_history(requester_id, target, before, count)
        elif isinstance(target, GroupTarget):
            history = await self._group_history(requester_id, target, before, count)
        else:
            raise ValidationFailedError("Unknown conversation target.")

        if sort_order == SortOrder.ASC:
            history.messages.reverse()
        if history.is_empty:
            history.status = NO_MORE_MESSAGES
        return history

    async def _direct_history(self, requester_id: int, target: UserTarget, before: datetime, count: int) -> ConversationHistory:
        if not await self.users.exists(target.user_id):
            raise NotFoundError("User not found.")

        messages = await self.messages.get_direct_history(requester_id, target.user_id, before, count)
        return ConversationHistory(messages=messages)

    async def _group_history(self, requester_id: int, target: GroupTarget, before: datetime, count: int) -> ConversationHistory:
        group = await self.groups.get_by_id(target.group_id)
        if group is None:
            raise NotFoundError("Group not found.")

        membership = await self.groups.get_membership(group.id, requester_id)
        if membership is None:
            raise ForbiddenError("You are not a member of this group.")

        messages = await self.messages.get_group_history(
            group.id,
            before,
            count,
            visible_from=membership.chat_history_visible_from
        )
        members = await self.groups.get_members(group.id)
        logger.debug(
            "Group %s history for user %s: %d messages (visible from %s)",
            group.id, requester_id, len(messages), membership.chat_history_visible_from
        )
        return ConversationHistory(messages=messages, members=members)
