import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from minichat.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from minichat.models.base import utcnow
from minichat.models.group import Group
from minichat.models.group_member import GroupMember
from minichat.repositories.group_repository import GroupRepository
from minichat.repositories.user_repository import UserRepository
from minichat.schemas.group import HistoryOption
from minichat.services.access import can_manage_group

logger = logging.getLogger(__name__)

MAX_HISTORY_DAYS = 36500


class GroupService:
    """Group lifecycle operations; every mutation is reserved to admin members."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.groups = GroupRepository(db)
        self.users = UserRepository(db)

    async def create_group(self, creator_id: int, name: str, member_ids: List[int]) -> Group:
        if not name or not name.strip():
            raise ValidationFailedError("Group name must not be empty.")

        member_ids = list(dict.fromkeys(member_id for member_id in member_ids if member_id != creator_id))
        found = {user.id for user in await self.users.get_by_ids(member_ids)}
        missing = [member_id for member_id in member_ids if member_id not in found]
        if missing:
            raise NotFoundError(f"User with ID {missing[0]} not found")

        group = await self.groups.create(name.strip(), creator_id, member_ids, visible_from=utcnow())
        logger.info("Group %s created by user %s with %d members", group.id, creator_id, len(member_ids) + 1)
        return group

    async def get_group(self, group_id: uuid.UUID, user_id: int) -> Group:
        group = await self._get_group(group_id)
        if await self.groups.get_membership(group_id, user_id) is None:
            raise ForbiddenError("You are not a member of this group.")
        return group

    async def get_members(self, group_id: uuid.UUID) -> List[GroupMember]:
        return await self.groups.get_members(group_id)

    async def get_user_groups(self, user_id: int) -> List[Group]:
        return await self.groups.get_user_groups(user_id)

    async def add_member(
        self,
        group_id: uuid.UUID,
        actor_id: int,
        member_id: int,
        history_option: HistoryOption = HistoryOption.NO_HISTORY,
        days: Optional[int] = None
    ) -> GroupMember:
        await self._get_managed_group(group_id, actor_id, "You are not an admin! You can't add members!")

        if not await self.users.exists(member_id):
            raise NotFoundError(f"User with ID {member_id} not found")
        if await self.groups.get_membership(group_id, member_id) is not None:
            raise ConflictError(f"Member with ID {member_id} already exists in the group")

        visible_from = await self._history_visible_from(group_id, history_option, days)
        member = await self.groups.add_member(group_id, member_id, visible_from)
        logger.info("User %s added to group %s by %s (%s)", member_id, group_id, actor_id, history_option.value)
        return member

    async def remove_member(self, group_id: uuid.UUID, actor_id: int, member_id: int) -> None:
        await self._get_managed_group(group_id, actor_id, "You are not an admin! You can't remove members!")

        member = await self.groups.get_membership(group_id, member_id)
        if member is None:
            raise NotFoundError(f"Member with ID {member_id} not found in the group")

        await self.groups.remove_member(member)
        logger.info("User %s removed from group %s by %s", member_id, group_id, actor_id)

    async def make_admin(self, group_id: uuid.UUID, actor_id: int, member_id: int) -> GroupMember:
        await self._get_managed_group(group_id, actor_id, "You are not an admin! You can't make admin to anyone!")

        member = await self.groups.get_membership(group_id, member_id)
        if member is None:
            raise NotFoundError("Member not found in the group")

        return await self.groups.set_admin(member)

    async def rename_group(self, group_id: uuid.UUID, actor_id: int, new_name: str) -> Group:
        group = await self._get_managed_group(group_id, actor_id, "You are not an admin! You can't rename this group!")
        if not new_name or not new_name.strip():
            raise ValidationFailedError("Group name must not be empty.")

        return await self.groups.rename(group, new_name.strip())

    async def delete_group(self, group_id: uuid.UUID, actor_id: int) -> None:
        group = await self._get_managed_group(group_id, actor_id, "You do not have permission to delete this group")

        await self.groups.delete(group)
        logger.info("Group %s deleted by user %s", group_id, actor_id)

    async def _get_group(self, group_id: uuid.UUID) -> Group:
        group = await self.groups.get_by_id(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    async def _get_managed_group(self, group_id: uuid.UUID, actor_id: int, denied_message: str) -> Group:
        group = await self._get_group(group_id)
        if not await can_manage_group(self.db, group_id, actor_id):
            raise ForbiddenError(denied_message)
        return group

    async def _history_visible_from(
        self,
        group_id: uuid.UUID,
        history_option: HistoryOption,
        days: Optional[int]
    ) -> Optional[datetime]:
        if history_option == HistoryOption.SHOW_ALL:
            return await self.groups.get_earliest_visible_from(group_id)
        if history_option == HistoryOption.SHOW_DAYS:
            if days is None or not 0 <= days <= MAX_HISTORY_DAYS:
                raise ValidationFailedError(f"Days must be a number between 0 and {MAX_HISTORY_DAYS}.")
            return utcnow() - timedelta(days=days)
        return utcnow()
