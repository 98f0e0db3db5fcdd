import uuid
from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from minichat.exceptions import ConflictError
from minichat.models.group import Group
from minichat.models.group_member import GroupMember
from minichat.models.message import Message

class GroupRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, name: str, admin_id: int, member_ids: List[int], visible_from: datetime) -> Group:
        """Create a group with the given admin and plain members in one commit."""
        group = Group(name=name)
        self.db.add(group)
        await self.db.flush()

        self.db.add(GroupMember(
            group_id=group.id,
            user_id=admin_id,
            is_admin=True,
            chat_history_visible_from=visible_from
        ))
        for member_id in member_ids:
            if member_id != admin_id:
                self.db.add(GroupMember(
                    group_id=group.id,
                    user_id=member_id,
                    is_admin=False,
                    chat_history_visible_from=visible_from
                ))

        await self.db.commit()
        await self.db.refresh(group)
        return group

    async def get_by_id(self, group_id: uuid.UUID) -> Optional[Group]:
        result = await self.db.execute(select(Group).where(Group.id == group_id))
        return result.scalar_one_or_none()

    async def get_user_groups(self, user_id: int) -> List[Group]:
        result = await self.db.execute(
            select(Group).join(GroupMember).where(GroupMember.user_id == user_id).order_by(Group.name)
        )
        return list(result.scalars().all())

    async def get_membership(self, group_id: uuid.UUID, user_id: int) -> Optional[GroupMember]:
        result = await self.db.execute(
            select(GroupMember).where(
                and_(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            )
        )
        return result.scalar_one_or_none()

    async def get_members(self, group_id: uuid.UUID) -> List[GroupMember]:
        """Current roster of a group with the user rows loaded."""
        result = await self.db.execute(
            select(GroupMember).options(
                selectinload(GroupMember.user)
            ).where(GroupMember.group_id == group_id)
            .order_by(GroupMember.user_id)
        )
        return list(result.scalars().all())

    async def get_member_ids(self, group_id: uuid.UUID) -> List[int]:
        result = await self.db.execute(
            select(GroupMember.user_id).where(GroupMember.group_id == group_id)
        )
        return list(result.scalars().all())

    async def get_earliest_visible_from(self, group_id: uuid.UUID) -> Optional[datetime]:
        result = await self.db.execute(
            select(func.min(GroupMember.chat_history_visible_from)).where(GroupMember.group_id == group_id)
        )
        return result.scalar()

    async def add_member(self, group_id: uuid.UUID, user_id: int, visible_from: Optional[datetime]) -> GroupMember:
        member = GroupMember(
            group_id=group_id,
            user_id=user_id,
            is_admin=False,
            chat_history_visible_from=visible_from
        )
        self.db.add(member)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Member with ID {user_id} already exists in the group")
        await self.db.refresh(member)
        return member

    async def remove_member(self, member: GroupMember) -> None:
        await self.db.delete(member)
        await self.db.commit()

    async def set_admin(self, member: GroupMember) -> GroupMember:
        member.is_admin = True
        await self.db.commit()
        await self.db.refresh(member)
        return member

    async def rename(self, group: Group, name: str) -> Group:
        group.name = name
        await self.db.commit()
        await self.db.refresh(group)
        return group

    async def delete(self, group: Group) -> None:
        """Delete a group with its messages and memberships in a single transaction."""
        await self.db.execute(delete(Message).where(Message.group_id == group.id))
        await self.db.execute(delete(GroupMember).where(GroupMember.group_id == group.id))
        await self.db.execute(delete(Group).where(Group.id == group.id))
        await self.db.commit()
