import uuid
from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, desc

from minichat.models.message import Message
from minichat.models.group_member import GroupMember

class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        sender_id: int,
        content: Optional[str] = None,
        receiver_id: Optional[int] = None,
        group_id: Optional[uuid.UUID] = None,
        file_path: Optional[str] = None,
    ) -> Message:
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            group_id=group_id,
            content=content,
            file_path=file_path
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_by_id(self, message_id: int) -> Optional[Message]:
        result = await self.db.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def update_content(self, message: Message, content: str) -> Message:
        message.content = content
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def delete(self, message: Message) -> None:
        await self.db.delete(message)
        await self.db.commit()

    async def get_direct_history(
        self,
        user_id: int,
        other_user_id: int,
        before: datetime,
        limit: int
    ) -> List[Message]:
        """The `limit` direct messages between two users closest to `before`, newest first."""
        result = await self.db.execute(
            select(Message).where(
                and_(
                    Message.group_id.is_(None),
                    or_(
                        and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
                        and_(Message.sender_id == other_user_id, Message.receiver_id == user_id)
                    ),
                    Message.timestamp <= before
                )
            )
            .order_by(desc(Message.timestamp), desc(Message.id))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_group_history(
        self,
        group_id: uuid.UUID,
        before: datetime,
        limit: int,
        visible_from: Optional[datetime] = None
    ) -> List[Message]:
        """The `limit` group messages closest to `before` and not older than `visible_from`, newest first."""
        conditions = [
            Message.group_id == group_id,
            Message.receiver_id.is_(None),
            Message.timestamp <= before
        ]
        if visible_from is not None:
            conditions.append(Message.timestamp >= visible_from)

        result = await self.db.execute(
            select(Message).where(and_(*conditions))
            .order_by(desc(Message.timestamp), desc(Message.id))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def search(self, user_id: int, keyword: str) -> List[Message]:
        """Messages containing `keyword` in the user's direct chats and in groups they can see."""
        memberships = select(GroupMember.group_id, GroupMember.chat_history_visible_from).where(
            GroupMember.user_id == user_id
        ).subquery()

        result = await self.db.execute(
            select(Message)
            .outerjoin(memberships, Message.group_id == memberships.c.group_id)
            .where(
                and_(
                    Message.content.contains(keyword, autoescape=True),
                    or_(
                        and_(
                            Message.group_id.is_(None),
                            or_(Message.sender_id == user_id, Message.receiver_id == user_id)
                        ),
                        and_(
                            memberships.c.group_id.is_not(None),
                            or_(
                                memberships.c.chat_history_visible_from.is_(None),
                                Message.timestamp >= memberships.c.chat_history_visible_from
                            )
                        )
                    )
                )
            )
            .order_by(desc(Message.timestamp), desc(Message.id))
        )
        return list(result.scalars().all())
