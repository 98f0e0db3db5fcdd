from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from minichat.models.user import User
from minichat.schemas.user import UserCreate
from minichat.auth import get_password_hash
from minichat.exceptions import ConflictError

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_data: UserCreate) -> User:
        hashed_password = get_password_hash(user_data.password) if user_data.password else None
        db_user = User(
            name=user_data.name,
            email=user_data.email,
            hashed_password=hashed_password
        )
        self.db.add(db_user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Registration failed. Email is already registered.")
        await self.db.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_ids(self, user_ids: List[int]) -> List[User]:
        if not user_ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        return list(result.scalars().all())

    async def get_all_except(self, user_id: int) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.id != user_id).order_by(User.name)
        )
        return list(result.scalars().all())

    async def exists(self, user_id: int) -> bool:
        return await self.get_by_id(user_id) is not None

    async def set_refresh_token(self, user: User, token: str, expires_at: datetime) -> User:
        user.refresh_token = token
        user.refresh_token_expires_at = expires_at
        await self.db.commit()
        await self.db.refresh(user)
        return user
