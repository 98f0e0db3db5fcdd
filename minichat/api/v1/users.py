from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from minichat.database import get_db
from minichat.repositories.user_repository import UserRepository
from minichat.schemas.user import DirectoryEntry, UserResponse
from minichat.services.groups import GroupService
from minichat.auth import get_current_active_user
from minichat.models.user import User

router = APIRouter()

@router.get("/users", response_model=List[DirectoryEntry])
async def get_users(
    only_users: bool = Query(False, description="Leave out the caller's groups"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Everyone the caller can message: other users and, unless only_users, their groups."""
    users = await UserRepository(db).get_all_except(current_user.id)
    entries = [
        DirectoryEntry(id=str(user.id), name=user.name, email=user.email)
        for user in users
    ]

    if not only_users:
        groups = await GroupService(db).get_user_groups(current_user.id)
        entries.extend(
            DirectoryEntry(id=str(group.id), name=group.name, is_group=True)
            for group in groups
        )

    return entries

@router.get("/users/me", response_model=UserResponse)
async def get_current_user_profile(current_user: User = Depends(get_current_active_user)):
    return current_user
