import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from minichat.database import get_db
from minichat.schemas.group import (
    ActionResponse,
    AddGroupMember,
    GroupCreate,
    GroupRename,
    GroupResponse,
    GroupWithMembersResponse,
    member_response,
)
from minichat.services.groups import GroupService
from minichat.auth import get_current_active_user
from minichat.models.user import User

router = APIRouter()

@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    group_data: GroupCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create a group; the caller becomes its first admin."""
    return await GroupService(db).create_group(current_user.id, group_data.name, group_data.member_ids)

@router.get("/{group_id}", response_model=GroupWithMembersResponse)
async def get_group(
    group_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    service = GroupService(db)
    group = await service.get_group(group_id, current_user.id)
    members = await service.get_members(group_id)
    return {
        "id": group.id,
        "name": group.name,
        "created_at": group.created_at,
        "members": [member_response(member) for member in members]
    }

@router.post("/{group_id}/members", response_model=ActionResponse)
async def add_member(
    group_id: uuid.UUID,
    member_data: AddGroupMember,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await GroupService(db).add_member(
        group_id,
        current_user.id,
        member_data.member_id,
        member_data.history_option,
        member_data.days
    )
    return {"message": "Member Added Successfully!"}

@router.delete("/{group_id}/members/{user_id}", response_model=ActionResponse)
async def remove_member(
    group_id: uuid.UUID,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await GroupService(db).remove_member(group_id, current_user.id, user_id)
    return {"message": "Member Removed Successfully!"}

@router.post("/{group_id}/admins/{user_id}", response_model=ActionResponse)
async def make_admin(
    group_id: uuid.UUID,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await GroupService(db).make_admin(group_id, current_user.id, user_id)
    return {"message": "Member is now an admin"}

@router.put("/{group_id}", response_model=GroupResponse)
async def rename_group(
    group_id: uuid.UUID,
    group_data: GroupRename,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await GroupService(db).rename_group(group_id, current_user.id, group_data.name)

@router.delete("/{group_id}", response_model=ActionResponse)
async def delete_group(
    group_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await GroupService(db).delete_group(group_id, current_user.id)
    return {"message": "Group deleted successfully"}
