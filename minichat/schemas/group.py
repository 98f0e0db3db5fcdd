from enum import Enum
from uuid import UUID
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class HistoryOption(str, Enum):
    SHOW_ALL = "show_all"
    SHOW_DAYS = "show_days"
    NO_HISTORY = "no_history"

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    member_ids: List[int] = []

class GroupRename(BaseModel):
    name: str = Field(..., max_length=100)

class AddGroupMember(BaseModel):
    member_id: int
    history_option: HistoryOption = HistoryOption.NO_HISTORY
    days: Optional[int] = Field(None, ge=0, le=36500)

class GroupResponse(BaseModel):
    id: UUID
    name: str
    created_at: datetime

    class Config:
        from_attributes = True

class GroupMemberResponse(BaseModel):
    group_id: UUID
    user_id: int
    user_name: Optional[str] = None
    is_admin: bool
    chat_history_visible_from: Optional[datetime] = None

class GroupWithMembersResponse(GroupResponse):
    members: List[GroupMemberResponse]

class ActionResponse(BaseModel):
    message: str

def member_response(member) -> GroupMemberResponse:
    return GroupMemberResponse(
        group_id=member.group_id,
        user_id=member.user_id,
        user_name=member.user.name if member.user else None,
        is_admin=member.is_admin,
        chat_history_visible_from=member.chat_history_visible_from
    )
