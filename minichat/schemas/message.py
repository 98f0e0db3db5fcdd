from enum import Enum
from uuid import UUID
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from minichat.schemas.group import GroupMemberResponse

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class MessageCreate(BaseModel):
    receiver_id: Optional[int] = None
    group_id: Optional[UUID] = None
    content: str = Field(..., max_length=1000)

class MessageUpdate(BaseModel):
    content: str = Field(..., max_length=1000)

class MessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: Optional[int] = None
    group_id: Optional[UUID] = None
    content: Optional[str] = None
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    timestamp: datetime

class HistoryResponse(BaseModel):
    message: str
    messages: List[MessageResponse]
    members: Optional[List[GroupMemberResponse]] = None

class SearchResponse(BaseModel):
    messages: List[MessageResponse]

class UploadResponse(BaseModel):
    message: str
    message_id: int
    file_path: str
