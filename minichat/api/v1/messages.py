import uuid
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from minichat.database import get_db
from minichat.schemas.group import ActionResponse, member_response
from minichat.schemas.message import (
    HistoryResponse,
    MessageCreate,
    MessageResponse,
    MessageUpdate,
    SearchResponse,
    SortOrder,
    UploadResponse,
)
from minichat.services.history import HistoryAssembler
from minichat.services.messages import MessageService, serialize_message
from minichat.services.targets import target_from_ids
from minichat.auth import get_current_active_user
from minichat.models.user import User

router = APIRouter()

@router.post("/messages", response_model=MessageResponse)
async def send_message(
    message_data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    target = target_from_ids(message_data.receiver_id, message_data.group_id)
    message = await MessageService(db).send_message(current_user.id, target, message_data.content)
    return serialize_message(message)

@router.put("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    message_data: MessageUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    message = await MessageService(db).edit_message(message_id, message_data.content, current_user.id)
    return serialize_message(message)

@router.delete("/messages/{message_id}", response_model=ActionResponse)
async def delete_message(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await MessageService(db).delete_message(message_id, current_user.id)
    return {"message": "Message deleted successfully"}

@router.get("/messages", response_model=HistoryResponse)
async def get_conversation_history(
    user_id: Optional[int] = Query(None, description="Other participant of a direct conversation"),
    group_id: Optional[uuid.UUID] = Query(None, description="Group conversation"),
    before: Optional[datetime] = Query(None, description="Only messages at or before this UTC time"),
    count: Optional[int] = Query(None, ge=1),
    sort: SortOrder = Query(SortOrder.ASC),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if before is not None and before.tzinfo is not None:
        before = before.astimezone(timezone.utc).replace(tzinfo=None)

    target = target_from_ids(user_id, group_id)
    history = await HistoryAssembler(db).get_history(current_user.id, target, before, count, sort)

    return {
        "message": history.status,
        "messages": [serialize_message(message) for message in history.messages],
        "members": [member_response(member) for member in history.members] if history.members is not None else None
    }

@router.get("/conversation/search", response_model=SearchResponse)
async def search_conversations(
    query: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    messages = await MessageService(db).search_messages(current_user.id, query)
    return {"messages": [serialize_message(message) for message in messages]}

@router.post("/messages/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    receiver_id: Optional[int] = Form(None),
    group_id: Optional[uuid.UUID] = Form(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    target = target_from_ids(receiver_id, group_id)
    data = await file.read()
    message = await MessageService(db).upload_file(current_user.id, target, file.filename or "file", data)
    return {"message": "File uploaded successfully", "message_id": message.id, "file_path": message.file_path}

@router.get("/download/{message_id}")
async def download_file(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    path, file_name = await MessageService(db).get_file(message_id, current_user.id)
    return FileResponse(path, filename=file_name, content_disposition_type="inline")
