from datetime import datetime, timedelta, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from minichat.config import settings
from minichat.database import get_db
from minichat.exceptions import NotFoundError
from minichat.models.base import utcnow
from minichat.repositories.request_log_repository import RequestLogRepository
from minichat.schemas.log import RequestLogResponse
from minichat.auth import get_current_active_user
from minichat.models.user import User

router = APIRouter()

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

@router.get("/log", response_model=List[RequestLogResponse])
async def get_logs(
    start_time: Optional[datetime] = Query(None),
    end_time: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Request log entries in a time window, the last few minutes by default."""
    end_time = _as_utc(end_time) or utcnow()
    start_time = _as_utc(start_time) or end_time - timedelta(minutes=settings.LOG_WINDOW_MINUTES)

    logs = await RequestLogRepository(db).get_between(start_time, end_time)
    if not logs:
        raise NotFoundError("No logs found.")
    return logs
