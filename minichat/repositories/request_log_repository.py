from datetime import datetime
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from minichat.models.request_log import RequestLog

class RequestLogRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, ip_address: str, username: str, request_body: str) -> RequestLog:
        log = RequestLog(
            ip_address=ip_address,
            username=username,
            request_body=request_body
        )
        self.db.add(log)
        await self.db.commit()
        return log

    async def get_between(self, start_time: datetime, end_time: datetime) -> List[RequestLog]:
        result = await self.db.execute(
            select(RequestLog).where(
                and_(
                    RequestLog.request_timestamp >= start_time,
                    RequestLog.request_timestamp <= end_time
                )
            ).order_by(RequestLog.request_timestamp)
        )
        return list(result.scalars().all())
