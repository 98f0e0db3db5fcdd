from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class RequestLogResponse(BaseModel):
    id: int
    ip_address: Optional[str]
    request_timestamp: datetime
    username: str
    request_body: str

    class Config:
        from_attributes = True
