from sqlalchemy import Column, Integer, String, Text, DateTime
from .base import Base, utcnow

class RequestLog(Base):
    __tablename__ = "request_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ip_address = Column(String(64), nullable=True)
    request_timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    username = Column(String(100), nullable=False, default="")
    request_body = Column(Text, nullable=False, default="")
