import uuid

from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship
from .base import BaseModel

class Group(BaseModel):
    __tablename__ = "groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)

    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="group", cascade="all, delete-orphan")
