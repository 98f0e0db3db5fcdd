from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from .base import BaseModel

class User(BaseModel):
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    # None for accounts created through Google sign-in
    hashed_password = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    refresh_token = Column(String(255), nullable=True)
    refresh_token_expires_at = Column(DateTime, nullable=True)

    sent_messages = relationship("Message", foreign_keys="Message.sender_id", back_populates="sender")
    group_memberships = relationship("GroupMember", back_populates="user", cascade="all, delete-orphan")
