from sqlalchemy import Column, Integer, ForeignKey, DateTime, Boolean, Uuid
from sqlalchemy.orm import relationship
from .base import Base

class GroupMember(Base):
    __tablename__ = "group_members"

    # The composite key allows one membership per (group, user)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    # Earliest message timestamp this member may see; None means the full history
    chat_history_visible_from = Column(DateTime, nullable=True)

    group = relationship("Group", back_populates="members")
    user = relationship("User", back_populates="group_memberships")
