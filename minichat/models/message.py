from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from .base import Base, utcnow

class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(String(1000), nullable=True)
    # Stored file name for attachments, content is None on those rows
    file_path = Column(String(255), nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    sender = relationship("User", foreign_keys=[sender_id], back_populates="sent_messages")
    receiver = relationship("User", foreign_keys=[receiver_id])
    group = relationship("Group", back_populates="messages")

    @property
    def is_file(self) -> bool:
        return self.file_path is not None and self.content is None
