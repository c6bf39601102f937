"""Chat model: one conversation, its full message list stored as one JSON blob."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from sorvx.db.session import Base


class Chat(Base):
    __tablename__ = "chats"

    id = Column(String(64), primary_key=True)  # client-generated UUID
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)  # naive UTC, set once on insert
    # JSON array of ChatMessage (see schemas.chat); overwritten as a whole
    messages = Column(Text, nullable=False)

    user = relationship("User", back_populates="chats")
