# app/models/message_reaction.py

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from infrastructure.postgres_connection import Base


class MessageReaction(Base):
    """One user's emoji on one message.

    An emoji "entry" is the set of rows sharing (message_id, emoji), so an
    entry disappears as soon as its last row is deleted.
    """
    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "emoji", "user_id", name="uq_reaction_per_user_emoji"),
    )

    id_reaction = Column(Integer, primary_key=True, index=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    emoji = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    message = relationship("Message", back_populates="reactions")
    user = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<MessageReaction(message_id={self.message_id}, user_id={self.user_id}, emoji='{self.emoji}')>"
