# app/models/message.py

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, CheckConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from infrastructure.postgres_connection import Base


class Message(Base):
    """Chat message addressed to exactly one user or one group"""
    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "(receiver_id IS NULL AND group_id IS NOT NULL) OR (receiver_id IS NOT NULL AND group_id IS NULL)",
            name="ck_message_single_target",
        ),
        CheckConstraint("type IN ('text', 'image', 'pdf', 'video')", name="ck_message_type"),
        Index("ix_messages_conversation", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_group_created", "group_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    content = Column(Text, nullable=False, default="")
    type = Column(String(16), nullable=False, default="text")

    # File reference, only for non-text messages
    file_url = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)

    delivered = Column(Boolean, nullable=False, default=False)
    read = Column(Boolean, nullable=False, default=False)
    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    reply_to_id = Column(Integer, ForeignKey("messages.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id], lazy="selectin")
    receiver = relationship("User", foreign_keys=[receiver_id], lazy="selectin")
    group = relationship("Group", lazy="selectin")
    reactions = relationship(
        "MessageReaction",
        back_populates="message",
        order_by="MessageReaction.id_reaction",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Message(id={self.id}, sender_id={self.sender_id}, receiver_id={self.receiver_id}, group_id={self.group_id})>"
