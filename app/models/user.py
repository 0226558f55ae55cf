# app/models/user.py

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from infrastructure.postgres_connection import Base


class User(Base):
    """Chat participant identified by display name.

    `is_online` and `last_seen` are written only by the socket connection
    lifecycle (see services.presence_service).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    is_online = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    # Same rows as Group.members, seen from the user side
    joined_groups = relationship(
        "Group",
        secondary="group_members",
        viewonly=True,
    )

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', is_online={self.is_online})>"
