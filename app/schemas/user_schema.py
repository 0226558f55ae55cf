# app/schemas/user_schema.py

from typing import Optional
from datetime import datetime
from pydantic import Field, field_validator
from schemas.base_schema import CamelModel


class JoinRequest(CamelModel):
    """Schema for joining the chat with a display name"""
    name: str = Field(..., max_length=255)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError('Name must be at least 2 characters long')
        return v


class JoinResponse(CamelModel):
    """Issued credential for a joined user"""
    id: int
    name: str
    token: str


class UserRead(CamelModel):
    """Schema for reading user data"""
    id: int
    name: str
    is_online: bool
    last_seen: Optional[datetime] = None
