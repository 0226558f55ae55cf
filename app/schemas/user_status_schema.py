# app/schemas/user_status_schema.py

from typing import Optional
from datetime import datetime
from schemas.base_schema import CamelModel


class UserPresenceEvent(CamelModel):
    """Payload of user-online / user-offline"""
    user_id: int
    is_online: bool
    last_seen: Optional[datetime] = None
