# app/services/user_service.py

from datetime import datetime
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from models.user import User
from exceptions.domain_exceptions import NotFoundException
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user lookup, creation by display name and presence fields"""

    @staticmethod
    async def get_user(session: AsyncSession, user_id: int) -> User:
        """
        Get a user by ID

        Raises:
            NotFoundException: If the user does not exist
        """
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundException(
                message="User not found",
                details={"user_id": user_id}
            )
        return user

    @staticmethod
    async def get_user_by_name(session: AsyncSession, name: str) -> Optional[User]:
        result = await session.execute(select(User).where(User.name == name))
        return result.scalar_one_or_none()

    @staticmethod
    async def join_by_name(session: AsyncSession, name: str) -> User:
        """
        Find the user with this display name or create it

        Presence is left untouched: only a live socket makes a user online.

        Args:
            session: Database session
            name: Already trimmed display name

        Returns:
            Existing or newly created user
        """
        user = await UserService.get_user_by_name(session, name)
        if user:
            return user

        user = User(name=name)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            # Another request created the same name concurrently
            await session.rollback()
            user = await UserService.get_user_by_name(session, name)
            if not user:
                raise
            return user

        await session.refresh(user)
        logger.info(f"Created user {user.id} ({user.name})")
        return user

    @staticmethod
    async def update_presence(
        session: AsyncSession,
        user_id: int,
        is_online: bool,
        last_seen: Optional[datetime] = None
    ) -> None:
        """Persist the online flag (and last-seen timestamp, when given)"""
        values = {"is_online": is_online}
        if last_seen is not None:
            values["last_seen"] = last_seen

        await session.execute(update(User).where(User.id == user_id).values(**values))
        await session.commit()
