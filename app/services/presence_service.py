# app/services/presence_service.py

import logging
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Set
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schemas.user_status_schema import UserPresenceEvent
from services.user_service import UserService

logger = logging.getLogger(__name__)


class PresenceRegistry(ABC):
    """
    Set of user ids currently connected to this process.

    Implementations are not synchronized: they rely on the asyncio event loop
    never interleaving two calls. A shared implementation (e.g. backed by a
    pub/sub broker) is required before running several server processes.
    """

    @abstractmethod
    def add(self, user_id: int) -> None:
        """Idempotently mark a user as connected"""

    @abstractmethod
    def remove(self, user_id: int) -> None:
        """Idempotently mark a user as gone"""

    @abstractmethod
    def snapshot(self) -> Set[int]:
        """Return a copy of the currently connected user ids"""

    @abstractmethod
    def clear(self) -> None:
        """Forget everyone (process shutdown)"""

    def contains(self, user_id: int) -> bool:
        return user_id in self.snapshot()


class InMemoryPresenceRegistry(PresenceRegistry):
    """Process-local presence registry"""

    def __init__(self):
        self._online: Set[int] = set()

    def add(self, user_id: int) -> None:
        self._online.add(user_id)

    def remove(self, user_id: int) -> None:
        self._online.discard(user_id)

    def snapshot(self) -> Set[int]:
        return set(self._online)

    def clear(self) -> None:
        self._online.clear()

    def contains(self, user_id: int) -> bool:
        return user_id in self._online


class PresenceService:
    """Keeps the presence registry and the users' persisted online flag in step"""

    def __init__(self, registry: PresenceRegistry):
        self.registry = registry

    async def mark_online(self, session: AsyncSession, user_id: int) -> UserPresenceEvent:
        """
        Register a user as online and persist `is_online = True`.

        The registry is updated even when the write fails; the write is
        best-effort and only logged on failure.
        """
        self.registry.add(user_id)
        try:
            await UserService.update_presence(session, user_id, is_online=True)
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist online status for user {user_id}: {e}")
            await session.rollback()
        return UserPresenceEvent(user_id=user_id, is_online=True)

    async def mark_offline(self, session: AsyncSession, user_id: int) -> UserPresenceEvent:
        """
        Remove a user from the registry and persist `is_online = False` with
        `last_seen` set to now.
        """
        self.registry.remove(user_id)
        last_seen = datetime.now(UTC)
        try:
            await UserService.update_presence(session, user_id, is_online=False, last_seen=last_seen)
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist offline status for user {user_id}: {e}")
            await session.rollback()
        return UserPresenceEvent(user_id=user_id, is_online=False, last_seen=last_seen)

    def snapshot(self) -> list[int]:
        """Online user ids, sorted for stable payloads"""
        return sorted(self.registry.snapshot())

    def is_online(self, user_id: int) -> bool:
        return self.registry.contains(user_id)

    def shutdown(self) -> None:
        self.registry.clear()
        logger.info("Presence registry cleared")
