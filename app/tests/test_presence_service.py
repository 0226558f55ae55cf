"""
Unit tests for PresenceService
"""
import pytest
from unittest.mock import patch, AsyncMock
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from models.user import User
from services.presence_service import PresenceService, InMemoryPresenceRegistry
from services.user_service import UserService


@pytest.fixture
def presence() -> PresenceService:
    return PresenceService(InMemoryPresenceRegistry())


@pytest.mark.unit
class TestPresenceService:
    """Test cases for online/offline transitions"""

    async def test_mark_online_persists_flag(self, db_session: AsyncSession, presence: PresenceService, alice: User):
        event = await presence.mark_online(db_session, alice.id)

        assert event.user_id == alice.id
        assert event.is_online is True
        assert presence.is_online(alice.id)

        await db_session.refresh(alice)
        assert alice.is_online is True

    async def test_mark_offline_sets_last_seen(self, db_session: AsyncSession, presence: PresenceService, alice: User):
        await presence.mark_online(db_session, alice.id)
        event = await presence.mark_offline(db_session, alice.id)

        assert event.is_online is False
        assert event.last_seen is not None
        assert not presence.is_online(alice.id)

        await db_session.refresh(alice)
        assert alice.is_online is False
        # SQLite drops the offset on the way back
        assert alice.last_seen.replace(tzinfo=None) == event.last_seen.replace(tzinfo=None)

    async def test_snapshot_is_sorted(self, db_session: AsyncSession, presence: PresenceService, alice: User, bob: User):
        await presence.mark_online(db_session, bob.id)
        await presence.mark_online(db_session, alice.id)

        assert presence.snapshot() == sorted([alice.id, bob.id])

    async def test_registry_updated_when_storage_fails(self, db_session: AsyncSession, presence: PresenceService, alice: User):
        outage = OperationalError("UPDATE users", {}, Exception("connection refused"))
        with patch.object(UserService, "update_presence", AsyncMock(side_effect=outage)):
            event = await presence.mark_online(db_session, alice.id)

        assert event.is_online is True
        assert presence.snapshot() == [alice.id]

    async def test_shutdown_clears_registry(self, db_session: AsyncSession, presence: PresenceService, alice: User):
        await presence.mark_online(db_session, alice.id)
        presence.shutdown()

        assert presence.snapshot() == []
