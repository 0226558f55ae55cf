"""
Pytest configuration and fixtures for testing
"""
import pytest
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from infrastructure.postgres_connection import Base
from infrastructure.auth_config import create_access_token
from models.user import User
from models.group import Group, GroupMember
from models.message import Message  # Import to register with Base
from models.message_reaction import MessageReaction  # noqa: F401


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a test database engine (file-based SQLite, one per test)"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables and close
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _create_user(session: AsyncSession, name: str) -> User:
    user = User(name=name)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def alice(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "alice")


@pytest.fixture
async def bob(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "bob")


@pytest.fixture
async def carol(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "carol")


@pytest.fixture
async def outsider(db_session: AsyncSession) -> User:
    """User that belongs to no group"""
    return await _create_user(db_session, "outsider")


@pytest.fixture
async def group(db_session: AsyncSession, alice: User, bob: User, carol: User) -> Group:
    """Group created by alice with bob and carol as members (join order: alice, bob, carol)"""
    group = Group(name="Team", description="Test group", created_by_id=alice.id)
    db_session.add(group)
    await db_session.flush()
    for user in (alice, bob, carol):
        db_session.add(GroupMember(group_id=group.id, user_id=user.id))
        await db_session.flush()
    await db_session.commit()
    await db_session.refresh(group)
    return group


@pytest.fixture
async def direct_message(db_session: AsyncSession, alice: User, bob: User) -> Message:
    """Text message from alice to bob"""
    message = Message(sender_id=alice.id, receiver_id=bob.id, content="Hello Bob", type="text", delivered=True)
    db_session.add(message)
    await db_session.commit()
    await db_session.refresh(message)
    return message


@pytest.fixture
def alice_token(alice: User) -> str:
    return create_access_token(alice.id)
