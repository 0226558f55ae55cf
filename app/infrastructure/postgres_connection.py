# app/infrastructure/postgres_connection.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


# Base class for SQLAlchemy models
Base = declarative_base()


class PostgresConnection:
    """Simple database connection manager using SQLAlchemy"""

    def __init__(self):
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    async def connect(self):
        """Connect to the database and optionally create missing tables"""
        if self.engine is not None:
            return  # Already connected

        engine_options = {
            "echo": settings.DEBUG,  # Log SQL queries in debug mode
            "pool_pre_ping": True,  # Verify connections before using them
        }
        if settings.DATABASE_URL.startswith("postgresql"):
            engine_options.update(pool_size=10, max_overflow=20)

        try:
            self.engine = create_async_engine(settings.DATABASE_URL, **engine_options)

            # Create session factory
            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            # Test connection
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            if settings.DB_CREATE_TABLES:
                import models  # noqa: F401  (registers every table with Base.metadata)
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)

            logger.info(f"✅ Connected to database at {self.engine.url.render_as_string(hide_password=True)}")
        except Exception as e:
            logger.error(f"❌ Failed to connect to database: {e}")
            self.engine = None
            self.session_factory = None
            raise

    async def disconnect(self):
        """Disconnect from the database"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("✅ Disconnected from database")

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get the session factory for creating database sessions"""
        if not self.session_factory:
            raise RuntimeError("Database session factory is not initialized. Call connect() first.")
        return self.session_factory


# Shared instance
postgres_connection = PostgresConnection()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions"""
    return postgres_connection.get_session_factory()


async def get_db_session() -> AsyncSession:
    """
    Dependency for FastAPI routes to get a database session.

    Usage in routes:
        @router.get("/messages")
        async def get_messages(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
