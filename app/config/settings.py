# app/config/settings.py

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )

    # PostgreSQL Configuration
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "chat_db"
    DATABASE_URL_OVERRIDE: Optional[str] = None  # e.g. sqlite+aiosqlite:///./chat.db for local runs
    DB_CREATE_TABLES: bool = True  # Create missing tables on startup

    # Application Configuration
    APP_NAME: str = "Relay Chat Backend"
    DEBUG: bool = False
    CORS_ORIGINS: list = [
        "http://localhost:3000",  # React default
        "http://localhost:5173",  # Vite default
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # JWT Authentication Configuration
    SECRET_KEY: str = "CHANGE-THIS-SECRET-KEY-IN-PRODUCTION-USE-ENV-FILE"  # Must be changed in .env file!
    JWT_ALGORITHM: str = "HS256"
    JWT_LIFETIME_SECONDS: int = 30 * 24 * 3600  # 30 days

    # Socket.IO Configuration
    SOCKETIO_NAMESPACE: str = "/"
    SOCKETIO_PING_TIMEOUT: int = 60
    SOCKETIO_PING_INTERVAL: int = 25

    # Messaging
    DELETED_MESSAGE_PLACEHOLDER: str = "This message was deleted"
    HISTORY_PAGE_SIZE: int = 50

    @property
    def DATABASE_URL(self) -> str:
        """Construct PostgreSQL connection URL for SQLAlchemy"""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


settings = Settings()
