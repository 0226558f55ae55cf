# app/infrastructure/socketio_manager.py

import socketio
from socketio.exceptions import ConnectionRefusedError
from typing import Callable, Dict, Optional
from urllib.parse import parse_qs
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from models.user import User
from config.settings import settings
from infrastructure.auth_config import decode_access_token
from infrastructure.postgres_connection import postgres_connection
from exceptions.domain_exceptions import AuthenticationFailedException
import logging

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks which live sockets belong to which user on this process"""

    def __init__(self):
        # Maps user_id to list of their session_ids (sids)
        self.active_connections: Dict[int, list[str]] = {}
        # Maps session_id to user_id
        self.sid_to_user: Dict[str, int] = {}

    def connect(self, sid: str, user_id: int, name: str = None):
        """Register a connection"""
        sessions = self.active_connections.setdefault(user_id, [])
        if sid not in sessions:
            sessions.append(sid)

        self.sid_to_user[sid] = user_id

        logger.info(f"Connection user:{user_id} ({name}) with session {sid}")

    def disconnect(self, sid: str):
        """Unregister a connection"""
        user_id = self.sid_to_user.pop(sid, None)
        if user_id is None:
            return

        sessions = self.active_connections.get(user_id, [])
        if sid in sessions:
            sessions.remove(sid)

        if not sessions:
            self.active_connections.pop(user_id, None)

        logger.info(f"Connection user:{user_id} disconnected (session {sid})")

    def get_user_id(self, sid: str) -> Optional[int]:
        """Get user_id from session_id"""
        return self.sid_to_user.get(sid)

    def get_user_sessions(self, user_id: int) -> list[str]:
        """Get all session_ids of a user (phone + laptop, several tabs, ...)"""
        return list(self.active_connections.get(user_id, []))

    def is_user_connected(self, user_id: int) -> bool:
        """Check if user has at least one live socket"""
        return bool(self.active_connections.get(user_id))

    def clear(self):
        self.active_connections.clear()
        self.sid_to_user.clear()


async def authenticate_user(token: Optional[str], session: AsyncSession) -> User:
    """
    Resolve a bearer credential to an existing user

    Args:
        token: JWT token string
        session: Database session

    Returns:
        The authenticated User

    Raises:
        AuthenticationFailedException: If the token is invalid or the user no longer exists
    """
    user_id = decode_access_token(token)

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        logger.warning(f"User not found for id: {user_id}")
        raise AuthenticationFailedException("Invalid or expired token")

    return user


def extract_token(environ: dict, auth: Optional[dict] = None) -> Optional[str]:
    """
    Extract the bearer credential supplied at connection time

    Looked up, in order, in the Socket.IO handshake `auth` payload
    (`{"token": ...}`), the `token` query parameter and the
    `Authorization: Bearer ...` header.
    """
    if isinstance(auth, dict) and auth.get('token'):
        return auth['token']

    query_string = environ.get('QUERY_STRING', '')
    if query_string:
        token = parse_qs(query_string).get('token', [None])[0]
        if token:
            return token

    header = environ.get('HTTP_AUTHORIZATION', '')
    scheme, _, credentials = header.partition(' ')
    if scheme.lower() == 'bearer' and credentials:
        return credentials.strip()

    return None


# Create global Socket.IO server with proper configuration
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins=settings.CORS_ORIGINS,
    async_handlers=True,  # every event runs as its own task
    logger=settings.DEBUG,
    engineio_logger=settings.DEBUG,
    ping_timeout=settings.SOCKETIO_PING_TIMEOUT,
    ping_interval=settings.SOCKETIO_PING_INTERVAL
)

# Global connection manager instance
manager = ConnectionManager()


class BaseNamespace(socketio.AsyncNamespace):
    """Base namespace without authentication.

    Wire events use dashes ('send-message'); they are dispatched to the
    matching `on_send_message` handler. Events without a handler are ignored.
    """

    async def trigger_event(self, event, *args):
        return await super().trigger_event(event.replace('-', '_'), *args)


class AuthNamespace(BaseNamespace):
    """Authenticated namespace that centralizes authentication and connection lifecycle.

    The credential is checked before any handler runs; a failure refuses the
    connection. Implement `handle_connect(self, sid, environ, user)` and/or
    `handle_disconnect(self, sid)` in subclasses to run namespace-specific
    logic after a successful connect or on disconnect.
    """

    def __init__(
        self,
        namespace: str = None,
        connections: ConnectionManager = None,
        session_factory: Callable[[], AsyncSession] = None,
    ):
        super().__init__(namespace)
        self.connections = connections if connections is not None else manager
        self._session_factory = session_factory

    def session_factory(self) -> AsyncSession:
        """Open a database session (injected factory, else the shared one)"""
        factory = self._session_factory or postgres_connection.get_session_factory()
        return factory()

    async def on_connect(self, sid, environ, auth=None):
        token = extract_token(environ, auth)
        try:
            async with self.session_factory() as session:
                user = await authenticate_user(token, session)
        except AuthenticationFailedException as e:
            logger.warning(f"Authentication failed for session {sid} on {self.namespace}: {e.message}")
            raise ConnectionRefusedError(e.message)
        except SQLAlchemyError as e:
            logger.error(f"Could not authenticate session {sid} on {self.namespace}: {e}")
            raise ConnectionRefusedError("Service unavailable")

        # Register connection before hooks so they can look the user up by sid
        self.connections.connect(sid, user.id, user.name)

        # Call subclass hook if available
        if hasattr(self, 'handle_connect'):
            try:
                await self.handle_connect(sid, environ, user)
            except Exception:
                logger.exception('Error in handle_connect hook')

    async def on_disconnect(self, sid, reason=None):
        # Default disconnect behaviour
        logger.info(f"Client disconnected from {self.namespace}: {sid} ({reason})")
        # Call subclass hook before unregistering (in case subclass needs user id)
        if hasattr(self, 'handle_disconnect'):
            try:
                await self.handle_disconnect(sid)
            except Exception:
                logger.exception('Error in handle_disconnect hook')

        self.connections.disconnect(sid)
