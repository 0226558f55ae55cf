# app/api/routes/auth.py

from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from models.user import User
from schemas.user_schema import JoinRequest, JoinResponse, UserRead
from services.user_service import UserService
from infrastructure.auth_config import create_access_token, decode_access_token
from infrastructure.postgres_connection import get_db_session
from exceptions.domain_exceptions import AuthenticationFailedException
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Create routers
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])


async def current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """Resolve the bearer token of the request to its user"""
    token = credentials.credentials if credentials else None
    user_id = decode_access_token(token)
    user = await session.get(User, user_id)
    if user is None:
        raise AuthenticationFailedException("Invalid or expired token")
    return user


@auth_router.post("/join", response_model=JoinResponse)
async def join(
    request: JoinRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Enter the chat under a display name

    The user is created on first use of the name; later joins with the same
    name return the same identity. The returned token is used both as a
    `Bearer` header on HTTP routes and as the Socket.IO `auth.token`.
    """
    user = await UserService.join_by_name(session, request.name)
    logger.info(f"User {user.id} ({user.name}) joined")
    return JoinResponse(id=user.id, name=user.name, token=create_access_token(user.id))


@users_router.get("/me", response_model=UserRead)
async def get_me(user: User = Depends(current_user)):
    return user


@users_router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(current_user),
):
    return await UserService.get_user(session, user_id)
