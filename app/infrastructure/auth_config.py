# app/infrastructure/auth_config.py

from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from config.settings import settings
from exceptions.domain_exceptions import AuthenticationFailedException
import logging

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "relay-chat:auth"


def create_access_token(user_id: int) -> str:
    """Issue a signed bearer credential for the given user"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "aud": TOKEN_AUDIENCE,
        "iat": now,
        "exp": now + timedelta(seconds=settings.JWT_LIFETIME_SECONDS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Validate a bearer credential and return the user id it was issued for

    Raises:
        AuthenticationFailedException: If the token is missing, malformed,
            expired, signed with another key or lacks a numeric 'sub' claim
    """
    if not token:
        raise AuthenticationFailedException("Authentication required")

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=TOKEN_AUDIENCE,
        )
    except JWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise AuthenticationFailedException("Invalid or expired token")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Token missing a valid 'sub' claim")
        raise AuthenticationFailedException("Invalid or expired token")
