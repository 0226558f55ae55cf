# app/exceptions/__init__.py

from exceptions.domain_exceptions import (
    DomainException,
    NotFoundException,
    BadRequestException,
    InvalidTargetException,
    UnauthorizedException,
    AuthenticationFailedException,
    ForbiddenException,
    ValidationException,
    PersistenceFailureException
)

__all__ = [
    'DomainException',
    'NotFoundException',
    'BadRequestException',
    'InvalidTargetException',
    'UnauthorizedException',
    'AuthenticationFailedException',
    'ForbiddenException',
    'ValidationException',
    'PersistenceFailureException'
]
