# app/api/exception_handlers.py

from typing import TYPE_CHECKING
from fastapi import Request
from fastapi.responses import JSONResponse
from exceptions.domain_exceptions import DomainException

if TYPE_CHECKING:
    from fastapi import FastAPI


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """
    Global exception handler for domain exceptions in FastAPI

    Returns a consistent JSON response format for all domain exceptions
    """
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path
        },
        headers=headers
    )


def register_exception_handlers(app: "FastAPI") -> None:
    """
    Register the domain exception handler with FastAPI app

    Subclasses of DomainException are resolved through the MRO, so a single
    registration covers NotFoundException, InvalidTargetException, etc.
    """
    app.add_exception_handler(DomainException, domain_exception_handler)
