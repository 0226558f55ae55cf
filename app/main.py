# app/main.py

from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from api.routes import auth, messages
from api.exception_handlers import register_exception_handlers
from infrastructure.postgres_connection import postgres_connection
from config.settings import settings
import socketio
import logging

logger = logging.getLogger(__name__)

# Import Socket.IO instance and register all namespaces
from api.socketio import sio, manager, presence_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events"""
    # Startup: Initialize connections
    await postgres_connection.connect()
    logger.info(f"{settings.APP_NAME} started (Socket.IO namespace {settings.SOCKETIO_NAMESPACE})")

    yield

    # Shutdown: presence is process-local, so it is dropped with the process
    presence_service.shutdown()
    manager.clear()
    await postgres_connection.disconnect()


fastapi_app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Register domain exception handlers
register_exception_handlers(fastapi_app)


# Health check endpoint
@fastapi_app.get("/health")
async def health_check():
    """Health check endpoint for Docker and monitoring"""
    return {"status": "healthy"}


# CORS configuration - important: can't use "*" with allow_credentials=True
fastapi_app.add_middleware(
    middleware_class=CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

fastapi_app.include_router(auth.auth_router, prefix="/v1")
fastapi_app.include_router(auth.users_router, prefix="/v1")
fastapi_app.include_router(messages.router, prefix="/v1")

# Wrap FastAPI app with Socket.IO
# This allows Socket.IO to handle /socket.io/* paths and pass everything else to FastAPI
app = socketio.ASGIApp(sio, fastapi_app)
