# app/api/routes/messages.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from infrastructure.postgres_connection import get_db_session
from services.chat_service import ChatService
from services.message_notifier import MessageNotifier
from api.routes.auth import current_user
from exceptions.domain_exceptions import NotFoundException
from models.user import User
from schemas.chat_schema import (
    ChatHistoryResponse,
    RecentConversationsResponse,
    MessageResponse,
    EditMessageRequest,
    ReactionRequest,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/chat/{user_id}", response_model=ChatHistoryResponse)
async def get_chat_history(
    user_id: int,
    before_message_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(current_user)
):
    """
    One-to-one history with another user, oldest first

    Args:
        user_id: The other participant
        before_message_id: Get messages before this ID (pass `nextCursor` of the previous page)
        limit: Number of messages to return (default 50)
    """
    return await ChatService.get_direct_history(
        session=session,
        user_id=user.id,
        other_user_id=user_id,
        before_message_id=before_message_id,
        limit=limit
    )


@router.get("/group/{group_id}", response_model=ChatHistoryResponse)
async def get_group_history(
    group_id: int,
    before_message_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(current_user)
):
    """Group history, oldest first; only members may read it"""
    return await ChatService.get_group_history(
        session=session,
        user_id=user.id,
        group_id=group_id,
        before_message_id=before_message_id,
        limit=limit
    )


@router.get("/conversations", response_model=RecentConversationsResponse)
async def get_recent_conversations(
    limit: int = Query(20, ge=1, le=100, description="Maximum number of conversations to return"),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(current_user)
):
    """
    Get user's recent one-to-one conversations sorted by last message time

    This endpoint should be called on initial load of the chat interface.
    Real-time updates are handled via Socket.IO events.
    """
    return await ChatService.get_recent_conversations(session=session, user_id=user.id, limit=limit)


@router.put("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    request: EditMessageRequest,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(current_user)
):
    message = await ChatService.edit_message(session, user.id, message_id, request.content)
    await MessageNotifier.publish('message-edited', message)
    return ChatService.to_response(message)


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: int,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(current_user)
):
    """Soft delete: the message stays in history with placeholder content"""
    message = await ChatService.delete_message(session, user.id, message_id)
    await MessageNotifier.publish('message-deleted', message)
    return ChatService.to_response(message)


@router.post("/{message_id}/reactions", response_model=MessageResponse)
async def toggle_reaction(
    message_id: int,
    request: ReactionRequest,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(current_user)
):
    """Toggle an emoji reaction; same behaviour as the `message-reaction` socket event"""
    message = await ChatService.toggle_reaction(session, user.id, message_id, request.emoji)
    if message is None:
        raise NotFoundException(message="Message not found", details={"message_id": message_id})
    await MessageNotifier.publish('message-reaction-updated', message)
    return ChatService.to_response(message)
