# app/services/chat_service.py

from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import List, Optional
from sqlalchemy import select, and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from models.message import Message
from models.message_reaction import MessageReaction
from models.user import User
from schemas.chat_schema import (
    ChatHistoryResponse,
    ConversationPartner,
    ConversationResponse,
    FileData,
    GroupSummary,
    MessageResponse,
    MessageType,
    ReactionResponse,
    RecentConversationsResponse,
    UserSummary,
)
from services.group_service import GroupService
from services.user_service import UserService
from exceptions.domain_exceptions import (
    NotFoundException,
    BadRequestException,
    ForbiddenException,
    InvalidTargetException,
    PersistenceFailureException,
    ValidationException,
)
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_guard(session: AsyncSession, action: str):
    """Roll back and re-raise storage errors as PersistenceFailureException"""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Storage error while trying to {action}: {e}")
        await session.rollback()
        raise PersistenceFailureException(
            message=f"Failed to {action}, please retry",
            details={"error": e.__class__.__name__}
        )


class ChatService:
    """Service for one-to-one and group messages, read receipts and reactions"""

    @staticmethod
    async def get_message(session: AsyncSession, message_id: int) -> Optional[Message]:
        """Load a message with sender, receiver, group and reactions, bypassing stale identity-map state"""
        query = (
            select(Message)
            .where(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_message_or_404(session: AsyncSession, message_id: int) -> Message:
        message = await ChatService.get_message(session, message_id)
        if not message:
            raise NotFoundException(
                message="Message not found",
                details={"message_id": message_id}
            )
        return message

    @staticmethod
    def _validate_body(
        content: str,
        message_type: MessageType,
        file_data: Optional[FileData]
    ) -> None:
        if message_type == MessageType.TEXT:
            if not content or not content.strip():
                raise ValidationException(
                    message="Content is required for text messages",
                    details={"type": message_type.value}
                )
            if file_data is not None:
                raise ValidationException(
                    message="Text messages cannot carry a file",
                    details={"type": message_type.value}
                )
        elif file_data is None:
            raise ValidationException(
                message="File data is required for non-text messages",
                details={"type": message_type.value}
            )

    @staticmethod
    async def _validate_reply(
        session: AsyncSession,
        reply_to_id: int,
        sender_id: int,
        receiver_id: Optional[int],
        group_id: Optional[int]
    ) -> None:
        """A reply must point at an existing message of the same conversation"""
        original = await ChatService.get_message(session, reply_to_id)
        if original is None:
            raise ValidationException(
                message="Replied-to message not found",
                details={"reply_to_id": reply_to_id}
            )

        if group_id is not None:
            same_conversation = original.group_id == group_id
        else:
            same_conversation = (
                original.group_id is None
                and {original.sender_id, original.receiver_id} == {sender_id, receiver_id}
            )

        if not same_conversation:
            raise ValidationException(
                message="Replied-to message belongs to another conversation",
                details={"reply_to_id": reply_to_id}
            )

    @staticmethod
    async def send_message(
        session: AsyncSession,
        sender_id: int,
        receiver_id: Optional[int] = None,
        group_id: Optional[int] = None,
        content: str = "",
        message_type: MessageType = MessageType.TEXT,
        file_data: Optional[FileData] = None,
        reply_to_id: Optional[int] = None,
        delivered: bool = True
    ) -> Message:
        """
        Persist a new one-to-one or group message

        Args:
            session: Database session
            sender_id: ID of the message sender
            receiver_id: Recipient user (one-to-one), mutually exclusive with group_id
            group_id: Recipient group, mutually exclusive with receiver_id
            content: Message text (may be empty for file messages)
            message_type: text, image, pdf or video
            file_data: File reference for non-text messages
            reply_to_id: Optional message this one replies to
            delivered: Socket sends are delivered on receipt; REST sends are not

        Returns:
            The stored message with sender/receiver/group resolved

        Raises:
            InvalidTargetException: If neither or both of receiver_id/group_id are set
            ValidationException: If content/type/file or the reply reference are inconsistent
            NotFoundException: If the receiver or group does not exist
            ForbiddenException: If the sender is not a member of the group
            PersistenceFailureException: If storage is unavailable
        """
        if (receiver_id is None) == (group_id is None):
            raise InvalidTargetException(
                details={"receiver_id": receiver_id, "group_id": group_id}
            )

        message_type = MessageType(message_type)
        content = content or ""
        ChatService._validate_body(content, message_type, file_data)

        async with storage_guard(session, "send message"):
            if receiver_id is not None:
                await UserService.get_user(session, receiver_id)
            else:
                await GroupService.get_group(session, group_id)
                if not await GroupService.is_member(session, group_id, sender_id):
                    raise ForbiddenException(
                        message="You are not a member of this group",
                        details={"group_id": group_id}
                    )

            if reply_to_id is not None:
                await ChatService._validate_reply(session, reply_to_id, sender_id, receiver_id, group_id)

            message = Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                group_id=group_id,
                content=content,
                type=message_type.value,
                file_url=file_data.url if file_data else None,
                file_name=file_data.name if file_data else None,
                file_size=file_data.size if file_data else None,
                delivered=delivered,
                reply_to_id=reply_to_id
            )
            session.add(message)
            await session.commit()

            return await ChatService.get_message(session, message.id)

    @staticmethod
    async def is_participant(session: AsyncSession, message: Message, user_id: int) -> bool:
        """Sender or receiver of a one-to-one message, or a member of its group"""
        if message.group_id is not None:
            return await GroupService.is_member(session, message.group_id, user_id)
        return user_id in (message.sender_id, message.receiver_id)

    @staticmethod
    async def _get_visible_message(session: AsyncSession, user_id: int, message_id: int) -> Optional[Message]:
        """The message, or None when it does not exist or the user is not part of its conversation"""
        message = await ChatService.get_message(session, message_id)
        if message is None or not await ChatService.is_participant(session, message, user_id):
            return None
        return message

    @staticmethod
    async def mark_read(session: AsyncSession, user_id: int, message_id: int) -> Optional[Message]:
        """
        Set `read = True` on a message of one of the user's conversations

        Returns:
            The updated message, or None when it does not exist or the user
            is not part of its conversation
        """
        async with storage_guard(session, "mark message as read"):
            message = await ChatService._get_visible_message(session, user_id, message_id)
            if message is None:
                logger.debug(f"mark-read of message {message_id} by user {user_id} ignored")
                return None

            if not message.read:
                message.read = True
                await session.commit()

            return await ChatService.get_message(session, message_id)

    @staticmethod
    async def toggle_reaction(
        session: AsyncSession,
        user_id: int,
        message_id: int,
        emoji: str
    ) -> Optional[Message]:
        """
        Toggle one emoji of one user on a message

        Reacting with an emoji the user already used removes it; any other
        emoji is added alongside the user's existing reactions. An emoji with
        no remaining users disappears from the message.

        Returns:
            The updated message, or None when it does not exist or the user
            is not part of its conversation
        """
        async with storage_guard(session, "update reaction"):
            message = await ChatService._get_visible_message(session, user_id, message_id)
            if message is None:
                logger.debug(f"Reaction on message {message_id} by user {user_id} ignored")
                return None

            result = await session.execute(
                select(MessageReaction).where(
                    MessageReaction.message_id == message_id,
                    MessageReaction.emoji == emoji,
                    MessageReaction.user_id == user_id
                )
            )
            existing = result.scalar_one_or_none()

            if existing is not None:
                await session.delete(existing)
            else:
                session.add(MessageReaction(message_id=message_id, user_id=user_id, emoji=emoji))

            await session.commit()
            return await ChatService.get_message(session, message_id)

    @staticmethod
    async def edit_message(
        session: AsyncSession,
        user_id: int,
        message_id: int,
        content: str
    ) -> Message:
        """
        Replace the content of one's own message

        Raises:
            NotFoundException: If the message does not exist
            ForbiddenException: If the user is not the sender
            BadRequestException: If the message was deleted
        """
        async with storage_guard(session, "edit message"):
            message = await ChatService._get_message_or_404(session, message_id)

            if message.sender_id != user_id:
                raise ForbiddenException(
                    message="You can only edit your own messages",
                    details={"message_id": message_id}
                )
            if message.is_deleted:
                raise BadRequestException(
                    message="Cannot edit deleted message",
                    details={"message_id": message_id}
                )

            message.content = content
            message.is_edited = True
            message.edited_at = datetime.now(UTC)
            await session.commit()

            return await ChatService.get_message(session, message_id)

    @staticmethod
    async def delete_message(session: AsyncSession, user_id: int, message_id: int) -> Message:
        """
        Soft-delete one's own message

        The content is replaced with a placeholder and the file reference is
        dropped; the row itself is kept. There is no undo.

        Raises:
            NotFoundException: If the message does not exist
            ForbiddenException: If the user is not the sender
            BadRequestException: If the message was already deleted
        """
        async with storage_guard(session, "delete message"):
            message = await ChatService._get_message_or_404(session, message_id)

            if message.sender_id != user_id:
                raise ForbiddenException(
                    message="You can only delete your own messages",
                    details={"message_id": message_id}
                )
            if message.is_deleted:
                raise BadRequestException(
                    message="Message already deleted",
                    details={"message_id": message_id}
                )

            message.is_deleted = True
            message.deleted_at = datetime.now(UTC)
            message.content = settings.DELETED_MESSAGE_PLACEHOLDER
            message.file_url = None
            message.file_name = None
            message.file_size = None
            await session.commit()

            return await ChatService.get_message(session, message_id)

    @staticmethod
    async def _page(
        session: AsyncSession,
        condition,
        before_message_id: Optional[int],
        limit: int
    ) -> ChatHistoryResponse:
        query = select(Message).where(condition)
        if before_message_id is not None:
            query = query.where(Message.id < before_message_id)
        query = query.order_by(Message.id.desc()).limit(limit)

        result = await session.execute(query)
        messages = list(result.scalars().all())
        messages.reverse()  # oldest first

        return ChatHistoryResponse(
            messages=[ChatService.to_response(m) for m in messages],
            limit=limit,
            has_more=len(messages) == limit,
            next_cursor=messages[0].id if messages else None
        )

    @staticmethod
    async def get_direct_history(
        session: AsyncSession,
        user_id: int,
        other_user_id: int,
        before_message_id: Optional[int] = None,
        limit: int = None
    ) -> ChatHistoryResponse:
        """
        One-to-one history between two users, oldest first (cursor-based pagination)

        The client should:
        1. First request: don't provide before_message_id
        2. Subsequent requests: provide next_cursor from the previous response
        """
        limit = limit or settings.HISTORY_PAGE_SIZE
        await UserService.get_user(session, other_user_id)

        condition = or_(
            and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
            and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
        )
        return await ChatService._page(session, condition, before_message_id, limit)

    @staticmethod
    async def get_group_history(
        session: AsyncSession,
        user_id: int,
        group_id: int,
        before_message_id: Optional[int] = None,
        limit: int = None
    ) -> ChatHistoryResponse:
        """
        Group history, oldest first; members only

        Raises:
            NotFoundException: If the group does not exist
            ForbiddenException: If the user is not a member
        """
        limit = limit or settings.HISTORY_PAGE_SIZE
        await GroupService.get_group(session, group_id)
        if not await GroupService.is_member(session, group_id, user_id):
            raise ForbiddenException(
                message="You are not a member of this group",
                details={"group_id": group_id}
            )

        return await ChatService._page(session, Message.group_id == group_id, before_message_id, limit)

    @staticmethod
    async def get_recent_conversations(
        session: AsyncSession,
        user_id: int,
        limit: int = 20
    ) -> RecentConversationsResponse:
        """
        Latest one-to-one message per conversation partner, newest first
        """
        query = (
            select(Message)
            .where(
                Message.group_id.is_(None),
                or_(Message.sender_id == user_id, Message.receiver_id == user_id)
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        result = await session.execute(query)

        latest = {}
        for message in result.scalars():
            partner_id = message.receiver_id if message.sender_id == user_id else message.sender_id
            if partner_id not in latest:
                latest[partner_id] = message
                if len(latest) >= limit:
                    break

        conversations: List[ConversationResponse] = []
        for message in latest.values():
            partner: User = message.receiver if message.sender_id == user_id else message.sender
            conversations.append(ConversationResponse(
                user=ConversationPartner(
                    id=partner.id,
                    name=partner.name,
                    is_online=partner.is_online,
                    last_seen=partner.last_seen
                ),
                last_message=ChatService.to_response(message)
            ))

        return RecentConversationsResponse(conversations=conversations)

    @staticmethod
    def group_reactions(message: Message) -> List[ReactionResponse]:
        """Fold reaction rows into one entry per emoji, in order of first use"""
        entries: dict[str, List[UserSummary]] = {}
        for reaction in message.reactions:
            entries.setdefault(reaction.emoji, []).append(
                UserSummary(id=reaction.user.id, name=reaction.user.name)
            )
        return [ReactionResponse(emoji=emoji, users=users) for emoji, users in entries.items()]

    @staticmethod
    def to_response(message: Message) -> MessageResponse:
        """Denormalized view of a message for client rendering"""
        file = None
        if message.file_url:
            file = FileData(url=message.file_url, name=message.file_name or message.file_url, size=message.file_size or 0)

        return MessageResponse(
            id=message.id,
            sender=UserSummary(id=message.sender.id, name=message.sender.name),
            receiver=UserSummary(id=message.receiver.id, name=message.receiver.name) if message.receiver else None,
            group=GroupSummary(id=message.group.id, name=message.group.name) if message.group else None,
            content=message.content,
            type=MessageType(message.type),
            file=file,
            delivered=message.delivered,
            read=message.read,
            is_edited=message.is_edited,
            edited_at=message.edited_at,
            is_deleted=message.is_deleted,
            deleted_at=message.deleted_at,
            reactions=ChatService.group_reactions(message),
            reply_to_id=message.reply_to_id,
            created_at=message.created_at,
            updated_at=message.updated_at
        )
