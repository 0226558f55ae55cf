# app/api/socketio/chat_namespace.py

from typing import Optional, Set, Type
from weakref import WeakValueDictionary
import asyncio
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from infrastructure.socketio_manager import AuthNamespace
from infrastructure.rooms import user_room, group_room, conversation_rooms
from models.user import User
from schemas.chat_schema import (
    SendMessageEvent,
    TypingIndicatorEvent,
    MarkReadEvent,
    MessageReactionEvent,
    JoinGroupEvent,
    MessageErrorResponse,
    MessageReadResponse,
    UserTypingResponse,
)
from schemas.call_schema import (
    CallUserEvent,
    CallAnswerEvent,
    IceCandidateEvent,
    EndCallEvent,
    IncomingCallResponse,
    CallAnsweredResponse,
    IceCandidateResponse,
    CallEndedResponse,
)
from services.chat_service import ChatService
from services.group_service import GroupService
from services.presence_service import PresenceService, InMemoryPresenceRegistry
from exceptions.domain_exceptions import DomainException
import logging

logger = logging.getLogger(__name__)


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode='json', by_alias=True, exclude_none=True)


class ChatNamespace(AuthNamespace):
    """Socket.IO namespace for presence, messaging, reactions and call signaling"""

    def __init__(
        self,
        namespace: str = None,
        presence: PresenceService = None,
        connections=None,
        session_factory=None,
    ):
        super().__init__(namespace, connections=connections, session_factory=session_factory)
        self.presence = presence if presence is not None else PresenceService(InMemoryPresenceRegistry())
        # Connected sids that have not been sent their initial-online-users yet;
        # presence broadcasts skip them so the snapshot always arrives first.
        self.awaiting_snapshot: Set[str] = set()
        # Connect and disconnect of the same user run one at a time
        self._lifecycle_locks: WeakValueDictionary[int, asyncio.Lock] = WeakValueDictionary()

    def _lifecycle_lock(self, user_id: int) -> asyncio.Lock:
        lock = self._lifecycle_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._lifecycle_locks[user_id] = lock
        return lock

    # Connection lifecycle

    async def on_connect(self, sid, environ, auth=None):
        self.awaiting_snapshot.add(sid)
        try:
            await super().on_connect(sid, environ, auth)
        finally:
            self.awaiting_snapshot.discard(sid)

    async def handle_connect(self, sid, environ, user: User):
        """Join rooms, publish presence and hand the client the online snapshot.

        `user` is the authenticated User returned by `authenticate_user`.
        """
        logger.info(f"Client authenticated and connected to {self.namespace}: {sid} (User: {user.id}, Name: {user.name})")

        async with self._lifecycle_lock(user.id):
            # Closed while waiting for an earlier connect/disconnect of this user
            if self.connections.get_user_id(sid) is None:
                return

            await self.enter_room(sid, user_room(user.id))

            async with self.session_factory() as session:
                online_event = await self.presence.mark_online(session, user.id)
                try:
                    group_ids = await GroupService.get_user_group_ids(session, user.id)
                except SQLAlchemyError as e:
                    logger.error(f"Could not load groups of user {user.id}: {e}")
                    group_ids = []

            for group_id in group_ids:
                await self.enter_room(sid, group_room(group_id))

            snapshot = self.presence.snapshot()
            self.awaiting_snapshot.discard(sid)
            await self.emit('initial-online-users', snapshot, room=sid)

            await self.emit('user-online', _dump(online_event), skip_sid=[sid, *self.awaiting_snapshot])

    async def handle_disconnect(self, sid):
        """Mark the user offline once their last connection is gone"""
        user_id = self.connections.get_user_id(sid)
        if user_id is None:
            return

        async with self._lifecycle_lock(user_id):
            # Other tabs/devices of the same user are still connected
            if len(self.connections.get_user_sessions(user_id)) > 1:
                return

            async with self.session_factory() as session:
                offline_event = await self.presence.mark_offline(session, user_id)

            await self.emit('user-offline', _dump(offline_event), skip_sid=[sid, *self.awaiting_snapshot])

    # Helpers

    async def _emit_message_error(self, sid, message: str, errors: Optional[list] = None):
        error_response = MessageErrorResponse(message=message, errors=errors)
        await self.emit('message-error', _dump(error_response), room=sid)

    def _parse(self, sid, schema: Type[BaseModel], data) -> Optional[BaseModel]:
        """Validate an ephemeral event; invalid ones are dropped"""
        try:
            return schema.model_validate(data if data is not None else {})
        except ValidationError as e:
            logger.debug(f"Dropped invalid {schema.__name__} from {sid}: {e}")
            return None

    # Messaging

    async def on_send_message(self, sid, data):
        """
        Persist a message and fan it out.

        One-to-one: `receive-message` to the receiver's identity room.
        Group: `receive-message` to the group room, minus the sender's sockets.
        Either way the sender's identity room gets `message-sent`, so every
        connection of the sender reflects the send; a message to oneself only
        produces `message-sent`. Failures reach only `sid`.
        """
        user_id = self.connections.get_user_id(sid)
        if user_id is None:
            await self._emit_message_error(sid, 'Not authenticated. Please reconnect.')
            return

        try:
            event = SendMessageEvent.model_validate(data if data is not None else {})
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            await self._emit_message_error(sid, f"Invalid message: {errors[0]['msg']}", errors=errors)
            return

        try:
            async with self.session_factory() as session:
                message = await ChatService.send_message(
                    session=session,
                    sender_id=user_id,
                    receiver_id=event.receiver_id,
                    group_id=event.group_id,
                    content=event.content,
                    message_type=event.type,
                    file_data=event.file_data,
                    reply_to_id=event.reply_to_id,
                    delivered=True
                )
                payload = _dump(ChatService.to_response(message))
        except DomainException as e:
            logger.warning(f"Message from user {user_id} rejected: {e.message}")
            await self._emit_message_error(sid, e.message)
            return
        except Exception:
            logger.exception(f"Error sending message from user {user_id}")
            await self._emit_message_error(sid, 'Failed to send message')
            return

        if message.group_id is not None:
            await self.emit(
                'receive-message',
                payload,
                room=group_room(message.group_id),
                skip_sid=self.connections.get_user_sessions(user_id)
            )
        elif message.receiver_id != user_id:
            await self.emit('receive-message', payload, room=user_room(message.receiver_id))

        await self.emit('message-sent', payload, room=user_room(user_id))

    async def _relay_typing(self, sid, data, outbound_event: str):
        user_id = self.connections.get_user_id(sid)
        if user_id is None:
            return

        event = self._parse(sid, TypingIndicatorEvent, data)
        if event is None:
            return

        if event.receiver_id is not None:
            response = UserTypingResponse(user_id=user_id)
            await self.emit(outbound_event, _dump(response), room=user_room(event.receiver_id))
        else:
            response = UserTypingResponse(user_id=user_id, group_id=event.group_id)
            await self.emit(
                outbound_event,
                _dump(response),
                room=group_room(event.group_id),
                skip_sid=self.connections.get_user_sessions(user_id)
            )

    async def on_typing(self, sid, data):
        """Fire-and-forget typing indicator"""
        await self._relay_typing(sid, data, 'user-typing')

    async def on_stop_typing(self, sid, data):
        await self._relay_typing(sid, data, 'user-stop-typing')

    async def on_mark_read(self, sid, data):
        """
        Persist the read flag, confirm to the reader and tell the sender.
        Unknown messages are ignored.
        """
        user_id = self.connections.get_user_id(sid)
        if user_id is None:
            return

        event = self._parse(sid, MarkReadEvent, data)
        if event is None:
            return

        try:
            async with self.session_factory() as session:
                message = await ChatService.mark_read(session, user_id, event.message_id)
        except DomainException as e:
            logger.warning(f"mark-read by user {user_id} failed: {e.message}")
            return

        if message is None:
            return

        payload = _dump(MessageReadResponse(message_id=message.id, reader_id=user_id))
        await self.emit('message-read', payload, room=sid)
        if message.sender_id != user_id:
            await self.emit('message-read', payload, room=user_room(message.sender_id))

    async def on_message_reaction(self, sid, data):
        """Toggle the user's emoji on a message and publish the new reaction list"""
        user_id = self.connections.get_user_id(sid)
        if user_id is None:
            return

        event = self._parse(sid, MessageReactionEvent, data)
        if event is None:
            return

        try:
            async with self.session_factory() as session:
                message = await ChatService.toggle_reaction(session, user_id, event.message_id, event.emoji)
                if message is None:
                    return
                payload = _dump(ChatService.to_response(message))
        except DomainException as e:
            logger.warning(f"Reaction by user {user_id} failed: {e.message}")
            return

        await self.emit('message-reaction-updated', payload, room=conversation_rooms(message))

    async def on_join_group(self, sid, data):
        """Subscribe this connection to a group room the user has just joined"""
        user_id = self.connections.get_user_id(sid)
        if user_id is None:
            return

        # Clients may send the bare group id
        event = self._parse(sid, JoinGroupEvent, data if isinstance(data, dict) else {'groupId': data})
        if event is None:
            return

        try:
            async with self.session_factory() as session:
                is_member = await GroupService.is_member(session, event.group_id, user_id)
        except SQLAlchemyError as e:
            logger.error(f"join-group membership check failed for user {user_id}: {e}")
            return

        if not is_member:
            logger.warning(f"User {user_id} tried to join room of group {event.group_id} without membership")
            return

        await self.enter_room(sid, group_room(event.group_id))

    # Call signaling (stateless forwarding, payloads are opaque)

    async def on_call_user(self, sid, data):
        user_id = self.connections.get_user_id(sid)
        event = self._parse(sid, CallUserEvent, data)
        if user_id is None or event is None:
            return
        response = IncomingCallResponse(from_=user_id, offer=event.offer)
        await self.emit('incoming-call', _dump(response), room=user_room(event.target_id))

    async def on_call_answer(self, sid, data):
        user_id = self.connections.get_user_id(sid)
        event = self._parse(sid, CallAnswerEvent, data)
        if user_id is None or event is None:
            return
        response = CallAnsweredResponse(from_=user_id, answer=event.answer)
        await self.emit('call-answered', _dump(response), room=user_room(event.target_id))

    async def on_ice_candidate(self, sid, data):
        user_id = self.connections.get_user_id(sid)
        event = self._parse(sid, IceCandidateEvent, data)
        if user_id is None or event is None:
            return
        response = IceCandidateResponse(from_=user_id, candidate=event.candidate)
        await self.emit('ice-candidate', _dump(response), room=user_room(event.target_id))

    async def on_end_call(self, sid, data):
        user_id = self.connections.get_user_id(sid)
        event = self._parse(sid, EndCallEvent, data)
        if user_id is None or event is None:
            return
        response = CallEndedResponse(from_=user_id)
        await self.emit('call-ended', _dump(response), room=user_room(event.target_id))
