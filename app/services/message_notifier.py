# app/services/message_notifier.py

from config.settings import settings
from infrastructure.socketio_manager import sio
from infrastructure.rooms import conversation_rooms
from models.message import Message
from services.chat_service import ChatService
import logging

logger = logging.getLogger(__name__)


class MessageNotifier:
    """Pushes changes made over HTTP to the sockets of a message's conversation"""

    @staticmethod
    async def publish(event: str, message: Message) -> None:
        """
        Emit the current view of `message` to every participant

        Args:
            event: Socket.IO event name ('message-edited', 'message-deleted', ...)
            message: Message with its relationships loaded
        """
        payload = ChatService.to_response(message).model_dump(mode='json', by_alias=True, exclude_none=True)
        rooms = conversation_rooms(message)
        await sio.emit(event, payload, room=rooms, namespace=settings.SOCKETIO_NAMESPACE)
        logger.debug(f"Emitted {event} for message {message.id} to {rooms}")
