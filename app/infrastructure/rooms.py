# app/infrastructure/rooms.py

"""Socket.IO room naming.

Every connection sits in its identity room plus one room per joined group,
so events are always addressed to rooms, never to individual sids.
"""

from models.message import Message


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def group_room(group_id: int) -> str:
    return f"group:{group_id}"


def conversation_rooms(message: Message) -> list[str]:
    """Rooms that should see updates to an existing message"""
    if message.group_id is not None:
        return [group_room(message.group_id)]
    rooms = [user_room(message.sender_id)]
    if message.receiver_id != message.sender_id:
        rooms.append(user_room(message.receiver_id))
    return rooms
