# app/models/__init__.py

from models.user import User
from models.group import Group, GroupMember
from models.message import Message
from models.message_reaction import MessageReaction

__all__ = ["User", "Group", "GroupMember", "Message", "MessageReaction"]
