# app/schemas/chat_schema.py

from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import AliasChoices, Field, field_validator, model_validator
from schemas.base_schema import CamelModel


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"
    VIDEO = "video"


class FileData(CamelModel):
    """File reference attached to a non-text message"""
    url: str = Field(..., min_length=1, validation_alias=AliasChoices("url", "fileUrl"))
    name: str = Field(..., min_length=1, validation_alias=AliasChoices("name", "fileName"))
    size: int = Field(..., ge=0, validation_alias=AliasChoices("size", "fileSize"))


def _exactly_one_target(receiver_id: Optional[int], group_id: Optional[int]) -> None:
    if (receiver_id is None) == (group_id is None):
        raise ValueError("Exactly one of receiverId or groupId is required")


# Socket.IO Event DTOs

class SendMessageEvent(CamelModel):
    """Schema for send-message Socket.IO event"""
    receiver_id: Optional[int] = Field(None, validation_alias=AliasChoices("receiverId", "receiver_id", "receiver"))
    group_id: Optional[int] = Field(None, validation_alias=AliasChoices("groupId", "group_id", "group"))
    content: str = ""
    type: MessageType = MessageType.TEXT
    file_data: Optional[FileData] = None
    reply_to_id: Optional[int] = None

    @model_validator(mode="after")
    def check_target(self):
        _exactly_one_target(self.receiver_id, self.group_id)
        return self


class TypingIndicatorEvent(CamelModel):
    """Schema for typing / stop-typing Socket.IO events"""
    receiver_id: Optional[int] = Field(None, validation_alias=AliasChoices("receiverId", "receiver_id", "receiver"))
    group_id: Optional[int] = Field(None, validation_alias=AliasChoices("groupId", "group_id", "group"))

    @model_validator(mode="after")
    def check_target(self):
        _exactly_one_target(self.receiver_id, self.group_id)
        return self


class MarkReadEvent(CamelModel):
    """Schema for mark-read Socket.IO event"""
    message_id: int


class MessageReactionEvent(CamelModel):
    """Schema for message-reaction Socket.IO event"""
    message_id: int
    emoji: str = Field(..., min_length=1, max_length=32)


class JoinGroupEvent(CamelModel):
    """Schema for join-group Socket.IO event"""
    group_id: int


# Response Models

class UserSummary(CamelModel):
    id: int
    name: str


class GroupSummary(CamelModel):
    id: int
    name: str


class ReactionResponse(CamelModel):
    """One emoji entry and everyone who reacted with it"""
    emoji: str
    users: list[UserSummary]


class MessageResponse(CamelModel):
    """Message with sender/receiver/group resolved for client rendering"""
    id: int
    sender: UserSummary
    receiver: Optional[UserSummary] = None
    group: Optional[GroupSummary] = None
    content: str
    type: MessageType
    file: Optional[FileData] = None
    delivered: bool
    read: bool
    is_edited: bool
    edited_at: Optional[datetime] = None
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    reactions: list[ReactionResponse] = []
    reply_to_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ChatHistoryResponse(CamelModel):
    """Cursor-based page of messages, oldest first"""
    messages: list[MessageResponse]
    limit: int
    has_more: bool
    next_cursor: Optional[int]  # ID of the oldest message in current batch


class ConversationPartner(CamelModel):
    id: int
    name: str
    is_online: bool
    last_seen: Optional[datetime] = None


class ConversationResponse(CamelModel):
    """Latest one-to-one message exchanged with one partner"""
    user: ConversationPartner
    last_message: MessageResponse


class RecentConversationsResponse(CamelModel):
    conversations: list[ConversationResponse]


class MessageErrorResponse(CamelModel):
    """Schema for message-error events emitted via Socket.IO"""
    message: str
    errors: Optional[list] = None


class UserTypingResponse(CamelModel):
    """Schema for user-typing / user-stop-typing events"""
    user_id: int
    group_id: Optional[int] = None


class MessageReadResponse(CamelModel):
    """Schema for message-read event"""
    message_id: int
    reader_id: int


# HTTP request bodies

class EditMessageRequest(CamelModel):
    content: str = Field(..., min_length=1)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content cannot be empty")
        return v


class ReactionRequest(CamelModel):
    emoji: str = Field(..., min_length=1, max_length=32)
