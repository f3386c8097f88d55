"""
Payloads pushed over the realtime channel.

Event names are the wire names used by the socket server.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import field_validator

from ieum.schemas.base import WireModel, as_aware
from ieum.schemas.message import Message
from ieum.schemas.room import ChatRoom

# consumed
NEW_MESSAGE = "new-message"
ROOM_UPDATED = "room-updated"
MESSAGES_READ = "messages-read"
MESSAGE_READ = "message-read"
UNREAD_COUNT_UPDATE = "unread-count-update"
USER_STATUS_CHANGED = "user-status-changed"
USER_JOINED = "user-joined"
USER_LEFT = "user-left"
USER_TYPING = "user-typing"

# emitted
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
SEND_MESSAGE = "send-message"
MARK_READ = "mark-read"
TYPING = "typing"


class UserStatusChangedEvent(WireModel):
    user_id: int
    is_online: bool
    last_seen_at: Optional[datetime] = None


class UserJoinedEvent(WireModel):
    user_id: int
    room_id: int
    user_name: str


class UserLeftEvent(WireModel):
    user_id: int
    room_id: int
    user_name: str


class UnreadCountUpdateEvent(WireModel):
    room_id: int
    unread_count: int


class MessagesReadEvent(WireModel):
    room_id: int
    message_id: str
    user_id: int
    read_at: Optional[datetime] = None

    @field_validator("message_id", mode="before")
    @classmethod
    def coerce_message_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("read_at")
    @classmethod
    def read_at_aware(cls, v):
        return as_aware(v)


class UserTypingEvent(WireModel):
    room_id: int
    user_id: int
    user_name: str
    is_typing: bool


EVENT_SCHEMAS = {
    NEW_MESSAGE: Message,
    ROOM_UPDATED: ChatRoom,
    MESSAGES_READ: MessagesReadEvent,
    MESSAGE_READ: MessagesReadEvent,
    UNREAD_COUNT_UPDATE: UnreadCountUpdateEvent,
    USER_STATUS_CHANGED: UserStatusChangedEvent,
    USER_JOINED: UserJoinedEvent,
    USER_LEFT: UserLeftEvent,
    USER_TYPING: UserTypingEvent,
}
