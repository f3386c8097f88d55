from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from ieum.schemas.base import EPOCH, WireModel, as_aware
from ieum.schemas.message import Message
from ieum.schemas.user import User
from ieum.security.validators import InputValidator


class LastMessage(WireModel):
    id: str
    text: Optional[str] = None
    sender_id: int
    sender_name: str
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("created_at")
    @classmethod
    def created_at_aware(cls, v):
        return as_aware(v)

    @classmethod
    def from_message(cls, message: Message) -> "LastMessage":
        return cls(
            id=message.id,
            text=message.text,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            created_at=message.created_at,
        )


class ChatRoom(WireModel):
    id: int
    name: str
    image_url: Optional[str] = None
    participant_count: int = 0
    room_type: Literal["direct", "group"] = "direct"
    unread_count: int = 0
    last_message: Optional[LastMessage] = None
    last_message_at: Optional[datetime] = None
    participants: List[User] = []
    is_pinned: bool = False
    is_muted: bool = False

    @field_validator("last_message_at")
    @classmethod
    def last_message_at_aware(cls, v):
        return as_aware(v)

    @property
    def activity_at(self) -> datetime:
        """Timestamp the room list is ordered by."""
        if self.last_message is not None:
            return self.last_message.created_at
        if self.last_message_at is not None:
            return self.last_message_at
        return EPOCH

    @property
    def is_group(self) -> bool:
        return self.room_type == "group"


class CreateRoomRequest(WireModel):
    name: str = Field(min_length=1, max_length=100)
    participant_ids: List[int]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return InputValidator.validate_room_name(v)

    @field_validator("participant_ids")
    @classmethod
    def validate_participants(cls, v: List[int]) -> List[int]:
        return InputValidator.validate_participants(v)


class ChatSummary(WireModel):
    id: int
    text: str
    audio_url: Optional[str] = None
    message_count: int = 0
    created_at: Optional[datetime] = None
