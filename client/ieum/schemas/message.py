from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from ieum.schemas.base import WireModel, as_aware
from ieum.security.validators import InputValidator


MediaType = Literal["audio", "image", "video", "file"]


class MediaItem(WireModel):
    type: MediaType
    key: str  # storage key, what the backend persists
    url: Optional[str] = None  # signed URL for display
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: Optional[str] = None


class ReadReceipt(WireModel):
    user_id: int
    read_at: datetime

    @field_validator("read_at")
    @classmethod
    def read_at_aware(cls, v):
        return as_aware(v)


class Message(WireModel):
    id: str
    room_id: int
    sender_id: int
    sender_name: str
    sender_nickname: Optional[str] = None
    sender_image_url: Optional[str] = None
    text: Optional[str] = None
    media: List[MediaItem] = []
    read_by: List[ReadReceipt] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "deleted_at")
    @classmethod
    def timestamps_aware(cls, v):
        return as_aware(v)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # ids are opaque; numeric ids from older payloads compare as strings
        return str(v) if v is not None else v

    def has_read(self, user_id: int) -> bool:
        return any(r.user_id == user_id for r in self.read_by)


class SendMessageRequest(WireModel):
    """Body of POST /chat/rooms/{id}/messages."""
    text: str = Field(default="", max_length=5000)
    media: List[MediaItem] = []

    @model_validator(mode="after")
    def validate_content(self) -> "SendMessageRequest":
        self.text = InputValidator.validate_message_text(self.text, has_media=bool(self.media))
        return self
