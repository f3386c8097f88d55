# client/ieum/api/chat.py
from __future__ import annotations

from typing import List, Optional, Sequence

from ieum.api.client import ApiClient
from ieum.api.validation import validated
from ieum.core.errors import ApiError
from ieum.schemas.message import MediaItem, Message, SendMessageRequest
from ieum.schemas.room import ChatRoom, ChatSummary, CreateRoomRequest


class ChatApi:
    def __init__(self, api: ApiClient):
        self.api = api

    def get_rooms(self) -> List[ChatRoom]:
        data = self.api.get("/chat/rooms")
        return [ChatRoom.model_validate(r) for r in data.get("rooms") or []]

    def get_room(self, room_id: int) -> ChatRoom:
        data = self.api.get(f"/chat/rooms/{room_id}")
        room = data.get("room")
        if not room:
            raise ApiError("Room not found", status_code=404)
        return ChatRoom.model_validate(room)

    def create_room(self, name: str, participant_ids: Sequence[int]) -> Optional[ChatRoom]:
        """Create a room; the caller includes its own id in ``participant_ids``."""
        req = validated(CreateRoomRequest, name=name, participant_ids=list(participant_ids))
        data = self.api.post("/chat/rooms", req.to_wire())
        room = data.get("room")
        return ChatRoom.model_validate(room) if room else None

    def get_messages(self, room_id: int, current_user_id: int) -> List[Message]:
        data = self.api.get(f"/chat/rooms/{room_id}/messages", params={"currentUserId": current_user_id})
        return [Message.model_validate(m) for m in data.get("messages") or []]

    def send_message(self, room_id: int, text: str, media: Sequence[MediaItem] = ()) -> Optional[Message]:
        req = validated(SendMessageRequest, text=text, media=list(media))
        data = self.api.post(f"/chat/rooms/{room_id}/messages", req.to_wire())
        message = data.get("message")
        return Message.model_validate(message) if message else None

    def get_summary(self, room_id: int) -> Optional[ChatSummary]:
        data = self.api.get(f"/chat/rooms/{room_id}/summary")
        summary = data.get("summary")
        return ChatSummary.model_validate(summary) if summary else None

    def generate_summary(self, room_id: int) -> Optional[ChatSummary]:
        data = self.api.post(f"/chat/rooms/{room_id}/summary")
        summary = data.get("summary")
        return ChatSummary.model_validate(summary) if summary else None

    def get_quick_replies(self, room_id: int) -> List[str]:
        data = self.api.get(f"/chat/rooms/{room_id}/quick-replies")
        return [str(s) for s in data.get("suggestions") or []]
