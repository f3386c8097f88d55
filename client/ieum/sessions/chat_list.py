from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ieum.api.chat import ChatApi
from ieum.core.errors import AppError
from ieum.core.events import Listeners, Subscription
from ieum.realtime.connection import ConnectionManager
from ieum.realtime.reconciler import RoomList
from ieum.schemas.events import MessagesReadEvent, UnreadCountUpdateEvent
from ieum.schemas.message import Message
from ieum.schemas.room import ChatRoom

logger = logging.getLogger(__name__)


class ChatListSession:
    """State behind the room list: REST snapshot plus pushed updates."""

    def __init__(self, chat_api: ChatApi, connection: ConnectionManager, viewer_id: Optional[int]):
        self.chat_api = chat_api
        self.connection = connection
        self.viewer_id = viewer_id
        self.room_list = RoomList()
        self.error: Optional[str] = None
        self._subs: List[Subscription] = []
        self._listeners = Listeners()

    @property
    def rooms(self) -> List[ChatRoom]:
        return self.room_list.rooms

    def on_change(self, callback: Callable[[], None]) -> Subscription:
        return self._listeners.add(callback)

    async def open(self) -> bool:
        if not self._subs:
            self._subs = [
                self.connection.on_new_message(self._on_new_message),
                self.connection.on_messages_read(self._on_messages_read),
                self.connection.on_unread_count_update(self._on_unread_count),
                self.connection.on_room_update(self._on_room_update),
            ]
        return await self.refresh()

    async def refresh(self) -> bool:
        try:
            rooms = await asyncio.to_thread(self.chat_api.get_rooms)
        except AppError as e:
            logger.error("Failed to fetch chat rooms: %s", e)
            self.error = e.message
            return False

        self.error = None
        self.room_list.load(rooms)
        for room in self.room_list:
            await self.connection.join_room(room.id)
        self._listeners.notify()
        return True

    async def close(self) -> None:
        """Drop this screen's listeners; the shared connection stays up."""
        for sub in self._subs:
            sub.dispose()
        self._subs = []
        self._listeners.clear()

    def _on_new_message(self, message: Message) -> None:
        if self.room_list.apply_new_message(message):
            self._listeners.notify()

    def _on_messages_read(self, event: MessagesReadEvent) -> None:
        if self.room_list.apply_messages_read(event, self.viewer_id):
            self._listeners.notify()

    def _on_unread_count(self, event: UnreadCountUpdateEvent) -> None:
        if self.room_list.apply_unread_count(event):
            self._listeners.notify()

    async def _on_room_update(self, room: ChatRoom) -> None:
        self.room_list.apply_room_update(room)
        await self.connection.join_room(room.id)
        self._listeners.notify()
