"""State behind one open chat room.

Opening a room subscribes to its realtime events first, then joins the room
and merges the REST history, so nothing pushed in between is lost. Every
change re-arms the auto mark-as-read trigger; closing the room cancels a
pending acknowledgement, drops the listeners and leaves the room while the
shared connection stays up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence, Union

from ieum.api.chat import ChatApi
from ieum.core.config import Settings, settings as default_settings
from ieum.core.errors import ApiError, AppError
from ieum.core.events import Listeners, Subscription
from ieum.realtime.connection import ConnectionManager
from ieum.realtime.read_trigger import AutoReadTrigger
from ieum.realtime.reconciler import MessageList, read_indicator
from ieum.schemas.events import MessagesReadEvent, UserTypingEvent
from ieum.schemas.message import MediaItem, Message
from ieum.schemas.room import ChatRoom, ChatSummary

logger = logging.getLogger(__name__)


class ChatRoomSession:
    def __init__(
        self,
        chat_api: ChatApi,
        connection: ConnectionManager,
        room: ChatRoom,
        viewer_id: Optional[int],
        settings: Optional[Settings] = None,
    ):
        self.chat_api = chat_api
        self.connection = connection
        self.room = room
        self.viewer_id = viewer_id
        self.settings = settings or default_settings

        self.message_list = MessageList(room.id)
        self.typing_users: Dict[int, str] = {}
        self.error: Optional[str] = None

        self.trigger = AutoReadTrigger(self.connection.mark_read, delay=self.settings.mark_read_delay)
        self._subs: List[Subscription] = []
        self._listeners = Listeners()

    @property
    def messages(self) -> List[Message]:
        return self.message_list.messages

    def on_change(self, callback: Callable[[], None]) -> Subscription:
        return self._listeners.add(callback)

    async def open(self) -> bool:
        if not self._subs:
            self._subs = [
                self.connection.on_new_message(self._on_new_message),
                self.connection.on_messages_read(self._on_messages_read),
                self.connection.on_user_typing(self._on_user_typing),
            ]
        await self.connection.join_room(self.room.id)
        return await self.reload()

    async def reload(self) -> bool:
        """Merge the REST history into what the socket already delivered."""
        if self.viewer_id is None:
            return False

        try:
            history = await asyncio.to_thread(self.chat_api.get_messages, self.room.id, self.viewer_id)
        except AppError as e:
            logger.error("Error loading messages for room %s: %s", self.room.id, e)
            self.error = e.message
            return False

        self.error = None
        for message in history:
            self.message_list.merge(message)
        self._changed()
        return True

    async def close(self) -> None:
        self.trigger.cancel()
        for sub in self._subs:
            sub.dispose()
        self._subs = []
        self._listeners.clear()
        await self.connection.leave_room(self.room.id)

    def _changed(self) -> None:
        self.trigger.evaluate(self.room.id, self.message_list.messages, self.viewer_id)
        self._listeners.notify()

    def _on_new_message(self, message: Message) -> None:
        # the sender's own REST insert may already be here
        if self.message_list.add(message):
            self.typing_users.pop(message.sender_id, None)
            self._changed()

    def _on_messages_read(self, event: MessagesReadEvent) -> None:
        if self.message_list.apply_messages_read(event):
            self._changed()

    def _on_user_typing(self, event: UserTypingEvent) -> None:
        if event.room_id != self.room.id or event.user_id == self.viewer_id:
            return
        if event.is_typing:
            self.typing_users[event.user_id] = event.user_name
        else:
            self.typing_users.pop(event.user_id, None)
        self._listeners.notify()

    async def send(self, text: str, media: Sequence[MediaItem] = ()) -> Optional[Message]:
        """Post through REST and show the stored message right away."""
        try:
            message = await asyncio.to_thread(self.chat_api.send_message, self.room.id, text, list(media))
        except AppError as e:
            logger.error("Error sending message to room %s: %s", self.room.id, e)
            self.error = e.message
            return None

        self.error = None
        if message is not None and self.message_list.add(message):
            self._changed()
        return message

    async def mark_read_now(self) -> bool:
        latest = self.message_list.latest()
        if latest is None:
            return False
        self.trigger.cancel()
        return await self.connection.mark_read(self.room.id, latest.id)

    async def set_typing(self, is_typing: bool) -> bool:
        return await self.connection.send_typing(self.room.id, is_typing)

    async def load_summary(self) -> Optional[ChatSummary]:
        """Latest summary, generated on demand; None hides the summary panel."""
        try:
            return await asyncio.to_thread(self.chat_api.get_summary, self.room.id)
        except ApiError as e:
            if e.status_code != 404:
                logger.error("Failed to load summary for room %s: %s", self.room.id, e)
                return None
        except AppError as e:
            logger.error("Failed to load summary for room %s: %s", self.room.id, e)
            return None

        try:
            return await asyncio.to_thread(self.chat_api.generate_summary, self.room.id)
        except AppError as e:
            logger.error("Failed to generate summary for room %s: %s", self.room.id, e)
            return None

    async def quick_replies(self) -> List[str]:
        try:
            return await asyncio.to_thread(self.chat_api.get_quick_replies, self.room.id)
        except AppError as e:
            logger.error("Failed to fetch quick replies for room %s: %s", self.room.id, e)
            return []

    def read_indicator(self, message: Message) -> Union[bool, int]:
        return read_indicator(message, self.room.room_type)
