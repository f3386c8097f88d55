"""Merge pushed realtime events into locally held, render-ready collections.

REST responses and socket events can arrive interleaved and out of order.
``new-message`` and read events are applied idempotently and in any order
with the same result; ``unread-count-update`` is authoritative and simply
overwrites whatever was computed locally (last write wins).
"""

from __future__ import annotations

import bisect
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional, Union

from ieum.schemas.events import MessagesReadEvent, UnreadCountUpdateEvent, UserStatusChangedEvent
from ieum.schemas.message import Message, ReadReceipt
from ieum.schemas.room import ChatRoom, LastMessage
from ieum.schemas.user import Friend, UserSetting

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def read_by_count(message: Message) -> int:
    """Distinct readers of ``message``, not counting its sender."""
    return len({r.user_id for r in message.read_by if r.user_id != message.sender_id})


def read_indicator(message: Message, room_type: str) -> Union[bool, int]:
    """What the sender sees under a message: a flag in direct rooms, a count in groups."""
    count = read_by_count(message)
    if room_type == "group":
        return count
    return count > 0


def merge_read_receipt(message: Message, user_id: int, read_at: Optional[datetime] = None) -> bool:
    """Add a receipt for ``user_id`` unless one exists. Receipts are never replaced."""
    if message.has_read(user_id):
        return False
    message.read_by.append(ReadReceipt(user_id=user_id, read_at=read_at or _utcnow()))
    return True


class RoomList:
    """Rooms of the chat list, newest activity first after every mutation."""

    # recent message ids remembered per room; enough to catch redelivery
    SEEN_WINDOW = 50

    def __init__(self, rooms: Iterable[ChatRoom] = ()):
        self._rooms: list[ChatRoom] = []
        self._seen: dict[int, deque[str]] = {}
        self.load(rooms)

    def __iter__(self) -> Iterator[ChatRoom]:
        return iter(self._rooms)

    def __len__(self) -> int:
        return len(self._rooms)

    @property
    def rooms(self) -> list[ChatRoom]:
        return list(self._rooms)

    def get(self, room_id: int) -> Optional[ChatRoom]:
        for room in self._rooms:
            if room.id == room_id:
                return room
        return None

    def filter(self, query: str) -> list[ChatRoom]:
        """Case-insensitive match on the room name, in list order."""
        needle = (query or "").strip().lower()
        if not needle:
            return list(self._rooms)
        return [r for r in self._rooms if needle in r.name.lower()]

    def load(self, rooms: Iterable[ChatRoom]) -> None:
        """Replace the list with a REST snapshot."""
        self._rooms = [room.model_copy(deep=True) for room in rooms]
        self._seen = {}
        for room in self._rooms:
            if room.last_message is not None:
                self._remember(room.id, room.last_message.id)
        self._sort()

    def _remember(self, room_id: int, message_id: str) -> bool:
        seen = self._seen.get(room_id)
        if seen is None:
            seen = self._seen[room_id] = deque(maxlen=self.SEEN_WINDOW)
        if message_id in seen:
            return False
        seen.append(message_id)
        return True

    def _sort(self) -> None:
        # stable: rooms with equal activity keep their relative order
        self._rooms.sort(key=lambda r: r.activity_at, reverse=True)

    def apply_new_message(self, message: Message) -> bool:
        room = self.get(message.room_id)
        if room is None:
            logger.debug("new-message for unknown room %s ignored", message.room_id)
            return False

        if not self._remember(room.id, message.id):
            return False

        room.unread_count += 1
        # a late, older message must not replace a newer summary
        if room.last_message is None or message.created_at >= room.activity_at:
            room.last_message = LastMessage.from_message(message)
            room.last_message_at = message.created_at

        self._sort()
        return True

    def apply_messages_read(self, event: MessagesReadEvent, viewer_id: Optional[int]) -> bool:
        """The viewer read a room on some device: its unread badge goes to zero."""
        if viewer_id is None or event.user_id != viewer_id:
            return False
        return self.mark_room_read(event.room_id)

    def mark_room_read(self, room_id: int) -> bool:
        room = self.get(room_id)
        if room is None or room.unread_count == 0:
            return False
        room.unread_count = 0
        return True

    def apply_unread_count(self, event: UnreadCountUpdateEvent) -> bool:
        room = self.get(event.room_id)
        if room is None:
            return False
        room.unread_count = event.unread_count
        return True

    def apply_room_update(self, updated: ChatRoom) -> None:
        """Insert or replace a room pushed by the server."""
        updated = updated.model_copy(deep=True)
        for i, room in enumerate(self._rooms):
            if room.id == updated.id:
                self._rooms[i] = updated
                break
        else:
            self._rooms.append(updated)

        if updated.last_message is not None:
            self._remember(updated.id, updated.last_message.id)
        self._sort()

    def seen_ids(self, room_id: int) -> list[str]:
        return list(self._seen.get(room_id, ()))


class MessageList:
    """Messages of one room in ``created_at`` order, each id at most once."""

    def __init__(self, room_id: int, messages: Iterable[Message] = ()):
        self.room_id = room_id
        self._messages: list[Message] = []
        self._ids: set[str] = set()
        self.load(messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def ids(self) -> list[str]:
        return [m.id for m in self._messages]

    def latest(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def get(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def load(self, messages: Iterable[Message]) -> None:
        self._messages = []
        self._ids = set()
        for message in messages:
            self.add(message)

    def add(self, message: Message) -> bool:
        """Insert a pushed or locally sent message; duplicates are discarded."""
        if message.room_id != self.room_id:
            return False
        if message.id in self._ids:
            return False

        message = message.model_copy(deep=True)
        keys = [m.created_at for m in self._messages]
        self._messages.insert(bisect.bisect_right(keys, message.created_at), message)
        self._ids.add(message.id)
        return True

    def merge(self, message: Message) -> bool:
        """
        Fold a REST copy into the list.

        Unknown ids are inserted like ``add``. For a held message, receipts of
        users without one are added (existing receipts stay) and a deletion
        is carried over.
        """
        if message.room_id != self.room_id:
            return False
        current = self.get(message.id)
        if current is None:
            return self.add(message)

        changed = False
        for receipt in message.read_by:
            changed |= merge_read_receipt(current, receipt.user_id, receipt.read_at)

        if message.is_deleted and not current.is_deleted:
            current.is_deleted = True
            current.deleted_at = message.deleted_at
            changed = True
        return changed

    def apply_messages_read(self, event: MessagesReadEvent) -> bool:
        if event.room_id != self.room_id:
            return False
        message = self.get(event.message_id)
        if message is None:
            return False
        return merge_read_receipt(message, event.user_id, event.read_at)


class FriendList:
    def __init__(self, friends: Iterable[Friend] = ()):
        self._friends: list[Friend] = []
        self.load(friends)

    def __iter__(self) -> Iterator[Friend]:
        return iter(self._friends)

    def __len__(self) -> int:
        return len(self._friends)

    def load(self, friends: Iterable[Friend]) -> None:
        self._friends = [f.model_copy(deep=True) for f in friends]

    def apply_status_change(self, event: UserStatusChangedEvent) -> bool:
        for friend in self._friends:
            if friend.id == event.user_id:
                setting = friend.setting or UserSetting()
                friend.setting = setting.model_copy(update={
                    "is_online": event.is_online,
                    "last_seen_at": event.last_seen_at or setting.last_seen_at,
                })
                return True
        return False

    def filter(self, query: str) -> list[Friend]:
        """Case-insensitive match on the friend's name or nickname."""
        needle = (query or "").strip().lower()
        if not needle:
            return list(self._friends)

        def matches(friend: Friend) -> bool:
            names = [friend.name]
            if friend.setting and friend.setting.nickname:
                names.append(friend.setting.nickname)
            return any(needle in n.lower() for n in names)

        return [f for f in self._friends if matches(f)]
