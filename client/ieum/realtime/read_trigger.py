from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

from ieum.schemas.message import Message

logger = logging.getLogger(__name__)

Emit = Callable[[int, str], Awaitable[object]]


def find_unread_target(messages: Sequence[Message], viewer_id: Optional[int]) -> Optional[Message]:
    """
    The message to acknowledge while ``viewer_id`` looks at ``messages``.

    Only the newest message counts: it must come from someone else and not
    carry a receipt from the viewer yet. The backend fans "read up to X" out
    to the older messages.
    """
    if viewer_id is None or not messages:
        return None

    latest = messages[-1]
    if latest.sender_id == viewer_id:
        return None
    if latest.has_read(viewer_id):
        return None
    return latest


class AutoReadTrigger:
    """Debounced ``mark-read`` emitter for one open room.

    Every ``evaluate`` call restarts the delay, so a burst of incoming
    messages produces a single acknowledgement for the newest one.
    """

    def __init__(self, emit: Emit, delay: float = 0.5):
        self._emit = emit
        self.delay = delay
        self._task: Optional[asyncio.Task] = None
        self._target: Optional[str] = None

    @property
    def pending(self) -> Optional[str]:
        """Message id waiting for the delay to elapse, if any."""
        if self._task is None or self._task.done():
            return None
        return self._target

    def evaluate(self, room_id: int, messages: Sequence[Message], viewer_id: Optional[int]) -> Optional[str]:
        self.cancel()

        target = find_unread_target(messages, viewer_id)
        if target is None:
            return None

        self._target = target.id
        self._task = asyncio.get_running_loop().create_task(self._fire(room_id, target.id))
        return target.id

    async def _fire(self, room_id: int, message_id: str) -> None:
        await asyncio.sleep(self.delay)
        logger.info("Auto-marking room %s as read up to %s", room_id, message_id)
        try:
            await self._emit(room_id, message_id)
        except Exception:
            logger.exception("mark-read for room %s failed", room_id)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._target = None
