"""Socket.IO connection shared by every screen of the app.

One ``ConnectionManager`` is created per app session and handed to whoever
needs realtime events. It owns:

- the single ``socketio.AsyncClient`` (created lazily on first connect)
- the set of rooms this client announced with ``join-room``
- joins requested before the connection was up, replayed once on connect
- the listener registry; python-socketio keeps one handler per event, so the
  manager registers a dispatcher per event and fans out to subscribers

Connection errors are logged and raised; this layer never retries on its own
(the engine.io transport may). Callers reconcile through REST on focus.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Sequence

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from pydantic import ValidationError as SchemaError

from ieum.core.config import Settings, settings as default_settings
from ieum.core.errors import AuthError, RealtimeConnectionError
from ieum.core.events import Subscription, combine
from ieum.crud.storage import CredentialStore
from ieum.schemas import events as ev
from ieum.schemas.message import MediaItem

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


def default_client_factory() -> socketio.AsyncClient:
    return socketio.AsyncClient(
        reconnection=True,
        logger=False,
        engineio_logger=False,
    )


class ConnectionManager:
    def __init__(
        self,
        settings: Settings | None = None,
        credentials: CredentialStore | None = None,
        client_factory: Callable[[], Any] = default_client_factory,
    ):
        self.settings = settings or default_settings
        self._credentials = credentials
        self._client_factory = client_factory

        self._sio: Any | None = None
        self._token: str | None = None
        self._lock = asyncio.Lock()

        self.joined_rooms: set[int] = set()
        # dict keeps request order for the replay
        self._pending_joins: dict[int, None] = {}

        self._handlers: dict[str, list[Handler]] = {}
        self._dispatching: set[str] = set()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._sio is not None and bool(self._sio.connected)

    @property
    def sid(self) -> str | None:
        return getattr(self._sio, "sid", None) if self._sio is not None else None

    @property
    def pending_joins(self) -> tuple[int, ...]:
        return tuple(self._pending_joins)

    async def connect(self, token: str | None = None) -> "ConnectionManager":
        """Open the shared connection; a live one is reused as is."""
        async with self._lock:
            if self.connected:
                if token and token != self._token:
                    logger.warning("Socket already connected with another token, keeping it")
                logger.debug("Socket already connected, reusing %s", self.sid)
                return self

            if not token and self._credentials is not None:
                token = self._credentials.get_token()
            if not token:
                raise AuthError("Not authenticated")

            if self._sio is None:
                self._sio = self._client_factory()
                self._dispatching = set()
                self._register_lifecycle_handlers()
                for event in list(ev.EVENT_SCHEMAS) + list(self._handlers):
                    self._ensure_dispatcher(event)

            logger.info("Connecting socket to %s", self.settings.socket_url)
            try:
                await self._sio.connect(
                    self.settings.socket_url,
                    auth={"token": token},
                    transports=list(self.settings.socket_transports),
                    socketio_path=self.settings.socket_path,
                )
            except SocketConnectionError as e:
                logger.error("Socket connection error: %s", e)
                raise RealtimeConnectionError(str(e) or "Socket connection failed") from e

            self._token = token

        # the connect handler may have run before ``connected`` flipped
        await self._flush_pending_joins()
        return self

    async def disconnect(self) -> None:
        """Tear the connection down; rooms must be joined again afterwards."""
        sio, self._sio = self._sio, None
        self._token = None
        self.joined_rooms.clear()
        self._pending_joins.clear()
        self._dispatching = set()

        if sio is not None:
            try:
                await sio.disconnect()
            except Exception as e:  # noqa: BLE001 - already tearing down
                logger.warning("Socket disconnect failed: %s", e)
            logger.info("Socket disconnected")

    async def close(self) -> None:
        """Disconnect and drop every listener (logout)."""
        await self.disconnect()
        self._handlers.clear()

    def _register_lifecycle_handlers(self) -> None:
        sio = self._sio

        async def on_connect():
            logger.info("Socket connected: %s", getattr(sio, "sid", None))
            await self._flush_pending_joins()

        async def on_disconnect(*args):
            reason = args[0] if args else None
            logger.info("Socket disconnected: %s", reason)
            # the server forgets room membership with the transport
            self.joined_rooms.clear()

        async def on_connect_error(data=None):
            logger.error("Socket connection error: %s", data)

        sio.on("connect", handler=on_connect)
        sio.on("disconnect", handler=on_disconnect)
        sio.on("connect_error", handler=on_connect_error)

    # ------------------------------------------------------------------
    # room membership
    # ------------------------------------------------------------------

    async def join_room(self, room_id: int | str) -> bool:
        """Announce membership; returns True when ``join-room`` was emitted now."""
        room_id = int(room_id)

        if room_id in self.joined_rooms:
            logger.debug("Already joined room %s, skipping", room_id)
            return False

        if not self.connected:
            logger.info("Socket not yet connected, deferring join for room %s", room_id)
            self._pending_joins[room_id] = None
            return False

        self.joined_rooms.add(room_id)
        await self._sio.emit(ev.JOIN_ROOM, room_id)
        logger.debug("Joined room %s", room_id)
        return True

    async def leave_room(self, room_id: int | str) -> bool:
        room_id = int(room_id)
        self._pending_joins.pop(room_id, None)

        if room_id not in self.joined_rooms:
            return False

        self.joined_rooms.discard(room_id)
        if self.connected:
            await self._sio.emit(ev.LEAVE_ROOM, room_id)
            logger.debug("Left room %s", room_id)
            return True
        return False

    async def _flush_pending_joins(self) -> None:
        if self._sio is None or not self._pending_joins:
            return

        pending = list(self._pending_joins)
        self._pending_joins.clear()
        for room_id in pending:
            if room_id in self.joined_rooms:
                continue
            self.joined_rooms.add(room_id)
            await self._sio.emit(ev.JOIN_ROOM, room_id)
            logger.debug("Joined room %s (after connect)", room_id)

    # ------------------------------------------------------------------
    # publish / subscribe
    # ------------------------------------------------------------------

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        """Register ``handler`` for ``event``; dispose the handle to unregister.

        Payloads of known events arrive parsed into their schema.
        """
        self._handlers.setdefault(event, []).append(handler)
        self._ensure_dispatcher(event)
        return Subscription(lambda: self._unsubscribe(event, handler))

    def _unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[event]

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def _ensure_dispatcher(self, event: str) -> None:
        if self._sio is None or event in self._dispatching:
            return

        async def dispatch(*args):
            await self._dispatch(event, *args)

        self._sio.on(event, handler=dispatch)
        self._dispatching.add(event)

    async def _dispatch(self, event: str, *args: Any) -> None:
        logger.debug("Socket event received: %r %r", event, args)
        payload = args[0] if args else None

        schema = ev.EVENT_SCHEMAS.get(event)
        if schema is not None:
            try:
                payload = schema.model_validate(payload)
            except SchemaError as e:
                logger.warning("Dropping malformed %r payload: %s", event, e)
                return

        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %r failed", event)

    def on_new_message(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.NEW_MESSAGE, handler)

    def on_room_update(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.ROOM_UPDATED, handler)

    def on_messages_read(self, handler: Handler) -> Subscription:
        # the server has used both spellings
        return combine(
            self.subscribe(ev.MESSAGES_READ, handler),
            self.subscribe(ev.MESSAGE_READ, handler),
        )

    def on_unread_count_update(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.UNREAD_COUNT_UPDATE, handler)

    def on_user_status_changed(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.USER_STATUS_CHANGED, handler)

    def on_user_joined(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.USER_JOINED, handler)

    def on_user_left(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.USER_LEFT, handler)

    def on_user_typing(self, handler: Handler) -> Subscription:
        return self.subscribe(ev.USER_TYPING, handler)

    # ------------------------------------------------------------------
    # emits
    # ------------------------------------------------------------------

    async def _emit(self, event: str, payload: dict[str, Any]) -> bool:
        if not self.connected:
            logger.warning("Cannot emit %r - socket not connected", event)
            return False
        await self._sio.emit(event, payload)
        return True

    async def send_message(self, room_id: int, text: str | None = None, media: Sequence[MediaItem] = ()) -> bool:
        return await self._emit(ev.SEND_MESSAGE, {
            "roomId": int(room_id),
            "text": text,
            "media": [m.to_wire() for m in media],
        })

    async def mark_read(self, room_id: int, message_id: str) -> bool:
        """Acknowledge everything in ``room_id`` up to ``message_id``."""
        return await self._emit(ev.MARK_READ, {"roomId": int(room_id), "messageId": message_id})

    async def send_typing(self, room_id: int, is_typing: bool) -> bool:
        return await self._emit(ev.TYPING, {"roomId": int(room_id), "isTyping": is_typing})
