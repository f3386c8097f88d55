from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import requests
from sqlalchemy.orm import Session, sessionmaker

from ieum.api.auth import AuthService
from ieum.api.chat import ChatApi
from ieum.api.client import ApiClient
from ieum.api.media import MediaService
from ieum.api.users import UserApi
from ieum.core.config import Settings, settings as default_settings
from ieum.core.errors import AppError, AuthError
from ieum.core.log import configure_logging
from ieum.crud.storage import CredentialStore
from ieum.db.init_db import init_db
from ieum.db.session import build_engine, build_session_factory
from ieum.realtime.connection import ConnectionManager, default_client_factory
from ieum.schemas.room import ChatRoom
from ieum.sessions.chat_list import ChatListSession
from ieum.sessions.chat_room import ChatRoomSession

logger = logging.getLogger(__name__)


class IeumClient:
    """Everything one signed-in app session needs, wired together.

    The connection manager lives as long as this object; sessions borrow it.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Optional[sessionmaker[Session]] = None,
        http_session: Optional[requests.Session] = None,
        socket_factory: Callable[[], Any] = default_client_factory,
    ):
        self.settings = settings or default_settings
        configure_logging(self.settings.log_level)

        if session_factory is None:
            engine = build_engine(self.settings.database_url)
            init_db(engine)
            session_factory = build_session_factory(engine)

        self.credentials = CredentialStore(session_factory)
        self.api = ApiClient(self.credentials, self.settings, session=http_session)
        self.auth = AuthService(self.api)
        self.chat = ChatApi(self.api)
        self.users = UserApi(self.api)
        self.media = MediaService(self.api)
        self.connection = ConnectionManager(self.settings, self.credentials, client_factory=socket_factory)

        self._auth_failure_sub = self.api.on_auth_failure(self._on_auth_failure)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def viewer_id(self) -> Optional[int]:
        return self.credentials.get_user_id()

    async def start(self) -> bool:
        """Connect the realtime channel if a stored token exists."""
        self._loop = asyncio.get_running_loop()
        if not self.credentials.is_authenticated():
            return False
        try:
            await self.connection.connect()
        except AppError as e:
            logger.error("Realtime channel unavailable: %s", e)
            return False
        return True

    async def logout(self) -> None:
        await asyncio.to_thread(self.auth.logout)
        await self.connection.close()

    def _on_auth_failure(self, error: AuthError) -> None:
        logger.warning("Credentials rejected (%s), dropping realtime connection", error.status_code)
        # REST calls run in worker threads; hop back to the loop owning the socket
        if self._loop is None or self._loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.connection.disconnect(), self._loop)

    def chat_list(self) -> ChatListSession:
        return ChatListSession(self.chat, self.connection, self.viewer_id)

    def chat_room(self, room: ChatRoom) -> ChatRoomSession:
        return ChatRoomSession(self.chat, self.connection, room, self.viewer_id, self.settings)
