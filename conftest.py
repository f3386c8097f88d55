from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlsplit

import pytest
import requests
from socketio.exceptions import ConnectionError as SocketConnectionError

from ieum.api.client import ApiClient
from ieum.core.config import Settings
from ieum.crud.storage import CredentialStore
from ieum.db.init_db import init_db
from ieum.db.session import build_engine, build_session_factory
from ieum.realtime.connection import ConnectionManager
from ieum.schemas.message import Message
from ieum.schemas.room import ChatRoom
from ieum.schemas.user import User

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: int) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


def make_message(id: str, sender_id: int, room_id: int = 1, seconds: int = 0, read_by=(), text: str = "hi") -> Message:
    return Message(
        id=id,
        room_id=room_id,
        sender_id=sender_id,
        sender_name=f"user{sender_id}",
        text=text,
        created_at=at(seconds),
        read_by=[{"user_id": uid, "read_at": at(seconds + 1)} for uid in read_by],
    )


def make_room(id: int, seconds: int | None = None, unread: int = 0, room_type: str = "direct") -> ChatRoom:
    last_message = None
    if seconds is not None:
        last_message = {
            "id": f"last-{id}",
            "text": "previous",
            "sender_id": 99,
            "sender_name": "user99",
            "created_at": at(seconds),
        }
    return ChatRoom(
        id=id,
        name=f"room {id}",
        room_type=room_type,
        unread_count=unread,
        participant_count=2 if room_type == "direct" else 5,
        last_message=last_message,
    )


def make_response(status: int = 200, payload: Any = None, text: str | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    if payload is not None:
        resp._content = json.dumps(payload).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = (text or "").encode("utf-8")
    return resp


class FakeHttpSession:
    """Stands in for ``requests.Session``; routes are keyed by (method, path)."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[dict[str, Any]] = []

    def add(self, method: str, path: str, status: int = 200, payload: Any = None, text: str | None = None):
        self.routes[(method, path)] = make_response(status, payload, text)

    def fail(self, method: str, path: str, exc: Exception):
        self.routes[(method, path)] = exc

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        return self._respond(method, url, headers, kwargs)

    def put(self, url, data=None, headers=None, timeout=None):
        return self._respond("PUT", url, headers, {"data": data})

    def _respond(self, method, url, headers, kwargs):
        parts = urlsplit(url)
        self.calls.append({"method": method, "url": url, "path": parts.path, "headers": headers or {}, **kwargs})
        route = self.routes.get((method, parts.path))
        if route is None:
            raise AssertionError(f"unexpected request {method} {url}")
        if isinstance(route, Exception):
            raise route
        return route

    def last(self, method: str, path: str) -> dict[str, Any]:
        for call in reversed(self.calls):
            if call["method"] == method and call["path"] == path:
                return call
        raise AssertionError(f"no {method} {path} call")


class FakeSocketClient:
    """Mimics ``socketio.AsyncClient``: one handler per event, ``connect`` fires
    before ``connected`` flips, emits are recorded."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.connected = False
        self.sid = None
        self.handlers: dict[str, Any] = {}
        self.emitted: list[tuple[str, Any]] = []
        self.connect_calls: list[dict[str, Any]] = []
        self.disconnect_calls = 0

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, transports=None, socketio_path=None, **kwargs):
        self.connect_calls.append({"url": url, "auth": auth, "transports": transports, "socketio_path": socketio_path})
        if self.fail:
            raise SocketConnectionError("Connection refused by the server")
        self.sid = f"sid-{len(self.connect_calls)}"
        if "connect" in self.handlers:
            await self.handlers["connect"]()
        self.connected = True

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    async def emit(self, event, data=None, namespace=None, callback=None):
        self.emitted.append((event, data))

    async def push(self, event, data=None):
        handler = self.handlers.get(event)
        if handler is not None:
            await handler(data)

    async def drop(self, reason="transport close"):
        self.connected = False
        await self.handlers["disconnect"](reason)

    async def reconnect(self):
        await self.handlers["connect"]()
        self.connected = True

    def emits(self, event: str) -> list[Any]:
        return [data for name, data in self.emitted if name == event]


@pytest.fixture
def settings():
    return Settings(
        api_url="http://api.test",
        socket_url="http://socket.test",
        database_url="sqlite://",
        mark_read_delay=0.01,
        request_timeout=1.0,
    )


@pytest.fixture
def session_factory(settings):
    engine = build_engine(settings.database_url)
    init_db(engine)
    return build_session_factory(engine)


@pytest.fixture
def credentials(session_factory):
    return CredentialStore(session_factory)


@pytest.fixture
def alice():
    return User(id=1, name="Alice", email="alice@test.com")


@pytest.fixture
def signed_in(credentials, alice):
    credentials.save("opaque-token", alice)
    return credentials


@pytest.fixture
def http():
    return FakeHttpSession()


@pytest.fixture
def api(credentials, settings, http):
    return ApiClient(credentials, settings, session=http)


@pytest.fixture
def sockets():
    """Every fake socket client the manager created, newest last."""
    return []


@pytest.fixture
def socket_factory(sockets):
    def factory():
        client = FakeSocketClient()
        sockets.append(client)
        return client

    return factory


@pytest.fixture
def connection(settings, credentials, socket_factory):
    return ConnectionManager(settings, credentials, client_factory=socket_factory)
