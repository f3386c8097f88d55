import asyncio

import pytest

from conftest import make_message, make_room
from ieum.api.chat import ChatApi
from ieum.client import IeumClient
from ieum.sessions.chat_list import ChatListSession
from ieum.sessions.chat_room import ChatRoomSession

VIEWER = 1
BOB = 2


def wire(model):
    return model.to_wire()


@pytest.fixture
def chat_api(api):
    return ChatApi(api)


@pytest.fixture
def room_session(chat_api, connection, settings):
    return ChatRoomSession(chat_api, connection, make_room(1, seconds=0), VIEWER, settings)


class TestChatRoomSession:
    def test_open_joins_loads_and_acknowledges(self, room_session, connection, sockets, http):
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
            wire(make_message("m1", sender_id=VIEWER)),
            wire(make_message("m2", sender_id=BOB, seconds=5)),
        ]})

        async def scenario():
            await connection.connect("tok")
            assert await room_session.open()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert sockets[0].emits("join-room") == [1]
        assert [m.id for m in room_session.messages] == ["m1", "m2"]
        assert sockets[0].emits("mark-read") == [{"roomId": 1, "messageId": "m2"}]

    def test_sent_message_and_socket_echo_show_once(self, room_session, connection, sockets, http):
        mine = wire(make_message("m9", sender_id=VIEWER, seconds=10, text="hello"))
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": []})
        http.add("POST", "/chat/rooms/1/messages", payload={"ok": True, "message": mine})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            sent = await room_session.send("hello")
            await sockets[0].push("new-message", mine)
            await asyncio.sleep(0.03)
            return sent

        sent = asyncio.run(scenario())

        assert sent.id == "m9"
        assert [m.id for m in room_session.messages] == ["m9"]
        assert sockets[0].emits("mark-read") == []

    def test_history_reload_does_not_duplicate_pushed_messages(self, room_session, connection, sockets, http):
        pushed = wire(make_message("m2", sender_id=BOB, seconds=5))
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": []})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            await sockets[0].push("new-message", pushed)
            http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
                wire(make_message("m1", sender_id=VIEWER)),
                pushed,
            ]})
            await room_session.reload()

        asyncio.run(scenario())

        assert [m.id for m in room_session.messages] == ["m1", "m2"]

    def test_reload_recovers_receipts_missed_while_offline(self, room_session, connection, sockets, http):
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
            wire(make_message("m1", sender_id=VIEWER)),
        ]})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            assert room_session.read_indicator(room_session.message_list.get("m1")) is False
            http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
                wire(make_message("m1", sender_id=VIEWER, read_by=[BOB])),
            ]})
            assert await room_session.reload()

        asyncio.run(scenario())

        m1 = room_session.message_list.get("m1")
        assert [r.user_id for r in m1.read_by] == [BOB]
        assert room_session.read_indicator(m1) is True

    def test_reload_with_own_receipt_stops_auto_read(self, room_session, connection, sockets, http):
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
            wire(make_message("m2", sender_id=BOB)),
        ]})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            # read on another device while this one was away
            http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
                wire(make_message("m2", sender_id=BOB, read_by=[VIEWER])),
            ]})
            await room_session.reload()
            return room_session.trigger.pending

        assert asyncio.run(scenario()) is None
        assert room_session.message_list.get("m2").has_read(VIEWER)

    def test_failed_send_sets_error(self, room_session, connection, http):
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": []})
        http.add("POST", "/chat/rooms/1/messages", status=500, payload={"ok": False, "error": "Storage down"})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            return await room_session.send("hello")

        assert asyncio.run(scenario()) is None
        assert room_session.error == "Storage down"

    def test_read_receipt_and_typing_updates(self, room_session, connection, sockets, http):
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
            wire(make_message("m1", sender_id=VIEWER)),
        ]})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            await sockets[0].push("messages-read", {"roomId": 1, "messageId": "m1", "userId": BOB})
            await sockets[0].push("user-typing", {"roomId": 1, "userId": BOB, "userName": "Bob", "isTyping": True})
            await sockets[0].push("user-typing", {"roomId": 1, "userId": VIEWER, "userName": "Alice", "isTyping": True})
            await sockets[0].push("user-typing", {"roomId": 2, "userId": 3, "userName": "Carol", "isTyping": True})
            typing = dict(room_session.typing_users)
            await sockets[0].push("new-message", wire(make_message("m2", sender_id=BOB, seconds=3)))
            return typing

        typing = asyncio.run(scenario())

        assert room_session.read_indicator(room_session.message_list.get("m1")) is True
        assert typing == {BOB: "Bob"}
        assert room_session.typing_users == {}

    def test_close_cancels_pending_ack_and_leaves(self, room_session, connection, sockets, http):
        http.add("GET", "/chat/rooms/1/messages", payload={"ok": True, "messages": [
            wire(make_message("m1", sender_id=BOB)),
        ]})

        async def scenario():
            await connection.connect("tok")
            await room_session.open()
            assert room_session.trigger.pending == "m1"
            await room_session.close()
            await asyncio.sleep(0.03)

        asyncio.run(scenario())

        assert sockets[0].emits("mark-read") == []
        assert sockets[0].emits("leave-room") == [1]
        assert connection.listener_count("new-message") == 0
        assert connection.connected

    def test_missing_summary_is_generated(self, room_session, http):
        http.add("GET", "/chat/rooms/1/summary", status=404, payload={"ok": False, "error": "No summary"})
        http.add("POST", "/chat/rooms/1/summary", payload={"ok": True, "summary": {"id": 3, "text": "Plans for Sunday"}})

        summary = asyncio.run(room_session.load_summary())

        assert summary.text == "Plans for Sunday"

    def test_summary_failure_hides_panel(self, room_session, http):
        http.add("GET", "/chat/rooms/1/summary", status=500, payload={"ok": False, "error": "boom"})

        assert asyncio.run(room_session.load_summary()) is None

    def test_quick_reply_failure_returns_nothing(self, room_session, http):
        http.add("GET", "/chat/rooms/1/quick-replies", status=503, payload={"ok": False, "error": "busy"})

        assert asyncio.run(room_session.quick_replies()) == []


class TestChatListSession:
    def test_open_before_connect_defers_joins(self, chat_api, connection, sockets, http):
        http.add("GET", "/chat/rooms", payload={"ok": True, "rooms": [
            wire(make_room(1, seconds=10)),
            wire(make_room(2, seconds=20)),
        ]})
        session = ChatListSession(chat_api, connection, VIEWER)

        async def scenario():
            await session.open()
            await connection.connect("tok")

        asyncio.run(scenario())

        assert [r.id for r in session.rooms] == [2, 1]
        assert sockets[0].emits("join-room") == [2, 1]

    def test_pushed_events_keep_list_current(self, chat_api, connection, sockets, http):
        http.add("GET", "/chat/rooms", payload={"ok": True, "rooms": [
            wire(make_room(1, seconds=10)),
            wire(make_room(2, seconds=20)),
        ]})
        session = ChatListSession(chat_api, connection, VIEWER)
        changes = []
        session.on_change(lambda: changes.append(1))

        async def scenario():
            await connection.connect("tok")
            await session.open()
            await sockets[0].push("new-message", wire(make_message("m5", sender_id=BOB, room_id=1, seconds=30)))
            assert [r.id for r in session.rooms] == [1, 2]
            assert session.room_list.get(1).unread_count == 1

            await sockets[0].push("unread-count-update", {"roomId": 2, "unreadCount": 6})
            assert session.room_list.get(2).unread_count == 6

            await sockets[0].push("messages-read", {"roomId": 1, "messageId": "m5", "userId": VIEWER})
            assert session.room_list.get(1).unread_count == 0

            await sockets[0].push("room-updated", wire(make_room(3, seconds=40)))

        asyncio.run(scenario())

        assert [r.id for r in session.rooms] == [3, 1, 2]
        assert 3 in connection.joined_rooms
        assert len(changes) == 5

    def test_fetch_failure_is_reported(self, chat_api, connection, http):
        http.add("GET", "/chat/rooms", status=500, payload={"ok": False, "error": "boom"})
        session = ChatListSession(chat_api, connection, VIEWER)

        assert asyncio.run(session.open()) is False
        assert session.error == "boom"

    def test_close_keeps_connection(self, chat_api, connection, http):
        http.add("GET", "/chat/rooms", payload={"ok": True, "rooms": []})
        session = ChatListSession(chat_api, connection, VIEWER)

        async def scenario():
            await connection.connect("tok")
            await session.open()
            await session.close()

        asyncio.run(scenario())

        assert connection.listener_count("new-message") == 0
        assert connection.connected


class TestIeumClient:
    @pytest.fixture
    def client(self, settings, session_factory, http, socket_factory):
        return IeumClient(settings, session_factory=session_factory, http_session=http, socket_factory=socket_factory)

    def test_start_without_session_stays_offline(self, client, sockets):
        assert asyncio.run(client.start()) is False
        assert sockets == []

    def test_start_and_logout(self, client, alice, sockets, http):
        client.credentials.save("opaque-token", alice)
        http.add("POST", "/auth/logout", payload={"ok": True})

        async def scenario():
            assert await client.start()
            assert client.connection.connected
            client.connection.on_new_message(lambda m: None)
            await client.logout()

        asyncio.run(scenario())

        assert not client.connection.connected
        assert client.viewer_id is None
        assert sockets[0].disconnect_calls == 1
        assert client.connection.listener_count("new-message") == 0

    def test_rejected_token_drops_realtime_channel(self, client, alice, http):
        client.credentials.save("opaque-token", alice)
        http.add("GET", "/chat/rooms", status=401, payload={"ok": False, "error": "Token expired"})

        async def scenario():
            await client.start()
            session = client.chat_list()
            assert session.viewer_id == VIEWER
            assert await session.open() is False
            await asyncio.sleep(0.02)

        asyncio.run(scenario())

        assert not client.credentials.is_authenticated()
        assert not client.connection.connected
