import pytest
from uuid import uuid4, UUID

from app.chat.rooms import Connection, RoomRegistry
from app.core.exceptions import AuthorizationError, NotFoundError
from app.notifications.dispatcher import NotificationDispatcher
from app.notifications.models import NotificationKind
from app.notifications.store import NotificationStore
from tests.fakes import FakeWebSocket


@pytest.fixture
def rooms():
    return RoomRegistry()


@pytest.fixture
def notifier(rooms):
    return NotificationDispatcher(NotificationStore(), rooms)


class TestDispatcher:

    @pytest.mark.asyncio
    async def test_notify_persists_unread(self, notifier):
        user_id = uuid4()

        created = await notifier.notify(user_id, NotificationKind.enrollment, None, "Sam enrolled")

        assert created.read is False
        assert created.kind == NotificationKind.enrollment
        assert await notifier.unread_count(user_id) == 1
        listed = await notifier.list_for_user(user_id)
        assert [n.id for n in listed] == [created.id]

    @pytest.mark.asyncio
    async def test_push_reaches_connection_outside_course_room(self, notifier, rooms):
        user_id = uuid4()
        conn = Connection(FakeWebSocket(), user_id)
        rooms.register(conn)
        rooms.add(77, conn)

        created = await notifier.notify(user_id, NotificationKind.new_message, None, "New message")

        pushed = conn.websocket.events("notification")
        assert len(pushed) == 1
        assert pushed[0]["data"] == created.model_dump(mode="json")

    @pytest.mark.asyncio
    async def test_offline_recipient_only_gets_row(self, notifier, rooms):
        online, offline = uuid4(), uuid4()
        conn = Connection(FakeWebSocket(), online)
        rooms.register(conn)

        await notifier.notify_many([online, offline], NotificationKind.other, None, "Hi")

        assert len(conn.websocket.events("notification")) == 1
        assert await notifier.unread_count(offline) == 1

    @pytest.mark.asyncio
    async def test_notify_many_deduplicates_recipients(self, notifier):
        user_id = uuid4()

        created = await notifier.notify_many([user_id, user_id], NotificationKind.other, None, "Once")

        assert len(created) == 1
        assert await notifier.unread_count(user_id) == 1

    @pytest.mark.asyncio
    async def test_mark_read_other_user_forbidden(self, notifier):
        owner, intruder = uuid4(), uuid4()
        created = await notifier.notify(owner, NotificationKind.other, None, "Private")

        with pytest.raises(AuthorizationError):
            await notifier.mark_read(created.id, intruder)

        assert (await notifier.list_for_user(owner))[0].read is False
        assert await notifier.unread_count(owner) == 1

    @pytest.mark.asyncio
    async def test_mark_read_missing(self, notifier):
        with pytest.raises(NotFoundError):
            await notifier.mark_read(987654, uuid4())

    @pytest.mark.asyncio
    async def test_mark_read(self, notifier):
        owner = uuid4()
        first = await notifier.notify(owner, NotificationKind.other, None, "one")
        await notifier.notify(owner, NotificationKind.other, None, "two")

        updated = await notifier.mark_read(first.id, owner)

        assert updated.read is True
        assert await notifier.unread_count(owner) == 1

    @pytest.mark.asyncio
    async def test_mark_all_read_idempotent(self, notifier):
        owner, other = uuid4(), uuid4()
        for i in range(3):
            await notifier.notify(owner, NotificationKind.other, None, f"n{i}")
        await notifier.notify(other, NotificationKind.other, None, "untouched")

        first = await notifier.mark_all_read(owner)
        assert len(first) == 3
        assert all(n.read for n in first)
        assert await notifier.unread_count(owner) == 0

        second = await notifier.mark_all_read(owner)
        assert len(second) == 3
        assert await notifier.unread_count(owner) == 0

        assert await notifier.unread_count(other) == 1


class TestNotificationsAPI:

    def _notify(self, user: dict, text: str, kind=NotificationKind.other):
        return NotificationStore().create_many([UUID(user["id"])], kind, None, text)[0]

    def test_requires_auth(self, client):
        assert client.get("/api/v1/notifications").status_code == 401

    def test_list_and_unread_count(self, client, make_user):
        user = make_user()
        self._notify(user, "first")
        self._notify(user, "second")

        response = client.get("/api/v1/notifications", headers=user["headers"])
        assert response.status_code == 200
        items = response.json()
        assert [n["message"] for n in items] == ["second", "first"]
        assert set(items[0]) == {"id", "recipient_id", "kind", "course_id", "message", "read", "created_at"}

        count = client.get("/api/v1/notifications/unread-count", headers=user["headers"])
        assert count.json() == {"count": 2}

    def test_mark_read(self, client, make_user):
        user = make_user()
        created = self._notify(user, "read me")

        response = client.put(f"/api/v1/notifications/{created.id}/read", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["read"] is True
        count = client.get("/api/v1/notifications/unread-count", headers=user["headers"])
        assert count.json()["count"] == 0

    def test_mark_read_someone_elses(self, client, make_user):
        owner, intruder = make_user(), make_user()
        created = self._notify(owner, "mine")

        response = client.put(f"/api/v1/notifications/{created.id}/read", headers=intruder["headers"])

        assert response.status_code == 403
        items = client.get("/api/v1/notifications", headers=owner["headers"]).json()
        assert items[0]["read"] is False

    def test_mark_read_not_found(self, client, make_user):
        user = make_user()
        response = client.put("/api/v1/notifications/999999/read", headers=user["headers"])
        assert response.status_code == 404

    def test_read_all_twice(self, client, make_user):
        user = make_user()
        for i in range(3):
            self._notify(user, f"n{i}")

        for _ in range(2):
            response = client.put("/api/v1/notifications/read-all", headers=user["headers"])
            assert response.status_code == 200
            assert len(response.json()) == 3
            assert all(n["read"] for n in response.json())
            count = client.get("/api/v1/notifications/unread-count", headers=user["headers"])
            assert count.json() == {"count": 0}
