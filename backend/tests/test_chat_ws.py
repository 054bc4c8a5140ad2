from uuid import UUID

import pytest
from fastapi.websockets import WebSocketDisconnect

from app.chat.gateway import gateway
from app.core.config import settings
from app.core.exceptions import PersistenceError


def _ws_url(user: dict) -> str:
    return f"/api/v1/chat/ws?token={user['token']}"


def _join(ws, course_id: int):
    ws.send_json({"type": "joinRoom", "data": {"courseId": course_id}})
    reply = ws.receive_json()
    assert reply == {"type": "joined", "data": {"courseId": course_id}}


@pytest.fixture
def classroom(make_user, create_course, enroll):
    """A tutor's course with three enrolled students"""
    tutor = make_user("tutor", name="Tina Tutor")
    course = create_course(tutor, title="Algebra")
    students = {}
    for name in ("Alice", "Bob", "Carol"):
        students[name] = make_user("student", name=name)
        enroll(students[name], course["id"])
    return {"tutor": tutor, "course": course, **students}


class TestChatWebSocket:

    def test_connect_sends_connected_event(self, client, student):
        with client.websocket_connect(_ws_url(student)) as ws:
            event = ws.receive_json()

        assert event["type"] == "connected"
        assert event["data"]["user_id"] == student["id"]

    def test_invalid_token_closes_with_policy_violation(self, client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/api/v1/chat/ws?token=not-a-jwt") as ws:
                ws.receive_json()

        assert exc.value.code == 1008

    def test_connection_rate_limit(self, client, student):
        for _ in range(settings.WEBSOCKET_MAX_CONNECTIONS_PER_USER):
            with client.websocket_connect(_ws_url(student)) as ws:
                ws.receive_json()

        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(_ws_url(student)) as ws:
                ws.receive_json()

        assert exc.value.code == 1013

    def test_message_reaches_room_and_notifies_others(self, client, classroom):
        course_id = classroom["course"]["id"]

        with client.websocket_connect(_ws_url(classroom["Alice"])) as alice, \
                client.websocket_connect(_ws_url(classroom["Bob"])) as bob, \
                client.websocket_connect(_ws_url(classroom["Carol"])) as carol:
            for ws in (alice, bob, carol):
                assert ws.receive_json()["type"] == "connected"
            _join(alice, course_id)
            _join(bob, course_id)

            alice.send_json({"type": "sendMessage", "data": {"courseId": course_id, "message": "hello"}})

            to_alice = alice.receive_json()
            to_bob = bob.receive_json()
            assert to_alice["type"] == to_bob["type"] == "message"
            assert to_alice["data"] == to_bob["data"]
            assert to_bob["data"]["content"] == "hello"
            assert to_bob["data"]["author"]["name"] == "Alice"

            # Bob is in the room and also a participant: message first, then notification
            bob_notification = bob.receive_json()
            assert bob_notification["type"] == "notification"

            # Carol never joined the room: only a notification
            carol_event = carol.receive_json()
            assert carol_event["type"] == "notification"
            assert carol_event["data"]["kind"] == "new_message"
            assert carol_event["data"]["course_id"] == course_id
            assert carol_event["data"]["read"] is False
            assert "Alice in Algebra: hello" == carol_event["data"]["message"]

        # Tutor was offline and still has a stored notification
        tutor_items = client.get("/api/v1/notifications", headers=classroom["tutor"]["headers"]).json()
        assert any(n["kind"] == "new_message" and n["course_id"] == course_id for n in tutor_items)
        alice_items = client.get("/api/v1/notifications", headers=classroom["Alice"]["headers"]).json()
        assert not any(n["kind"] == "new_message" for n in alice_items)

        history = client.get(
            f"/api/v1/courses/{course_id}/messages", headers=classroom["Carol"]["headers"]
        ).json()
        assert [m["content"] for m in history] == ["hello"]
        assert history[0]["id"] == to_bob["data"]["id"]

    def test_persistence_failure_reports_error_to_sender_only(self, client, classroom, monkeypatch):
        course_id = classroom["course"]["id"]

        def failing_create(*args, **kwargs):
            raise PersistenceError("Could not save message")

        with client.websocket_connect(_ws_url(classroom["Alice"])) as alice, \
                client.websocket_connect(_ws_url(classroom["Bob"])) as bob:
            alice.receive_json()
            bob.receive_json()
            _join(alice, course_id)
            _join(bob, course_id)

            monkeypatch.setattr(gateway.store, "create", failing_create)
            alice.send_json({"type": "sendMessage", "data": {"courseId": course_id, "message": "lost"}})
            error = alice.receive_json()
            assert error["type"] == "error"
            assert error["data"]["code"] == "persistence_error"
            assert error["data"]["event"] == "sendMessage"

            monkeypatch.undo()
            alice.send_json({"type": "sendMessage", "data": {"courseId": course_id, "message": "saved"}})

            # The first thing Bob sees is the message that was stored
            first_for_bob = bob.receive_json()
            assert first_for_bob["type"] == "message"
            assert first_for_bob["data"]["content"] == "saved"

        history = client.get(
            f"/api/v1/courses/{course_id}/messages", headers=classroom["Bob"]["headers"]
        ).json()
        assert [m["content"] for m in history] == ["saved"]

    def test_join_course_without_enrollment(self, client, classroom, make_user):
        outsider = make_user("student")

        with client.websocket_connect(_ws_url(outsider)) as ws:
            ws.receive_json()
            ws.send_json({"type": "joinRoom", "data": {"courseId": classroom["course"]["id"]}})
            error = ws.receive_json()

            # The connection stays open after a rejected event
            ws.send_json({"type": "joinRoom", "data": {"courseId": 999999}})
            not_found = ws.receive_json()

        assert error["type"] == "error"
        assert error["data"]["code"] == "forbidden"
        assert not_found["data"]["code"] == "not_found"

    def test_invalid_json_reports_error(self, client, student):
        with client.websocket_connect(_ws_url(student)) as ws:
            ws.receive_json()
            ws.send_text("{not json")
            error = ws.receive_json()

        assert error == {"type": "error", "data": {"code": "validation_error", "detail": "Invalid JSON"}}

    def test_tutor_can_chat_in_own_course(self, client, classroom):
        course_id = classroom["course"]["id"]

        with client.websocket_connect(_ws_url(classroom["tutor"])) as ws:
            ws.receive_json()
            _join(ws, course_id)
            ws.send_json({"type": "sendMessage", "data": {"courseId": course_id, "message": "  Welcome!  "}})
            event = ws.receive_json()

        assert event["type"] == "message"
        assert event["data"]["content"] == "Welcome!"
        assert event["data"]["author"]["role"] == "tutor"


class TestMessageHistory:

    def test_history_in_send_order(self, client, classroom):
        course_id = classroom["course"]["id"]

        with client.websocket_connect(_ws_url(classroom["Bob"])) as bob:
            bob.receive_json()
            _join(bob, course_id)
            for i in range(3):
                bob.send_json({"type": "sendMessage", "data": {"courseId": course_id, "message": f"m{i}"}})
                assert bob.receive_json()["data"]["content"] == f"m{i}"

        response = client.get(f"/api/v1/courses/{course_id}/messages", headers=classroom["tutor"]["headers"])
        assert response.status_code == 200
        assert [m["content"] for m in response.json()] == ["m0", "m1", "m2"]

        latest = client.get(
            f"/api/v1/courses/{course_id}/messages?limit=2", headers=classroom["tutor"]["headers"]
        ).json()
        assert [m["content"] for m in latest] == ["m1", "m2"]

    def test_history_requires_participant(self, client, classroom, make_user):
        outsider = make_user("student")
        response = client.get(
            f"/api/v1/courses/{classroom['course']['id']}/messages", headers=outsider["headers"]
        )
        assert response.status_code == 403

    def test_history_unknown_course(self, client, student):
        response = client.get("/api/v1/courses/999999/messages", headers=student["headers"])
        assert response.status_code == 404

    def test_full_history_and_paging(self, client, classroom):
        course_id = classroom["course"]["id"]
        author_id = UUID(classroom["Alice"]["id"])
        for i in range(501):
            gateway.store.create(course_id, author_id, f"m{i}")
        headers = classroom["Alice"]["headers"]

        everything = client.get(f"/api/v1/courses/{course_id}/messages", headers=headers).json()
        assert len(everything) == 501
        assert everything[0]["content"] == "m0"
        assert everything[-1]["content"] == "m500"

        # Walk backwards page by page and get every message exactly once
        pages, before_id = [], None
        while True:
            url = f"/api/v1/courses/{course_id}/messages?limit=200"
            if before_id is not None:
                url += f"&before_id={before_id}"
            page = client.get(url, headers=headers).json()
            if not page:
                break
            pages.insert(0, page)
            before_id = page[0]["id"]

        assert [len(p) for p in pages] == [101, 200, 200]
        assert [m["content"] for p in pages for m in p] == [m["content"] for m in everything]
