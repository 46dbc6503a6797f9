import json

import pytest
from fastapi.testclient import TestClient

from boardsync.client import LocalBoard, ReconciliationEngine
from boardsync.main import create_app


@pytest.fixture
def client():
    with TestClient(create_app()) as client:
        yield client


def _receive(websocket, event_type):
    """Чтение сообщений до первого события нужного типа"""
    while True:
        message = websocket.receive_json()
        if message["type"] == event_type:
            return message["data"]


def _login(websocket, username):
    websocket.send_json({"type": "user-login", "data": {
        "username": username,
        "displayName": username.title(),
        "email": f"{username}@example.com",
    }})
    return _receive(websocket, "user-logged-in")


def _join(websocket, board_id):
    websocket.send_json({"type": "join-board", "data": {"boardId": board_id}})
    return _receive(websocket, "board-joined")


def _seed(client):
    board = client.get("/api/boards/default").json()
    todo = board["columns"][0]["id"]
    for title in ("A", "B", "C"):
        response = client.post("/api/cards", json={"boardId": board["id"], "columnId": todo, "title": title})
        assert response.status_code == 201
    return client.get(f"/api/boards/{board['id']}").json()


def test_http_move_reaches_other_clients_only(client):
    board = _seed(client)
    todo, done = board["columns"][0]["id"], board["columns"][2]["id"]
    card_a = board["columns"][0]["cards"][0]["id"]

    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        session = _login(alice, "alice")
        _login(bob, "bob")
        _join(alice, board["id"])
        joined = _join(bob, board["id"])
        _receive(alice, "user-joined-board")

        assert sorted(member["username"] for member in joined["members"]) == ["alice", "bob"]
        assert session["success"] is True
        assert session["user"]["username"] == "alice"

        bob_view = ReconciliationEngine(None, "bob", LocalBoard(board))

        response = client.patch(
            f"/api/cards/{card_a}/move",
            json={"targetColumnId": done, "newPosition": 0},
            headers={"Authorization": f"Bearer {session['token']}"}
        )
        assert response.status_code == 200

        event = bob.receive_json()
        assert event["type"] == "card-moved"
        assert event["data"]["movedBy"] == "alice"
        assert event["data"]["fromColumnId"] == todo
        assert bob_view.handle_message(json.dumps(event)) is True

        # Автор получает свой результат только через HTTP-ответ
        alice.send_json({"type": "ping", "data": {}})
        assert alice.receive_json()["type"] == "pong"

        canonical = LocalBoard(client.get(f"/api/boards/{board['id']}").json())
        for column_id in canonical.column_ids():
            assert bob_view.board.card_ids(column_id) == canonical.card_ids(column_id)


def test_relayed_mutation_carries_authenticated_actor(client):
    board = _seed(client)
    card_b = board["columns"][0]["cards"][1]["id"]

    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        _login(alice, "alice")
        _login(bob, "bob")
        _join(alice, board["id"])
        _join(bob, board["id"])
        _receive(alice, "user-joined-board")

        alice.send_json({"type": "card-updated", "data": {
            "cardId": card_b,
            "boardId": board["id"],
            "updates": {"title": "B!"},
            "updatedBy": "mallory",
        }})
        event = _receive(bob, "card-updated")

        assert event["updatedBy"] == "alice"
        assert event["updates"] == {"title": "B!"}
        assert "timestamp" in event


def test_presence_over_the_wire(client):
    with client.websocket_connect("/ws") as bob:
        _login(bob, "bob")
        _receive(bob, "user-connected")

        with client.websocket_connect("/ws") as alice:
            _login(alice, "alice")
            assert _receive(bob, "user-connected")["username"] == "alice"
            online = client.get("/api/users/online").json()
            assert sorted(user["username"] for user in online) == ["alice", "bob"]

        assert _receive(bob, "user-disconnected")["username"] == "alice"
        assert [user["username"] for user in client.get("/api/users/online").json()] == ["bob"]
        assert client.get("/api/users/alice").json()["isOnline"] is False


def test_protocol_errors(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("not json")
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "join-board", "data": {"boardId": "whatever"}})
        assert websocket.receive_json()["data"]["message"] == "Login required before joining a board"

        websocket.send_json({"type": "user-login", "data": {"username": "x"}})
        reply = websocket.receive_json()
        assert reply["type"] == "user-login-error"
        assert reply["data"]["success"] is False
