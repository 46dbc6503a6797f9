import json

import httpx

from boardsync.client import BoardApiClient, LocalBoard, MUTATION_POLICIES, MutationPolicy, ReconciliationEngine


def _card(card_id: str, column_id: str, position: int, **fields):
    return {"id": card_id, "title": card_id, "columnId": column_id, "boardId": "b1", "position": position, **fields}


def _board():
    return {
        "id": "b1",
        "name": "Team",
        "columns": [
            {"id": "c1", "name": "To Do", "boardId": "b1", "position": 0,
             "cards": [_card(card_id, "c1", i) for i, card_id in enumerate("ABCD")]},
            {"id": "c2", "name": "Done", "boardId": "b1", "position": 1,
             "cards": [_card("X", "c2", 0)]},
        ],
    }


def _titles(engine, column_id):
    return engine.board.card_ids(column_id)


def _engine(handler=None, username="alice"):
    requests = []

    def default_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "unexpected"})

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return (handler or default_handler)(request)

    api = BoardApiClient("http://testserver", token="token", transport=httpx.MockTransport(recording))
    engine = ReconciliationEngine(api, username, LocalBoard(_board()))
    return engine, requests


def test_policies_are_declared_per_kind():
    assert MUTATION_POLICIES["create-card"] is MutationPolicy.CONFIRMED
    assert MUTATION_POLICIES["create-column"] is MutationPolicy.CONFIRMED
    assert MUTATION_POLICIES["move-card"] is MutationPolicy.OPTIMISTIC
    assert MUTATION_POLICIES["delete-column"] is MutationPolicy.OPTIMISTIC


def test_own_broadcast_is_ignored():
    engine, _ = _engine()

    applied = engine.handle_event("card-moved", {
        "cardId": "A", "fromColumnId": "c1", "targetColumnId": "c2", "newPosition": 0,
        "movedBy": "alice", "boardId": "b1",
    })

    assert applied is False
    assert _titles(engine, "c1") == ["A", "B", "C", "D"]
    assert engine.handle_event("card-deleted", {"cardId": "A", "boardId": "b1", "deletedBy": "alice"}) is False
    assert engine.board.card("A") is not None


def test_peer_create_is_inserted_once():
    engine, _ = _engine()
    event = {"card": _card("N", "c2", 0), "columnId": "c2", "boardId": "b1", "createdBy": "bob"}

    assert engine.handle_event("card-created", event) is True
    assert engine.handle_event("card-created", event) is False

    assert _titles(engine, "c2") == ["N", "X"]
    assert [card["position"] for card in engine.board.column("c2")["cards"]] == [0, 1]


def test_peer_moves_apply_by_id():
    engine, _ = _engine()

    engine.handle_event("card-moved", {
        "cardId": "A", "fromColumnId": "c1", "targetColumnId": "c1", "newPosition": 2,
        "movedBy": "bob", "boardId": "b1",
    })
    assert _titles(engine, "c1") == ["B", "C", "A", "D"]

    engine.handle_event("card-moved", {
        "cardId": "C", "fromColumnId": "c1", "targetColumnId": "c2", "newPosition": 1,
        "card": _card("C", "c2", 1, title="C renamed"), "movedBy": "bob", "boardId": "b1",
    })
    assert _titles(engine, "c1") == ["B", "A", "D"]
    assert _titles(engine, "c2") == ["X", "C"]
    assert engine.board.card("C")["title"] == "C renamed"
    assert engine.board.card("C")["columnId"] == "c2"


def test_move_of_unknown_card_inserts_canonical_copy():
    engine, _ = _engine()

    engine.handle_event("card-moved", {
        "cardId": "Z", "fromColumnId": "c9", "targetColumnId": "c2", "newPosition": 0,
        "card": _card("Z", "c2", 0), "movedBy": "bob", "boardId": "b1",
    })

    assert _titles(engine, "c2") == ["Z", "X"]


def test_events_of_other_boards_are_ignored():
    engine, _ = _engine()

    applied = engine.handle_event("card-deleted", {"cardId": "A", "boardId": "other", "deletedBy": "bob"})

    assert applied is False
    assert engine.board.card("A") is not None


def test_peer_updates_and_deletes():
    engine, _ = _engine()

    engine.handle_event("card-updated", {"cardId": "B", "updates": {"priority": "high"}, "updatedBy": "bob", "boardId": "b1"})
    engine.handle_event("column-updated", {"columnId": "c2", "updates": {"name": "Shipped"}, "updatedBy": "bob", "boardId": "b1"})
    engine.handle_event("column-moved", {"columnId": "c2", "newPosition": 0, "movedBy": "bob", "boardId": "b1"})
    engine.handle_event("board-updated", {"boardId": "b1", "updates": {"name": "Renamed"}, "updatedBy": "bob"})
    engine.handle_event("column-deleted", {"columnId": "c1", "boardId": "b1", "deletedBy": "bob"})

    assert engine.board.info["name"] == "Renamed"
    assert engine.board.column_ids() == ["c2"]
    assert engine.board.column("c2")["name"] == "Shipped"
    assert engine.board.card("B") is None


async def test_optimistic_move_then_canonical_replace():
    def handler(request):
        body = json.loads(request.content)
        assert request.headers["Authorization"] == "Bearer token"
        return httpx.Response(200, json=_card("A", body["targetColumnId"], body["newPosition"], title="A (server)"))

    engine, requests = _engine(handler)

    card = await engine.move_card("A", "c1", 2)

    assert requests[0].method == "PATCH"
    assert requests[0].url.path == "/api/cards/A/move"
    assert card["title"] == "A (server)"
    assert _titles(engine, "c1") == ["B", "C", "A", "D"]
    assert engine.board.card("A")["title"] == "A (server)"
    assert engine.needs_reload is False


async def test_drop_slot_uses_decrement_rule():
    sent = []

    def handler(request):
        body = json.loads(request.content)
        sent.append(body)
        card_id = request.url.path.split("/")[-2]
        return httpx.Response(200, json=_card(card_id, body["targetColumnId"], body["newPosition"]))

    engine, _ = _engine(handler)

    await engine.drop_card("A", "c1", 3)
    await engine.drop_card("D", "c2", 0)

    assert sent[0] == {"targetColumnId": "c1", "newPosition": 2}
    assert sent[1] == {"targetColumnId": "c2", "newPosition": 0}
    assert _titles(engine, "c1") == ["B", "C", "A"]
    assert _titles(engine, "c2") == ["D", "X"]


async def test_confirmed_create_waits_for_server():
    def handler(request):
        body = json.loads(request.content)
        assert engine.board.card_ids("c2") == ["X"]
        return httpx.Response(201, json=_card("srv-1", body["columnId"], 1, title=body["title"]))

    engine, _ = _engine(handler)

    card = await engine.create_card("c2", "New task")

    assert card["id"] == "srv-1"
    assert _titles(engine, "c2") == ["X", "srv-1"]
    # Эхо собственного создания не дублирует карточку
    engine.handle_event("card-created", {"card": card, "columnId": "c2", "boardId": "b1", "createdBy": "bob"})
    assert _titles(engine, "c2") == ["X", "srv-1"]


async def test_failed_request_keeps_optimistic_state_and_flags_reload():
    engine, _ = _engine(lambda request: httpx.Response(500, json={"detail": "boom"}))

    result = await engine.move_card("A", "c2", 0)

    assert result is None
    assert engine.needs_reload is True
    assert _titles(engine, "c2") == ["A", "X"]
    assert _titles(engine, "c1") == ["B", "C", "D"]


async def test_failed_create_changes_nothing():
    engine, _ = _engine(lambda request: httpx.Response(404, json={"detail": "gone"}))

    assert await engine.create_card("c1", "Lost") is None
    assert engine.needs_reload is True
    assert _titles(engine, "c1") == ["A", "B", "C", "D"]


async def test_delete_is_optimistic():
    engine, requests = _engine(lambda request: httpx.Response(204))

    assert await engine.delete_card("B") is True

    assert requests[0].method == "DELETE"
    assert _titles(engine, "c1") == ["A", "C", "D"]


def test_presence_events_track_online_users():
    engine, _ = _engine()

    engine.handle_event("user-connected", {"username": "bob", "displayName": "Bob", "color": "#28a745"})
    engine.handle_event("user-connected", {"username": "carol", "displayName": "Carol", "color": "#dc3545"})
    engine.handle_event("user-disconnected", {"username": "carol"})
    engine.handle_event("user-joined-board", {"username": "bob", "socketId": "s2", "boardId": "b1"})

    assert list(engine.online_users) == ["bob"]
    assert engine.board_members["s2"]["username"] == "bob"


def test_handle_message_parses_envelope():
    engine, _ = _engine()

    assert engine.handle_message("not json") is False
    assert engine.handle_message(json.dumps({
        "type": "card-deleted",
        "data": {"cardId": "D", "boardId": "b1", "deletedBy": "bob"},
    })) is True
    assert engine.board.card("D") is None


def test_peer_events_without_ids_are_ignored():
    engine, _ = _engine()
    malformed = [
        ("card-updated", {"boardId": "b1", "updates": {"title": "x"}, "updatedBy": "bob"}),
        ("card-moved", {"boardId": "b1", "cardId": "A", "movedBy": "bob"}),
        ("card-moved", {"boardId": "b1", "toColumnId": "c2", "movedBy": "bob"}),
        ("card-deleted", {"boardId": "b1", "deletedBy": "bob"}),
        ("card-created", {"boardId": "b1", "card": "A", "createdBy": "bob"}),
        ("column-moved", {"boardId": "b1", "columnId": "c1", "newPosition": "last", "movedBy": "bob"}),
        ("column-updated", {"boardId": "b1", "updates": {"name": "x"}, "updatedBy": "bob"}),
        ("column-created", {"boardId": "b1", "createdBy": "bob"}),
        ("board-updated", {"boardId": "b1", "updatedBy": "bob"}),
        ("user-connected", {}),
    ]

    for event, data in malformed:
        assert engine.handle_message(json.dumps({"type": event, "data": data})) is False

    assert engine.board.column_ids() == ["c1", "c2"]
    assert _titles(engine, "c1") == ["A", "B", "C", "D"]
    assert engine.needs_reload is False


async def test_canonical_card_in_unknown_column_keeps_local_copy():
    def handler(request):
        return httpx.Response(200, json=_card("A", "c9", 0))

    engine, _ = _engine(handler)

    await engine.move_card("A", "c9", 0)

    assert engine.board.locate_card("A") == ("c1", 0)
    assert engine.needs_reload is True


def test_peer_move_into_unknown_column_requests_reload():
    engine, _ = _engine()

    applied = engine.handle_event("card-moved", {
        "cardId": "B", "fromColumnId": "c1", "targetColumnId": "c9", "newPosition": 0,
        "card": _card("B", "c9", 0), "movedBy": "bob", "boardId": "b1",
    })

    assert applied is False
    assert engine.board.locate_card("B") == ("c1", 1)
    assert engine.needs_reload is True


def test_peer_create_in_unknown_column_requests_reload():
    engine, _ = _engine()

    applied = engine.handle_event("card-created", {
        "card": _card("N", "c9", 0), "columnId": "c9", "boardId": "b1", "createdBy": "bob",
    })

    assert applied is False
    assert engine.board.card("N") is None
    assert engine.needs_reload is True
