import json

from boardsync.core.security import verify_token
from boardsync.db.repositories.user_repository import UserRepository
from boardsync.domains.collaboration.dispatch import MutationGateway
from boardsync.domains.collaboration.session import SessionHandler, SessionState
from boardsync.domains.identity.entities import Actor


def _message(event: str, **data) -> str:
    return json.dumps({"type": event, "data": data})


def _login(username: str = "alice", display_name: str = "Alice", email: str = None) -> str:
    return _message(
        "user-login",
        username=username,
        displayName=display_name,
        email=email or f"{username}@example.com"
    )


async def _open(hub, socket_factory, session_factory):
    socket = socket_factory()
    connection = await hub.connect(socket)
    return SessionHandler(connection, hub, session_factory), socket


async def _get_user(session_factory, username):
    async with session_factory() as session:
        return await UserRepository(session).get_by_username(username)


async def _create_board(session_factory, name="Team"):
    async with session_factory() as session:
        return await MutationGateway(session).create_board(name, Actor("setup"))


async def test_login_replies_and_announces(hub, socket_factory, session_factory):
    handler, socket = await _open(hub, socket_factory, session_factory)
    _, observer = await _open(hub, socket_factory, session_factory)

    await handler.handle_text(_login())

    reply = socket.last("user-logged-in")
    assert reply["success"] is True
    assert reply["user"]["username"] == "alice"
    assert reply["user"]["displayName"] == "Alice"
    assert reply["socketId"] == handler.connection.id
    payload = verify_token(reply["token"])
    assert payload["sub"] == "alice"
    assert payload["sid"] == handler.connection.id

    assert observer.last("user-connected")["username"] == "alice"
    assert handler.state is SessionState.AUTHENTICATED
    assert hub.presence.connection_for("alice") == handler.connection.id

    stored = await _get_user(session_factory, "alice")
    assert stored.is_online
    assert stored.socket_id == handler.connection.id


async def test_login_with_short_username_is_rejected(hub, socket_factory, session_factory):
    handler, socket = await _open(hub, socket_factory, session_factory)

    await handler.handle_text(_login(username="a"))

    error = socket.last("user-login-error")
    assert error["success"] is False
    assert "username" in error["message"]
    assert handler.state is SessionState.ANONYMOUS
    assert len(hub.presence) == 0
    assert await _get_user(session_factory, "a") is None


async def test_login_reuses_existing_identity(hub, socket_factory, session_factory):
    first, _ = await _open(hub, socket_factory, session_factory)
    await first.handle_text(_login())
    original = await _get_user(session_factory, "alice")
    await first.close()

    second, socket = await _open(hub, socket_factory, session_factory)
    await second.handle_text(_login(display_name="Alice Again"))

    assert socket.last("user-logged-in")["success"] is True
    reused = await _get_user(session_factory, "alice")
    assert reused.uuid == original.uuid
    assert reused.is_online
    assert reused.socket_id == second.connection.id


async def test_login_with_taken_email_fails(hub, socket_factory, session_factory):
    first, _ = await _open(hub, socket_factory, session_factory)
    await first.handle_text(_login(email="shared@example.com"))

    second, socket = await _open(hub, socket_factory, session_factory)
    await second.handle_text(_login(username="bob", display_name="Bob", email="shared@example.com"))

    assert socket.last("user-login-error")["success"] is False
    assert second.state is SessionState.ANONYMOUS
    assert await _get_user(session_factory, "bob") is None


async def test_join_requires_login(hub, socket_factory, session_factory):
    board = await _create_board(session_factory)
    handler, socket = await _open(hub, socket_factory, session_factory)

    await handler.handle_text(_message("join-board", boardId=str(board.uuid)))

    assert "Login required" in socket.last("error")["message"]
    assert hub.members(board.uuid) == []


async def test_join_unknown_board_fails(hub, socket_factory, session_factory):
    handler, socket = await _open(hub, socket_factory, session_factory)
    await handler.handle_text(_login())

    await handler.handle_text(_message("join-board", boardId="00000000-0000-0000-0000-000000000000"))

    assert "not found" in socket.last("error")["message"]


async def test_join_and_leave_notify_other_members_only(hub, socket_factory, session_factory):
    board = await _create_board(session_factory)
    alice, alice_socket = await _open(hub, socket_factory, session_factory)
    bob, bob_socket = await _open(hub, socket_factory, session_factory)
    carol, carol_socket = await _open(hub, socket_factory, session_factory)
    await alice.handle_text(_login("alice", "Alice"))
    await bob.handle_text(_login("bob", "Bob"))
    await carol.handle_text(_login("carol", "Carol"))

    await alice.handle_text(_message("join-board", boardId=str(board.uuid)))
    await bob.handle_text(_message("join-board", boardId=str(board.uuid)))

    joined = bob_socket.last("board-joined")
    assert joined["success"] is True
    assert {member["username"] for member in joined["members"]} == {"alice", "bob"}
    notice = alice_socket.last("user-joined-board")
    assert notice["username"] == "bob"
    assert notice["socketId"] == bob.connection.id
    assert notice["boardId"] == str(board.uuid)
    assert bob_socket.events("user-joined-board") == []
    assert carol_socket.events("user-joined-board") == []

    await bob.handle_text(_message("leave-board", boardId=str(board.uuid)))

    assert bob_socket.last("board-left") == {"success": True, "boardId": str(board.uuid)}
    assert alice_socket.last("user-left-board")["username"] == "bob"
    assert carol_socket.events("user-left-board") == []


async def test_relay_overwrites_actor_and_excludes_sender(hub, socket_factory, session_factory):
    board = await _create_board(session_factory)
    alice, alice_socket = await _open(hub, socket_factory, session_factory)
    bob, bob_socket = await _open(hub, socket_factory, session_factory)
    for handler, name in ((alice, "alice"), (bob, "bob")):
        await handler.handle_text(_login(name, name.title()))
        await handler.handle_text(_message("join-board", boardId=str(board.uuid)))
    alice_socket.clear()
    bob_socket.clear()

    await alice.handle_text(_message(
        "card-moved", boardId=str(board.uuid), cardId="card-1",
        fromColumnId="col-1", toColumnId="col-2", newPosition=0, movedBy="mallory"
    ))

    relayed = bob_socket.last("card-moved")
    assert relayed["movedBy"] == "alice"
    assert relayed["cardId"] == "card-1"
    assert "timestamp" in relayed
    assert alice_socket.events("card-moved") == []


async def test_relay_requires_login(hub, socket_factory, session_factory):
    handler, socket = await _open(hub, socket_factory, session_factory)

    await handler.handle_text(_message("card-updated", boardId="00000000-0000-0000-0000-000000000001"))

    assert "Login required" in socket.last("error")["message"]


async def test_ping_malformed_and_unknown(hub, socket_factory, session_factory):
    handler, socket = await _open(hub, socket_factory, session_factory)

    await handler.handle_text(_message("ping"))
    await handler.handle_text("not json")
    await handler.handle_text(_message("teleport-card"))

    assert socket.events("pong")
    errors = [message["data"]["message"] for message in socket.events("error")]
    assert errors[0].startswith("Malformed message")
    assert errors[1] == "Unknown event type: teleport-card"


async def test_disconnect_without_login_is_noop(hub, socket_factory, session_factory):
    handler, _ = await _open(hub, socket_factory, session_factory)
    logged_in, _ = await _open(hub, socket_factory, session_factory)
    await logged_in.handle_text(_login())
    _, observer = await _open(hub, socket_factory, session_factory)

    await handler.close()

    assert observer.events("user-disconnected") == []
    assert hub.presence.connection_for("alice") == logged_in.connection.id
    assert handler.state is SessionState.CLOSED


async def test_disconnect_marks_offline_and_announces(hub, socket_factory, session_factory):
    handler, _ = await _open(hub, socket_factory, session_factory)
    _, observer = await _open(hub, socket_factory, session_factory)
    await handler.handle_text(_login())

    await handler.close()
    await handler.close()

    assert len(observer.events("user-disconnected")) == 1
    assert observer.last("user-disconnected")["username"] == "alice"
    stored = await _get_user(session_factory, "alice")
    assert not stored.is_online
    assert stored.socket_id is None
    assert hub.get(handler.connection.id) is None


async def test_displaced_connection_close_keeps_new_login_online(hub, socket_factory, session_factory):
    old, _ = await _open(hub, socket_factory, session_factory)
    new, _ = await _open(hub, socket_factory, session_factory)
    _, observer = await _open(hub, socket_factory, session_factory)
    await old.handle_text(_login())
    await new.handle_text(_login())

    await old.close()

    assert observer.events("user-disconnected") == []
    stored = await _get_user(session_factory, "alice")
    assert stored.is_online
    assert stored.socket_id == new.connection.id


async def test_relay_without_target_id_is_rejected(hub, socket_factory, session_factory):
    board = await _create_board(session_factory)
    alice, alice_socket = await _open(hub, socket_factory, session_factory)
    bob, bob_socket = await _open(hub, socket_factory, session_factory)
    for handler, name in ((alice, "alice"), (bob, "bob")):
        await handler.handle_text(_login(name, name.title()))
        await handler.handle_text(_message("join-board", boardId=str(board.uuid)))
    bob_socket.clear()

    await alice.handle_text(_message("card-updated", boardId=str(board.uuid), updates={"title": "x"}))
    await alice.handle_text(_message("card-moved", boardId=str(board.uuid), cardId="card-1", newPosition=0))
    await alice.handle_text(_message("column-created", boardId=str(board.uuid)))

    errors = [message["data"]["message"] for message in alice_socket.events("error")]
    assert errors == [
        "Invalid card-updated: missing cardId",
        "Invalid card-moved: missing targetColumnId|toColumnId",
        "Invalid column-created: missing column",
    ]
    assert bob_socket.sent == []


async def test_second_login_on_same_connection_is_rejected(hub, socket_factory, session_factory):
    handler, socket = await _open(hub, socket_factory, session_factory)
    await handler.handle_text(_login())

    await handler.handle_text(_login("bob", "Bob"))

    error = socket.last("user-login-error")
    assert error == {"success": False, "message": "Already logged in as alice"}
    assert handler.user.username == "alice"
    assert await _get_user(session_factory, "bob") is None

    await handler.close()

    stored = await _get_user(session_factory, "alice")
    assert not stored.is_online
    assert stored.socket_id is None


async def test_displaced_connection_loses_login_and_rooms(hub, socket_factory, session_factory):
    board = await _create_board(session_factory)
    old, old_socket = await _open(hub, socket_factory, session_factory)
    carol, carol_socket = await _open(hub, socket_factory, session_factory)
    await old.handle_text(_login())
    await carol.handle_text(_login("carol", "Carol"))
    await old.handle_text(_message("join-board", boardId=str(board.uuid)))
    await carol.handle_text(_message("join-board", boardId=str(board.uuid)))
    carol_socket.clear()

    new, _ = await _open(hub, socket_factory, session_factory)
    await new.handle_text(_login())

    left = carol_socket.last("user-left-board")
    assert left["username"] == "alice"
    assert left["socketId"] == old.connection.id
    assert old_socket.last("error") == {"message": "Logged in from another connection"}
    assert not old.authenticated
    assert [member.id for member in hub.members(board.uuid)] == [carol.connection.id]

    carol_socket.clear()
    await old.handle_text(_message("card-deleted", boardId=str(board.uuid), cardId="card-1"))

    assert "Login required" in old_socket.last("error")["message"]
    assert carol_socket.events("card-deleted") == []
