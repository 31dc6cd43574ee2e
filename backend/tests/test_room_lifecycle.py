from __future__ import annotations

import pytest

from app.monitoring.metrics import store_fallbacks_total
from framesync.realtime import Identity


async def _join(service, connection, room: str, name: str, *, host: bool = False, token: str | None = None):
    payload = {"roomCode": room, "userName": name, "isHost": host}
    if token is not None:
        payload["token"] = token
    await service.dispatch(connection, "joinRoom", payload)


def _roster_names(roster: list[dict]) -> set[str]:
    return {member["name"] for member in roster}


@pytest.mark.anyio("asyncio")
async def test_join_broadcasts_full_roster_to_every_member(service, connect) -> None:
    host = connect()
    guest = connect()

    await _join(service, host, "ABC", "Host", host=True)
    await _join(service, guest, "ABC", "Ann")

    host_roster = host.websocket.events("updateUsers")[-1]
    guest_roster = guest.websocket.events("updateUsers")[-1]
    assert _roster_names(host_roster) == {"Host", "Ann"}
    assert host_roster == guest_roster
    hosts = [member for member in host_roster if member["isHost"]]
    assert [member["socketId"] for member in hosts] == [host.sid]


@pytest.mark.anyio("asyncio")
async def test_join_sends_welcome_and_announces_to_others(service, connect) -> None:
    host = connect()
    guest = connect()

    await _join(service, host, "ABC", "Host", host=True)
    await _join(service, guest, "ABC", "Ann")

    assert {"name": "System", "text": "Welcome to room ABC!"} in guest.websocket.events("chatMessage")
    assert {"name": "System", "text": "Ann has joined."} in host.websocket.events("chatMessage")
    assert {"name": "System", "text": "Ann has joined."} not in guest.websocket.events("chatMessage")


@pytest.mark.anyio("asyncio")
async def test_host_leave_ends_room_exactly_once_and_clears_state(service, connect) -> None:
    host = connect()
    first = connect()
    second = connect()
    for connection, name in ((host, "Host"), (first, "Ann"), (second, "Bob")):
        await _join(service, connection, "ABC", name, host=connection is host)
    await service.dispatch(host, "loadVideo", {"roomCode": "ABC", "videoId": "dQw4w9WgXcQ"})

    ack = await service.dispatch(host, "leaveRoom", "ABC")

    assert ack == {"success": True}
    assert first.websocket.events("roomEnded") == [None]
    assert second.websocket.events("roomEnded") == [None]
    assert host.websocket.events("roomEnded") == []
    assert service.registry.members("ABC") == []
    assert "ABC" not in service.playback
    assert host.room_code is None

    await service.disconnect(first)
    await service.disconnect(host)
    assert second.websocket.events("roomEnded") == [None]

    newcomer = connect()
    await _join(service, newcomer, "ABC", "Cleo", host=True)
    assert newcomer.websocket.events("roomInitialSync") == []
    assert _roster_names(newcomer.websocket.events("updateUsers")[-1]) == {"Cleo"}


@pytest.mark.anyio("asyncio")
async def test_host_disconnect_removes_public_listing(service, connect) -> None:
    host = connect()
    guest = connect()
    bystander = connect()
    await service.dispatch(
        host,
        "createRoom",
        {"roomCode": "PUB", "type": "public", "name": "Movie night", "userName": "Host"},
    )
    await _join(service, host, "PUB", "Host", host=True)
    await _join(service, guest, "PUB", "Ann")
    assert service.directory.get("PUB").users == 2

    await service.disconnect(host)

    assert len(service.directory) == 0
    assert bystander.websocket.events("publicRoomsList")[-1] == []
    assert guest.websocket.events("roomEnded") == [None]
    assert service.registry.get(host.sid) is None


@pytest.mark.anyio("asyncio")
async def test_guest_leave_updates_roster_chat_and_listing(service, connect) -> None:
    host = connect()
    first = connect()
    second = connect()
    await service.dispatch(
        host, "createRoom", {"roomCode": "PUB", "type": "public", "userName": "Host"}
    )
    for connection, name in ((host, "Host"), (first, "Ann"), (second, "Bob")):
        await _join(service, connection, "PUB", name, host=connection is host)
    assert service.directory.get("PUB").users == 3

    await service.dispatch(first, "leaveRoom", {"roomCode": "PUB"})

    remaining = host.websocket.events("updateUsers")[-1]
    assert _roster_names(remaining) == {"Host", "Bob"}
    assert second.websocket.events("updateUsers")[-1] == remaining
    assert {"name": "System", "text": "Ann has left."} in second.websocket.events("chatMessage")
    assert service.directory.get("PUB").users == 2
    assert host.websocket.events("publicRoomsList")[-1][0]["users"] == 2
    assert first.room_code is None

    await service.disconnect(second)
    assert service.directory.get("PUB").users == 1


@pytest.mark.anyio("asyncio")
async def test_identified_members_become_friends_once(service, connect, store) -> None:
    store.tokens = {"t1": Identity(user_id=1), "t2": Identity(user_id=2, avatar="/a/2.png")}
    alice = connect()
    bob = connect()
    guest = connect()

    await _join(service, alice, "ABC", "Alice", host=True, token="t1")
    await _join(service, bob, "ABC", "Bob", token="t2")
    await _join(service, guest, "ABC", "Guest")

    assert store.friend_calls == [(2, 1)]
    assert store.friendships == {(1, 2), (2, 1)}
    assert alice.websocket.events("friendRequestAccepted") == [{"userId": 1, "friendId": 2}]
    assert bob.websocket.events("friendRequestAccepted") == [{"userId": 2, "friendId": 1}]
    assert guest.websocket.events("friendRequestAccepted") == []
    roster = {member["name"]: member for member in guest.websocket.events("updateUsers")[-1]}
    assert roster["Bob"]["avatar"] == "/a/2.png"
    assert roster["Guest"]["userId"] is None


@pytest.mark.anyio("asyncio")
async def test_same_user_twice_is_not_befriended(service, connect, store) -> None:
    store.tokens = {"t1": Identity(user_id=1)}
    tab_one = connect()
    tab_two = connect()

    await _join(service, tab_one, "ABC", "Alice", token="t1")
    await _join(service, tab_two, "ABC", "Alice", token="t1")

    assert store.friend_calls == []


@pytest.mark.anyio("asyncio")
async def test_failed_friend_upsert_sends_no_notification(service, connect, store) -> None:
    store.tokens = {"t1": Identity(user_id=1), "t2": Identity(user_id=2)}
    store.failing.add("upsert_friendship")
    alice = connect()
    bob = connect()

    await _join(service, alice, "ABC", "Alice", token="t1")
    await _join(service, bob, "ABC", "Bob", token="t2")

    assert alice.websocket.events("friendRequestAccepted") == []
    assert bob.websocket.events("friendRequestAccepted") == []
    assert len(bob.websocket.events("updateUsers")) == 1


@pytest.mark.anyio("asyncio")
async def test_rejected_token_joins_as_guest_with_auth_error(service, connect, store) -> None:
    store.rejected_tokens.add("expired")
    viewer = connect()

    await _join(service, viewer, "ABC", "Viewer", token="expired")

    assert viewer.websocket.events("authError") == [{"message": "Token has expired"}]
    assert viewer.user_id is None
    assert _roster_names(viewer.websocket.events("updateUsers")[-1]) == {"Viewer"}


@pytest.mark.anyio("asyncio")
async def test_identity_store_failure_degrades_to_guest(service, connect, store) -> None:
    store.failing.add("resolve_identity")
    before = store_fallbacks_total.value("identity lookup", "error")
    viewer = connect()

    await _join(service, viewer, "ABC", "Viewer", token="t1")

    assert viewer.user_id is None
    assert viewer.websocket.events("authError") == []
    assert viewer.websocket.events("updateUsers")
    assert store_fallbacks_total.value("identity lookup", "error") == before + 1


@pytest.mark.anyio("asyncio")
async def test_watch_time_is_accounted_once_per_session(service, connect, store, clock) -> None:
    store.tokens = {"t1": Identity(user_id=1)}
    viewer = connect()
    await _join(service, viewer, "ABC", "Viewer", token="t1")

    clock.advance(95.7)
    await service.dispatch(viewer, "leaveRoom", "ABC")
    clock.advance(40)
    await service.disconnect(viewer)

    assert store.watch_time[1] == 95


@pytest.mark.anyio("asyncio")
async def test_room_end_accounts_watch_time_for_removed_members(service, connect, store, clock) -> None:
    store.tokens = {"t1": Identity(user_id=1), "t2": Identity(user_id=2)}
    host = connect()
    guest = connect()
    await _join(service, host, "ABC", "Host", host=True, token="t1")
    await _join(service, guest, "ABC", "Guest", token="t2")

    clock.advance(30)
    await service.disconnect(host)
    clock.advance(30)
    await service.disconnect(guest)

    assert dict(store.watch_time) == {1: 30, 2: 30}


@pytest.mark.anyio("asyncio")
async def test_guest_sessions_are_not_timed(service, connect, store, clock) -> None:
    viewer = connect()
    await _join(service, viewer, "ABC", "Viewer")
    clock.advance(120)
    await service.disconnect(viewer)

    assert dict(store.watch_time) == {}


@pytest.mark.anyio("asyncio")
async def test_create_public_room_lists_and_acknowledges(service, connect, store) -> None:
    store.tokens = {"t1": Identity(user_id=7)}
    host = connect()
    watcher = connect()

    ack = await service.dispatch(
        host,
        "createRoom",
        {
            "roomCode": "PUB1",
            "type": "public",
            "name": "Movie night",
            "userName": "Host",
            "capacity": "abc",
            "token": "t1",
        },
    )

    assert ack == {"success": True, "roomCode": "PUB1"}
    expected = [
        {
            "roomCode": "PUB1",
            "title": "Movie night",
            "host": "Host",
            "users": 0,
            "max": 8,
            "status": "live",
        }
    ]
    assert service.directory.snapshot() == expected
    assert watcher.websocket.events("publicRoomsList") == [expected]
    assert store.rooms == [("PUB1", 7, True)]


@pytest.mark.anyio("asyncio")
async def test_private_rooms_are_never_listed(service, connect) -> None:
    host = connect()

    ack = await service.dispatch(
        host, "createRoom", {"roomCode": "SECRET", "type": "private", "userName": "Host", "capacity": 4}
    )
    await _join(service, host, "SECRET", "Host", host=True)

    assert ack["success"] is True
    assert len(service.directory) == 0
    assert host.websocket.events("publicRoomsList") == []


@pytest.mark.anyio("asyncio")
async def test_get_public_rooms_is_unicast(service, connect) -> None:
    asker = connect()
    other = connect()
    service.directory.publish("PUB", title="Film", host="Host", capacity=4)

    await service.dispatch(asker, "getPublicRooms", None)

    assert asker.websocket.events("publicRoomsList") == [
        [{"roomCode": "PUB", "title": "Film", "host": "Host", "users": 0, "max": 4, "status": "live"}]
    ]
    assert other.websocket.events("publicRoomsList") == []


@pytest.mark.anyio("asyncio")
async def test_status_updates_and_offline_on_disconnect(service, connect, store) -> None:
    store.tokens = {"t1": Identity(user_id=1)}
    viewer = connect()

    ack = await service.dispatch(viewer, "updateStatus", {"userId": 1, "status": "watching"})
    assert ack == {"success": True}
    assert service.statuses.get(1) == "watching"

    await _join(service, viewer, "ABC", "Viewer", token="t1")
    await service.disconnect(viewer)

    assert service.statuses.get(1) == "offline"


@pytest.mark.anyio("asyncio")
async def test_chat_and_reactions_reach_whole_room(service, connect, store) -> None:
    store.tokens = {"t1": Identity(user_id=1)}
    host = connect()
    guest = connect()
    outsider = connect()
    await _join(service, host, "ABC", "Host", host=True, token="t1")
    await _join(service, guest, "ABC", "Ann")
    await _join(service, outsider, "XYZ", "Zed")

    await service.dispatch(guest, "chatMessage", {"roomCode": "ABC", "text": "  hello  "})
    await service.dispatch(host, "reaction", {"roomCode": "ABC", "emoji": "🔥"})
    await service.dispatch(guest, "reaction", {"roomCode": "ABC", "emoji": "😂"})

    assert {"name": "Ann", "text": "hello"} in host.websocket.events("chatMessage")
    assert {"name": "Ann", "text": "hello"} in guest.websocket.events("chatMessage")
    assert host.websocket.events("reaction") == [{"emoji": "🔥"}, {"emoji": "😂"}]
    assert outsider.websocket.events("reaction") == []
    assert store.reactions == [("ABC", 1, "🔥")]


@pytest.mark.anyio("asyncio")
async def test_host_joining_another_room_ends_the_previous_one(service, connect) -> None:
    host = connect()
    guest = connect()
    bystander = connect()
    await service.dispatch(host, "createRoom", {"roomCode": "OLD", "type": "public", "userName": "Host"})
    await _join(service, host, "OLD", "Host", host=True)
    await service.dispatch(host, "loadVideo", {"roomCode": "OLD", "videoId": "dQw4w9WgXcQ"})
    await _join(service, guest, "OLD", "Ann")

    await _join(service, host, "NEW", "Host", host=True)

    assert guest.websocket.events("roomEnded") == [None]
    assert guest.room_code is None
    assert service.registry.members("OLD") == []
    assert "OLD" not in service.playback
    assert service.directory.get("OLD") is None
    assert bystander.websocket.events("publicRoomsList")[-1] == []
    assert host.room_code == "NEW"
    assert [member.sid for member in service.registry.members("NEW")] == [host.sid]

    await service.disconnect(host)
    assert guest.websocket.events("roomEnded") == [None]


@pytest.mark.anyio("asyncio")
async def test_guest_switching_rooms_leaves_the_previous_roster(service, connect) -> None:
    host = connect()
    other_host = connect()
    guest = connect()
    await service.dispatch(host, "createRoom", {"roomCode": "PUB", "type": "public", "userName": "Host"})
    await _join(service, host, "PUB", "Host", host=True)
    await _join(service, other_host, "ELSEWHERE", "Bob", host=True)
    await _join(service, guest, "PUB", "Ann")
    assert service.directory.get("PUB").users == 2

    await _join(service, guest, "ELSEWHERE", "Ann")

    assert _roster_names(host.websocket.events("updateUsers")[-1]) == {"Host"}
    assert {"name": "System", "text": "Ann has left."} in host.websocket.events("chatMessage")
    assert service.directory.get("PUB").users == 1
    assert not service.registry.in_group(guest.sid, "PUB")
    assert _roster_names(other_host.websocket.events("updateUsers")[-1]) == {"Bob", "Ann"}

    await service.dispatch(host, "chatMessage", {"roomCode": "PUB", "text": "still here?"})
    assert {"name": "Host", "text": "still here?"} not in guest.websocket.events("chatMessage")


@pytest.mark.anyio("asyncio")
async def test_recreating_a_listed_room_keeps_its_member_count(service, connect) -> None:
    host = connect()
    guest = connect()
    await _join(service, host, "PUB", "Host", host=True)
    await _join(service, guest, "PUB", "Ann")

    await service.dispatch(
        host, "createRoom", {"roomCode": "PUB", "type": "public", "userName": "Host", "capacity": 4}
    )

    assert service.directory.get("PUB").users == 2
    assert guest.websocket.events("publicRoomsList")[-1][0]["users"] == 2


@pytest.mark.anyio("asyncio")
async def test_non_finite_capacity_lists_room_with_default(service, connect) -> None:
    host = connect()

    ack = await service.dispatch(
        host,
        "createRoom",
        {"roomCode": "PUB", "type": "public", "userName": "Host", "capacity": float("inf")},
    )

    assert ack == {"success": True, "roomCode": "PUB"}
    assert service.directory.get("PUB").capacity == 8
