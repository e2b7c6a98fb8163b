import asyncio

import pytest

from relaykit.relay import RelayEngine
from relaykit.transport import DeliveryResult


# =============================================================================
# Join
# =============================================================================


async def test_first_joiner_gets_empty_peer_list(engine, transport, join):
    results = await join("A", "r1", "Alice")

    assert results == [DeliveryResult.DELIVERED]
    assert transport.sent == [("A", "joined", {"selfId": "A", "peers": []})]


async def test_second_joiner_sees_first_and_first_is_notified(engine, transport, join):
    await join("A", "r1", "Alice")
    transport.clear()

    await join("B", "r1", "Bob")

    assert transport.frames_for("B") == [("joined", {"selfId": "B", "peers": ["A"]})]
    assert transport.frames_for("A") == [
        ("signal", {"type": "peer-join", "from": "B", "name": "Bob"})
    ]


async def test_peer_list_never_contains_joiner(engine, transport, join):
    for i in range(8):
        await join(f"c{i}", "r1")

    # Joining the same room again
    await join("c3", "r1")

    for cid, event, data in transport.sent:
        if event == "joined":
            assert data["selfId"] == cid
            assert cid not in data["peers"]


async def test_peer_join_name_defaults_to_identifier(engine, transport, join):
    await join("A", "r1", "Alice")
    transport.clear()

    await join("B", "r1")

    assert transport.frames_for("A") == [
        ("signal", {"type": "peer-join", "from": "B", "name": "B"})
    ]


async def test_join_without_room_is_dropped(engine, transport):
    await engine.connect("A")

    assert await engine.handle("A", "join", {"name": "Alice"}) == []


async def test_join_accepts_long_room_and_name(engine, transport, join):
    room_id = "r" * 300
    name = "x" * 600
    await join("A", room_id, "Alice")
    transport.clear()

    results = await join("B", room_id, name)

    assert results == [DeliveryResult.DELIVERED, DeliveryResult.DELIVERED]
    assert transport.frames_for("B") == [("joined", {"selfId": "B", "peers": ["A"]})]
    assert transport.frames_for("A") == [
        ("signal", {"type": "peer-join", "from": "B", "name": name})
    ]
    assert await engine.handle("A", "join", {"roomId": ""}) == []
    assert await engine.handle("A", "join", None) == []
    assert await engine.handle("A", "join", "r1") == []

    assert transport.sent == []
    assert engine.rooms.room_count == 0
    assert engine.registry.get_room("A") is None


async def test_concurrent_joins_get_distinct_snapshots(engine, transport):
    ids = [f"c{i}" for i in range(20)]
    for cid in ids:
        await engine.connect(cid)

    await asyncio.gather(*(engine.handle(cid, "join", {"roomId": "r1"}) for cid in ids))

    acks = {cid: data for cid, event, data in transport.sent if event == "joined"}
    assert sorted(len(data["peers"]) for data in acks.values()) == list(range(20))
    for cid, data in acks.items():
        assert cid not in data["peers"]
    assert engine.rooms.members("r1") == set(ids)


async def test_rejoin_other_room_keeps_previous_membership(engine, transport, join):
    await join("A", "r1", "Alice")
    await join("A", "r2", "Alice")

    assert engine.registry.get_room("A") == "r2"
    assert sorted(engine.rooms.rooms_of("A")) == ["r1", "r2"]


# =============================================================================
# Signal
# =============================================================================


async def test_signal_is_relayed_with_sender_attached(engine, transport, join):
    await join("A", "r1", "Alice")
    await join("B", "r2", "Bob")
    transport.clear()

    results = await engine.handle("A", "signal", {"to": "B", "sdp": "v=0"})

    assert results == [DeliveryResult.DELIVERED]
    assert transport.sent == [("B", "signal", {"to": "B", "sdp": "v=0", "from": "A"})]


async def test_signal_works_without_rooms(engine, transport):
    await engine.connect("A")
    await engine.connect("B")

    await engine.handle("A", "signal", {"to": "B", "candidate": {"sdpMid": "0"}})

    assert transport.frames_for("B") == [
        ("signal", {"to": "B", "candidate": {"sdpMid": "0"}, "from": "A"})
    ]


async def test_signal_sender_cannot_spoof_from(engine, transport):
    await engine.connect("A")
    await engine.connect("B")

    await engine.handle("A", "signal", {"to": "B", "from": "Z"})

    assert transport.frames_for("B") == [("signal", {"to": "B", "from": "A"})]


@pytest.mark.parametrize("payload", [{}, {"sdp": "v=0"}, {"to": ""}, None, "B", ["B"]])
async def test_signal_without_target_produces_no_delivery(engine, transport, payload):
    await engine.connect("A")
    await engine.connect("B")

    assert await engine.handle("A", "signal", payload) == []
    assert transport.sent == []


async def test_signal_to_departed_connection_is_silent(engine, transport):
    await engine.connect("A")
    await engine.connect("B")
    await engine.disconnect("B")

    results = await engine.handle("A", "signal", {"to": "B", "sdp": "v=0"})

    assert results == [DeliveryResult.NO_SUCH_RECIPIENT]
    assert transport.sent == []


# =============================================================================
# Chat
# =============================================================================


async def test_chat_reaches_whole_room_including_sender(engine, transport, clock, join):
    await join("A", "r1", "Alice")
    await join("B", "r1", "Bob")
    await join("C", "r2", "Carol")
    transport.clear()

    await engine.handle("A", "chat", {"text": "hi"})

    expected = {"from": "Alice", "text": "hi", "at": clock.value}
    assert sorted(transport.recipients("chat")) == ["A", "B"]
    assert transport.frames_for("A") == [("chat", expected)]
    assert transport.frames_for("B") == [("chat", expected)]
    assert transport.frames_for("C") == []


async def test_chat_keeps_client_timestamp(engine, transport, join):
    await join("A", "r1", "Alice")
    transport.clear()

    await engine.handle("A", "chat", {"text": "hi", "at": 42})

    assert transport.frames_for("A") == [("chat", {"from": "Alice", "text": "hi", "at": 42})]


async def test_chat_from_falls_back_to_identifier(engine, transport, join):
    await join("A", "r1")
    transport.clear()

    await engine.handle("A", "chat", {"text": "hi"})

    assert transport.frames_for("A")[0][1]["from"] == "A"


async def test_chat_without_room_produces_no_delivery(engine, transport):
    await engine.connect("A")

    assert await engine.handle("A", "chat", {"text": "hi"}) == []
    assert transport.sent == []


async def test_chat_relays_non_string_text(engine, transport, clock, join):
    await join("A", "r1", "Alice")
    transport.clear()

    results = await engine.handle("A", "chat", {"text": 5})

    assert results == [DeliveryResult.DELIVERED]
    assert transport.frames_for("A") == [("chat", {"from": "Alice", "text": 5, "at": clock.value})]


@pytest.mark.parametrize("payload", [{}, {"text": ""}, {"text": None}, None])
async def test_chat_without_text_is_dropped(engine, transport, join, payload):
    await join("A", "r1", "Alice")
    transport.clear()

    assert await engine.handle("A", "chat", payload) == []
    assert transport.sent == []


# =============================================================================
# Ping
# =============================================================================


@pytest.mark.parametrize("t0", [123, 1.5, "abc", None, {"nested": [1, 2]}])
async def test_ping_time_echoes_t0(engine, transport, clock, t0):
    await engine.connect("A")

    await engine.handle("A", "ping-time", t0)

    assert transport.sent == [("A", "pong-time", {"currentTime": clock.value, "t0": t0})]


async def test_pong_time_never_goes_backwards(engine, transport, clock):
    await engine.connect("A")

    await engine.handle("A", "ping-time", 1)
    clock.advance(-5000)
    await engine.handle("A", "ping-time", 2)
    clock.advance(10000)
    await engine.handle("A", "ping-time", 3)

    times = [data["currentTime"] for _, _, data in transport.sent]
    assert times == sorted(times)
    assert [data["t0"] for _, _, data in transport.sent] == [1, 2, 3]


# =============================================================================
# Whiteboard
# =============================================================================


async def test_whiteboard_goes_to_others_verbatim(engine, transport, join):
    await join("A", "r1")
    await join("B", "r1")
    await join("C", "r1")
    await join("D", "r2")
    transport.clear()

    stroke = {"tool": "pen", "points": [[0, 0], [3, 4]]}
    await engine.handle("A", "whiteboard", stroke)

    assert sorted(transport.recipients("whiteboard")) == ["B", "C"]
    assert transport.frames_for("B") == [("whiteboard", stroke)]


async def test_whiteboard_without_room_is_dropped(engine, transport):
    await engine.connect("A")

    assert await engine.handle("A", "whiteboard", {"tool": "pen"}) == []
    assert transport.sent == []


# =============================================================================
# Disconnect
# =============================================================================


async def test_disconnect_notifies_remaining_and_prunes_room(engine, transport, join):
    await join("A", "r1", "Alice")
    await join("B", "r1", "Bob")
    transport.clear()

    await engine.disconnect("B")

    assert transport.sent == [("A", "left", {"peerId": "B"})]
    assert engine.rooms.members("r1") == {"A"}
    assert engine.rooms.has_room("r1")
    assert "B" not in engine.registry

    transport.clear()
    await engine.disconnect("A")

    assert transport.sent == []
    assert not engine.rooms.has_room("r1")
    assert len(engine.registry) == 0


async def test_departed_connection_never_receives_room_traffic(engine, transport, join):
    await join("A", "r1", "Alice")
    await join("B", "r1", "Bob")
    await engine.disconnect("B")
    transport.clear()

    await engine.handle("A", "chat", {"text": "still here?"})
    await engine.handle("A", "whiteboard", {"tool": "eraser"})
    await join("C", "r1", "Carol")

    assert "B" not in [cid for cid, _, _ in transport.sent]
    assert transport.frames_for("C")[0] == ("joined", {"selfId": "C", "peers": ["A"]})


async def test_disconnect_without_room_only_clears_registry(engine, transport):
    await engine.connect("A")

    assert await engine.disconnect("A") == []
    assert "A" not in engine.registry
    assert transport.sent == []


async def test_disconnect_leaves_every_joined_room(engine, transport, join):
    await join("A", "r1")
    await join("B", "r1")
    await join("A", "r2")
    await join("C", "r2")
    transport.clear()

    await engine.disconnect("A")

    assert sorted(transport.sent) == [
        ("B", "left", {"peerId": "A"}),
        ("C", "left", {"peerId": "A"}),
    ]
    assert engine.rooms.rooms_of("A") == []


async def test_disconnect_twice_is_harmless(engine, transport, join):
    await join("A", "r1")
    await engine.disconnect("A")
    await engine.disconnect("A")

    assert engine.rooms.room_count == 0


# =============================================================================
# Dispatch
# =============================================================================


async def test_unknown_event_is_dropped(engine, transport, join):
    await join("A", "r1")
    transport.clear()

    assert await engine.handle("A", "launch-missiles", {"now": True}) == []
    assert transport.sent == []


async def test_messages_from_unregistered_connection_are_dropped(engine, transport):
    assert await engine.handle("ghost", "ping-time", 1) == []
    assert await engine.handle("ghost", "join", {"roomId": "r1"}) == []
    assert transport.sent == []
    assert engine.rooms.room_count == 0


async def test_failed_delivery_is_reported_not_raised(engine, transport, join):
    await join("A", "r1")
    await join("B", "r1")
    transport.gone.add("B")
    transport.clear()

    results = await engine.handle("A", "chat", {"text": "hello?"})

    assert sorted(results) == sorted([DeliveryResult.DELIVERED, DeliveryResult.NO_SUCH_RECIPIENT])


def test_default_clock_is_wall_time(transport):
    engine = RelayEngine(transport)
    first = engine.now()
    assert first > 1_600_000_000_000
    assert engine.now() >= first
