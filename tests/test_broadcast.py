"""Tests for fan-out to every registered peer."""

import time
import pytest
from peer.broadcast import Broadcaster
from peer.registry import PeerRegistry
from protocol import framing
from protocol.errors import MalformedFrame
from protocol.message import Image, Text


@pytest.mark.asyncio
async def test_unreachable_peer_does_not_stop_fan_out(listener_factory, codec, closed_port, wait_until):
    received = []
    reachable = await listener_factory(codec, received.append)

    registry = PeerRegistry()
    # the dead peer sits between live ones in snapshot order or at either end
    registry.upsert(("127.0.0.1", closed_port), "ghost")
    registry.upsert(("127.0.0.1", reachable.port), "x")
    second = await listener_factory(codec, received.append)
    registry.upsert(("127.0.0.1", second.port), "x2")

    shown = []
    broadcaster = Broadcaster("alice", registry, codec, shown.append)
    result = await broadcaster.broadcast(Text("hello"))

    assert await wait_until(lambda: len(received) == 2)
    assert {p.name for p in result.delivered} == {"x", "x2"}
    assert [p.name for p, _ in result.failed] == ["ghost"]
    assert shown == [result.message]
    assert all(m == result.message for m in received)


@pytest.mark.asyncio
async def test_message_is_shown_locally_with_no_peers(codec):
    shown = []
    broadcaster = Broadcaster("alice", PeerRegistry(), codec, shown.append)
    before = int(time.time())

    result = await broadcaster.broadcast(Text("anyone?"))

    assert result.delivered == [] and result.failed == []
    assert shown[0].sender == "alice"
    assert shown[0].payload == Text("anyone?")
    assert before <= shown[0].timestamp <= int(time.time())


@pytest.mark.asyncio
async def test_message_is_shown_locally_when_every_peer_fails(codec, closed_port):
    registry = PeerRegistry()
    registry.upsert(("127.0.0.1", closed_port), "ghost")
    shown = []
    result = await Broadcaster("alice", registry, codec, shown.append).broadcast(Text("hi"))
    assert len(result.failed) == 1
    assert len(shown) == 1


@pytest.mark.asyncio
async def test_oversized_payload_is_refused_before_sending(codec, closed_port, monkeypatch):
    monkeypatch.setattr(framing, "MAX_FRAME_SIZE", 1024)
    registry = PeerRegistry()
    registry.upsert(("127.0.0.1", closed_port), "ghost")
    shown = []

    with pytest.raises(MalformedFrame):
        await Broadcaster("alice", registry, codec, shown.append).broadcast(Image("big.png", b"x" * 4096))
    assert shown == []
