"""Tests for the peer registry."""

from concurrent.futures import ThreadPoolExecutor
from peer.registry import Peer, PeerRegistry

ADDR = ("192.168.1.10", 6000)


def test_upsert_reports_new_peers():
    registry = PeerRegistry()
    assert registry.upsert(ADDR, "alice") is True
    assert registry.upsert(ADDR, "alice") is False
    assert len(registry) == 1


def test_first_seen_name_wins():
    registry = PeerRegistry()
    registry.upsert(ADDR, "alice")
    registry.upsert(ADDR, "bob")
    assert registry.snapshot() == [Peer(ADDR, "alice")]


def test_same_host_different_port_is_a_different_peer():
    registry = PeerRegistry()
    registry.upsert(("10.0.0.1", 6000), "a")
    registry.upsert(("10.0.0.1", 6001), "b")
    assert [p.name for p in registry.snapshot()] == ["a", "b"]


def test_remove():
    registry = PeerRegistry()
    registry.upsert(ADDR, "alice")
    assert registry.remove(ADDR) == Peer(ADDR, "alice")
    assert ADDR not in registry
    assert registry.remove(ADDR) is None


def test_addresses_given_as_lists_are_normalised():
    registry = PeerRegistry()
    registry.upsert(list(ADDR), "alice")
    assert ADDR in registry
    assert registry.get(ADDR).name == "alice"


def test_snapshot_is_a_copy():
    registry = PeerRegistry()
    registry.upsert(ADDR, "alice")
    snap = registry.snapshot()
    registry.upsert(("10.0.0.2", 6000), "bob")
    registry.remove(ADDR)
    assert snap == [Peer(ADDR, "alice")]


def test_concurrent_upserts_keep_one_entry_per_address():
    registry = PeerRegistry()

    def worker(i):
        return registry.upsert(("10.0.0.1", 7000 + i % 10), f"peer-{i}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(worker, range(200)))

    assert len(registry) == 10
    assert sum(results) == 10


def test_peer_str():
    assert str(Peer(ADDR, "alice")) == "alice @ 192.168.1.10:6000"
