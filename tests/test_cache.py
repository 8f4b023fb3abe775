"""Tests for the hub's snapshot cache."""

import threading

from nodepulse.hub.cache import SnapshotCache
from nodepulse.record import NodeRecord


def _make_record(name: str = "alpha", **overrides) -> NodeRecord:
    defaults = dict(
        node_name=name,
        uptime=120,
        client="0.2.13",
        best_block="aa" * 32,
        best_block_height=10,
        finalized_block="bb" * 32,
        finalized_block_height=8,
    )
    defaults.update(overrides)
    return NodeRecord(**defaults)


def test_empty_snapshot_is_empty_list():
    assert SnapshotCache().snapshot() == []


def test_last_writer_wins():
    cache = SnapshotCache()
    first = _make_record(uptime=100)
    second = _make_record(uptime=200)

    cache.put(first)
    cache.put(second)

    assert len(cache) == 1
    assert cache.get("alpha") is second
    assert [n["uptime"] for n in cache.snapshot()] == [200]


def test_name_is_the_only_key():
    cache = SnapshotCache()
    cache.put(_make_record(node_id="one"))
    cache.put(_make_record(node_id="two"))
    assert len(cache) == 1
    assert cache.get("alpha").node_id == "two"


def test_older_record_still_overwrites():
    cache = SnapshotCache()
    cache.put(_make_record(best_block_height=50))
    cache.put(_make_record(best_block_height=40))
    assert cache.get("alpha").best_block_height == 40


def test_snapshot_has_last_seen_ms():
    cache = SnapshotCache(clock=lambda: 1_700_000_000.5)
    cache.put(_make_record())
    (item,) = cache.snapshot()
    assert item["lastSeen"] == 1_700_000_000_500
    assert item["nodeName"] == "alpha"


def test_put_returns_entry_in_snapshot_shape():
    cache = SnapshotCache(clock=lambda: 1_700_000_000.5)
    entry = cache.put(_make_record())
    assert entry.to_wire() == cache.snapshot()[0]


def test_reset_empties_everything():
    cache = SnapshotCache()
    cache.put(_make_record("alpha"))
    cache.put(_make_record("beta"))

    assert cache.reset() == 2
    assert cache.snapshot() == []
    assert cache.get("alpha") is None


def test_concurrent_writers_and_readers():
    cache = SnapshotCache()
    names = [f"node-{i}" for i in range(8)]

    def writer(name):
        for uptime in range(200):
            cache.put(_make_record(name, uptime=uptime))

    def reader():
        for _ in range(200):
            for item in cache.snapshot():
                assert item["peersCount"] == len(item["peersList"])

    threads = [threading.Thread(target=writer, args=(n,)) for n in names]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == len(names)
    assert all(cache.get(n).uptime == 199 for n in names)
