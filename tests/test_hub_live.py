"""
Tests against a hub served by uvicorn on a real port.

Starts the hub in a thread, then talks to it over real WebSockets: the
fan-out publisher on the collector side, raw sockets and the websockets
client on the viewer side.
"""

import json
import socket
import threading
import time

import httpx
import pytest
import uvicorn
from websockets.sync.client import connect

from nodepulse.channels import NODE_INFO, encode_event
from nodepulse.collector.mock_source import SimulatedSource
from nodepulse.collector.poller import Poller
from nodepulse.collector.publisher import FanoutPublisher, parse_hub_targets
from nodepulse.config import HubConfig
from nodepulse.errors import ProcessFatal
from nodepulse.hub.app import create_app
from nodepulse.hub.cache import SnapshotCache
from nodepulse.record import NodeRecord

# Nothing listens here
DEAD_PORT = 19899


def _start_hub(port: int, config: HubConfig = None):
    cache = SnapshotCache()
    app = create_app(cache, config or HubConfig(port=port))
    server = uvicorn.Server(uvicorn.Config(
        app, host="127.0.0.1", port=port, log_level="warning", timeout_graceful_shutdown=1,
    ))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 5.0
    while not server.started and time.monotonic() < deadline:
        time.sleep(0.05)
    assert server.started, f"hub did not start on port {port}"
    return server, thread, cache


def _stop_hub(server, thread):
    server.should_exit = True
    thread.join(5.0)


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _make_record(name: str = "alpha") -> NodeRecord:
    return NodeRecord(
        node_name=name,
        uptime=120,
        client="0.2.13",
        average_ping=80.0,
        peers_count=1,
        peers_list=["p1"],
        best_block="aa" * 32,
        best_block_height=10,
        finalized_block="bb" * 32,
        finalized_block_height=8,
    )


def _stalled_viewer(port: int) -> socket.socket:
    """Complete the viewer handshake, then never read another byte."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 4096)
    sock.connect(("127.0.0.1", port))
    sock.sendall(
        b"GET /frontends HTTP/1.1\r\n"
        b"Host: 127.0.0.1\r\n"
        b"Upgrade: websocket\r\n"
        b"Connection: Upgrade\r\n"
        b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n"
        b"Sec-WebSocket-Version: 13\r\n"
        b"\r\n"
    )
    head = b""
    while b"\r\n\r\n" not in head:
        chunk = sock.recv(1)
        assert chunk, "hub closed the viewer during the handshake"
        head += chunk
    assert head.startswith(b"HTTP/1.1 101")
    return sock


def _viewer_count(port: int) -> int:
    return httpx.get(f"http://127.0.0.1:{port}/healthz").json()["viewers"]


def test_stalled_viewer_does_not_block_ingest():
    port = 19890
    frames = 5000
    server, thread, cache = _start_hub(port)
    stalled = None
    try:
        stalled = _stalled_viewer(port)
        with connect(f"ws://127.0.0.1:{port}/frontends") as healthy:
            assert json.loads(healthy.recv(timeout=5))["event"] == "nodesSummary"
            assert _wait_for(lambda: _viewer_count(port) == 2)

            with connect(f"ws://127.0.0.1:{port}/nodes") as collector:
                for i in range(frames):
                    collector.send(encode_event(NODE_INFO, _make_record(f"node-{i}").to_wire()))
                assert _wait_for(lambda: len(cache) == frames, timeout=20.0), \
                    f"cache has {len(cache)}/{frames} records"

            # The newest record still reaches the viewer that keeps reading
            last_name = None
            while last_name != f"node-{frames - 1}":
                message = json.loads(healthy.recv(timeout=10))
                if message["event"] == NODE_INFO:
                    last_name = message["data"]["nodeName"]
    finally:
        if stalled is not None:
            stalled.close()
        _stop_hub(server, thread)


def test_fanout_reaches_live_hub_while_other_target_is_down():
    port = 19891
    server, thread, cache = _start_hub(port)
    publisher = FanoutPublisher(
        parse_hub_targets(f"127.0.0.1:{port},127.0.0.1:{DEAD_PORT}"), backoff_initial=0.05
    )
    publisher.start()
    try:
        record = Poller(SimulatedSource(), publisher, node_name="alpha").poll_once()
        assert _wait_for(lambda: cache.get("alpha") is not None)

        up, down = publisher.connections
        assert up.connected.is_set()
        assert _wait_for(lambda: down.failures >= 1)
        assert not down.connected.is_set()
        assert publisher.fatal_error is None
    finally:
        publisher.close()
        _stop_hub(server, thread)

    assert cache.get("alpha") == record


def test_matching_hub_token_is_accepted():
    port = 19892
    server, thread, cache = _start_hub(port, HubConfig(port=port, collector_token="s3cret"))
    publisher = FanoutPublisher(parse_hub_targets(f"127.0.0.1:{port}"), token="s3cret")
    publisher.start()
    try:
        Poller(SimulatedSource(), publisher, node_name="alpha").poll_once()
        assert _wait_for(lambda: cache.get("alpha") is not None)
    finally:
        publisher.close()
        _stop_hub(server, thread)


def test_wrong_hub_token_stops_the_collector():
    port = 19893
    server, thread, cache = _start_hub(port, HubConfig(port=port, collector_token="s3cret"))
    publisher = FanoutPublisher(parse_hub_targets(f"127.0.0.1:{port}"), token="wrong")
    poller = Poller(SimulatedSource(), publisher, node_name="alpha", interval_seconds=0.05)
    publisher.start()
    try:
        assert _wait_for(lambda: publisher.fatal_error is not None)
        with pytest.raises(ProcessFatal):
            poller.run()
    finally:
        publisher.close()
        _stop_hub(server, thread)

    assert len(cache) == 0
