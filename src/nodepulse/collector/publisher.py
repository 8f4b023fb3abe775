"""
Fan-out of Node Records to every configured hub.

Each hub target gets its own HubConnection: a background thread holding a
WebSocket to the hub's nodes channel, with its own reconnect backoff. A dead
hub never slows down or blocks the others, and publish() never waits on the
network. Delivery is fire-and-forget: while a hub is unreachable only the
newest record is kept for it, and older unsent ones are replaced.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence

from websockets.exceptions import InvalidStatus, InvalidURI, WebSocketException
from websockets.sync.client import connect as ws_connect

from nodepulse.channels import NODE_INFO, NODES_CHANNEL, encode_event
from nodepulse.errors import ConfigError, ProcessFatal, PublishFailure
from nodepulse.record import NodeRecord

log = logging.getLogger(__name__)

BACKOFF_INITIAL_SECONDS = 0.5
BACKOFF_MAX_SECONDS = 30.0
OPEN_TIMEOUT_SECONDS = 5.0

# Handshake statuses that retrying will not fix
_PERMANENT_STATUSES = {401, 403}


def parse_hub_targets(value: str) -> List[str]:
    """Turn a comma-delimited hub list into WebSocket URLs for the nodes channel.

    Accepts bare host[:port], http(s):// and ws(s):// forms. A target without
    a path gets /nodes appended.
    """
    urls: List[str] = []
    for raw in value.split(","):
        target = raw.strip().rstrip("/")
        if not target:
            continue

        if target.startswith(("http://", "https://")):
            target = "ws" + target[len("http"):]
        elif not target.startswith(("ws://", "wss://")):
            target = f"ws://{target}"

        rest = target.split("://", 1)[1]
        if "/" not in rest:
            target += NODES_CHANNEL
        urls.append(target)

    if not urls:
        raise ConfigError(f"No hub targets in {value!r}")
    return urls


class HubConnection:
    """One persistent outbound connection to one hub."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        connect: Callable = ws_connect,
        backoff_initial: float = BACKOFF_INITIAL_SECONDS,
        backoff_max: float = BACKOFF_MAX_SECONDS,
        open_timeout: float = OPEN_TIMEOUT_SECONDS,
    ):
        self.url = url
        self._token = token
        self._connect = connect
        self._backoff_initial = backoff_initial
        self._backoff_max = backoff_max
        self._open_timeout = open_timeout

        self._cond = threading.Condition()
        self._pending: Optional[str] = None
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.connected = threading.Event()
        self.fatal: Optional[ProcessFatal] = None
        self.connects = 0
        self.sent = 0
        self.replaced = 0
        self.failures = 0

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=f"hub-{self.url}", daemon=True
        )
        self._thread.start()

    def offer(self, payload: str):
        """Queue a payload for sending. Replaces any payload not yet sent."""
        with self._cond:
            if self._pending is not None:
                self.replaced += 1
            self._pending = payload
            self._cond.notify()

    def stop(self, timeout: float = 2.0):
        self._stopping.set()
        with self._cond:
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)

    # -- Background thread --

    def _take(self, timeout: float) -> Optional[str]:
        with self._cond:
            self._cond.wait_for(
                lambda: self._pending is not None or self._stopping.is_set(), timeout
            )
            payload, self._pending = self._pending, None
            return payload

    def _put_back(self, payload: str):
        with self._cond:
            if self._pending is None:
                self._pending = payload

    def _open(self):
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else None
        return self._connect(
            self.url, additional_headers=headers, open_timeout=self._open_timeout
        )

    def _session(self):
        with self._open() as ws:
            log.info("Connected to hub %s", self.url)
            self.connects += 1
            self.connected.set()
            try:
                self._send_loop(ws)
            finally:
                self.connected.clear()

    def _run(self):
        delay = self._backoff_initial
        while not self._stopping.is_set():
            connects = self.connects
            try:
                self._session()
            except InvalidURI as exc:
                self._fail_permanently(exc)
                return
            except InvalidStatus as exc:
                if exc.response.status_code in _PERMANENT_STATUSES:
                    self._fail_permanently(exc)
                    return
                delay = self._backoff(PublishFailure(self.url, exc), delay)
            except (OSError, WebSocketException) as exc:
                if self.connects > connects:
                    delay = self._backoff_initial
                delay = self._backoff(PublishFailure(self.url, exc), delay)
            except Exception as exc:
                log.exception("Unexpected error on hub connection %s", self.url)
                self._fail_permanently(exc)
                return

    def _send_loop(self, ws):
        while not self._stopping.is_set():
            payload = self._take(timeout=0.5)
            if payload is None:
                continue
            try:
                ws.send(payload)
            except Exception:
                self._put_back(payload)
                raise
            self.sent += 1

    def _backoff(self, failure: PublishFailure, delay: float) -> float:
        self.failures += 1
        log.warning("%s (retry in %.1fs)", failure, delay)
        self._stopping.wait(delay)
        return min(delay * 2, self._backoff_max)

    def _fail_permanently(self, exc: BaseException):
        log.error("Giving up on hub %s: %s", self.url, exc)
        self.fatal = ProcessFatal(f"hub {self.url} cannot be used: {exc}")


class FanoutPublisher:
    """Publishes every record to all hub targets, independently of each other."""

    def __init__(
        self,
        targets: Sequence[str],
        token: Optional[str] = None,
        connect: Callable = ws_connect,
        backoff_initial: float = BACKOFF_INITIAL_SECONDS,
    ):
        self._connections = [
            HubConnection(url, token=token, connect=connect, backoff_initial=backoff_initial)
            for url in targets
        ]

    @property
    def connections(self) -> List[HubConnection]:
        return list(self._connections)

    @property
    def fatal_error(self) -> Optional[ProcessFatal]:
        for conn in self._connections:
            if conn.fatal is not None:
                return conn.fatal
        return None

    def start(self):
        for conn in self._connections:
            conn.start()

    def publish(self, record: NodeRecord):
        payload = encode_event(NODE_INFO, record.to_wire())
        for conn in self._connections:
            conn.offer(payload)

    def close(self):
        for conn in self._connections:
            conn.stop()
