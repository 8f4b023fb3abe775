"""
The collector's poll loop.

Every tick runs Idle -> Collecting -> Publishing -> Idle. All metric calls
for a cycle are made in sequence; if any of them fails the whole cycle is
dropped (no partial record is ever published) and the loop simply waits for
the next tick. There is no backoff and no failure limit on the source side.

Failures outside the cycle, i.e. a hub connection that can never work,
are raised from run() as ProcessFatal.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from pydantic import ValidationError

from nodepulse.collector import anomalies
from nodepulse.collector.base import MetricsSource
from nodepulse.errors import SourceUnavailable
from nodepulse.record import UNKNOWN_NODE_NAME, NodeRecord, assemble_record

log = logging.getLogger(__name__)

IDLE = "idle"
COLLECTING = "collecting"
PUBLISHING = "publishing"

DEFAULT_INTERVAL_SECONDS = 2.0


class Poller:

    def __init__(
        self,
        source: MetricsSource,
        publisher,
        node_name: str = UNKNOWN_NODE_NAME,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        thresholds: Optional[anomalies.Thresholds] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._publisher = publisher
        self._node_name = node_name or UNKNOWN_NODE_NAME
        self._interval = interval_seconds
        self._thresholds = thresholds or anomalies.Thresholds()
        self._clock = clock
        self._stop = threading.Event()

        self.state = IDLE
        self.cycles = 0
        self.failures = 0
        self.last_record: Optional[NodeRecord] = None

    def _collect(self) -> NodeRecord:
        uptime = self._source.peer_uptime()
        consensus = self._source.consensus_status()
        client = self._source.peer_version()
        peers = self._source.peer_stats()
        packets_sent = self._source.peer_total_sent()
        packets_received = self._source.peer_total_received()
        info = self._source.node_info()

        try:
            return assemble_record(
                node_name=self._node_name,
                node_id=info.node_id,
                uptime=uptime,
                client=client,
                consensus=consensus,
                peers=peers,
                packets_sent=packets_sent,
                packets_received=packets_received,
            )
        except ValidationError as exc:
            raise SourceUnavailable("assemble", self._source.name(), exc) from exc

    def _report_anomalies(self, record: NodeRecord):
        for anomaly in anomalies.check(record, self.last_record, self._thresholds):
            level = logging.WARNING if anomaly.severity == "warning" else logging.INFO
            log.log(level, "Anomalous %s on %s: %s", anomaly.metric, record.node_name, anomaly.detail)

    def poll_once(self) -> Optional[NodeRecord]:
        """Run one cycle. Returns the published record, or None if the cycle was dropped."""
        self.cycles += 1
        self.state = COLLECTING
        try:
            record = self._collect()
        except SourceUnavailable as exc:
            self.failures += 1
            self.state = IDLE
            log.warning("Cycle %d dropped, %s: %s", self.cycles, self._source.name(), exc)
            return None

        self._report_anomalies(record)

        self.state = PUBLISHING
        try:
            self._publisher.publish(record)
        finally:
            self.state = IDLE

        self.last_record = record
        log.debug("Published %s", record.summary())
        return record

    def run(self):
        """Poll until stop() is called. Cycles never overlap."""
        log.info(
            "Polling %s every %.1fs as %r", self._source.name(), self._interval, self._node_name
        )
        while not self._stop.is_set():
            fatal = self._publisher.fatal_error
            if fatal is not None:
                raise fatal

            started = self._clock()
            self.poll_once()
            remaining = self._interval - (self._clock() - started)
            if remaining > 0:
                self._stop.wait(remaining)

    def stop(self):
        self._stop.set()
