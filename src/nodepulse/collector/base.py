"""
Base metrics source interface.

A source is anything that can answer the node's admin calls one at a
time. This keeps the poller decoupled from where the data actually comes
from (a live node over RPC, or the in-process simulator).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from nodepulse.collector.messages import ConsensusStatus, NodeInfoResponse
from nodepulse.record import PeerStat


class MetricsSource(ABC):
    """Interface for all node metrics sources.

    Every call either returns a decoded value or raises SourceUnavailable.
    """

    @abstractmethod
    def peer_uptime(self) -> int:
        """Milliseconds since the node process started."""
        ...

    @abstractmethod
    def consensus_status(self) -> ConsensusStatus:
        ...

    @abstractmethod
    def peer_version(self) -> str:
        """Version string of the node software."""
        ...

    @abstractmethod
    def peer_stats(self) -> List[PeerStat]:
        ...

    @abstractmethod
    def peer_total_sent(self) -> int:
        ...

    @abstractmethod
    def peer_total_received(self) -> int:
        ...

    @abstractmethod
    def node_info(self) -> NodeInfoResponse:
        ...

    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source, used in log lines."""
        ...

    def close(self):
        pass
