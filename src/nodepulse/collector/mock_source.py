"""
Source that reads from the in-process simulated node.
Used for local development when no node is running.
"""

from typing import List

from nodepulse.collector.base import MetricsSource
from nodepulse.collector.messages import (
    ConsensusStatus,
    NodeInfoResponse,
    NumberResponse,
    PeerStatsResponse,
    StringResponse,
)
from nodepulse.mock.generator import SimulatedNode
from nodepulse.record import PeerStat


class SimulatedSource(MetricsSource):
    """Wraps the simulator as a standard source. Replies go through the same schemas as RPC."""

    def __init__(self, seed: int = 42, peers: int = 6):
        self._node = SimulatedNode(seed=seed, peers=peers)

    def peer_uptime(self) -> int:
        # Uptime is the first call of every cycle, so it drives the clock
        self._node.advance()
        return NumberResponse.model_validate(self._node.uptime_reply()).value

    def consensus_status(self) -> ConsensusStatus:
        return ConsensusStatus.model_validate(self._node.consensus_document())

    def peer_version(self) -> str:
        return StringResponse.model_validate(self._node.version_reply()).value

    def peer_stats(self) -> List[PeerStat]:
        reply = PeerStatsResponse.model_validate(self._node.peer_stats_reply())
        return [entry.to_peer_stat() for entry in reply.peerstats]

    def peer_total_sent(self) -> int:
        return NumberResponse.model_validate(self._node.packets_sent_reply()).value

    def peer_total_received(self) -> int:
        return NumberResponse.model_validate(self._node.packets_received_reply()).value

    def node_info(self) -> NodeInfoResponse:
        return NodeInfoResponse.model_validate(self._node.node_info_reply())

    def name(self) -> str:
        return "simulated node"
