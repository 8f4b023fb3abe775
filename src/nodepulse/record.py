"""
Node Record: the one telemetry message a collector produces per poll cycle.

Field names are snake_case in Python and camelCase on the wire, which is
what hubs store and what viewers read from /data/nodesSummary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from nodepulse.collector.messages import ConsensusStatus


UNKNOWN_NODE_NAME = "unknown"


@dataclass(frozen=True)
class PeerStat:
    """Latency and traffic for one connected peer, as reported by the node."""

    node_id: str
    latency: float  # milliseconds
    packets_sent: int = 0
    packets_received: int = 0


@dataclass(frozen=True)
class PeerSummary:
    average_ping: Optional[float]
    peers_count: int
    peers_list: List[str]


def summarize_peers(peers: Iterable[PeerStat]) -> PeerSummary:
    """Reduce the peer table to the fields a Node Record keeps.

    With no peers there is nothing to average, so average_ping is None
    (null on the wire) instead of a division by zero.
    """
    peers = list(peers)
    ids = [p.node_id for p in peers]
    if not peers:
        return PeerSummary(average_ping=None, peers_count=0, peers_list=ids)

    average = sum(p.latency for p in peers) / len(peers)
    return PeerSummary(average_ping=average, peers_count=len(peers), peers_list=ids)


class NodeRecord(BaseModel):
    """A single point-in-time reading from one node."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # Identity
    node_name: str = Field(default=UNKNOWN_NODE_NAME, min_length=1)
    node_id: Optional[str] = None

    # Process
    uptime: int = Field(ge=0)  # milliseconds
    client: str

    # Peers (derived from the node's peer table)
    average_ping: Optional[float] = Field(default=None, ge=0)
    peers_count: int = Field(default=0, ge=0)
    peers_list: List[str] = Field(default_factory=list)

    # Consensus, copied verbatim from the node's consensus status
    best_block: str
    best_block_height: int = Field(ge=0)
    best_arrived_time: Optional[str] = None
    block_arrive_period_ema: Optional[float] = Field(default=None, alias="blockArrivePeriodEMA")
    block_arrive_period_emsd: Optional[float] = Field(default=None, alias="blockArrivePeriodEMSD")
    finalized_block: str
    finalized_block_height: int = Field(ge=0)
    finalized_time: Optional[str] = None
    finalization_period_ema: Optional[float] = Field(default=None, alias="finalizationPeriodEMA")
    finalization_period_emsd: Optional[float] = Field(default=None, alias="finalizationPeriodEMSD")

    # Traffic counters, cumulative since node start
    packets_sent: int = Field(default=0, ge=0)
    packets_received: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _peer_count_matches_list(self) -> "NodeRecord":
        if self.peers_count != len(self.peers_list):
            raise ValueError(
                f"peersCount={self.peers_count} but peersList has {len(self.peers_list)} entries"
            )
        return self

    def to_wire(self) -> dict:
        """Return the camelCase dict sent to hubs and served to viewers."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, data: dict) -> "NodeRecord":
        """Validate a wire dict. Raises pydantic.ValidationError on bad input."""
        return cls.model_validate(data)

    def summary(self) -> dict:
        """Short dict for log lines."""
        return {
            "node": self.node_name,
            "height": self.best_block_height,
            "finalized": self.finalized_block_height,
            "peers": self.peers_count,
            "ping_ms": None if self.average_ping is None else round(self.average_ping, 1),
            "uptime_s": self.uptime // 1000,
        }


def assemble_record(
    node_name: str,
    node_id: Optional[str],
    uptime: int,
    client: str,
    consensus: "ConsensusStatus",
    peers: Iterable[PeerStat],
    packets_sent: int,
    packets_received: int,
) -> NodeRecord:
    """Build a fresh NodeRecord from the raw replies of one poll cycle."""
    summary = summarize_peers(peers)

    return NodeRecord(
        node_name=node_name or UNKNOWN_NODE_NAME,
        node_id=node_id,
        uptime=uptime,
        client=client,
        average_ping=summary.average_ping,
        peers_count=summary.peers_count,
        peers_list=summary.peers_list,
        best_block=consensus.best_block,
        best_block_height=consensus.best_block_height,
        best_arrived_time=consensus.block_last_arrived_time,
        block_arrive_period_ema=consensus.block_arrive_period_ema,
        block_arrive_period_emsd=consensus.block_arrive_period_emsd,
        finalized_block=consensus.last_finalized_block,
        finalized_block_height=consensus.last_finalized_block_height,
        finalized_time=consensus.last_finalized_time,
        finalization_period_ema=consensus.finalization_period_ema,
        finalization_period_emsd=consensus.finalization_period_emsd,
        packets_sent=packets_sent,
        packets_received=packets_received,
    )
