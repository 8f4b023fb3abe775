"""
Reply schemas for the node's admin RPC.

The node speaks the P2P service over JSON transcoding, so every reply is
a small fixed-shape object. uint64 values may arrive as strings; pydantic
coerces them. The consensus status is a JSON document embedded as a string
inside a JsonResponse and gets a second decode step.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from nodepulse.record import PeerStat


class NumberResponse(BaseModel):
    value: int = Field(ge=0)


class StringResponse(BaseModel):
    value: str


class JsonResponse(BaseModel):
    value: str  # serialized JSON document


class PeerStatsEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    node_id: str
    packets_sent: int = Field(default=0, ge=0)
    packets_received: int = Field(default=0, ge=0)
    latency: float = Field(default=0, ge=0)

    def to_peer_stat(self) -> PeerStat:
        return PeerStat(
            node_id=self.node_id,
            latency=self.latency,
            packets_sent=self.packets_sent,
            packets_received=self.packets_received,
        )


class PeerStatsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    peerstats: List[PeerStatsEntry] = Field(default_factory=list)
    avg_bps_in: int = 0
    avg_bps_out: int = 0


class NodeInfoResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    node_id: Optional[str] = None
    current_localtime: int = 0
    peer_type: str = ""
    consensus_baking_committee: Optional[str] = None
    consensus_running: bool = False


class ConsensusStatus(BaseModel):
    """The subset of the node's consensus status that ends up in a Node Record.

    Keys on the wire are camelCase with upper-case EMA/EMSD suffixes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    best_block: str
    best_block_height: int = Field(ge=0)
    block_last_arrived_time: Optional[str] = None
    block_arrive_period_ema: Optional[float] = Field(default=None, alias="blockArrivePeriodEMA")
    block_arrive_period_emsd: Optional[float] = Field(default=None, alias="blockArrivePeriodEMSD")
    last_finalized_block: str
    last_finalized_block_height: int = Field(ge=0)
    last_finalized_time: Optional[str] = None
    finalization_period_ema: Optional[float] = Field(default=None, alias="finalizationPeriodEMA")
    finalization_period_emsd: Optional[float] = Field(default=None, alias="finalizationPeriodEMSD")
    genesis_block: Optional[str] = None
