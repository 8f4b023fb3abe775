"""
Client for a live node's admin RPC. Each metric is one POST against the
node's P2P service (JSON transcoding), with the static admin credential in
the `authentication` header. Replies are decoded against the fixed schemas
in messages.py.

Anything that goes wrong (connection, timeout, non-2xx, bad JSON, schema
mismatch) comes back as SourceUnavailable. Retrying is the poller's job.
"""

from __future__ import annotations

import json
from typing import List, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from nodepulse.collector.base import MetricsSource
from nodepulse.collector.messages import (
    ConsensusStatus,
    JsonResponse,
    NodeInfoResponse,
    NumberResponse,
    PeerStatsResponse,
    StringResponse,
)
from nodepulse.errors import SourceUnavailable
from nodepulse.record import PeerStat


SERVICE_PATH = "concordium.P2P"
DEFAULT_RPC_TOKEN = "rpcadmin"

ReplyT = TypeVar("ReplyT", bound=BaseModel)


class NodeRpcClient(MetricsSource):

    def __init__(
        self,
        target: str,
        token: str = DEFAULT_RPC_TOKEN,
        timeout_seconds: float = 2.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._target = target
        base_url = target if "://" in target else f"http://{target}"
        self._base_url = f"{base_url.rstrip('/')}/{SERVICE_PATH}"
        self._client = httpx.Client(
            timeout=timeout_seconds,
            headers={"authentication": token},
            transport=transport,
        )

    def _call(self, method: str, reply_type: Type[ReplyT], body: dict | None = None) -> ReplyT:
        """Issue one RPC and decode its reply, or raise SourceUnavailable."""
        try:
            response = self._client.post(f"{self._base_url}/{method}", json=body or {})
            response.raise_for_status()
            return reply_type.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            # ValueError covers a non-JSON body
            raise SourceUnavailable(method, self._target, exc) from exc

    def peer_uptime(self) -> int:
        return self._call("PeerUptime", NumberResponse).value

    def consensus_status(self) -> ConsensusStatus:
        reply = self._call("GetConsensusStatus", JsonResponse)
        try:
            return ConsensusStatus.model_validate(json.loads(reply.value))
        except (ValueError, ValidationError) as exc:
            raise SourceUnavailable("GetConsensusStatus", self._target, exc) from exc

    def peer_version(self) -> str:
        return self._call("PeerVersion", StringResponse).value

    def peer_stats(self) -> List[PeerStat]:
        reply = self._call("PeerStats", PeerStatsResponse, {"include_bootstrappers": False})
        return [entry.to_peer_stat() for entry in reply.peerstats]

    def peer_total_sent(self) -> int:
        return self._call("PeerTotalSent", NumberResponse).value

    def peer_total_received(self) -> int:
        return self._call("PeerTotalReceived", NumberResponse).value

    def node_info(self) -> NodeInfoResponse:
        return self._call("NodeInfo", NodeInfoResponse)

    def name(self) -> str:
        return f"node RPC ({self._target})"

    def close(self):
        self._client.close()
