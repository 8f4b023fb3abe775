"""Settings for the collector and hub processes, validated on construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from nodepulse.collector.anomalies import DEFAULT_MAX_AVERAGE_PING_MS
from nodepulse.collector.publisher import parse_hub_targets
from nodepulse.collector.rpc_client import DEFAULT_RPC_TOKEN
from nodepulse.errors import ConfigError
from nodepulse.record import UNKNOWN_NODE_NAME

log = logging.getLogger(__name__)

DEFAULT_NODE = "localhost:8890"
DEFAULT_HUBS = "localhost:3000"
DEFAULT_HUB_PORT = 3000


@dataclass
class CollectorConfig:
    """Everything a collector process needs.

    Attributes:
        node: host:port of the node's admin RPC.
        hubs: WebSocket URLs of every hub's nodes channel.
        node_name: Display name, also the hub cache key.
        interval_seconds: Poll period. Also bounds each RPC call's timeout.
        rpc_token: Static credential sent with every RPC call.
        hub_token: Shared credential presented to hubs, if they require one.
        max_average_ping_ms: Above this the poller logs an anomaly.
    """

    node: str = DEFAULT_NODE
    hubs: List[str] = field(default_factory=lambda: parse_hub_targets(DEFAULT_HUBS))
    node_name: str = UNKNOWN_NODE_NAME
    interval_seconds: float = 2.0
    rpc_token: str = DEFAULT_RPC_TOKEN
    hub_token: Optional[str] = None
    max_average_ping_ms: float = DEFAULT_MAX_AVERAGE_PING_MS

    def __post_init__(self):
        if not self.node or not self.node.strip():
            raise ConfigError("Node RPC address must not be empty")
        if not self.hubs:
            raise ConfigError("At least one hub target is required")
        if self.interval_seconds <= 0:
            raise ConfigError(f"Poll interval must be positive, got {self.interval_seconds}")
        if self.max_average_ping_ms <= 0:
            raise ConfigError(f"Ping threshold must be positive, got {self.max_average_ping_ms}")
        self.node_name = self.node_name.strip() or UNKNOWN_NODE_NAME

    @classmethod
    def from_options(cls, hubs: str, **kwargs) -> "CollectorConfig":
        """Build from CLI/environment values, where hubs is a comma-delimited string."""
        return cls(hubs=parse_hub_targets(hubs), **kwargs)


@dataclass
class HubConfig:
    """Everything a hub process needs.

    Attributes:
        host: Interface to bind.
        port: TCP port for HTTP and both WebSocket channels.
        admin_user: Basic-auth user for the reset endpoint.
        admin_password: Basic-auth password. None disables the reset endpoint.
        collector_token: If set, collectors must present it as a bearer token.
        push_to_viewers: Re-broadcast every ingested record on the frontends channel.
    """

    host: str = "0.0.0.0"
    port: int = DEFAULT_HUB_PORT
    admin_user: str = "admin"
    admin_password: Optional[str] = None
    collector_token: Optional[str] = None
    push_to_viewers: bool = True

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ConfigError(f"Port out of range: {self.port}")
        if self.admin_password is not None and not self.admin_password:
            self.admin_password = None
        if self.admin_password is None:
            log.debug("No admin password configured; reset endpoint disabled")
