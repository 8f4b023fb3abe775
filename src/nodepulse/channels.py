"""
Named channels between collectors, hubs and viewers.

Every WebSocket frame is a JSON envelope {"event": <name>, "data": <payload>}.
Collectors only ever emit nodeInfo on the nodes channel; viewers get
nodesSummary once on connect and nodeInfo afterwards on the frontends channel.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

NODES_CHANNEL = "/nodes"
FRONTENDS_CHANNEL = "/frontends"
SNAPSHOT_ROUTE = "/data/nodesSummary"
RESET_ROUTE = "/data/reset"

NODE_INFO = "nodeInfo"
NODES_SUMMARY = "nodesSummary"


@dataclass
class Envelope:
    event: str
    data: Any


def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, separators=(",", ":"))


def decode_event(text: str) -> Envelope:
    """Parse one frame. Raises ValueError when it isn't a well-formed envelope."""
    message = json.loads(text)
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        raise ValueError("frame is not an event envelope")
    return Envelope(event=message["event"], data=message.get("data"))
