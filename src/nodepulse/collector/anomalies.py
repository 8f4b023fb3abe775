"""
Sanity rules for Node Records.

Copyright (c) 2026 JL -- see NOTICE and LICENSE files.

Each rule looks at the record just assembled (and the previous one, when
there is one) and flags values an operator would want to hear about.
Anomalies are only logged; they never stop a record from being published.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from nodepulse.record import NodeRecord


DEFAULT_MAX_AVERAGE_PING_MS = 1000.0
DEFAULT_MAX_FINALIZATION_LAG = 50


@dataclass
class Thresholds:
    max_average_ping_ms: float = DEFAULT_MAX_AVERAGE_PING_MS
    max_finalization_lag: int = DEFAULT_MAX_FINALIZATION_LAG


@dataclass
class Anomaly:
    severity: str   # "info", "warning"
    metric: str     # "averagePing", "peersCount", "packets", "finalizedBlockHeight"
    detail: str


def check(
    record: NodeRecord,
    previous: Optional[NodeRecord] = None,
    thresholds: Optional[Thresholds] = None,
) -> List[Anomaly]:
    """Run every rule against a record. Warnings come first."""
    thresholds = thresholds or Thresholds()
    found: List[Anomaly] = []

    _check_average_ping(record, thresholds, found)
    _check_isolated(record, found)
    _check_finalization_lag(record, thresholds, found)
    if previous is not None and previous.node_name == record.node_name:
        _check_counter_reset(record, previous, found)

    severity_order = {"warning": 0, "info": 1}
    found.sort(key=lambda a: severity_order.get(a.severity, 99))
    return found


# -- Individual rules --


def _check_average_ping(record: NodeRecord, thresholds: Thresholds, found: List[Anomaly]):
    if record.average_ping is None:
        return
    if record.average_ping > thresholds.max_average_ping_ms:
        found.append(Anomaly(
            severity="warning",
            metric="averagePing",
            detail=(
                f"Average ping {record.average_ping:.0f}ms across {record.peers_count} peers "
                f"exceeds {thresholds.max_average_ping_ms:.0f}ms"
            ),
        ))


def _check_isolated(record: NodeRecord, found: List[Anomaly]):
    if record.peers_count == 0:
        found.append(Anomaly(
            severity="warning",
            metric="peersCount",
            detail="Node reports no connected peers",
        ))


def _check_finalization_lag(record: NodeRecord, thresholds: Thresholds, found: List[Anomaly]):
    lag = record.best_block_height - record.finalized_block_height
    if lag > thresholds.max_finalization_lag:
        found.append(Anomaly(
            severity="warning",
            metric="finalizedBlockHeight",
            detail=(
                f"Finalization is {lag} blocks behind the best block "
                f"(limit {thresholds.max_finalization_lag})"
            ),
        ))


def _check_counter_reset(current: NodeRecord, previous: NodeRecord, found: List[Anomaly]):
    # Cumulative counters only go down when the node process restarted
    if current.packets_sent < previous.packets_sent or current.packets_received < previous.packets_received:
        found.append(Anomaly(
            severity="info",
            metric="packets",
            detail=(
                f"Packet counters went backwards (sent {previous.packets_sent} -> {current.packets_sent}), "
                f"node probably restarted"
            ),
        ))
