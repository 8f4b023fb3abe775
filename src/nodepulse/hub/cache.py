"""
In-memory latest-record-per-node store owned by a hub.

Writers are the ingress handlers (one per connected collector), readers
are snapshot requests. Everything goes through one lock; records are
replaced whole and never edited in place. Nothing is evicted by age or
count, only reset() empties it.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from nodepulse.record import NodeRecord


@dataclass(frozen=True)
class CacheEntry:
    record: NodeRecord
    last_seen: float  # epoch seconds, set by the hub on arrival

    def to_wire(self) -> dict:
        item = self.record.to_wire()
        item["lastSeen"] = int(self.last_seen * 1000)
        return item


class SnapshotCache:

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

    def put(self, record: NodeRecord) -> CacheEntry:
        """Store a record under its node name. Last writer wins."""
        entry = CacheEntry(record=record, last_seen=self._clock())
        with self._lock:
            self._entries[record.node_name] = entry
        return entry

    def get(self, node_name: str) -> Optional[NodeRecord]:
        with self._lock:
            entry = self._entries.get(node_name)
        return entry.record if entry else None

    def entry(self, node_name: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(node_name)

    def snapshot(self) -> List[dict]:
        """All cached records as wire dicts, each with a lastSeen timestamp in epoch ms."""
        with self._lock:
            entries = list(self._entries.values())

        return [entry.to_wire() for entry in entries]

    def reset(self) -> int:
        """Drop every entry. Returns how many were removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries = {}
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
