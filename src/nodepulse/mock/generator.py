"""
Simulated blockchain node.

Produces fake but plausible admin-RPC replies so we can develop and test
without running a node. Each call to advance() moves the simulation
forward by roughly two seconds of wall time.
"""

import json
import math
import random

CLIENT_VERSION = "0.2.13-sim"


class SimulatedNode:

    def __init__(self, seed: int = 42, peers: int = 6):
        self._rng = random.Random(seed)
        self._tick = 0
        self.node_id = f"{self._rng.getrandbits(64):016x}"
        self.uptime_ms = 0
        self.best_height = 0
        self.finalized_height = 0
        self.packets_sent = 0
        self.packets_received = 0
        self._peer_ids = [f"{self._rng.getrandbits(64):016x}" for _ in range(peers)]
        self._latencies = {pid: self._rng.uniform(20, 180) for pid in self._peer_ids}
        self.advance()

    def advance(self):
        """Move the simulation clock one step."""
        self._tick += 1
        t = self._tick

        self.uptime_ms += 2000

        # Roughly one block every 10s, finalization trails by a few blocks
        if self._rng.random() < 0.2 or t == 1:
            self.best_height += 1
        lag = max(0, int(2 + 2 * math.sin(t * 0.1)))
        self.finalized_height = max(self.finalized_height, self.best_height - lag)

        for pid in self._peer_ids:
            drift = self._rng.gauss(0, 8)
            self._latencies[pid] = max(1.0, self._latencies[pid] + drift)

        self.packets_sent += self._rng.randint(20, 60) * max(1, len(self._peer_ids))
        self.packets_received += self._rng.randint(20, 60) * max(1, len(self._peer_ids))

    def _block_hash(self, height: int) -> str:
        return f"{(height * 2654435761) & 0xFFFFFFFFFFFFFFFF:064x}"

    # -- Replies, shaped like the node's JSON-transcoded RPC --

    def uptime_reply(self) -> dict:
        return {"value": str(self.uptime_ms)}

    def version_reply(self) -> dict:
        return {"value": CLIENT_VERSION}

    def packets_sent_reply(self) -> dict:
        return {"value": str(self.packets_sent)}

    def packets_received_reply(self) -> dict:
        return {"value": str(self.packets_received)}

    def consensus_document(self) -> dict:
        return {
            "bestBlock": self._block_hash(self.best_height),
            "bestBlockHeight": self.best_height,
            "blockLastArrivedTime": "2026-10-19T07:25:00.000Z",
            "blockArrivePeriodEMA": 10.0 + self._rng.gauss(0, 0.5),
            "blockArrivePeriodEMSD": abs(self._rng.gauss(1.5, 0.2)),
            "lastFinalizedBlock": self._block_hash(self.finalized_height),
            "lastFinalizedBlockHeight": self.finalized_height,
            "lastFinalizedTime": "2026-10-19T07:24:50.000Z",
            "finalizationPeriodEMA": 20.0 + self._rng.gauss(0, 1.0),
            "finalizationPeriodEMSD": abs(self._rng.gauss(3.0, 0.4)),
            "genesisBlock": self._block_hash(0),
        }

    def consensus_reply(self) -> dict:
        return {"value": json.dumps(self.consensus_document())}

    def peer_stats_reply(self) -> dict:
        return {
            "peerstats": [
                {
                    "node_id": pid,
                    "packets_sent": str(self.packets_sent // max(1, len(self._peer_ids))),
                    "packets_received": str(self.packets_received // max(1, len(self._peer_ids))),
                    "latency": str(int(self._latencies[pid])),
                }
                for pid in self._peer_ids
            ],
            "avg_bps_in": "4200",
            "avg_bps_out": "3900",
        }

    def node_info_reply(self) -> dict:
        return {
            "node_id": self.node_id,
            "current_localtime": str(1_792_000_000 + self.uptime_ms // 1000),
            "peer_type": "Node",
            "consensus_baking_committee": "NotInCommittee",
            "consensus_running": True,
        }
