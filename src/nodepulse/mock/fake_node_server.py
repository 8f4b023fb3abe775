"""
Fake node admin RPC server for testing without a node.

    nodepulse fake-node --port 8890
    nodepulse collector --node localhost:8890 --hubs localhost:3000
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from nodepulse.mock.generator import SimulatedNode

RPC_PREFIX = "/concordium.P2P/"
REQUIRED_TOKEN = "rpcadmin"

_ROUTES = {
    "PeerUptime": SimulatedNode.uptime_reply,
    "GetConsensusStatus": SimulatedNode.consensus_reply,
    "PeerVersion": SimulatedNode.version_reply,
    "PeerStats": SimulatedNode.peer_stats_reply,
    "PeerTotalSent": SimulatedNode.packets_sent_reply,
    "PeerTotalReceived": SimulatedNode.packets_received_reply,
    "NodeInfo": SimulatedNode.node_info_reply,
}


class _RpcHandler(BaseHTTPRequestHandler):
    # Set on the server instance by make_server()
    server: "FakeNodeServer"

    def do_POST(self):
        if not self.path.startswith(RPC_PREFIX):
            self._reply(404, {"error": "unknown service"})
            return

        if self.headers.get("authentication") != REQUIRED_TOKEN:
            self._reply(401, {"error": "invalid authentication token"})
            return

        method = self.path[len(RPC_PREFIX):]
        handler = _ROUTES.get(method)
        if handler is None:
            self._reply(404, {"error": f"unknown method {method}"})
            return

        length = int(self.headers.get("Content-Length") or 0)
        if length:
            self.rfile.read(length)

        with self.server.lock:
            # One block of simulated time per uptime query, i.e. per poll cycle
            if method == "PeerUptime":
                self.server.node.advance()
            body = handler(self.server.node)
        self._reply(200, body)

    def _reply(self, status: int, body: dict):
        data = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        pass  # Suppress request logging noise


class FakeNodeServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, node: SimulatedNode):
        super().__init__(address, _RpcHandler)
        self.node = node
        self.lock = threading.Lock()


def make_server(host: str = "127.0.0.1", port: int = 8890, seed: int = 42) -> FakeNodeServer:
    return FakeNodeServer((host, port), SimulatedNode(seed=seed))


def run_fake_node(host: str = "127.0.0.1", port: int = 8890, seed: int = 42):
    server = make_server(host, port, seed)
    print(f"Fake node RPC server running at http://{host}:{port}{RPC_PREFIX}")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_node()
