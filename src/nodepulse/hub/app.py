"""
Hub HTTP and WebSocket surface.

    WS  /nodes               collectors emit nodeInfo records here
    WS  /frontends           viewers get nodesSummary, then live nodeInfo pushes
    GET /data/nodesSummary   every cached record as a JSON array
    GET /data/reset          empties the cache (basic auth)
    GET /healthz

Collectors and viewers are on separate channels so a viewer connection has
no way to write into the cache.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, WebSocket, status
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import ValidationError

from nodepulse import __version__
from nodepulse.channels import (
    FRONTENDS_CHANNEL,
    NODE_INFO,
    NODES_CHANNEL,
    NODES_SUMMARY,
    RESET_ROUTE,
    SNAPSHOT_ROUTE,
    decode_event,
    encode_event,
)
from nodepulse.config import HubConfig
from nodepulse.hub.cache import SnapshotCache
from nodepulse.hub.viewers import ViewerHub
from nodepulse.record import NodeRecord

log = logging.getLogger(__name__)

# Lets an edge cache serve the snapshot for up to a second
SNAPSHOT_CACHE_CONTROL = "public, max-age=1"


def _peer(websocket: WebSocket) -> str:
    if websocket.client is None:
        return "unknown"
    return f"{websocket.client.host}:{websocket.client.port}"


def _same_secret(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode(), expected.encode())


def _bearer_ok(header: Optional[str], token: str) -> bool:
    if not header or not header.startswith("Bearer "):
        return False
    return _same_secret(header[len("Bearer "):], token)


def parse_node_info(text: str, peer: str = "?") -> Optional[NodeRecord]:
    """Decode one collector frame into a NodeRecord, or None if it should be dropped."""
    try:
        envelope = decode_event(text)
    except ValueError as exc:
        log.warning("Malformed frame from %s: %s", peer, exc)
        return None

    if envelope.event != NODE_INFO:
        log.debug("Ignoring %r event from %s", envelope.event, peer)
        return None

    try:
        return NodeRecord.from_wire(envelope.data)
    except ValidationError as exc:
        log.warning("Invalid nodeInfo from %s: %d error(s): %s", peer, exc.error_count(), exc)
        return None


def create_app(cache: Optional[SnapshotCache] = None, config: Optional[HubConfig] = None) -> FastAPI:
    cache = cache if cache is not None else SnapshotCache()
    config = config or HubConfig()
    viewers = ViewerHub()
    basic_auth = HTTPBasic(auto_error=False)

    app = FastAPI(
        title="nodepulse hub",
        description="Latest telemetry record per node, for dashboards",
        version=__version__,
    )
    app.state.cache = cache
    app.state.viewers = viewers
    app.state.config = config

    @app.websocket(NODES_CHANNEL)
    async def nodes_channel(websocket: WebSocket):
        peer = _peer(websocket)
        if config.collector_token and not _bearer_ok(
            websocket.headers.get("authorization"), config.collector_token
        ):
            log.warning("Rejected collector %s: missing or wrong token", peer)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        log.info("Connection from node %s", peer)

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                log.debug("Ignoring binary frame from %s", peer)
                continue

            record = parse_node_info(text, peer)
            if record is None:
                continue

            entry = cache.put(record)
            if config.push_to_viewers and len(viewers):
                viewers.broadcast(encode_event(NODE_INFO, entry.to_wire()))

        log.info("Node %s disconnected", peer)

    @app.websocket(FRONTENDS_CHANNEL)
    async def frontends_channel(websocket: WebSocket):
        await websocket.accept()
        peer = _peer(websocket)
        log.info("Connection from frontend %s", peer)

        queue = viewers.add(websocket)
        sender = None
        try:
            await websocket.send_text(encode_event(NODES_SUMMARY, cache.snapshot()))
            sender = asyncio.create_task(viewers.pump(websocket, queue))
            while True:
                # Viewers are read-only; anything they send is discarded
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            viewers.discard(websocket)
            if sender is not None:
                sender.cancel()
            log.info("Frontend %s disconnected", peer)

    @app.get(SNAPSHOT_ROUTE)
    def nodes_summary():
        return JSONResponse(cache.snapshot(), headers={"Cache-Control": SNAPSHOT_CACHE_CONTROL})

    @app.get(RESET_ROUTE, response_class=PlainTextResponse)
    def reset_nodes_summary(credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth)):
        if config.admin_password is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

        authorized = credentials is not None and (
            _same_secret(credentials.username, config.admin_user)
            & _same_secret(credentials.password, config.admin_password)
        )
        if not authorized:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Basic"},
            )

        removed = cache.reset()
        log.warning("Snapshot cache reset by %s (%d entries removed)", credentials.username, removed)
        return "Reset nodes summary"

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "nodes": len(cache), "viewers": len(viewers), "version": __version__}

    return app
