"""
nodepulse entry point.

Usage:
    nodepulse collector --node localhost:8890 --hubs hub1:3000,hub2:3000
    nodepulse collector --mock                   Simulated node, no RPC
    nodepulse hub --port 3000                    Serve snapshots to viewers
    nodepulse watch --hub http://localhost:3000  Terminal viewer
    nodepulse fake-node --port 8890              Fake node admin RPC
"""

from __future__ import annotations

import logging
import signal

import click

from nodepulse import __version__
from nodepulse.collector.anomalies import DEFAULT_MAX_AVERAGE_PING_MS, Thresholds
from nodepulse.collector.mock_source import SimulatedSource
from nodepulse.collector.poller import Poller
from nodepulse.collector.publisher import FanoutPublisher
from nodepulse.collector.rpc_client import DEFAULT_RPC_TOKEN, NodeRpcClient
from nodepulse.config import DEFAULT_HUB_PORT, DEFAULT_HUBS, DEFAULT_NODE, CollectorConfig, HubConfig
from nodepulse.errors import ConfigError, ProcessFatal
from nodepulse.record import UNKNOWN_NODE_NAME


log = logging.getLogger("nodepulse")


@click.group()
@click.version_option(version=__version__, prog_name="nodepulse")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool):
    """nodepulse - blockchain node telemetry collector and hub."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@click.option("--node", envvar="COLLECTOR_NODE", default=DEFAULT_NODE, show_default=True,
              help="host:port of the node's admin RPC")
@click.option("--hubs", envvar="COLLECTOR_HUBS", default=DEFAULT_HUBS, show_default=True,
              help="Comma-separated hub targets")
@click.option("--node-name", envvar="COLLECTOR_NODE_NAME", default=UNKNOWN_NODE_NAME, show_default=True,
              help="Name this node is listed under")
@click.option("--interval", envvar="COLLECTOR_INTERVAL", default=2.0, show_default=True,
              help="Poll interval in seconds")
@click.option("--rpc-token", envvar="COLLECTOR_RPC_TOKEN", default=DEFAULT_RPC_TOKEN,
              help="Admin RPC authentication token")
@click.option("--hub-token", envvar="COLLECTOR_HUB_TOKEN", default=None,
              help="Shared token presented to hubs")
@click.option("--ping-threshold", default=DEFAULT_MAX_AVERAGE_PING_MS, show_default=True,
              help="Log an anomaly when average ping exceeds this many ms")
@click.option("--mock", is_flag=True, default=False, help="Use a simulated node instead of RPC")
def collector(node: str, hubs: str, node_name: str, interval: float, rpc_token: str,
              hub_token: str, ping_threshold: float, mock: bool):
    """Poll a node and publish its records to every hub."""
    log.info("Collector version %s", __version__)

    try:
        cfg = CollectorConfig.from_options(
            hubs=hubs,
            node=node,
            node_name=node_name,
            interval_seconds=interval,
            rpc_token=rpc_token,
            hub_token=hub_token,
            max_average_ping_ms=ping_threshold,
        )
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    source = SimulatedSource() if mock else NodeRpcClient(
        cfg.node, token=cfg.rpc_token, timeout_seconds=cfg.interval_seconds
    )
    publisher = FanoutPublisher(cfg.hubs, token=cfg.hub_token)
    poller = Poller(
        source,
        publisher,
        node_name=cfg.node_name,
        interval_seconds=cfg.interval_seconds,
        thresholds=Thresholds(max_average_ping_ms=cfg.max_average_ping_ms),
    )

    signal.signal(signal.SIGTERM, lambda signum, frame: poller.stop())

    log.info("Publishing to %s", ", ".join(cfg.hubs))
    publisher.start()
    try:
        poller.run()
    except ProcessFatal as exc:
        log.error("Fatal: %s", exc)
        raise SystemExit(1)
    except KeyboardInterrupt:
        pass
    finally:
        publisher.close()
        source.close()

    log.info("Collector stopped after %d cycles (%d dropped)", poller.cycles, poller.failures)


@cli.command()
@click.option("--host", envvar="HUB_HOST", default="0.0.0.0", show_default=True)
@click.option("--port", envvar="HUB_PORT", default=DEFAULT_HUB_PORT, show_default=True, type=int)
@click.option("--admin-user", envvar="HUB_ADMIN_USER", default="admin", show_default=True,
              help="Basic-auth user for /data/reset")
@click.option("--admin-password", envvar="HUB_ADMIN_PASSWORD", default=None,
              help="Basic-auth password for /data/reset (unset disables it)")
@click.option("--collector-token", envvar="HUB_COLLECTOR_TOKEN", default=None,
              help="Require collectors to present this token")
@click.option("--push/--no-push", envvar="HUB_PUSH", default=True, show_default=True,
              help="Push every record to connected viewers")
def hub(host: str, port: int, admin_user: str, admin_password: str, collector_token: str, push: bool):
    """Accept records from collectors and serve the latest one per node."""
    import uvicorn
    from nodepulse.hub.app import create_app

    try:
        cfg = HubConfig(
            host=host,
            port=port,
            admin_user=admin_user,
            admin_password=admin_password,
            collector_token=collector_token,
            push_to_viewers=push,
        )
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    log.info("Hub version %s listening on %s:%d", __version__, cfg.host, cfg.port)
    uvicorn.run(create_app(config=cfg), host=cfg.host, port=cfg.port, log_level="info")


@cli.command()
@click.option("--hub", "hub_url", envvar="WATCH_HUB", default="http://localhost:3000", show_default=True,
              help="Hub base URL")
@click.option("--refresh", default=1.0, show_default=True, help="Refresh interval in seconds")
def watch(hub_url: str, refresh: float):
    """Show a hub's nodes in the terminal."""
    from nodepulse.dashboard.terminal import run_watch

    run_watch(hub_url, refresh_interval=refresh)


@cli.command("fake-node")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8890, show_default=True, type=int)
@click.option("--seed", default=42, show_default=True, type=int)
def fake_node(host: str, port: int, seed: int):
    """Serve a simulated node's admin RPC for local testing."""
    from nodepulse.mock.fake_node_server import run_fake_node

    run_fake_node(host=host, port=port, seed=seed)


if __name__ == "__main__":
    cli()
