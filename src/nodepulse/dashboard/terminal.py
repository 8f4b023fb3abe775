"""Terminal viewer using Rich. Polls a hub's snapshot and shows one row per node."""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

import httpx
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from nodepulse import __version__
from nodepulse.channels import SNAPSHOT_ROUTE

log = logging.getLogger(__name__)

MAX_CONSECUTIVE_ERRORS = 5

# Seconds without an update before a node is shown as stale
STALE_AFTER_SECONDS = 10.0


def _color_for_ping(ping_ms: Optional[float]) -> str:
    if ping_ms is None:
        return "dim"
    if ping_ms < 200:
        return "green"
    elif ping_ms < 500:
        return "yellow"
    return "red"


def _format_uptime(uptime_ms: int) -> str:
    seconds = uptime_ms // 1000
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m {seconds}s"


def _height_trend(current: int, previous: Optional[int]) -> str:
    """Green ^ when the chain moved since the last refresh."""
    if previous is None or current == previous:
        return ""
    if current > previous:
        return "[green]^[/green]"
    return "[red]v[/red]"


def _age_seconds(node: dict, now: float) -> Optional[float]:
    last_seen = node.get("lastSeen")
    if last_seen is None:
        return None
    return max(0.0, now - last_seen / 1000)


def build_table(nodes: List[dict], previous_heights: Dict[str, int], now: Optional[float] = None) -> Table:
    now = time.time() if now is None else now

    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Node", style="bold")
    table.add_column("Client", style="dim")
    table.add_column("Uptime", justify="right")
    table.add_column("Peers", justify="right")
    table.add_column("Avg ping", justify="right")
    table.add_column("Best block", justify="right")
    table.add_column("", width=2)
    table.add_column("Finalized", justify="right")
    table.add_column("Pkts out / in", justify="right")
    table.add_column("Last seen", justify="right")

    for node in sorted(nodes, key=lambda n: n.get("nodeName", "")):
        name = node.get("nodeName", "?")
        ping = node.get("averagePing")
        ping_text = "n/a" if ping is None else f"{ping:.0f}ms"
        peers = node.get("peersCount", 0)
        peers_color = "red" if peers == 0 else "white"

        age = _age_seconds(node, now)
        if age is None:
            age_text = "-"
        elif age > STALE_AFTER_SECONDS:
            age_text = f"[red]{age:.0f}s ago[/red]"
        else:
            age_text = f"[green]{age:.0f}s ago[/green]"

        height = node.get("bestBlockHeight", 0)
        table.add_row(
            name,
            node.get("client", ""),
            _format_uptime(node.get("uptime", 0)),
            f"[{peers_color}]{peers}[/{peers_color}]",
            f"[{_color_for_ping(ping)}]{ping_text}[/]",
            f"{height:,}",
            _height_trend(height, previous_heights.get(name)),
            f"{node.get('finalizedBlockHeight', 0):,}",
            f"{node.get('packetsSent', 0):,} / {node.get('packetsReceived', 0):,}",
            age_text,
        )

    return table


def build_display(nodes: List[dict], hub_url: str, previous_heights: Dict[str, int]) -> Layout:
    layout = Layout()

    header = Text(f"  nodepulse v{__version__}  |  {hub_url}", style="bold white on blue")
    header.append(f"\n  {time.strftime('%Y-%m-%d %H:%M:%S')}  ", style="dim")
    header.append(f"  NODES: {len(nodes)}", style="bold green" if nodes else "bold yellow")

    if nodes:
        body = Panel(build_table(nodes, previous_heights), title="Nodes", border_style="cyan")
    else:
        body = Panel(Text("  No nodes reported yet", style="dim"), title="Nodes", border_style="yellow")

    layout.split_column(
        Layout(Panel(header, border_style="blue"), size=4),
        Layout(body),
        Layout(Panel(Text("  Press Ctrl+C to stop", style="dim"), border_style="dim"), size=3),
    )
    return layout


def fetch_snapshot(client: httpx.Client, hub_url: str) -> List[dict]:
    response = client.get(hub_url.rstrip("/") + SNAPSHOT_ROUTE)
    response.raise_for_status()
    return response.json()


def run_watch(hub_url: str, refresh_interval: float = 1.0, timeout_seconds: float = 5.0):

    console = Console()
    previous_heights: Dict[str, int] = {}
    consecutive_errors = 0

    log.info("Watching %s every %.1fs", hub_url, refresh_interval)

    with httpx.Client(timeout=timeout_seconds) as client, \
            Live(console=console, refresh_per_second=1, screen=True) as live:
        try:
            while True:
                try:
                    nodes = fetch_snapshot(client, hub_url)
                    consecutive_errors = 0
                except (httpx.HTTPError, ValueError) as e:
                    consecutive_errors += 1
                    log.warning("Snapshot fetch failed (attempt %d/%d): %s",
                                consecutive_errors, MAX_CONSECUTIVE_ERRORS, e)
                    if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                        log.error("Lost connection after %d retries, exiting", MAX_CONSECUTIVE_ERRORS)
                        break
                    error_text = Text(
                        f"  Connection error (retry {consecutive_errors}/{MAX_CONSECUTIVE_ERRORS}): {e}",
                        style="bold red",
                    )
                    live.update(Panel(error_text, border_style="red"))
                    time.sleep(refresh_interval)
                    continue

                live.update(build_display(nodes, hub_url, previous_heights))
                previous_heights = {n.get("nodeName", "?"): n.get("bestBlockHeight", 0) for n in nodes}
                time.sleep(refresh_interval)
        except KeyboardInterrupt:
            pass

    if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
        console.print(f"\n[bold red]Lost connection to {hub_url}[/bold red]")
    else:
        console.print("\n[dim]Viewer stopped.[/dim]")
