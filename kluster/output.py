"""Rich terminal output for resource listings."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console
from rich.table import Table
from rich.text import Text

from kluster.config import Config
from kluster.models import EventList, NodeList, PodList

PHASE_STYLES = {
    "Running": "green",
    "Succeeded": "blue",
    "Pending": "yellow",
    "Failed": "bold red",
    "Unknown": "dim",
}


def format_age(ts: datetime | None, now: datetime | None = None) -> str:
    """Render a timestamp the way kubectl does: 45s, 12m, 3h, 5d."""
    if ts is None:
        return "<unknown>"
    now = now or datetime.now(timezone.utc)
    seconds = max(int((now - ts).total_seconds()), 0)
    if seconds < 120:
        return f"{seconds}s"
    if seconds < 7200:
        return f"{seconds // 60}m"
    if seconds < 172800:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def render_pods(pods: PodList, console: Console, show_namespace: bool = False) -> None:
    table = Table(box=None, padding=(0, 2))
    if show_namespace:
        table.add_column("NAMESPACE", style="dim")
    table.add_column("NAME", style="cyan")
    table.add_column("STATUS")
    table.add_column("AGE", justify="right")

    for pod in pods.items:
        phase = pod.status.phase
        row = [
            pod.metadata.name,
            Text(phase, style=PHASE_STYLES.get(phase, "")),
            format_age(pod.metadata.creation_timestamp),
        ]
        if show_namespace:
            row.insert(0, pod.metadata.namespace or "")
        table.add_row(*row)

    if not pods.items:
        console.print("[dim]No pods found.[/dim]")
        return
    console.print(table)


def render_nodes(nodes: NodeList, console: Console) -> None:
    if not nodes.items:
        console.print("[dim]No nodes found.[/dim]")
        return

    table = Table(box=None, padding=(0, 2))
    table.add_column("NAME", style="cyan")
    table.add_column("STATUS")
    table.add_column("AGE", justify="right")

    for node in nodes.items:
        status = Text("Ready", style="green") if node.ready else Text("NotReady", style="bold red")
        if node.spec.unschedulable:
            status.append(",SchedulingDisabled", style="yellow")
        table.add_row(node.metadata.name, status, format_age(node.metadata.creation_timestamp))

    console.print(table)


def render_events(events: EventList, console: Console) -> None:
    if not events.items:
        console.print("[dim]No events found.[/dim]")
        return

    table = Table(box=None, padding=(0, 2))
    table.add_column("LAST SEEN", justify="right")
    table.add_column("COUNT", justify="right")
    table.add_column("REASON", style="bold")
    table.add_column("MESSAGE")

    for event in sorted(events.items, key=lambda e: e.last_timestamp):
        table.add_row(
            format_age(event.last_timestamp),
            str(event.count),
            event.reason,
            event.message[:200],
        )

    console.print(table)


def render_clusters(cfg: Config, console: Console) -> None:
    if not cfg.clusters:
        console.print("[dim]No clusters configured.[/dim]")
        return

    table = Table(box=None, padding=(0, 2))
    table.add_column("", width=1)
    table.add_column("NAME", style="cyan")
    table.add_column("SERVER")
    table.add_column("AUTH")

    for profile in cfg.clusters:
        marker = "*" if profile.name == cfg.current else ""
        auth = "client-cert" if profile.client_cert else "token"
        table.add_row(marker, profile.name, profile.server, auth)

    console.print(table)
