"""CLI entry point for kluster.

Usage:
    kluster [--cluster NAME] pods [--namespace NS | --all-namespaces]
    kluster logs POD [--follow] [--tail N] [--timeout SECONDS]
    kluster --help
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from kluster import __version__
from kluster.client import ClusterClient
from kluster.config import SAMPLE_CONFIG, ClusterProfile, Config
from kluster.errors import KubeError
from kluster.output import render_clusters, render_events, render_nodes, render_pods
from kluster.resources import delete_pod, list_events, list_nodes, list_pods, stream_logs

console = Console()
err_console = Console(stderr=True)


@contextmanager
def _kube_errors() -> Iterator[None]:
    try:
        yield
    except KubeError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)


class Session:
    """Lazily resolved config, profile and client shared by the subcommands."""

    def __init__(self, config_path: str, cluster: str):
        self.config_path = config_path
        self.cluster = cluster
        self._config: Config | None = None
        self._client: ClusterClient | None = None

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = Config.load(self.config_path or None)
        return self._config

    @property
    def profile(self) -> ClusterProfile:
        return self.config.profile(self.cluster or None)

    @property
    def client(self) -> ClusterClient:
        if self._client is None:
            self._client = self.profile.connect()
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


pass_session = click.make_pass_decorator(Session)


@click.group()
@click.version_option(version=__version__, prog_name="kluster")
@click.option("--config", "config_path", default="", help="Path to config file")
@click.option("--cluster", "-c", default="", help="Cluster profile to use")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def main(ctx: click.Context, config_path: str, cluster: str, verbose: bool):
    """Query and manage Kubernetes clusters over token or client-certificate auth."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    session = Session(config_path, cluster)
    ctx.obj = session
    ctx.call_on_close(session.close)


def _namespace(session: Session, namespace: str, all_namespaces: bool) -> str | None:
    if all_namespaces:
        return None
    return namespace or session.profile.namespace


@main.command()
@pass_session
def clusters(session: Session):
    """List configured cluster profiles."""
    with _kube_errors():
        render_clusters(session.config, console)


@main.command()
@click.option("--namespace", "-n", default="", help="Namespace (default: the profile's)")
@click.option("--all-namespaces", "-A", is_flag=True, help="List across all namespaces")
@pass_session
def pods(session: Session, namespace: str, all_namespaces: bool):
    """List pods."""
    with _kube_errors():
        ns = _namespace(session, namespace, all_namespaces)
        render_pods(list_pods(session.client, ns), console, show_namespace=ns is None)


@main.command()
@pass_session
def nodes(session: Session):
    """List nodes and their readiness."""
    with _kube_errors():
        render_nodes(list_nodes(session.client), console)


@main.command()
@click.option("--namespace", "-n", default="", help="Namespace (default: the profile's)")
@click.option("--all-namespaces", "-A", is_flag=True, help="List across all namespaces")
@pass_session
def events(session: Session, namespace: str, all_namespaces: bool):
    """List events, oldest first."""
    with _kube_errors():
        ns = _namespace(session, namespace, all_namespaces)
        render_events(list_events(session.client, ns), console)


@main.command()
@click.argument("pod")
@click.option("--namespace", "-n", default="", help="Namespace (default: the profile's)")
@click.option("--container", default="", help="Container name for multi-container pods")
@click.option("--follow", "-f", is_flag=True, help="Keep streaming new log lines")
@click.option("--tail", type=int, default=None, help="Only show the last N lines")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Give up if no data arrives for this many seconds",
)
@pass_session
def logs(
    session: Session,
    pod: str,
    namespace: str,
    container: str,
    follow: bool,
    tail: int | None,
    timeout: float | None,
):
    """Print (or follow) a pod's logs."""
    with _kube_errors():
        ns = namespace or session.profile.namespace
        handle = stream_logs(
            session.client,
            pod,
            ns,
            container=container or None,
            follow=follow,
            tail_lines=tail,
            timeout=timeout,
        )
        with handle:
            for line in handle.iter_lines():
                click.echo(line)


@main.command(name="delete-pod")
@click.argument("pod")
@click.option("--namespace", "-n", default="", help="Namespace (default: the profile's)")
@pass_session
def delete_pod_cmd(session: Session, pod: str, namespace: str):
    """Delete a pod."""
    with _kube_errors():
        ns = namespace or session.profile.namespace
        with delete_pod(session.client, pod, ns) as handle:
            status = handle.status_code
            if status in (200, 202):
                console.print(f"[green]pod \"{pod}\" deleted[/green]")
                return
            if status == 404:
                err_console.print(f"[yellow]pod \"{pod}\" not found in {ns}[/yellow]")
            else:
                err_console.print(f"[bold red]Delete failed:[/bold red] HTTP {status}")
            sys.exit(1)


@main.command()
@click.argument("path")
@pass_session
def get(session: Session, path: str):
    """GET an arbitrary API path and print the JSON."""
    with _kube_errors():
        value = session.client.get_value(path)
        console.print_json(json.dumps(value))


@main.command()
def init():
    """Generate a sample configuration file."""
    out_path = Path.cwd() / ".kluster.yaml"
    if out_path.exists():
        console.print(f"[yellow]Config file already exists:[/yellow] {out_path}")
        return

    out_path.write_text(SAMPLE_CONFIG)
    console.print(f"[green]Created config file:[/green] {out_path}")
    console.print("[dim]Edit it to point at your clusters.[/dim]")


if __name__ == "__main__":
    main()
