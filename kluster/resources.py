"""Typed helpers for the resources kluster works with.

Thin wrappers that build API paths and call the matching ClusterClient
operation. Passing ``namespace=None`` lists across all namespaces.
"""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import quote, urlencode

from kluster.client import ClusterClient, StreamHandle
from kluster.models import EventList, NodeList, PodList


def _ns_path(resource: str, namespace: str | None) -> str:
    if namespace:
        return f"/api/v1/namespaces/{quote(namespace, safe='')}/{resource}"
    return f"/api/v1/{resource}"


def pods_path(namespace: str | None = None) -> str:
    return _ns_path("pods", namespace)


def pod_path(name: str, namespace: str) -> str:
    return f"{pods_path(namespace)}/{quote(name, safe='')}"


def events_path(namespace: str | None = None) -> str:
    return _ns_path("events", namespace)


def nodes_path() -> str:
    return "/api/v1/nodes"


def logs_path(
    name: str,
    namespace: str,
    container: str | None = None,
    follow: bool = False,
    tail_lines: int | None = None,
) -> str:
    """Path of a pod's log endpoint, with the query options the API accepts."""
    params: dict[str, str] = {}
    if container:
        params["container"] = container
    if follow:
        params["follow"] = "true"
    if tail_lines is not None:
        params["tailLines"] = str(tail_lines)
    path = f"{pod_path(name, namespace)}/log"
    return f"{path}?{urlencode(params)}" if params else path


def list_pods(client: ClusterClient, namespace: str | None = None) -> PodList:
    return client.get(pods_path(namespace), PodList)


def list_nodes(client: ClusterClient) -> NodeList:
    return client.get(nodes_path(), NodeList)


def list_events(client: ClusterClient, namespace: str | None = None) -> EventList:
    return client.get(events_path(namespace), EventList)


def stream_logs(
    client: ClusterClient,
    name: str,
    namespace: str,
    container: str | None = None,
    follow: bool = False,
    tail_lines: int | None = None,
    timeout: float | timedelta | None = None,
) -> StreamHandle:
    """Open a pod's log stream. The caller iterates and closes the handle."""
    path = logs_path(name, namespace, container=container, follow=follow, tail_lines=tail_lines)
    return client.get_read(path, timeout=timeout)


def delete_pod(client: ClusterClient, name: str, namespace: str) -> StreamHandle:
    """Delete a pod. The returned handle is unclassified; check its status."""
    return client.delete(pod_path(name, namespace))
