"""Kubernetes resource schemas.

Plain deserialization targets for the JSON the API server returns. Only the
fields kluster displays are modelled. Each type builds itself with
``from_dict``; a missing required field raises KeyError/TypeError, which the
client reports as a DeserializeError. Optional fields tolerate absence and null.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp such as ``2017-05-01T10:00:00Z``.

    Values without an offset are taken as UTC, so the result is always aware.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"Expected a timestamp string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _items(data: dict[str, Any]) -> list[dict[str, Any]]:
    # An empty list comes back from the API as "items": null
    return data.get("items") or []


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------


@dataclass
class Metadata:
    name: str
    namespace: str | None = None
    creation_timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Metadata:
        return cls(
            name=data["name"],
            namespace=data.get("namespace"),
            creation_timestamp=parse_timestamp(data.get("creationTimestamp")),
        )


# ---------------------------------------------------------------------------
# Pods
# ---------------------------------------------------------------------------


@dataclass
class PodStatus:
    phase: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PodStatus:
        return cls(phase=data["phase"])


@dataclass
class Pod:
    metadata: Metadata
    status: PodStatus

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pod:
        return cls(
            metadata=Metadata.from_dict(data["metadata"]),
            status=PodStatus.from_dict(data["status"]),
        )


@dataclass
class PodList:
    items: list[Pod] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PodList:
        return cls(items=[Pod.from_dict(i) for i in _items(data)])


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class Event:
    count: int
    message: str
    reason: str
    last_timestamp: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        last_timestamp = parse_timestamp(data["lastTimestamp"])
        if last_timestamp is None:
            raise ValueError("Event is missing lastTimestamp")
        return cls(
            count=int(data["count"]),
            message=data["message"],
            reason=data["reason"],
            last_timestamp=last_timestamp,
        )


@dataclass
class EventList:
    items: list[Event] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventList:
        return cls(items=[Event.from_dict(i) for i in _items(data)])


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass
class NodeCondition:
    type: str
    status: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeCondition:
        return cls(type=data["type"], status=data["status"])


@dataclass
class NodeStatus:
    conditions: list[NodeCondition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeStatus:
        return cls(conditions=[NodeCondition.from_dict(c) for c in data["conditions"]])


@dataclass
class NodeSpec:
    unschedulable: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeSpec:
        return cls(unschedulable=data.get("unschedulable"))


@dataclass
class Node:
    metadata: Metadata
    spec: NodeSpec
    status: NodeStatus

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        return cls(
            metadata=Metadata.from_dict(data["metadata"]),
            spec=NodeSpec.from_dict(data["spec"]),
            status=NodeStatus.from_dict(data["status"]),
        )

    @property
    def ready(self) -> bool:
        return any(c.type == "Ready" and c.status == "True" for c in self.status.conditions)


@dataclass
class NodeList:
    items: list[Node] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeList:
        return cls(items=[Node.from_dict(i) for i in _items(data)])
