"""Shared fixtures and helpers for kluster tests.

HTTP is faked with httpx.MockTransport, injected through ClusterClient's
``transport_factory`` hook. The real TLS configuration is still built from the
static test PKI in ``tests/fixtures`` so every client exercises the CA loader.

Test PKI (long-lived, test only):
    ca.pem                 test CA
    server.pem/.key        localhost / 127.0.0.1, signed by ca.pem
    client.pem/.key        CN=kluster-admin, signed by ca.pem
    client-encrypted.key   client.key under AES-256, password "kluster-test"
    other-ca.pem           unrelated CA that never signed anything here
"""

from __future__ import annotations

import json
import ssl
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from kluster.auth import Credential, with_cert_and_key, with_token
from kluster.client import ClusterClient

FIXTURES = Path(__file__).parent / "fixtures"
CA_PEM = FIXTURES / "ca.pem"
OTHER_CA_PEM = FIXTURES / "other-ca.pem"
CLIENT_PEM = FIXTURES / "client.pem"
CLIENT_KEY = FIXTURES / "client.key"
CLIENT_KEY_ENCRYPTED = FIXTURES / "client-encrypted.key"
CLIENT_KEY_PASSWORD = "kluster-test"
SERVER_PEM = FIXTURES / "server.pem"
SERVER_KEY = FIXTURES / "server.key"

SERVER_URL = "https://k8s.example.com:6443"
TOKEN = "s3cr3t-token"

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Fake API server
# ---------------------------------------------------------------------------


class FakeCluster:
    """Records every request and every TLS context a transport was built from."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []
        self.contexts: list[ssl.SSLContext] = []

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def transport_factory(self, ctx: ssl.SSLContext) -> httpx.BaseTransport:
        self.contexts.append(ctx)
        return httpx.MockTransport(self._handle)


def json_response(status: int, payload: Any) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=json.dumps(payload).encode())

    return handler


def make_client(fake: FakeCluster, credential: Credential | None = None) -> ClusterClient:
    return ClusterClient(
        "test",
        str(CA_PEM),
        SERVER_URL,
        credential or with_token(TOKEN),
        transport_factory=fake.transport_factory,
    )


def cert_credential() -> Credential:
    return with_cert_and_key(CLIENT_PEM.read_bytes(), CLIENT_KEY.read_bytes())


# ---------------------------------------------------------------------------
# Sample API payloads
# ---------------------------------------------------------------------------


def pod_json(
    name: str,
    namespace: str | None = "default",
    phase: str = "Running",
    created: str | None = "2017-05-01T10:00:00Z",
) -> dict[str, Any]:
    return {
        "metadata": {"name": name, "namespace": namespace, "creationTimestamp": created},
        "status": {"phase": phase},
    }


def node_json(name: str, ready: bool = True, unschedulable: bool | None = None) -> dict[str, Any]:
    spec: dict[str, Any] = {}
    if unschedulable is not None:
        spec["unschedulable"] = unschedulable
    return {
        "metadata": {"name": name, "creationTimestamp": "2017-04-01T00:00:00Z"},
        "spec": spec,
        "status": {
            "conditions": [
                {"type": "MemoryPressure", "status": "False"},
                {"type": "Ready", "status": "True" if ready else "False"},
            ]
        },
    }


def event_json(reason: str, message: str, count: int = 1, last: str = "2017-05-01T10:05:00Z") -> dict[str, Any]:
    return {"count": count, "message": message, "reason": reason, "lastTimestamp": last}


@pytest.fixture
def ca_path() -> str:
    return str(CA_PEM)
