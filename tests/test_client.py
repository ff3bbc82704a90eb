"""Tests for kluster.client against a fake API server."""

from datetime import timedelta

import httpx
import pytest

from kluster.auth import with_token
from kluster.client import ClusterClient, StreamHandle
from kluster.errors import (
    ConfigError,
    DeserializeError,
    StatusError,
    TransportError,
    UnauthorizedError,
    UrlError,
)
from kluster.models import PodList

from tests.conftest import (
    CA_PEM,
    TOKEN,
    FakeCluster,
    cert_credential,
    json_response,
    make_client,
    pod_json,
)

POD_FIXTURE = {
    "items": [
        {
            "metadata": {"name": "a", "namespace": None, "creationTimestamp": None},
            "status": {"phase": "Running"},
        }
    ]
}


def status_handler(status: int, content: bytes = b""):
    def handler(request):
        return httpx.Response(status, content=content)

    return handler


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_builds_one_transport(self):
        fake = FakeCluster(status_handler(200))
        client = make_client(fake)
        assert client.name == "test"
        assert len(fake.contexts) == 1
        assert client.ca_cert_path == str(CA_PEM)

    @pytest.mark.parametrize("url", ["not a url", "", "ftp://example.com", "https://"])
    def test_bad_server_url(self, url):
        with pytest.raises(UrlError):
            ClusterClient("x", str(CA_PEM), url, with_token("t"))

    def test_bad_ca_path(self, tmp_path):
        with pytest.raises(ConfigError):
            ClusterClient("x", str(tmp_path / "ca.pem"), "https://k8s:6443", with_token("t"))

    def test_context_manager_closes(self):
        fake = FakeCluster(status_handler(200))
        with make_client(fake) as client:
            pass
        assert client._client.is_closed


# ---------------------------------------------------------------------------
# Credential header injection
# ---------------------------------------------------------------------------


class TestAuthHeaders:
    def test_token_on_get(self):
        fake = FakeCluster(json_response(200, {}))
        make_client(fake).get_value("/api/v1/pods")
        assert fake.requests[0].headers["Authorization"] == f"Bearer {TOKEN}"

    def test_token_on_timed_read(self):
        fake = FakeCluster(status_handler(200, b"log"))
        make_client(fake).get_read("/log", timeout=5).close()
        assert fake.requests[0].headers["Authorization"] == f"Bearer {TOKEN}"

    def test_token_on_delete(self):
        fake = FakeCluster(status_handler(200))
        make_client(fake).delete("/api/v1/namespaces/default/pods/a").close()
        assert fake.requests[0].headers["Authorization"] == f"Bearer {TOKEN}"

    def test_cert_credential_sends_no_header(self):
        fake = FakeCluster(json_response(200, {}))
        client = make_client(fake, cert_credential())
        client.get_value("/api/v1/pods")
        client.get_read("/log").close()
        client.get_read("/log", timeout=1).close()
        client.delete("/api/v1/pods/a").close()
        assert len(fake.requests) == 4
        assert all("Authorization" not in r.headers for r in fake.requests)


# ---------------------------------------------------------------------------
# URL joining
# ---------------------------------------------------------------------------


class TestUrls:
    def test_absolute_path_joined(self):
        fake = FakeCluster(json_response(200, {}))
        make_client(fake).get_value("/api/v1/nodes")
        assert str(fake.requests[0].url) == "https://k8s.example.com:6443/api/v1/nodes"

    def test_query_preserved(self):
        fake = FakeCluster(status_handler(200))
        make_client(fake).get_read("/api/v1/namespaces/ns/pods/a/log?follow=true").close()
        assert fake.requests[0].url.params["follow"] == "true"

    def test_foreign_host_rejected(self):
        fake = FakeCluster(json_response(200, {}))
        with pytest.raises(UrlError, match="outside"):
            make_client(fake).get_value("http://evil.example/steal")
        assert fake.requests == []

    @pytest.mark.parametrize(
        "path",
        [
            "//evil.example/api/v1/pods",
            "http://k8s.example.com:6443/api/v1/pods",
            "https://k8s.example.com:8443/api/v1/pods",
        ],
    )
    def test_other_origins_never_get_the_token(self, path):
        fake = FakeCluster(status_handler(200))
        client = make_client(fake)
        with pytest.raises(UrlError):
            client.get_read(path)
        with pytest.raises(UrlError):
            client.delete(path)
        assert fake.requests == []

    def test_absolute_url_to_same_server_allowed(self):
        fake = FakeCluster(json_response(200, {}))
        make_client(fake).get_value("https://k8s.example.com:6443/version")
        assert fake.requests[0].url.path == "/version"


# ---------------------------------------------------------------------------
# get / get_value
# ---------------------------------------------------------------------------


class TestGet:
    def test_typed_pod_list(self):
        fake = FakeCluster(json_response(200, POD_FIXTURE))
        pods = make_client(fake).get("/api/v1/pods", PodList)
        assert len(pods.items) == 1
        pod = pods.items[0]
        assert pod.metadata.name == "a"
        assert pod.metadata.namespace is None
        assert pod.status.phase == "Running"

    def test_unauthorized(self):
        fake = FakeCluster(status_handler(401, b"Unauthorized"))
        with pytest.raises(UnauthorizedError):
            make_client(fake).get("/api/v1/pods", PodList)

    def test_other_status(self):
        fake = FakeCluster(status_handler(503))
        with pytest.raises(StatusError) as exc_info:
            make_client(fake).get("/api/v1/pods", PodList)
        assert exc_info.value.status == 503

    def test_malformed_json(self):
        fake = FakeCluster(status_handler(200, b"{not json"))
        with pytest.raises(DeserializeError):
            make_client(fake).get("/api/v1/pods", PodList)

    def test_schema_mismatch(self):
        fake = FakeCluster(json_response(200, {"items": [{"metadata": {}}]}))
        with pytest.raises(DeserializeError, match="PodList"):
            make_client(fake).get("/api/v1/pods", PodList)

    def test_wrong_shape(self):
        fake = FakeCluster(json_response(200, ["a", "b"]))
        with pytest.raises(DeserializeError):
            make_client(fake).get("/api/v1/pods", PodList)

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="ConnectError"):
            make_client(FakeCluster(handler)).get("/api/v1/pods", PodList)


class TestGetValue:
    def test_untyped(self):
        payload = {"kind": "PodList", "items": [pod_json("web")]}
        fake = FakeCluster(json_response(200, payload))
        assert make_client(fake).get_value("/api/v1/pods") == payload

    def test_unauthorized(self):
        fake = FakeCluster(status_handler(401))
        with pytest.raises(UnauthorizedError):
            make_client(fake).get_value("/api/v1/pods")

    def test_malformed(self):
        fake = FakeCluster(status_handler(200, b"<html>"))
        with pytest.raises(DeserializeError):
            make_client(fake).get_value("/api/v1/pods")


# ---------------------------------------------------------------------------
# get_read
# ---------------------------------------------------------------------------


class TestGetRead:
    def test_returns_unread_handle(self):
        fake = FakeCluster(status_handler(200, b"line 1\nline 2\n"))
        handle = make_client(fake).get_read("/log")
        assert isinstance(handle, StreamHandle)
        assert handle.status_code == 200
        assert list(handle.iter_lines()) == ["line 1", "line 2"]
        handle.close()

    def test_without_timeout_reuses_shared_transport(self):
        fake = FakeCluster(status_handler(200, b"x"))
        client = make_client(fake)
        client.get_read("/log").close()
        client.get_read("/log").close()
        assert len(fake.contexts) == 1

    def test_timeout_builds_fresh_transport_each_call(self):
        fake = FakeCluster(status_handler(200, b"x"))
        client = make_client(fake)
        client.get_read("/log", timeout=1).close()
        client.get_read("/log", timeout=1).close()
        assert len(fake.contexts) == 3
        assert fake.contexts[1] is not fake.contexts[0]
        assert fake.contexts[2] is not fake.contexts[1]

    def test_timeout_applies_to_that_request_only(self):
        fake = FakeCluster(status_handler(200, b"x"))
        client = make_client(fake)
        client.get_read("/log", timeout=0.5).close()
        client.get_read("/log").close()
        timed, shared = fake.requests
        assert timed.extensions["timeout"]["read"] == 0.5
        assert shared.extensions["timeout"]["read"] is None

    def test_timedelta_timeout(self):
        fake = FakeCluster(status_handler(200, b"x"))
        make_client(fake).get_read("/log", timeout=timedelta(milliseconds=250)).close()
        assert fake.requests[0].extensions["timeout"]["read"] == 0.25

    def test_same_body_with_and_without_timeout(self):
        fake = FakeCluster(status_handler(200, b"hello\nworld\n"))
        client = make_client(fake)
        with client.get_read("/log") as plain, client.get_read("/log", timeout=2) as timed:
            assert plain.read() == timed.read()

    def test_read_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(FakeCluster(handler))
        with pytest.raises(TransportError, match="ReadTimeout"):
            client.get_read("/log", timeout=0.001)

    def test_classified(self):
        fake = FakeCluster(status_handler(401))
        with pytest.raises(UnauthorizedError):
            make_client(fake).get_read("/log", timeout=1)
        fake = FakeCluster(status_handler(404))
        with pytest.raises(StatusError):
            make_client(fake).get_read("/log")

    def test_json(self):
        fake = FakeCluster(json_response(200, {"a": 1}))
        with make_client(fake).get_read("/x") as handle:
            assert handle.json() == {"a": 1}


class TestStreamHandle:
    def test_close_closes_owner(self):
        response = httpx.Response(200, content=b"x")
        owner = httpx.Client()
        StreamHandle(response, owner=owner).close()
        assert owner.is_closed

    def test_repr(self):
        fake = FakeCluster(status_handler(200))
        with make_client(fake).get_read("/log") as handle:
            assert "200" in repr(handle)


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_uses_delete_method(self):
        fake = FakeCluster(status_handler(200))
        make_client(fake).delete("/api/v1/namespaces/default/pods/a").close()
        assert fake.requests[0].method == "DELETE"

    def test_not_classified(self):
        fake = FakeCluster(status_handler(403, b"forbidden"))
        client = make_client(fake)
        with client.delete("/api/v1/namespaces/default/pods/a") as handle:
            assert handle.status_code == 403
            assert handle.read() == b"forbidden"

        with pytest.raises(StatusError):
            client.get_value("/api/v1/namespaces/default/pods/a")

    def test_unauthorized_not_raised(self):
        fake = FakeCluster(status_handler(401))
        with make_client(fake).delete("/x") as handle:
            assert handle.status_code == 401

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            make_client(FakeCluster(handler)).delete("/x")
