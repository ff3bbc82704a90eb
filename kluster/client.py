"""Cluster client: authenticated requests against one Kubernetes API server."""

from __future__ import annotations

import json
import logging
import ssl
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Protocol, TypeVar

import httpx

from kluster import transport
from kluster.auth import Credential
from kluster.classify import Success, classify, raise_for_outcome
from kluster.errors import DeserializeError, TransportError, UrlError

logger = logging.getLogger(__name__)

TransportFactory = Callable[[ssl.SSLContext], httpx.BaseTransport]


class Schema(Protocol):
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any: ...


S = TypeVar("S", bound=Schema)


@contextmanager
def _transport_errors() -> Iterator[None]:
    """Re-raise httpx network failures as kluster TransportErrors."""
    try:
        yield
    except httpx.TransportError as exc:
        raise TransportError(f"{type(exc).__name__}: {exc}") from exc


def _parse_endpoint(server_url: str) -> httpx.URL:
    try:
        url = httpx.URL(server_url)
    except httpx.InvalidURL as exc:
        raise UrlError(f"Invalid server URL {server_url!r}: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise UrlError(f"Invalid server URL {server_url!r}: expected http(s)://host[:port]")
    return url


def _decode_json(body: bytes, url: httpx.URL) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise DeserializeError(f"Response from {url} is not valid JSON: {exc}") from exc


class StreamHandle:
    """A live HTTP response whose body has not been read yet.

    Used for log tailing and for DELETE, where the caller inspects the status
    itself. Network failures while reading are raised as TransportError. Close
    the handle (or use it as a context manager) when done; a handle created for
    a timeout-bearing read also closes the one-off client it owns.
    """

    def __init__(self, response: httpx.Response, owner: httpx.Client | None = None):
        self._response = response
        self._owner = owner

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def url(self) -> httpx.URL:
        return self._response.url

    def read(self) -> bytes:
        with _transport_errors():
            return self._response.read()

    def iter_bytes(self, chunk_size: int | None = None) -> Iterator[bytes]:
        with _transport_errors():
            yield from self._response.iter_bytes(chunk_size)

    def iter_lines(self) -> Iterator[str]:
        with _transport_errors():
            yield from self._response.iter_lines()

    def json(self) -> Any:
        return _decode_json(self.read(), self.url)

    def close(self) -> None:
        self._response.close()
        if self._owner is not None:
            self._owner.close()

    def __enter__(self) -> StreamHandle:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<StreamHandle [{self.status_code}] {self.url}>"


class ClusterClient:
    """Talks to one cluster's API server with a fixed credential and CA.

    The shared httpx client is built once and never reconfigured. Reads that
    need a read timeout get a brand new TLS context, transport and client per
    call, so the timeout never leaks into the shared one.
    """

    def __init__(
        self,
        name: str,
        ca_cert_path: str,
        server_url: str,
        credential: Credential,
        transport_factory: TransportFactory | None = None,
    ):
        self.name = name
        self.endpoint = _parse_endpoint(server_url)
        self.credential = credential
        self.ca_cert_path = ca_cert_path
        self._transport_factory = transport_factory or transport.https_transport
        self._client = self._make_client(timeout=None)

    def _make_client(self, timeout: httpx.Timeout | None) -> httpx.Client:
        ctx = transport.build(self.ca_cert_path, self.credential)
        return httpx.Client(transport=self._transport_factory(ctx), timeout=timeout)

    def _url(self, path: str) -> httpx.URL:
        try:
            url = self.endpoint.join(path)
        except httpx.InvalidURL as exc:
            raise UrlError(f"Cannot join {path!r} to {self.endpoint}: {exc}") from exc
        # Credentials only ever go to the configured API server
        if (url.scheme, url.host, url.port) != (
            self.endpoint.scheme,
            self.endpoint.host,
            self.endpoint.port,
        ):
            raise UrlError(f"Path {path!r} points outside {self.endpoint}")
        return url

    def _send(
        self,
        client: httpx.Client,
        method: str,
        url: httpx.URL,
        stream: bool = False,
    ) -> httpx.Response:
        request = client.build_request(method, url, headers=self.credential.auth_headers())
        logger.debug("%s %s (cluster %s)", method, url, self.name)
        with _transport_errors():
            return client.send(request, stream=stream)

    def _get_body(self, path: str) -> tuple[httpx.URL, bytes]:
        url = self._url(path)
        response = self._send(self._client, "GET", url)
        return url, raise_for_outcome(classify(response.status_code, response.content))

    def get(self, path: str, schema: type[S]) -> S:
        """GET ``path`` and deserialize the body with ``schema.from_dict``."""
        url, body = self._get_body(path)
        data = _decode_json(body, url)
        try:
            return schema.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DeserializeError(
                f"Response from {url} does not match {schema.__name__}: {exc!r}"
            ) from exc

    def get_value(self, path: str) -> Any:
        """GET ``path`` and return the decoded JSON without a schema."""
        url, body = self._get_body(path)
        return _decode_json(body, url)

    def get_read(self, path: str, timeout: float | timedelta | None = None) -> StreamHandle:
        """GET ``path`` and return the unread response for streaming.

        With ``timeout`` (seconds or a timedelta) the request goes through a
        freshly built transport whose read timeout applies to this request only.
        """
        url = self._url(path)
        if timeout is None:
            client, owner = self._client, None
        else:
            seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else timeout
            client = owner = self._make_client(timeout=httpx.Timeout(None, read=seconds))

        try:
            response = self._send(client, "GET", url, stream=True)
        except TransportError:
            if owner is not None:
                owner.close()
            raise

        handle = StreamHandle(response, owner=owner)
        outcome = classify(response.status_code, handle)
        if not isinstance(outcome, Success):
            handle.close()
        return raise_for_outcome(outcome)

    def delete(self, path: str) -> StreamHandle:
        """DELETE ``path``. The status is not classified; check ``status_code``."""
        url = self._url(path)
        return StreamHandle(self._send(self._client, "DELETE", url, stream=True))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ClusterClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ClusterClient(name={self.name!r}, endpoint={str(self.endpoint)!r})"
