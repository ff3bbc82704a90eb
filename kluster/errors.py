"""Error types raised by the cluster client.

Every failure the client can surface derives from KubeError, so callers can
catch the whole family at a command boundary and still tell "could not reach or
authenticate with the server" apart from "the server answered, but the body
did not match".
"""

from __future__ import annotations


class KubeError(Exception):
    """Base class for all kluster errors."""


class UrlError(KubeError):
    """The server URL, or a path joined against it, is not a valid URL."""


class ConfigError(KubeError):
    """TLS or profile configuration could not be built (e.g. unreadable CA file)."""


class TransportError(KubeError):
    """The request never produced a response: DNS, connect, TLS handshake or timeout."""


class UnauthorizedError(KubeError):
    """The API server answered 401."""

    def __init__(self, message: str = "Unauthorized (HTTP 401)"):
        super().__init__(message)


class StatusError(KubeError):
    """The API server answered with a status other than 200 or 401."""

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"Unexpected HTTP status {status}")


class DeserializeError(KubeError):
    """The response body is not JSON, or does not match the requested schema."""
