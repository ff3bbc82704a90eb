"""Cluster credentials.

A cluster is reached with exactly one of two authentication modes: a bearer
token sent as a request header, or a client certificate presented during the
TLS handshake. The two modes are frozen dataclasses joined by the ``Credential``
union; code that consumes a credential handles both and rejects anything else.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from kluster.errors import ConfigError

PEM_BEGIN = b"-----BEGIN CERTIFICATE-----"
# A block body never contains dashes, so a truncated block cannot swallow the next one
PEM_CERT_RE = re.compile(rb"-----BEGIN CERTIFICATE-----\r?\n[^-]+?-----END CERTIFICATE-----")


@dataclass(frozen=True)
class TokenAuth:
    """Bearer token authentication."""

    token: str

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def __repr__(self) -> str:
        return "TokenAuth(token=<redacted>)"


@dataclass(frozen=True)
class ClientCertAuth:
    """Mutual TLS authentication with a client certificate chain and its private key.

    Both values are PEM-encoded bytes. The leaf certificate comes first in
    ``certificate_chain``. ``key_password`` decrypts an encrypted private key.
    """

    certificate_chain: tuple[bytes, ...]
    private_key: bytes
    key_password: str | None = None

    def auth_headers(self) -> dict[str, str]:
        # Identity is established by the handshake, not by a header.
        return {}

    def __repr__(self) -> str:
        return f"ClientCertAuth(certificates={len(self.certificate_chain)}, private_key=<redacted>)"


Credential = TokenAuth | ClientCertAuth


def with_token(token: str) -> TokenAuth:
    return TokenAuth(token)


def with_cert_and_key(
    certificate: bytes, private_key: bytes, key_password: str | None = None
) -> ClientCertAuth:
    """Build a certificate credential from a single PEM certificate and key."""
    return ClientCertAuth(
        certificate_chain=(certificate,), private_key=private_key, key_password=key_password
    )


def split_pem_chain(data: bytes) -> tuple[bytes, ...]:
    """Return every PEM certificate block found in ``data``, in file order."""
    return tuple(m.group(0) + b"\n" for m in PEM_CERT_RE.finditer(data))


def count_pem_markers(data: bytes) -> int:
    """Number of BEGIN CERTIFICATE markers, matched or not."""
    return data.count(PEM_BEGIN)


def from_cert_files(
    cert_path: str | Path, key_path: str | Path, key_password: str | None = None
) -> ClientCertAuth:
    """Load a certificate credential from PEM files on disk.

    The certificate file may hold a full chain (leaf first). Content is not
    validated here; a malformed certificate or key surfaces when the TLS
    configuration is built.
    """
    try:
        cert_data = Path(cert_path).read_bytes()
        key_data = Path(key_path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"Cannot read client certificate or key: {exc}") from exc

    chain = split_pem_chain(cert_data) or (cert_data,)
    return ClientCertAuth(certificate_chain=chain, private_key=key_data, key_password=key_password)
