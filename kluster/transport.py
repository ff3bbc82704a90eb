"""TLS transport construction.

Builds the ``ssl.SSLContext`` every request to a cluster goes through. The
trust store is seeded only from the cluster's CA bundle (no system roots), and
for certificate credentials the same context carries the client identity for
mutual TLS. The context is assembled locally and only handed out once it is
complete; nothing mutates it afterwards.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from collections.abc import Callable
from pathlib import Path

import httpx

from kluster.auth import (
    ClientCertAuth,
    Credential,
    TokenAuth,
    count_pem_markers,
    split_pem_chain,
)
from kluster.errors import ConfigError

logger = logging.getLogger(__name__)


def _load_ca_bundle(ctx: ssl.SSLContext, ca_cert_path: str) -> int:
    """Add every certificate in the PEM file to the context's trust store.

    Returns the number of certificates loaded. Blocks that fail to parse,
    including truncated ones with no END marker, are counted and reported, but
    only an empty result is fatal.
    """
    try:
        data = Path(ca_cert_path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"Cannot open CA certificate file {ca_cert_path}: {exc}") from exc

    blocks = split_pem_chain(data)
    added = 0
    failed = max(count_pem_markers(data) - len(blocks), 0)
    for block in blocks:
        try:
            ctx.load_verify_locations(cadata=block.decode("ascii"))
            added += 1
        except (ssl.SSLError, ValueError) as exc:
            logger.debug("Skipping unparseable CA block in %s: %s", ca_cert_path, exc)
            failed += 1

    if added == 0:
        raise ConfigError(f"No usable CA certificates found in {ca_cert_path}")
    if failed:
        logger.warning(
            "Couldn't add %d of %d certs from %s", failed, added + failed, ca_cert_path
        )
    return added


def _key_password(credential: ClientCertAuth) -> Callable[[], str]:
    # Without a callback OpenSSL prompts on the terminal for encrypted keys
    def callback() -> str:
        if credential.key_password is None:
            raise ConfigError("Client private key is encrypted and no key password was given")
        return credential.key_password

    return callback


def _load_client_identity(ctx: ssl.SSLContext, credential: ClientCertAuth) -> None:
    """Attach the client certificate chain and key to the context.

    ``load_cert_chain`` only reads from files, so the PEM material is written to
    private temporary files that are removed as soon as it has been loaded.
    """
    paths: list[str] = []
    try:
        for suffix, content in (
            (".crt", b"".join(credential.certificate_chain)),
            (".key", credential.private_key),
        ):
            fd, path = tempfile.mkstemp(prefix="kluster-", suffix=suffix)
            paths.append(path)
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        cert_file, key_file = paths
        ctx.load_cert_chain(certfile=cert_file, keyfile=key_file, password=_key_password(credential))
    except (ssl.SSLError, OSError) as exc:
        raise ConfigError(f"Invalid client certificate or private key: {exc}") from exc
    finally:
        for path in paths:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass


def build(ca_cert_path: str, credential: Credential) -> ssl.SSLContext:
    """Build a TLS client configuration that trusts ``ca_cert_path``.

    Raises ConfigError if the CA file cannot be read, contains no usable
    certificate, or the client certificate and key do not load.
    """
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    count = _load_ca_bundle(ctx, ca_cert_path)
    logger.debug("Loaded %d CA certificate(s) from %s", count, ca_cert_path)

    if isinstance(credential, ClientCertAuth):
        _load_client_identity(ctx, credential)
    elif isinstance(credential, TokenAuth):
        pass
    else:
        raise TypeError(f"Unsupported credential type: {type(credential).__name__}")

    return ctx


def https_transport(ctx: ssl.SSLContext) -> httpx.BaseTransport:
    """Wrap a TLS configuration in an HTTPS-capable httpx transport."""
    return httpx.HTTPTransport(verify=ctx)
