"""Configuration management for kluster.

A config file lists cluster profiles; each profile names the API server, the
CA bundle that signs its certificate, and exactly one credential (a token, a
token file, or a client certificate + key).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kluster.auth import Credential, from_cert_files, with_token
from kluster.client import ClusterClient
from kluster.errors import ConfigError

CONFIG_FILENAME = ".kluster.yaml"
DEFAULT_PATHS = [
    Path.cwd() / CONFIG_FILENAME,
    Path.home() / CONFIG_FILENAME,
    Path.home() / ".config" / "kluster" / "config.yaml",
]


def _expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path)) if path else path


@dataclass
class ClusterProfile:
    """Connection settings for one cluster."""

    name: str
    server: str
    ca_cert: str
    token: str = ""
    token_file: str = ""
    client_cert: str = ""
    client_key: str = ""
    client_key_password: str = ""
    namespace: str = "default"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClusterProfile:
        if not isinstance(data, dict):
            raise ConfigError(f"Each cluster entry must be a mapping, got {data!r}")
        missing = [k for k in ("name", "server", "ca_cert") if not data.get(k)]
        if missing:
            label = data.get("name", "<unnamed>")
            raise ConfigError(f"Cluster {label}: missing {', '.join(missing)}")

        return cls(
            name=str(data["name"]),
            server=str(data["server"]),
            ca_cert=_expand(str(data["ca_cert"])),
            token=data.get("token", "") or "",
            token_file=_expand(data.get("token_file", "") or ""),
            client_cert=_expand(data.get("client_cert", "") or ""),
            client_key=_expand(data.get("client_key", "") or ""),
            client_key_password=str(data.get("client_key_password", "") or ""),
            namespace=data.get("namespace", "default") or "default",
        )

    def credential(self) -> Credential:
        """Build the profile's credential. Exactly one auth mode must be configured."""
        modes = [
            bool(self.token),
            bool(self.token_file),
            bool(self.client_cert or self.client_key),
        ]
        if sum(modes) != 1:
            raise ConfigError(
                f"Cluster {self.name}: configure exactly one of token, token_file "
                "or client_cert + client_key"
            )

        if self.token:
            return with_token(self.token)
        if self.token_file:
            try:
                return with_token(Path(self.token_file).read_text().strip())
            except OSError as exc:
                raise ConfigError(f"Cluster {self.name}: cannot read token file: {exc}") from exc
        if not (self.client_cert and self.client_key):
            raise ConfigError(f"Cluster {self.name}: client_cert and client_key go together")
        return from_cert_files(
            self.client_cert, self.client_key, key_password=self.client_key_password or None
        )

    def connect(self) -> ClusterClient:
        return ClusterClient(self.name, self.ca_cert, self.server, self.credential())


@dataclass
class Config:
    """Application configuration."""

    clusters: list[ClusterProfile] = field(default_factory=list)
    current: str = ""  # Profile used when --cluster is not given

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from a dictionary (e.g., parsed YAML)."""
        raw_clusters = data.get("clusters") or []
        if not isinstance(raw_clusters, list):
            raise ConfigError("'clusters' must be a list")

        clusters = [ClusterProfile.from_dict(c) for c in raw_clusters]
        names = [c.name for c in clusters]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ConfigError(f"Duplicate cluster names: {', '.join(dupes)}")

        return cls(clusters=clusters, current=data.get("current", "") or "")

    @classmethod
    def load(cls, path: str | None = None) -> Config:
        """Load config from file, with env var overrides."""
        config_data: dict[str, Any] = {}

        # Find config file
        if not path:
            path = os.environ.get("KLUSTER_CONFIG") or None
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_path}")
        else:
            config_path = None
            for p in DEFAULT_PATHS:
                if p.exists():
                    config_path = p
                    break

        if config_path:
            try:
                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
            if not isinstance(config_data, dict):
                raise ConfigError(f"{config_path}: expected a mapping at the top level")

        config = cls.from_dict(config_data)

        # Environment variable overrides
        if env_cluster := os.environ.get("KLUSTER_CLUSTER"):
            config.current = env_cluster

        if env_token := os.environ.get("KLUSTER_TOKEN"):
            for profile in config.clusters:
                if profile.name == config.current or len(config.clusters) == 1:
                    profile.token = env_token
                    profile.token_file = ""
                    profile.client_cert = ""
                    profile.client_key = ""

        return config

    def profile(self, name: str | None = None) -> ClusterProfile:
        """Select a profile by name, falling back to ``current`` or the only one."""
        wanted = name or self.current
        if wanted:
            for p in self.clusters:
                if p.name == wanted:
                    return p
            raise ConfigError(f"No cluster named {wanted!r} in config")
        if len(self.clusters) == 1:
            return self.clusters[0]
        if not self.clusters:
            raise ConfigError("No clusters configured. Run `kluster init` to create a config file.")
        raise ConfigError("Several clusters configured; pick one with --cluster or set 'current'")


SAMPLE_CONFIG = """\
# kluster configuration
# Place this file at .kluster.yaml in your project or home directory.

current: dev

clusters:
  - name: dev
    server: https://dev.example.com:6443
    ca_cert: ~/.kluster/dev-ca.pem
    token_file: ~/.kluster/dev-token
    namespace: default

  - name: prod
    server: https://prod.example.com:6443
    ca_cert: ~/.kluster/prod-ca.pem
    client_cert: ~/.kluster/prod-admin.pem
    client_key: ~/.kluster/prod-admin-key.pem
    # client_key_password: ""  # only for encrypted keys
"""
