"""Credentials and endpoint resolution for the Kubernetes API."""

from __future__ import annotations

import asyncio
import os
import ssl
from pathlib import Path

from poolwright.config import ClusterConfig
from poolwright.core.exceptions import ConfigurationError
from poolwright.infra.http import Auth, BearerAuth


class TokenFileAuth:
    """Bearer token read from a file, re-read after a 401.

    Projected service-account tokens are rotated by the kubelet, so a cached
    token eventually goes stale.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._token: str | None = None
        self._lock = asyncio.Lock()

    def _read(self) -> str:
        try:
            return self._path.read_text().strip()
        except OSError as e:
            raise ConfigurationError(f"Cannot read service account token {self._path}: {e}") from e

    async def headers(self) -> dict[str, str]:
        async with self._lock:
            if self._token is None:
                self._token = self._read()
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    async def on_401(self) -> None:
        async with self._lock:
            self._token = None


def resolve_api_server(config: ClusterConfig) -> str:
    if config.api_server:
        return config.api_server
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT", "443")
    if not host:
        raise ConfigurationError(
            "No [cluster] api_server configured and KUBERNETES_SERVICE_HOST is not set"
        )
    if ":" in host:
        host = f"[{host}]"
    return f"https://{host}:{port}"


def resolve_auth(config: ClusterConfig) -> Auth | None:
    if config.token:
        return BearerAuth(config.token)
    if config.token_file and Path(config.token_file).is_file():
        return TokenFileAuth(config.token_file)
    return None


def resolve_ssl(config: ClusterConfig) -> ssl.SSLContext | bool:
    if not config.verify_tls:
        return False
    if config.ca_file and Path(config.ca_file).is_file():
        return ssl.create_default_context(cafile=config.ca_file)
    return True
