"""Memoized admin connections keyed by target identity."""

from __future__ import annotations

import logging
import threading
from typing import Callable
from urllib.parse import urlsplit

from subnetctl.admin import DEFAULT_TIMEOUT, AdminClient
from subnetctl.aliases import AliasStore
from subnetctl.errors import InputError, TransportError
from subnetctl.models import ClusterConnectionConfig
from subnetctl.transport import build_session

logger = logging.getLogger(__name__)

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 0x01000193


def fingerprint(host: str, access_key: str, secret_key: str) -> int:
    """32-bit FNV-1a of ``host + access_key + secret_key``.

    Used only as a cache key; collisions are tolerated.
    """
    value = FNV32_OFFSET_BASIS
    for byte in (host + access_key + secret_key).encode("utf-8"):
        value ^= byte
        value = (value * FNV32_PRIME) & 0xFFFFFFFF
    return value


def parse_endpoint(host_url: str) -> tuple[str, bool]:
    """Split an endpoint URL into ``(host[:port], use_tls)``.

    TLS is on unless the scheme is exactly ``http``. A bare
    ``host[:port]`` is treated as https.
    """
    candidate = host_url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    parts = urlsplit(candidate)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise TransportError(f"invalid endpoint URL: {host_url!r}")
    return parts.netloc, parts.scheme != "http"


class AdminClientCache:
    """One live :class:`AdminClient` per (host, access key, secret key).

    Entries live as long as the cache object and are never evicted. The
    whole lookup-or-create step runs under a single lock so two callers
    can never build two clients for the same identity.
    """

    def __init__(self, client_class: Callable[..., AdminClient] = AdminClient) -> None:
        self._client_class = client_class
        self._clients: dict[int, AdminClient] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def get_or_create(self, config: ClusterConnectionConfig) -> AdminClient:
        host, use_tls = parse_endpoint(config.host_url)
        key = fingerprint(host, config.access_key, config.secret_key)

        with self._lock:
            client = self._clients.get(key)
            if client is not None:
                logger.debug("reusing admin connection for %s", host)
                return client

            try:
                client = self._client_class(
                    host,
                    config.access_key,
                    config.secret_key,
                    secure=use_tls,
                    timeout=config.timeout,
                )
                client.set_custom_transport(
                    build_session(
                        use_tls=use_tls,
                        insecure=config.insecure,
                        proxy_url=config.proxy_url,
                        debug=config.debug,
                        certs_dir=config.certs_dir,
                    )
                )
            except TransportError as exc:
                raise TransportError(f"unable to initialize admin connection to {host}: {exc}") from exc

            client.set_app_info(config.app_name, config.app_version)
            self._clients[key] = client
            logger.debug("created admin connection for %s (tls=%s)", host, use_tls)
            return client


class AdminClientFactory:
    """Builds connection configs from aliases and serves cached clients."""

    def __init__(
        self,
        aliases: AliasStore,
        *,
        cache: AdminClientCache | None = None,
        app_name: str = "subnetctl",
        app_version: str = "0.0.0+local",
        certs_dir: str | None = None,
        proxy_url: str | None = None,
        debug: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._aliases = aliases
        self._cache = cache if cache is not None else AdminClientCache()
        self._app_name = app_name
        self._app_version = app_version
        self._certs_dir = certs_dir
        self._proxy_url = proxy_url
        self._debug = debug
        self._timeout = timeout

    @property
    def aliases(self) -> AliasStore:
        return self._aliases

    @property
    def cache(self) -> AdminClientCache:
        return self._cache

    def connection_config(self, alias: str) -> ClusterConnectionConfig:
        record = self._aliases.get(alias)
        if record is None:
            raise InputError(
                f"alias {alias!r} not found. Add it with `subnetctl alias set {alias} URL ACCESS_KEY SECRET_KEY`."
            )
        return ClusterConnectionConfig(
            host_url=record.url,
            access_key=record.access_key,
            secret_key=record.secret_key,
            insecure=record.insecure,
            proxy_url=self._proxy_url,
            debug=self._debug,
            app_name=self._app_name,
            app_version=self._app_version,
            certs_dir=self._certs_dir,
            timeout=self._timeout,
        )

    def client_for_alias(self, alias: str) -> AdminClient:
        config = self.connection_config(alias)
        try:
            return self._cache.get_or_create(config)
        except TransportError as exc:
            raise TransportError(f"{alias}: {exc}") from exc
