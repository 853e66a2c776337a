"""HTTP session construction for admin and registry traffic.

A session is assembled from three independent pieces:

1. a trust store (default CA bundle plus operator supplied CAs) unless the
   operator explicitly asked for insecure mode,
2. an optional outbound proxy,
3. an optional ``TraceAdapter`` that logs every exchange.

Nothing here touches the network.
"""

from __future__ import annotations

import logging
import ssl
from pathlib import Path

import certifi
import requests
import urllib3
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from requests.adapters import BaseAdapter, HTTPAdapter

from subnetctl.errors import TransportError

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger("subnetctl.trace")

_REDACTED_HEADERS = ("authorization", "x-amz-security-token")


def load_root_cas(certs_dir: str | Path | None) -> list[str]:
    """Return PEM text for every certificate found in *certs_dir*.

    Files may hold PEM bundles or a single DER certificate. A missing
    directory means no extra CAs.
    """
    if certs_dir is None:
        return []
    root = Path(certs_dir).expanduser()
    if not root.is_dir():
        return []

    pems: list[str] = []
    for path in sorted(root.iterdir()):
        if not path.is_file():
            continue
        raw = path.read_bytes()
        try:
            if b"-----BEGIN CERTIFICATE-----" in raw:
                certs = x509.load_pem_x509_certificates(raw)
            else:
                certs = [x509.load_der_x509_certificate(raw)]
        except ValueError as exc:
            raise TransportError(f"invalid CA certificate: {path}") from exc
        pems.extend(cert.public_bytes(Encoding.PEM).decode("ascii") for cert in certs)
    return pems


def build_ssl_context(certs_dir: str | Path | None = None) -> ssl.SSLContext:
    context = ssl.create_default_context(cafile=certifi.where())
    extra = load_root_cas(certs_dir)
    if extra:
        try:
            context.load_verify_locations(cadata="".join(extra))
        except ssl.SSLError as exc:
            raise TransportError(f"unable to load CA certificates from {certs_dir}: {exc}") from exc
        logger.debug("loaded %d extra CA certificate(s) from %s", len(extra), certs_dir)
    return context


class TrustStoreAdapter(HTTPAdapter):
    """HTTPAdapter that verifies peers against a prepared SSL context."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs) -> None:
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    @property
    def ssl_context(self) -> ssl.SSLContext:
        return self._ssl_context

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):  # noqa: ANN001
        pool_kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):  # noqa: ANN001
        proxy_kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(proxy, **proxy_kwargs)


class InsecureAdapter(HTTPAdapter):
    """HTTPAdapter that never verifies peers.

    requests lets REQUESTS_CA_BUNDLE and CURL_CA_BUNDLE override
    ``Session.verify``, so the setting is forced on every send.
    """

    def send(self, request, **kwargs):  # noqa: ANN001
        kwargs["verify"] = False
        return super().send(request, **kwargs)


class TraceAdapter(BaseAdapter):
    """Wraps another adapter and logs each request/response pair."""

    def __init__(self, inner: BaseAdapter) -> None:
        super().__init__()
        self._inner = inner

    @property
    def inner(self) -> BaseAdapter:
        return self._inner

    def send(self, request, **kwargs):  # noqa: ANN001
        trace_logger.debug("> %s %s", request.method, request.url)
        for name, value in request.headers.items():
            if name.lower() in _REDACTED_HEADERS:
                value = "[REDACTED]"
            trace_logger.debug("> %s: %s", name, value)
        response = self._inner.send(request, **kwargs)
        trace_logger.debug("< %s %s", response.status_code, response.reason)
        for name, value in response.headers.items():
            trace_logger.debug("< %s: %s", name, value)
        return response

    def close(self) -> None:
        self._inner.close()


def build_session(
    *,
    use_tls: bool,
    insecure: bool = False,
    proxy_url: str | None = None,
    debug: bool = False,
    certs_dir: str | Path | None = None,
) -> requests.Session:
    session = requests.Session()

    adapter: BaseAdapter
    if use_tls and not insecure:
        adapter = TrustStoreAdapter(build_ssl_context(certs_dir))
    elif use_tls:
        adapter = InsecureAdapter()
    else:
        adapter = HTTPAdapter()

    if use_tls and insecure:
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    if proxy_url:
        session.proxies = {"http": proxy_url, "https": proxy_url}

    if debug:
        adapter = TraceAdapter(adapter)

    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session
