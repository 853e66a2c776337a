"""Registry request layer: plain GET/POST against the subscription service."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import requests

from subnetctl.errors import ProtocolError, RegistryRequestError, RegistryUnavailableError
from subnetctl.transport import build_session

logger = logging.getLogger(__name__)

PRODUCTION_REGISTRY_BASE = "https://subnet.min.io"
DEVELOPMENT_REGISTRY_BASE = "http://localhost:9000"
RESPONSE_BODY_LIMIT = 1 << 20  # 1 MiB
DEFAULT_TIMEOUT = 10.0
_READ_CHUNK = 64 * 1024

LOGIN_PATH = "/api/auth/login"
MFA_LOGIN_PATH = "/api/auth/mfa-login"
ORGANIZATIONS_PATH = "/api/auth/organizations"
REGISTER_PATH = "/api/cluster/register"


def registry_base_url(*, dev_mode: bool = False) -> str:
    return DEVELOPMENT_REGISTRY_BASE if dev_mode else PRODUCTION_REGISTRY_BASE


def decode_json(body: str, what: str) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ProtocolError(f"{what}: response is not valid JSON") from exc


def _read_limited(response: requests.Response, limit: int) -> str:
    chunks: list[bytes] = []
    remaining = limit
    for chunk in response.iter_content(chunk_size=_READ_CHUNK):
        if not chunk:
            continue
        chunks.append(chunk[:remaining])
        remaining -= len(chunks[-1])
        if remaining <= 0:
            break
    return b"".join(chunks).decode("utf-8", errors="replace")


@dataclass
class RegistryClient:
    base_url: str = PRODUCTION_REGISTRY_BASE
    proxy_url: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False
    certs_dir: str | None = None
    body_limit: int = RESPONSE_BODY_LIMIT

    def __post_init__(self) -> None:
        use_tls = urlsplit(self.base_url).scheme != "http"
        self._session = build_session(
            use_tls=use_tls,
            proxy_url=self.proxy_url,
            debug=self.debug,
            certs_dir=self.certs_dir,
        )

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @property
    def login_url(self) -> str:
        return self.url(LOGIN_PATH)

    @property
    def mfa_login_url(self) -> str:
        return self.url(MFA_LOGIN_PATH)

    @property
    def organizations_url(self) -> str:
        return self.url(ORGANIZATIONS_PATH)

    @property
    def register_url(self) -> str:
        return self.url(REGISTER_PATH)

    def _do(
        self,
        method: str,
        url: str,
        *,
        data: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        merged = dict(headers or {})
        if not any(name.lower() == "content-type" for name in merged):
            merged["Content-Type"] = "application/json"

        logger.debug("registry %s %s", method, urlsplit(url).path)
        try:
            response = self._session.request(
                method,
                url,
                data=data,
                headers=merged,
                timeout=self.timeout,
                stream=True,
            )
            try:
                body = _read_limited(response, self.body_limit)
            finally:
                response.close()
        except requests.RequestException as exc:
            raise RegistryUnavailableError(f"registry request failed: {exc}") from exc

        if response.status_code != 200:
            raise RegistryRequestError(
                f"request failed with code {response.status_code} and error: {body}",
                status_code=response.status_code,
                reason=response.reason,
                body=body,
            )
        return body

    def get(self, url: str, headers: dict[str, str] | None = None) -> str:
        return self._do("GET", url, headers=headers)

    def post(self, url: str, payload: Any, headers: dict[str, str] | None = None) -> str:
        return self._do("POST", url, data=json.dumps(payload), headers=headers)

    def check_reachable(self, url: str | None = None) -> None:
        target = url or self.base_url
        try:
            response = self._session.head(target, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RegistryUnavailableError(f"{target} is not reachable: {exc}") from exc
        response.close()
        if response.status_code != 200:
            raise RegistryRequestError(
                f"{target} is not reachable: {response.status_code} {response.reason}",
                status_code=response.status_code,
                reason=response.reason,
            )


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


__all__ = [
    "RegistryClient",
    "auth_headers",
    "decode_json",
    "registry_base_url",
]
