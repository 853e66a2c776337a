"""Administration API client for the storage cluster."""

from __future__ import annotations

import hashlib
import logging
import shlex
from urllib.parse import quote, urlencode, urlsplit

import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from pydantic import ValidationError

from subnetctl.errors import AdminRequestError, ProtocolError, TransportError
from subnetctl.models import AdminInfo, ConfigHelp
from subnetctl.payload import decrypt_payload, encrypt_payload

logger = logging.getLogger(__name__)

ADMIN_API_PREFIX = "/minio/admin/v3"
DEFAULT_REGION = "us-east-1"
DEFAULT_TIMEOUT = 10.0
SIGNING_SERVICE = "s3"


def _validate_endpoint(endpoint: str) -> None:
    if not endpoint or "/" in endpoint:
        raise TransportError(f"invalid admin endpoint: {endpoint!r}")
    parts = urlsplit(f"//{endpoint}")
    try:
        parts.port
    except ValueError as exc:
        raise TransportError(f"invalid admin endpoint: {endpoint!r}: {exc}") from exc
    if not parts.hostname:
        raise TransportError(f"invalid admin endpoint: {endpoint!r}")


class AdminClient:
    """Signed client for the cluster's admin REST API.

    ``endpoint`` is ``host[:port]`` without a scheme; ``secure`` picks
    https. The HTTP session can be replaced with
    :meth:`set_custom_transport` (see :mod:`subnetctl.transport`).
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        *,
        secure: bool = True,
        region: str = DEFAULT_REGION,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        _validate_endpoint(endpoint)
        self._endpoint = endpoint
        self._secure = secure
        self._credentials = Credentials(access_key, secret_key)
        self._secret_key = secret_key
        self._region = region
        self._timeout = timeout
        self._session = requests.Session()
        self._user_agent = "subnetctl"

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def secure(self) -> bool:
        return self._secure

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def timeout(self) -> float:
        return self._timeout

    def set_custom_transport(self, session: requests.Session) -> None:
        self._session = session

    def set_app_info(self, app_name: str, app_version: str) -> None:
        if app_name and app_version:
            self._user_agent = f"subnetctl {app_name}/{app_version}"

    def _url(self, path: str, query: dict[str, str] | None = None) -> str:
        scheme = "https" if self._secure else "http"
        url = f"{scheme}://{self._endpoint}{ADMIN_API_PREFIX}/{path.lstrip('/')}"
        if query:
            url = f"{url}?{urlencode(sorted(query.items()), quote_via=quote)}"
        return url

    def _request(
        self,
        method: str,
        path: str,
        *,
        query: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> requests.Response:
        url = self._url(path, query)
        headers = {
            "User-Agent": self._user_agent,
            "X-Amz-Content-Sha256": hashlib.sha256(body).hexdigest(),
        }
        signed = AWSRequest(method=method, url=url, data=body, headers=headers)
        SigV4Auth(self._credentials, SIGNING_SERVICE, self._region).add_auth(signed)

        logger.debug("admin %s %s on %s", method, path, self._endpoint)
        try:
            response = self._session.request(
                method,
                url,
                data=body or None,
                headers=dict(signed.headers.items()),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise AdminRequestError(f"admin request to {self._endpoint} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise AdminRequestError(
                f"admin request {method} {path} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def _json(self, response: requests.Response, what: str) -> dict:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProtocolError(f"{what}: response is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise ProtocolError(f"{what}: expected a JSON object")
        return payload

    def help_config_kv(self, sub_sys: str, key: str = "") -> ConfigHelp:
        response = self._request("GET", "help-config-kv", query={"subSys": sub_sys, "key": key})
        payload = self._json(response, "config help")
        try:
            return ConfigHelp.model_validate(payload)
        except ValidationError as exc:
            raise ProtocolError(f"config help: unexpected shape: {exc}") from exc

    def get_config_kv(self, key: str) -> bytes:
        """Return the decrypted config lines for *key*."""
        raw = self._request("GET", "get-config-kv", query={"key": key}).content
        return decrypt_payload(self._secret_key, raw)

    def set_config_kv(self, kv: str) -> None:
        self._request("PUT", "set-config-kv", body=encrypt_payload(self._secret_key, kv.encode("utf-8")))

    def server_info(self) -> AdminInfo:
        payload = self._json(self._request("GET", "info"), "server info")
        try:
            return AdminInfo.model_validate(payload)
        except ValidationError as exc:
            raise ProtocolError(f"server info: unexpected shape: {exc}") from exc


def parse_config_kv(raw: bytes, sub_sys: str) -> dict[str, str]:
    """Parse ``get-config-kv`` output into the key/value pairs of *sub_sys*.

    Lines look like ``subnet license= api_key="abc" proxy=``. Comment and
    blank lines are skipped; a missing subsystem line yields ``{}``.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"config for {sub_sys!r} is not valid UTF-8") from exc

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            tokens = shlex.split(stripped)
        except ValueError as exc:
            raise ProtocolError(f"unable to parse config line for {sub_sys!r}: {exc}") from exc
        name = tokens[0].split(":", 1)[0]
        if name != sub_sys:
            continue
        pairs: dict[str, str] = {}
        for token in tokens[1:]:
            key, sep, value = token.partition("=")
            if not sep:
                raise ProtocolError(f"malformed config entry {token!r} for {sub_sys!r}")
            pairs[key] = value
        return pairs
    return {}
