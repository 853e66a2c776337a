"""Cluster registration: status aggregation, token encoding and submission."""

from __future__ import annotations

import base64
import binascii
import logging
from urllib.parse import urlencode

from pydantic import ValidationError

from subnetctl.client import RegistryClient, decode_json
from subnetctl.credentials import CredentialResolver
from subnetctl.errors import ProtocolError
from subnetctl.models import AdminInfo, ClusterInfo, ClusterRegistrationInfo

logger = logging.getLogger(__name__)


def drive_space(admin_info: AdminInfo) -> tuple[int, int]:
    total = 0
    used = 0
    for server in admin_info.servers:
        for drive in server.drives:
            total += drive.totalspace
            used += drive.usedspace
    return total, used


def summarize_cluster(admin_info: AdminInfo, cluster_name: str) -> ClusterRegistrationInfo:
    """Aggregate a cluster status report into registration info.

    Pool numbers are 1-based, so the pool count is the highest pool
    number seen (never less than one). Drives and drive space are summed
    over every drive of every server.
    """
    if not admin_info.servers:
        raise ProtocolError("cluster status reported no servers")

    pools = 1
    drives = 0
    for server in admin_info.servers:
        pools = max(pools, server.pool_number)
        drives += len(server.drives)
    total_space, used_space = drive_space(admin_info)

    return ClusterRegistrationInfo(
        deployment_id=admin_info.deployment_id,
        cluster_name=cluster_name,
        used_capacity=admin_info.usage.size,
        info=ClusterInfo(
            minio_version=admin_info.servers[0].version,
            no_of_server_pools=pools,
            no_of_servers=len(admin_info.servers),
            no_of_drives=drives,
            no_of_buckets=admin_info.buckets.count,
            no_of_objects=admin_info.objects.count,
            total_drive_space=total_space,
            used_drive_space=used_space,
        ),
    )


def generate_reg_token(info: ClusterRegistrationInfo) -> str:
    return base64.b64encode(info.model_dump_json().encode("utf-8")).decode("ascii")


def decode_reg_token(token: str) -> ClusterRegistrationInfo:
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ProtocolError("registration token is not valid base64") from exc
    try:
        return ClusterRegistrationInfo.model_validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError(f"registration token has an unexpected shape: {exc}") from exc


def manual_registration_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/cluster/register?{urlencode({'token': token})}"


class Registrar:
    def __init__(self, resolver: CredentialResolver, client: RegistryClient) -> None:
        self._resolver = resolver
        self._client = client

    def register(self, alias: str, info: ClusterRegistrationInfo) -> str:
        """Submit *info* for *alias* and return the registry's response body."""
        api_key = self._resolver.api_key(alias)
        license = "" if api_key else self._resolver.license(alias)

        url, headers = self._resolver.url_with_auth(self._client.register_url, api_key, license)
        payload = {"token": generate_reg_token(info)}
        logger.debug("registering deployment %s as %s", info.deployment_id, info.cluster_name)
        return self._client.post(url, payload, headers)

    def extract_and_save_api_key(self, alias: str, response_body: str) -> str | None:
        payload = decode_json(response_body, "cluster register")
        api_key = payload.get("api_key") if isinstance(payload, dict) else None
        if not isinstance(api_key, str) or not api_key:
            return None
        self._resolver.set_api_key(alias, api_key)
        return api_key
