"""subnetctl public surface."""

from subnetctl.admin import AdminClient, parse_config_kv
from subnetctl.aliases import AliasRecord, AliasStore, AliasStoreError
from subnetctl.cache import AdminClientCache, AdminClientFactory, fingerprint, parse_endpoint
from subnetctl.client import RegistryClient, registry_base_url
from subnetctl.credentials import ClusterKeyLookup, CredentialResolver
from subnetctl.errors import (
    AdminRequestError,
    InputError,
    ProtocolError,
    RegistryRequestError,
    RegistryUnavailableError,
    SubnetError,
    TransportError,
)
from subnetctl.login import LoginFlow, TerminalPrompter
from subnetctl.models import (
    AdminInfo,
    AliasCredentials,
    ClusterConnectionConfig,
    ClusterInfo,
    ClusterRegistrationInfo,
    Organization,
)
from subnetctl.registration import (
    Registrar,
    decode_reg_token,
    generate_reg_token,
    summarize_cluster,
)
from subnetctl.transport import build_session

__all__ = [
    "SubnetError",
    "InputError",
    "TransportError",
    "ProtocolError",
    "RegistryUnavailableError",
    "RegistryRequestError",
    "AdminRequestError",
    "AdminClient",
    "parse_config_kv",
    "AliasRecord",
    "AliasStore",
    "AliasStoreError",
    "AdminClientCache",
    "AdminClientFactory",
    "fingerprint",
    "parse_endpoint",
    "RegistryClient",
    "registry_base_url",
    "ClusterKeyLookup",
    "CredentialResolver",
    "LoginFlow",
    "TerminalPrompter",
    "AdminInfo",
    "AliasCredentials",
    "ClusterConnectionConfig",
    "ClusterInfo",
    "ClusterRegistrationInfo",
    "Organization",
    "Registrar",
    "decode_reg_token",
    "generate_reg_token",
    "summarize_cluster",
    "build_session",
]
