"""Data model for admin connections, cluster status and registration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ClusterConnectionConfig:
    host_url: str
    access_key: str
    secret_key: str
    insecure: bool = False
    proxy_url: str | None = None
    debug: bool = False
    app_name: str = "subnetctl"
    app_version: str = "0.0.0+local"
    certs_dir: str | None = None
    timeout: float = 10.0


@dataclass(frozen=True)
class AliasCredentials:
    api_key: str = ""
    license: str = ""


class Organization(BaseModel):
    # The registry may send numeric account ids.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    company: str = ""
    account_id: str = Field("", alias="accountId")


# Cluster status as reported by the admin info endpoint.


class Disk(BaseModel):
    model_config = ConfigDict(extra="ignore")

    totalspace: int = Field(0, ge=0)
    usedspace: int = Field(0, ge=0)


class ServerProperties(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    endpoint: str = ""
    version: str = ""
    pool_number: int = Field(0, alias="poolNumber")
    drives: List[Disk] = Field(default_factory=list)


class Usage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    size: int = Field(0, ge=0)


class Counter(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: int = Field(0, ge=0)


class AdminInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    deployment_id: str = Field("", alias="deploymentID")
    servers: List[ServerProperties] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    buckets: Counter = Field(default_factory=Counter)
    objects: Counter = Field(default_factory=Counter)


class ConfigKeyHelp(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    description: str = ""


class ConfigHelp(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub_sys: str = Field("", alias="subSys")
    description: str = ""
    keys_help: List[ConfigKeyHelp] = Field(default_factory=list, alias="keysHelp")

    def has_key(self, key: str) -> bool:
        return any(item.key == key for item in self.keys_help)


# Registration payload. Field names are the wire keys.


class ClusterInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    minio_version: str
    no_of_server_pools: int = Field(..., ge=1)
    no_of_servers: int = Field(..., ge=0)
    no_of_drives: int = Field(..., ge=0)
    no_of_buckets: int = Field(..., ge=0)
    no_of_objects: int = Field(..., ge=0)
    total_drive_space: int = Field(..., ge=0)
    used_drive_space: int = Field(..., ge=0)


class ClusterRegistrationInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    deployment_id: str
    cluster_name: str
    used_capacity: int = Field(..., ge=0)
    info: ClusterInfo
