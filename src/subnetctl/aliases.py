"""Local alias store: alias name -> endpoint, keys and registry credentials."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from subnetctl.models import AliasCredentials

DEFAULT_ALIASES_PATH = Path.home() / ".subnetctl" / "aliases.yaml"


class AliasStoreError(ValueError):
    """Raised when the alias file is invalid or cannot be written."""


@dataclass(frozen=True)
class AliasRecord:
    url: str
    access_key: str
    secret_key: str
    api_key: str = ""
    license: str = ""
    insecure: bool = False

    @property
    def credentials(self) -> AliasCredentials:
        return AliasCredentials(api_key=self.api_key, license=self.license)


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def _str_field(entry: dict[str, Any], name: str, field_name: str, *, required: bool) -> str:
    value = entry.get(field_name)
    if value is None:
        if required:
            raise AliasStoreError(f"alias {name!r}: {field_name} is required")
        return ""
    if not isinstance(value, str):
        raise AliasStoreError(f"alias {name!r}: {field_name} must be a string")
    return value.strip()


def _parse_record(name: str, entry: Any) -> AliasRecord:
    if not isinstance(entry, dict):
        raise AliasStoreError(f"alias {name!r} must be a mapping")
    insecure = entry.get("insecure", False)
    if not isinstance(insecure, bool):
        raise AliasStoreError(f"alias {name!r}: insecure must be a boolean")
    return AliasRecord(
        url=_str_field(entry, name, "url", required=True),
        access_key=_str_field(entry, name, "access_key", required=True),
        secret_key=_str_field(entry, name, "secret_key", required=True),
        api_key=_str_field(entry, name, "api_key", required=False),
        license=_str_field(entry, name, "license", required=False),
        insecure=insecure,
    )


class AliasStore:
    """YAML-backed alias records.

    The file is re-read on every call so write-backs from one step are
    visible to the next.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_ALIASES_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, AliasRecord]:
        if not self._path.exists():
            return {}
        try:
            payload = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise AliasStoreError(f"invalid YAML in {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise AliasStoreError(f"{self._path} must contain a mapping")

        aliases = payload.get("aliases") or {}
        if not isinstance(aliases, dict):
            raise AliasStoreError("aliases must be a mapping of name to record")
        return {str(name): _parse_record(str(name), entry) for name, entry in aliases.items()}

    def get(self, name: str) -> AliasRecord | None:
        return self.load().get(name)

    def credentials(self, name: str) -> AliasCredentials:
        record = self.get(name)
        if record is None:
            return AliasCredentials()
        return record.credentials

    def set(self, name: str, record: AliasRecord) -> Path:
        if not name.strip():
            raise AliasStoreError("alias name must not be empty")
        records = self.load()
        records[name] = record
        return self._write(records)

    def remove(self, name: str) -> bool:
        records = self.load()
        if records.pop(name, None) is None:
            return False
        self._write(records)
        return True

    def update_credentials(
        self,
        name: str,
        *,
        api_key: str | None = None,
        license: str | None = None,
    ) -> Path:
        records = self.load()
        record = records.get(name)
        if record is None:
            raise AliasStoreError(f"alias {name!r} not found in {self._path}")
        changes: dict[str, str] = {}
        if api_key is not None:
            changes["api_key"] = api_key
        if license is not None:
            changes["license"] = license
        records[name] = replace(record, **changes)
        return self._write(records)

    def _write(self, records: dict[str, AliasRecord]) -> Path:
        payload = {"aliases": {name: asdict(record) for name, record in sorted(records.items())}}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        try:
            tmp_path.write_text(
                yaml.safe_dump(payload, default_flow_style=False, sort_keys=False),
                encoding="utf-8",
            )
            _chmod_owner_only(tmp_path)
            tmp_path.replace(self._path)
        except OSError as exc:
            raise AliasStoreError(f"failed to write alias file: {self._path}") from exc
        return self._path
