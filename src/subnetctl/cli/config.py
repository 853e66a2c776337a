"""Configuration helpers for the subnetctl CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from subnetctl.client import DEFAULT_TIMEOUT, registry_base_url

DEFAULT_CONFIG_PATH = Path.home() / ".subnetctl" / "config.toml"
DEFAULT_CERTS_DIR = str(Path.home() / ".subnetctl" / "certs" / "CAs")
REGISTRY_BASE_ENV_VAR = "SUBNETCTL_REGISTRY_BASE"
REGISTRY_PROXY_ENV_VAR = "SUBNETCTL_REGISTRY_PROXY"


@dataclass(frozen=True)
class CLIConfig:
    dev_mode: bool = False
    registry_base: str = registry_base_url(dev_mode=False)
    registry_proxy: str | None = None
    certs_dir: str = DEFAULT_CERTS_DIR
    app_name: str = "subnetctl"
    timeout: float = DEFAULT_TIMEOUT


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _to_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
    raise ConfigError(f"{field_name} must be a boolean")


def _validate_url(value: str, field_name: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ConfigError(f"{field_name} must be an http(s) URL")
    return value


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    parsed: dict[str, Any] = _load_toml(config_path) if config_path.exists() else {}

    section = parsed.get("cli")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[cli] must be a table")

    dev_mode = _to_bool(source.get("dev_mode", False), "dev_mode")

    env_registry_base = os.getenv(REGISTRY_BASE_ENV_VAR)
    configured_registry_base = str(
        source.get("registry_base", registry_base_url(dev_mode=dev_mode))
    ).strip()
    registry_base = env_registry_base.strip() if env_registry_base else configured_registry_base
    if not registry_base:
        raise ConfigError("registry_base must not be empty")
    _validate_url(registry_base, "registry_base")

    env_proxy = os.getenv(REGISTRY_PROXY_ENV_VAR)
    proxy_raw = env_proxy if env_proxy else source.get("registry_proxy")
    registry_proxy = str(proxy_raw).strip() or None if proxy_raw is not None else None
    if registry_proxy is not None:
        _validate_url(registry_proxy, "registry_proxy")

    certs_dir = str(source.get("certs_dir", DEFAULT_CERTS_DIR)).strip()
    if not certs_dir:
        raise ConfigError("certs_dir must not be empty")

    app_name = str(source.get("app_name", "subnetctl")).strip()
    if not app_name:
        raise ConfigError("app_name must not be empty")

    timeout_raw = source.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout_raw, bool) or not isinstance(timeout_raw, (int, float)) or timeout_raw <= 0:
        raise ConfigError("timeout must be a positive number of seconds")

    return CLIConfig(
        dev_mode=dev_mode,
        registry_base=registry_base,
        registry_proxy=registry_proxy,
        certs_dir=certs_dir,
        app_name=app_name,
        timeout=float(timeout_raw),
    )
