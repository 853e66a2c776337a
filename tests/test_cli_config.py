from __future__ import annotations

import pytest

from subnetctl.cli.config import DEFAULT_CERTS_DIR, ConfigError, load_cli_config


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch) -> None:
    monkeypatch.delenv("SUBNETCTL_REGISTRY_BASE", raising=False)
    monkeypatch.delenv("SUBNETCTL_REGISTRY_PROXY", raising=False)


def test_defaults_when_file_missing(tmp_path) -> None:
    config = load_cli_config(tmp_path / "missing.toml")
    assert config.registry_base == "https://subnet.min.io"
    assert config.dev_mode is False
    assert config.registry_proxy is None
    assert config.certs_dir == DEFAULT_CERTS_DIR
    assert config.app_name == "subnetctl"
    assert config.timeout == 10.0


def test_dev_mode_switches_default_registry(tmp_path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("dev_mode = true\n", encoding="utf-8")
    config = load_cli_config(config_path)
    assert config.dev_mode is True
    assert config.registry_base == "http://localhost:9000"


def test_cli_table_is_read(tmp_path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        '[cli]\nregistry_base = "https://subnet.example.com"\ntimeout = 3\napp_name = "ops"\n',
        encoding="utf-8",
    )
    config = load_cli_config(config_path)
    assert config.registry_base == "https://subnet.example.com"
    assert config.timeout == 3.0
    assert config.app_name == "ops"


def test_env_registry_base_overrides_config_file(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('registry_base = "http://localhost:8080"\n', encoding="utf-8")
    monkeypatch.setenv("SUBNETCTL_REGISTRY_BASE", "https://env.registry.example")
    config = load_cli_config(config_path)
    assert config.registry_base == "https://env.registry.example"


def test_env_proxy_overrides_config_file(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('registry_proxy = "http://file-proxy:3128"\n', encoding="utf-8")
    assert load_cli_config(config_path).registry_proxy == "http://file-proxy:3128"

    monkeypatch.setenv("SUBNETCTL_REGISTRY_PROXY", "http://env-proxy:3128")
    assert load_cli_config(config_path).registry_proxy == "http://env-proxy:3128"


@pytest.mark.parametrize(
    "content",
    [
        'dev_mode = "sometimes"\n',
        'registry_base = "ftp://subnet.example.com"\n',
        'registry_proxy = "proxy:3128"\n',
        "timeout = 0\n",
        "timeout = true\n",
        'app_name = "  "\n',
        "cli = 3\n",
        "registry_base = [\n",
    ],
)
def test_invalid_values_rejected(tmp_path, content: str) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_cli_config(config_path)
