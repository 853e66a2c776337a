from __future__ import annotations

import threading

import pytest

from subnetctl.admin import AdminClient
from subnetctl.aliases import AliasRecord, AliasStore
from subnetctl.cache import AdminClientCache, AdminClientFactory, fingerprint, parse_endpoint
from subnetctl.errors import InputError, TransportError
from subnetctl.models import ClusterConnectionConfig
from subnetctl.transport import TrustStoreAdapter


def _config(url: str = "https://cluster.example.com", access: str = "A", secret: str = "S", **kwargs):
    return ClusterConnectionConfig(host_url=url, access_key=access, secret_key=secret, **kwargs)


def test_fingerprint_matches_fnv1a_reference_values() -> None:
    assert fingerprint("", "", "") == 0x811C9DC5
    assert fingerprint("a", "", "") == 0xE40C292C


def test_fingerprint_is_deterministic_and_32_bit() -> None:
    first = fingerprint("cluster.example.com", "A", "S")
    second = fingerprint("cluster.example.com", "A", "S")
    assert first == second
    assert 0 <= first < 2**32
    assert fingerprint("cluster.example.com", "A", "T") != first


def test_parse_endpoint_selects_tls_from_scheme() -> None:
    assert parse_endpoint("http://localhost:9000") == ("localhost:9000", False)
    assert parse_endpoint("https://cluster.example.com") == ("cluster.example.com", True)
    assert parse_endpoint("cluster.example.com:9000") == ("cluster.example.com:9000", True)


def test_parse_endpoint_rejects_unknown_scheme() -> None:
    with pytest.raises(TransportError):
        parse_endpoint("ftp://cluster.example.com")


def test_same_identity_returns_same_client() -> None:
    cache = AdminClientCache()
    first = cache.get_or_create(_config())
    second = cache.get_or_create(_config())
    assert first is second
    assert len(cache) == 1


def test_different_identity_returns_distinct_client() -> None:
    cache = AdminClientCache()
    first = cache.get_or_create(_config(secret="S"))
    second = cache.get_or_create(_config(secret="S2"))
    third = cache.get_or_create(_config(url="https://other.example.com"))
    assert first is not second
    assert third is not first
    assert len(cache) == 3


def test_plain_http_endpoint_builds_client_without_tls() -> None:
    client = AdminClientCache().get_or_create(_config(url="http://localhost:9000"))
    assert client.secure is False
    assert client.endpoint == "localhost:9000"
    assert not isinstance(client.session.get_adapter("https://localhost:9000"), TrustStoreAdapter)


def test_https_endpoint_builds_client_with_tls_by_default() -> None:
    client = AdminClientCache().get_or_create(_config(url="https://cluster.example.com"))
    assert client.secure is True
    assert client.session.verify is True
    assert isinstance(client.session.get_adapter("https://cluster.example.com"), TrustStoreAdapter)


def test_insecure_flag_disables_verification() -> None:
    client = AdminClientCache().get_or_create(_config(insecure=True))
    assert client.session.verify is False


def test_app_info_is_applied_to_user_agent() -> None:
    client = AdminClientCache().get_or_create(_config(app_name="mc", app_version="1.2.3"))
    assert client.user_agent == "subnetctl mc/1.2.3"


def test_malformed_endpoint_raises_transport_error_with_host() -> None:
    cache = AdminClientCache()
    with pytest.raises(TransportError) as excinfo:
        cache.get_or_create(_config(url="https://cluster.example.com:notaport"))
    assert "cluster.example.com:notaport" in str(excinfo.value)
    assert len(cache) == 0


def test_concurrent_callers_construct_one_client() -> None:
    constructed: list[AdminClient] = []
    gate = threading.Barrier(8)

    def counting_client(*args, **kwargs) -> AdminClient:
        client = AdminClient(*args, **kwargs)
        constructed.append(client)
        return client

    cache = AdminClientCache(client_class=counting_client)
    results: list[AdminClient] = []

    def worker() -> None:
        gate.wait()
        results.append(cache.get_or_create(_config()))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(constructed) == 1
    assert all(result is constructed[0] for result in results)


def test_factory_builds_config_from_alias(tmp_path) -> None:
    store = AliasStore(tmp_path / "aliases.yaml")
    store.set("local", AliasRecord(url="http://localhost:9000", access_key="A", secret_key="S", insecure=True))
    factory = AdminClientFactory(store, app_name="mc", app_version="9.9.9", debug=True)

    config = factory.connection_config("local")
    assert config.host_url == "http://localhost:9000"
    assert config.insecure is True
    assert config.debug is True
    assert config.app_name == "mc"

    assert factory.client_for_alias("local") is factory.client_for_alias("local")


def test_factory_unknown_alias_is_input_error(tmp_path) -> None:
    factory = AdminClientFactory(AliasStore(tmp_path / "aliases.yaml"))
    with pytest.raises(InputError):
        factory.client_for_alias("missing")


def test_factory_transport_error_names_alias(tmp_path) -> None:
    store = AliasStore(tmp_path / "aliases.yaml")
    store.set("broken", AliasRecord(url="gopher://cluster", access_key="A", secret_key="S"))
    factory = AdminClientFactory(store)
    with pytest.raises(TransportError) as excinfo:
        factory.client_for_alias("broken")
    assert str(excinfo.value).startswith("broken:")


def test_factory_timeout_reaches_admin_client(tmp_path) -> None:
    store = AliasStore(tmp_path / "aliases.yaml")
    store.set("local", AliasRecord(url="http://localhost:9000", access_key="A", secret_key="S"))

    client = AdminClientFactory(store, timeout=2.5).client_for_alias("local")

    assert client.timeout == 2.5
    assert AdminClientCache().get_or_create(_config()).timeout == 10.0
