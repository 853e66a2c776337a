from __future__ import annotations

import logging
import ssl
import types
from datetime import datetime, timedelta, timezone

import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID
from requests.adapters import HTTPAdapter

from subnetctl.errors import TransportError
from subnetctl.transport import (
    InsecureAdapter,
    TraceAdapter,
    TrustStoreAdapter,
    build_session,
    build_ssl_context,
    load_root_cas,
)


def _self_signed_ca(common_name: str = "test-ca") -> x509.Certificate:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )


class _RecordingAdapter:
    def __init__(self) -> None:
        self.sent: list[requests.PreparedRequest] = []
        self.closed = False

    def send(self, request, **kwargs):  # noqa: ANN001, ARG002
        self.sent.append(request)
        return types.SimpleNamespace(status_code=204, reason="No Content", headers={"X-Test": "1"})

    def close(self) -> None:
        self.closed = True


def test_tls_session_uses_trust_store_adapter() -> None:
    session = build_session(use_tls=True)
    adapter = session.get_adapter("https://cluster.example.com")
    assert isinstance(adapter, TrustStoreAdapter)
    assert isinstance(adapter.ssl_context, ssl.SSLContext)
    assert session.verify is True


def test_insecure_is_opt_in_only() -> None:
    session = build_session(use_tls=True, insecure=True)
    assert session.verify is False
    assert isinstance(session.get_adapter("https://cluster.example.com"), InsecureAdapter)


def test_insecure_survives_ca_bundle_environment(monkeypatch) -> None:
    monkeypatch.setenv("REQUESTS_CA_BUNDLE", "/etc/ssl/custom-ca.pem")
    session = build_session(use_tls=True, insecure=True)
    settings = session.merge_environment_settings("https://cluster.example.com", {}, False, None, None)
    assert settings["verify"] == "/etc/ssl/custom-ca.pem"

    captured: dict[str, object] = {}

    def fake_send(self, request, **kwargs):  # noqa: ANN001, ARG001
        captured.update(kwargs)
        return "sent"

    monkeypatch.setattr(HTTPAdapter, "send", fake_send)
    request = requests.Request("GET", "https://cluster.example.com/minio/admin/v3/info").prepare()

    assert session.get_adapter("https://cluster.example.com").send(request, **settings) == "sent"
    assert captured["verify"] is False


def test_plain_http_session_skips_trust_store() -> None:
    session = build_session(use_tls=False)
    assert type(session.get_adapter("http://localhost:9000")) is HTTPAdapter


def test_proxy_applies_to_both_schemes() -> None:
    session = build_session(use_tls=True, proxy_url="http://proxy.local:3128")
    assert session.proxies == {"http": "http://proxy.local:3128", "https": "http://proxy.local:3128"}


def test_debug_wraps_adapter_with_trace() -> None:
    session = build_session(use_tls=True, debug=True)
    adapter = session.get_adapter("https://cluster.example.com")
    assert isinstance(adapter, TraceAdapter)
    assert isinstance(adapter.inner, TrustStoreAdapter)


def test_trace_adapter_logs_without_altering_exchange(caplog) -> None:
    inner = _RecordingAdapter()
    adapter = TraceAdapter(inner)
    request = requests.Request(
        "GET",
        "https://cluster.example.com/minio/admin/v3/info",
        headers={"Authorization": "Bearer top-secret"},
    ).prepare()

    with caplog.at_level(logging.DEBUG, logger="subnetctl.trace"):
        response = adapter.send(request, timeout=10)

    assert inner.sent == [request]
    assert response.status_code == 204
    assert "GET https://cluster.example.com/minio/admin/v3/info" in caplog.text
    assert "204 No Content" in caplog.text
    assert "top-secret" not in caplog.text

    adapter.close()
    assert inner.closed is True


def test_load_root_cas_reads_pem_and_der(tmp_path) -> None:
    pem_cert = _self_signed_ca("pem-ca")
    der_cert = _self_signed_ca("der-ca")
    (tmp_path / "a.pem").write_bytes(pem_cert.public_bytes(Encoding.PEM))
    (tmp_path / "b.crt").write_bytes(der_cert.public_bytes(Encoding.DER))

    pems = load_root_cas(tmp_path)
    assert len(pems) == 2
    assert all(item.startswith("-----BEGIN CERTIFICATE-----") for item in pems)

    context = build_ssl_context(tmp_path)
    subjects = [str(cert.get("subject")) for cert in context.get_ca_certs()]
    assert any("pem-ca" in subject for subject in subjects)


def test_missing_certs_dir_means_no_extra_cas(tmp_path) -> None:
    assert load_root_cas(tmp_path / "nope") == []
    assert load_root_cas(None) == []


def test_invalid_ca_file_is_transport_error(tmp_path) -> None:
    (tmp_path / "bad.pem").write_text("not a certificate", encoding="utf-8")
    with pytest.raises(TransportError):
        load_root_cas(tmp_path)
