"""Command-line interface for subnetctl."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from subnetctl.aliases import AliasRecord, AliasStore, AliasStoreError
from subnetctl.cache import AdminClientFactory
from subnetctl.cli.config import CLIConfig, ConfigError, load_cli_config
from subnetctl.client import RegistryClient, registry_base_url
from subnetctl.credentials import CredentialResolver
from subnetctl.errors import (
    AdminRequestError,
    InputError,
    ProtocolError,
    RegistryRequestError,
    RegistryUnavailableError,
    TransportError,
)
from subnetctl.login import LoginFlow, TerminalPrompter
from subnetctl.registration import (
    Registrar,
    generate_reg_token,
    manual_registration_url,
    summarize_cluster,
)

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2
EXIT_PROTOCOL_ERROR = 3

_SENSITIVE_FIELDS = (
    "secret_key",
    "api_key",
    "license",
    "password",
    "otp",
    "token",
    "authorization",
)


def _sdk_version() -> str:
    try:
        return pkg_version("subnetctl")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="subnetctl")
    parser.add_argument(
        "--version",
        action="version",
        version=f"subnetctl {_sdk_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ~/.subnetctl/config.toml)",
    )
    parser.add_argument(
        "--aliases",
        default=None,
        help="Path to alias file (default: ~/.subnetctl/aliases.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debug output and trace every HTTP exchange to stderr",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Show CLI version and registry settings")
    version.add_argument("--json", action="store_true", help="Print version details as JSON")

    alias = sub.add_parser("alias", help="Manage cluster aliases")
    alias_sub = alias.add_subparsers(dest="alias_command", required=True)
    alias_set = alias_sub.add_parser("set", help="Add or replace an alias")
    alias_set.add_argument("name")
    alias_set.add_argument("url", help="Cluster endpoint, e.g. https://cluster.example.com")
    alias_set.add_argument("access_key")
    alias_set.add_argument("secret_key")
    alias_set.add_argument(
        "--insecure",
        action="store_true",
        help="Disable TLS certificate verification for this alias",
    )
    alias_set.add_argument("--json", action="store_true")
    alias_list = alias_sub.add_parser("list", help="List aliases")
    alias_list.add_argument("--json", action="store_true")
    alias_rm = alias_sub.add_parser("rm", help="Remove an alias")
    alias_rm.add_argument("name")

    register = sub.add_parser("register", help="Register a cluster with the subscription service")
    register.add_argument("alias", help="Alias of the cluster to register")
    register.add_argument(
        "--name",
        default=None,
        help="Name to associate to this cluster (default: the alias)",
    )
    register.add_argument(
        "--registry-proxy",
        default=None,
        help="HTTP(S) proxy URL to use for connecting to the registry",
    )
    register.add_argument(
        "--airgap",
        action="store_true",
        help="Print a registration URL instead of contacting the registry",
    )
    register.add_argument("--dev", action="store_true", help=argparse.SUPPRESS)
    register.add_argument("--json", action="store_true")

    return parser


def _sanitize_error_text(value: str) -> str:
    redacted = re.sub(r"(?i)(Bearer\s+)(\S+)", r"\1[REDACTED]", value)
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field}\s*[=:]\s*)([^,&\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _print_registry_request_error(stderr, exc: RegistryRequestError, *, code: int) -> int:
    if exc.status_code == 401:
        return _print_error(
            stderr,
            "registry error",
            (
                "the registry rejected the stored credentials. Remove the api_key/license "
                "from the alias or cluster config to log in interactively."
            ),
            code=code,
        )
    return _print_error(stderr, "registry error", str(exc), code=code)


def _run_version(*, config: CLIConfig, as_json: bool, stdout) -> int:
    payload = {
        "cli": "subnetctl",
        "version": _sdk_version(),
        "registry_base": config.registry_base,
        "dev_mode": config.dev_mode,
    }
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"subnetctl {payload['version']}", file=stdout)
    print(f"registry: {payload['registry_base']}", file=stdout)
    return EXIT_SUCCESS


def _run_alias_set(*, args, stdout, stderr) -> int:
    store = AliasStore(args.aliases)
    try:
        existing = store.get(args.name)
        record = AliasRecord(
            url=args.url.strip(),
            access_key=args.access_key,
            secret_key=args.secret_key,
            api_key=existing.api_key if existing else "",
            license=existing.license if existing else "",
            insecure=bool(args.insecure),
        )
        path = store.set(args.name, record)
    except AliasStoreError as exc:
        return _print_error(stderr, "alias error", str(exc), code=EXIT_VALIDATION_ERROR)

    payload = {"alias": args.name, "url": record.url, "aliases_file": str(path)}
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"alias: {args.name}", file=stdout)
    print(f"url: {record.url}", file=stdout)
    print(f"aliases_file: {path}", file=stdout)
    return EXIT_SUCCESS


def _run_alias_list(*, args, stdout, stderr) -> int:
    try:
        records = AliasStore(args.aliases).load()
    except AliasStoreError as exc:
        return _print_error(stderr, "alias error", str(exc), code=EXIT_VALIDATION_ERROR)

    rows = [
        {
            "alias": name,
            "url": record.url,
            "access_key": record.access_key,
            "insecure": record.insecure,
            "api_key_configured": bool(record.api_key),
            "license_configured": bool(record.license),
        }
        for name, record in sorted(records.items())
    ]
    if args.json:
        print(json.dumps(rows, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    for row in rows:
        print(f"{row['alias']}: {row['url']}", file=stdout)
    return EXIT_SUCCESS


def _run_alias_rm(*, args, stdout, stderr) -> int:
    try:
        removed = AliasStore(args.aliases).remove(args.name)
    except AliasStoreError as exc:
        return _print_error(stderr, "alias error", str(exc), code=EXIT_VALIDATION_ERROR)
    if not removed:
        return _print_error(stderr, "alias error", f"alias {args.name!r} not found", code=EXIT_VALIDATION_ERROR)
    print(f"removed: {args.name}", file=stdout)
    return EXIT_SUCCESS


def _run_register(*, args, config: CLIConfig, stdin, stdout, stderr) -> int:
    factory = AdminClientFactory(
        AliasStore(args.aliases),
        app_name=config.app_name,
        app_version=_sdk_version(),
        certs_dir=config.certs_dir,
        debug=args.debug,
        timeout=config.timeout,
    )
    registry_base = registry_base_url(dev_mode=True) if args.dev else config.registry_base
    cluster_name = args.name or args.alias

    try:
        admin = factory.client_for_alias(args.alias)
        info = summarize_cluster(admin.server_info(), cluster_name)

        if args.airgap:
            url = manual_registration_url(registry_base, generate_reg_token(info))
            if args.json:
                payload = {"cluster_name": cluster_name, "registration_url": url}
                print(json.dumps(payload, sort_keys=True), file=stdout)
            else:
                print("Please register the cluster by visiting:", file=stdout)
                print(url, file=stdout)
            return EXIT_SUCCESS

        client = RegistryClient(
            base_url=registry_base,
            proxy_url=args.registry_proxy or config.registry_proxy,
            timeout=config.timeout,
            debug=args.debug,
            certs_dir=config.certs_dir,
        )
        try:
            client.check_reachable()
        except RegistryUnavailableError as exc:
            return _print_error(
                stderr,
                "registry error",
                f"{exc}. Use --airgap in environments without network access to the registry.",
                code=EXIT_NETWORK_ERROR,
            )

        prompter = TerminalPrompter(stdin=stdin, stdout=stdout)
        registrar = Registrar(CredentialResolver(factory, LoginFlow(client, prompter)), client)
        body = registrar.register(args.alias, info)
        api_key = registrar.extract_and_save_api_key(args.alias, body)
    except (InputError, AliasStoreError) as exc:
        return _print_error(stderr, "input error", str(exc), code=EXIT_VALIDATION_ERROR)
    except TransportError as exc:
        return _print_error(stderr, "connection error", str(exc), code=EXIT_VALIDATION_ERROR)
    except RegistryRequestError as exc:
        return _print_registry_request_error(stderr, exc, code=EXIT_NETWORK_ERROR)
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc), code=EXIT_NETWORK_ERROR)
    except AdminRequestError as exc:
        return _print_error(stderr, "cluster error", str(exc), code=EXIT_NETWORK_ERROR)
    except ProtocolError as exc:
        return _print_error(stderr, "protocol error", str(exc), code=EXIT_PROTOCOL_ERROR)

    payload = {
        "alias": args.alias,
        "cluster_name": cluster_name,
        "deployment_id": info.deployment_id,
        "registry_base": registry_base,
        "api_key_stored": api_key is not None,
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"{cluster_name} registered successfully.", file=stdout)
    print(f"deployment_id: {payload['deployment_id']}", file=stdout)
    if api_key is not None:
        print("api_key: stored", file=stdout)
    return EXIT_SUCCESS


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin=sys.stdin,
    stdout=sys.stdout,
    stderr=sys.stderr,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=stderr,
            format="%(name)s: %(message)s",
        )

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if args.command == "version":
        return _run_version(config=config, as_json=args.json, stdout=stdout)

    if args.command == "alias":
        if args.alias_command == "set":
            return _run_alias_set(args=args, stdout=stdout, stderr=stderr)
        if args.alias_command == "list":
            return _run_alias_list(args=args, stdout=stdout, stderr=stderr)
        if args.alias_command == "rm":
            return _run_alias_rm(args=args, stdout=stdout, stderr=stderr)

    if args.command == "register":
        return _run_register(args=args, config=config, stdin=stdin, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
