"""Interactive registry login: password, optional one-time code, organization pick."""

from __future__ import annotations

import getpass
import sys
from typing import Callable, Protocol, TextIO

from pydantic import ValidationError

from subnetctl.client import RegistryClient, auth_headers, decode_json
from subnetctl.errors import InputError, ProtocolError
from subnetctl.models import Organization

ACCOUNT_SIGNUP_URL = "https://min.io/subscription"


class Prompter(Protocol):
    def prompt(self, message: str) -> str:
        ...

    def prompt_secret(self, message: str) -> str:
        ...

    def say(self, message: str) -> None:
        ...


class TerminalPrompter:
    """Blocking prompts on the controlling terminal."""

    def __init__(
        self,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        read_secret: Callable[..., str] | None = None,
    ) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._read_secret = read_secret

    def prompt(self, message: str) -> str:
        print(message, end="", file=self._stdout, flush=True)
        return self._stdin.readline()

    def prompt_secret(self, message: str) -> str:
        read_secret = self._read_secret or getpass.getpass
        return read_secret(message, stream=self._stdout)

    def say(self, message: str) -> None:
        print(message, file=self._stdout)


def _truthy(value: object) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


def _access_token(payload: object) -> str:
    token_info = payload.get("token_info") if isinstance(payload, dict) else None
    token = token_info.get("access_token") if isinstance(token_info, dict) else None
    if token is None or token == "" or isinstance(token, (dict, list)):
        raise ProtocolError("access token not found in response")
    return str(token)


def parse_organizations(body: str) -> list[Organization]:
    payload = decode_json(body, "organizations")
    if not isinstance(payload, list):
        raise ProtocolError("organizations: expected a JSON array")
    try:
        return [Organization.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise ProtocolError(f"organizations: unexpected shape: {exc}") from exc


class LoginFlow:
    def __init__(self, client: RegistryClient, prompter: Prompter | None = None) -> None:
        self._client = client
        self._prompter = prompter or TerminalPrompter()

    def login(self) -> str:
        """Prompt for credentials and return a bearer token."""
        username = self._prompter.prompt("SUBNET username: ").strip()
        if not username:
            raise InputError(
                "username cannot be empty. If you don't have one, please create one from here: "
                f"{ACCOUNT_SIGNUP_URL}"
            )
        password = self._prompter.prompt_secret("Password: ")

        body = self._client.post(
            self._client.login_url,
            {"username": username, "password": password},
        )
        payload = decode_json(body, "login")

        if isinstance(payload, dict) and _truthy(payload.get("mfa_required")):
            otp = self._prompter.prompt_secret("OTP received in email: ")
            body = self._client.post(
                self._client.mfa_login_url,
                {"username": username, "otp": otp, "token": str(payload.get("mfa_token") or "")},
            )
            payload = decode_json(body, "mfa login")

        return _access_token(payload)

    def select_organization(self, organizations: list[Organization]) -> Organization:
        if not organizations:
            raise ProtocolError(
                "no organization is associated with this account. Please create one from here: "
                f"{ACCOUNT_SIGNUP_URL}"
            )
        if len(organizations) == 1:
            return organizations[0]

        self._prompter.say("You are part of multiple organizations on SUBNET:")
        for index, org in enumerate(organizations, start=1):
            self._prompter.say(f"   {index} : {org.company}")
        choice = self._prompter.prompt("Please choose the organization for this cluster: ").strip()

        try:
            selected = int(choice)
        except ValueError:
            selected = 0
        if not 1 <= selected <= len(organizations):
            raise InputError("invalid choice for organization. Please run the command again.")
        return organizations[selected - 1]

    def account_id(self, headers: dict[str, str]) -> str:
        body = self._client.get(self._client.organizations_url, headers)
        return self.select_organization(parse_organizations(body)).account_id

    def authenticate(self) -> tuple[dict[str, str], str]:
        """Run the full login and return ``(auth headers, account id)``."""
        headers = auth_headers(self.login())
        return headers, self.account_id(headers)
