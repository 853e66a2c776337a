"""Error types."""

from __future__ import annotations


class SubnetError(RuntimeError):
    """Base error."""


class InputError(SubnetError):
    """Operator input was rejected (empty username, bad selection)."""


class TransportError(SubnetError):
    """Admin connection or HTTP transport could not be constructed."""


class ProtocolError(SubnetError):
    """A nominally successful response was missing an expected field."""


class RegistryUnavailableError(SubnetError):
    """Registry could not be reached."""


class RegistryRequestError(RegistryUnavailableError):
    """Registry answered with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


class AdminRequestError(SubnetError):
    """Administration API call failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
