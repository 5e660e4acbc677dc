"""
Installation errors.

Every failure of the OAuth handshake is an ``InstallError`` subclass that
knows its HTTP status and its public error name; the exception handler in
``api.middleware`` renders them, so routes never build error responses.
"""

from __future__ import annotations

from typing import Any, Dict


class InstallError(Exception):
    """Base class for all installation failures."""

    status_code: int = 400
    code: str = "InstallError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message}


class InvalidTenant(InstallError):
    code = "InvalidTenant"


class MissingParameter(InstallError):
    code = "MissingParameter"

    def __init__(self, *names: str) -> None:
        self.names = names
        super().__init__(f"Missing required parameter(s): {', '.join(names)}")


class InvalidOrExpiredState(InstallError):
    """Unknown, expired, already-consumed, or issued for a different shop."""

    code = "InvalidOrExpiredState"

    def __init__(self, message: str = "Invalid or expired OAuth state") -> None:
        super().__init__(message)


class TokenExchangeFailed(InstallError):
    """
    The authorization code could not be exchanged for an access token.

    ``provider_rejected`` is True when the provider answered and explicitly
    refused (4xx / ``error`` field); network errors, timeouts, 5xx and
    malformed bodies leave it False.
    """

    code = "TokenExchangeFailed"

    def __init__(self, message: str, *, provider_rejected: bool = False) -> None:
        super().__init__(message)
        self.provider_rejected = provider_rejected

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return 400 if self.provider_rejected else 500


class PersistenceFailed(InstallError):
    """The token was obtained but could not be stored."""

    status_code = 500
    code = "PersistenceFailed"

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["installed_at_provider"] = True
        return body


class LedgerUnavailable(InstallError):
    status_code = 503
    code = "LedgerUnavailable"
