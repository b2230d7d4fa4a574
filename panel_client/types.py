from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

__all__ = [
    "Session",
    "TokenPair",
    "RequestState",
    "AuthClientError",
    "RefreshError",
    "NoRefreshToken",
    "RefreshRejected",
    "MalformedResponse",
    "NetworkFailure",
    "CredentialsRejected",
]


@dataclass(frozen=True)
class Session:
    """The persisted credential pair. Either field may be absent."""

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)

    @property
    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token


class RequestState(str, Enum):
    """Where a single logical AuthClient.request call ended up."""

    initial = "initial"
    attempt_1 = "attempt_1"
    done = "done"
    refreshing = "refreshing"
    attempt_2 = "attempt_2"
    invalidated = "invalidated"


# ------------------------
# Errors
# ------------------------
class AuthClientError(RuntimeError):
    """Base class for client errors.

    The `code` attribute is a stable machine code for logs and CLI output.
    """

    code: str = "auth_client_error"


class RefreshError(AuthClientError):
    code = "refresh_failed"


class NoRefreshToken(RefreshError):
    code = "no_refresh_token"


class RefreshRejected(RefreshError):
    code = "refresh_rejected"

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Refresh endpoint returned HTTP {status_code}")
        self.status_code = status_code


class MalformedResponse(RefreshError):
    code = "malformed_response"


class NetworkFailure(RefreshError):
    """Transport-level failure (connection, timeout, protocol)."""

    code = "network_failure"


class CredentialsRejected(AuthClientError):
    code = "credentials_rejected"

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.message = message


# ------------------------
# Schema
# ------------------------
class TokenPair(BaseModel):
    """The `{accessToken, refreshToken}` body of login, register and refresh."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken", min_length=1)
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)

    @classmethod
    def parse_body(cls, data: Any) -> TokenPair:
        """Validate a decoded JSON body, raising MalformedResponse on any gap."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedResponse(f"Token response invalid: {e.error_count()} error(s)") from e

    def to_session(self) -> Session:
        return Session(access_token=self.access_token, refresh_token=self.refresh_token)
