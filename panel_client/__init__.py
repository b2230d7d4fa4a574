"""Authenticated API client for the admin panel backend."""
from importlib.metadata import PackageNotFoundError, version

from panel_client.client import AuthClient
from panel_client.config import ClientSettings
from panel_client.guard import CallbackNavigator, Navigator, RecordingNavigator, SessionGuard
from panel_client.refresh import RefreshCoordinator
from panel_client.store import FileStorage, MemoryStorage, Storage, TokenStore
from panel_client.types import (
    AuthClientError,
    CredentialsRejected,
    MalformedResponse,
    NetworkFailure,
    NoRefreshToken,
    RefreshError,
    RefreshRejected,
    RequestState,
    Session,
    TokenPair,
)

try:
    __version__ = version("panel-auth-client")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "AuthClient",
    "ClientSettings",
    "Navigator",
    "CallbackNavigator",
    "RecordingNavigator",
    "SessionGuard",
    "RefreshCoordinator",
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "TokenStore",
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
