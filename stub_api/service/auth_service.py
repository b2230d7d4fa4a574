from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from ..domain.passwords import hash_password, verify_password
from ..domain.tokens import (
    TOKEN_VERSION,
    TokenError,
    TokenKind,
    TokenPayload,
    decode_token,
    encode_token,
)
from ..logging_conf import get_logger

logger = get_logger("service.auth")


def now_ms() -> int:
    """Return current time in epoch milliseconds."""
    return int(time.time() * 1000)


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        val = int(raw, 10)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer") from e
    if val <= 0:
        raise ValueError(f"{name} must be positive")
    return val


@dataclass(frozen=True)
class StubSettings:
    token_secret: str = "dev-secret-change-me-at-least-32-bytes"
    access_ttl_ms: int = 15 * 60 * 1000
    refresh_ttl_ms: int = 7 * 24 * 60 * 60 * 1000

    @classmethod
    def from_env(cls) -> StubSettings:
        """Read TOKEN_SECRET, ACCESS_TTL_MS and REFRESH_TTL_MS."""
        return cls(
            token_secret=os.getenv("TOKEN_SECRET") or cls.token_secret,
            access_ttl_ms=_int_from_env("ACCESS_TTL_MS", cls.access_ttl_ms),
            refresh_ttl_ms=_int_from_env("REFRESH_TTL_MS", cls.refresh_ttl_ms),
        )


class AuthFailure(Exception):
    """A request the stub answers with an error status and `{"error": message}`."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class User:
    id: str
    email: str
    password_hash: str


@dataclass
class Site:
    id: str
    owner_id: str
    name: str
    created_at: int


@dataclass
class AuthService:
    """In-memory users, sites and token issuance for the stub backend.

    Refresh tokens rotate: each one can be exchanged exactly once, and the
    exchange revokes it. Presenting a spent refresh token is a 401.
    """

    settings: StubSettings = field(default_factory=StubSettings)
    clock: Callable[[], int] = now_ms
    users: dict[str, User] = field(default_factory=dict)
    sites: dict[str, Site] = field(default_factory=dict)
    live_refresh_ids: set[str] = field(default_factory=set)
    refresh_exchanges: int = 0

    # ------------------------
    # Internals
    # ------------------------

    def _issue_pair(self, user_id: str) -> dict:
        now = self.clock()
        access = TokenPayload(
            ver=TOKEN_VERSION,
            kind=TokenKind.access,
            sub=user_id,
            exp_ms=now + self.settings.access_ttl_ms,
        )
        refresh = TokenPayload(
            ver=TOKEN_VERSION,
            kind=TokenKind.refresh,
            sub=user_id,
            exp_ms=now + self.settings.refresh_ttl_ms,
        )
        self.live_refresh_ids.add(refresh.jti)
        secret = self.settings.token_secret
        return {
            "accessToken": encode_token(access, secret),
            "refreshToken": encode_token(refresh, secret),
        }

    # ------------------------
    # Use-cases
    # ------------------------

    def register(self, *, email: str, password: str) -> dict:
        """Create a user and return its first token pair."""
        key = email.strip().lower()
        if key in self.users:
            raise AuthFailure(409, "email already registered")
        user = User(
            id=str(uuid4()),
            email=key,
            password_hash=hash_password(password),
        )
        self.users[key] = user
        logger.info("user.register", extra={"event": "user_register", "user_id": user.id})
        return self._issue_pair(user.id)

    def login(self, *, email: str, password: str) -> dict:
        """Check credentials and return a new token pair."""
        user = self.users.get(email.strip().lower())
        if user is None:
            raise AuthFailure(401, "invalid credentials")
        if not verify_password(password, user.password_hash):
            raise AuthFailure(401, "invalid credentials")
        logger.info("user.login", extra={"event": "user_login", "user_id": user.id})
        return self._issue_pair(user.id)

    def refresh(self, *, refresh_token: str) -> dict:
        """Exchange a live refresh token for a new pair, spending it."""
        try:
            payload = decode_token(
                refresh_token,
                self.settings.token_secret,
                kind=TokenKind.refresh,
                now_ms=self.clock(),
            )
        except TokenError as e:
            logger.info("token.refresh_denied", extra={"event": "refresh_denied", "error_code": e.code})
            raise AuthFailure(401, "invalid refresh token") from e
        if payload.jti not in self.live_refresh_ids:
            logger.info(
                "token.refresh_denied", extra={"event": "refresh_denied", "error_code": "reused_token"}
            )
            raise AuthFailure(401, "invalid refresh token")
        self.live_refresh_ids.discard(payload.jti)
        self.refresh_exchanges += 1
        logger.info("token.refresh", extra={"event": "token_refresh", "user_id": payload.sub})
        return self._issue_pair(payload.sub)

    def authenticate(self, authorization: str | None) -> User:
        """Resolve a `Bearer <access token>` header to its user."""
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise AuthFailure(401, "missing bearer token")
        try:
            payload = decode_token(
                token.strip(),
                self.settings.token_secret,
                kind=TokenKind.access,
                now_ms=self.clock(),
            )
        except TokenError as e:
            raise AuthFailure(401, "invalid or expired token") from e
        for user in self.users.values():
            if user.id == payload.sub:
                return user
        raise AuthFailure(401, "unknown user")

    def list_sites(self, *, user: User) -> list[Site]:
        return [s for s in self.sites.values() if s.owner_id == user.id]

    def create_site(self, *, user: User, name: str) -> Site:
        site = Site(id=str(uuid4()), owner_id=user.id, name=name, created_at=self.clock())
        self.sites[site.id] = site
        logger.info("site.create", extra={"event": "site_create", "site_id": site.id})
        return site
