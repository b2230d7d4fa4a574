from __future__ import annotations

import secrets
from enum import Enum

import jwt
from pydantic import BaseModel, Field, ValidationError

__all__ = [
    "TOKEN_VERSION",
    "ALGORITHM",
    "TokenKind",
    "TokenPayload",
    "TokenError",
    "UnsupportedTokenVersionError",
    "MalformedTokenError",
    "InvalidSignatureError",
    "ExpiredTokenError",
    "WrongTokenKindError",
    "encode_token",
    "decode_token",
]

# Version tokens so their claims can change later without breaking old ones.
TOKEN_VERSION = 1
ALGORITHM = "HS256"


class TokenKind(str, Enum):
    access = "access"
    refresh = "refresh"


# ------------------------
# Errors
# ------------------------
class TokenError(ValueError):
    """Base class for token-related errors.

    The `code` attribute lets the API map errors to stable machine codes.
    """

    code: str = "invalid_token"


class UnsupportedTokenVersionError(TokenError):
    code = "unsupported_token_version"


class MalformedTokenError(TokenError):
    code = "malformed_token"


class InvalidSignatureError(TokenError):
    code = "invalid_signature"


class ExpiredTokenError(TokenError):
    code = "expired_token"


class WrongTokenKindError(TokenError):
    code = "wrong_token_kind"


# ------------------------
# Schema
# ------------------------
class TokenPayload(BaseModel):
    """Claims carried by an access or refresh token."""

    ver: int = Field(..., ge=1)
    kind: TokenKind
    sub: str  # user id
    exp_ms: int  # expiry, epoch milliseconds
    jti: str = Field(default_factory=lambda: secrets.token_hex(8))


# ------------------------
# Public encode/decode
# ------------------------

def encode_token(payload: TokenPayload, secret: str) -> str:
    """Sign a payload as an HS256 JWT.

    The registered `exp` claim is the expiry rounded up to whole seconds;
    `exp_ms` keeps the exact value.
    """
    claims = payload.model_dump(mode="json")
    claims["exp"] = -(-payload.exp_ms // 1000)
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str, *, kind: TokenKind, now_ms: int) -> TokenPayload:
    """Verify and decode a token of the expected kind.

    Raises a specific `TokenError` subclass if anything about it is wrong.
    Expiry is checked against `now_ms`, not the wall clock, so the service
    clock decides when a token runs out.
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "sub", "jti"], "verify_exp": False},
        )
    except jwt.InvalidSignatureError as e:
        raise InvalidSignatureError("Token signature does not match") from e
    except jwt.InvalidTokenError as e:
        raise MalformedTokenError(f"Token is malformed: {e}") from e

    try:
        payload = TokenPayload(**claims)
    except (TypeError, ValidationError) as e:
        raise MalformedTokenError(f"Token schema invalid: {e}") from e

    if payload.ver != TOKEN_VERSION:
        raise UnsupportedTokenVersionError(f"Unsupported token version: {payload.ver}")
    if payload.kind is not kind:
        raise WrongTokenKindError(f"Expected a {kind.value} token")
    if payload.exp_ms <= now_ms:
        raise ExpiredTokenError("Token has expired")
    return payload
