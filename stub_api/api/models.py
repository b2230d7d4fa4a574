from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    """Email and password for login or registration."""
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Body of the refresh exchange."""
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class TokenPairResponse(BaseModel):
    """Token pair returned by login, register and refresh."""
    accessToken: str
    refreshToken: str


class MeResponse(BaseModel):
    id: str
    email: str


class SiteCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class SiteOut(BaseModel):
    id: str
    name: str
    createdAt: int


class SiteListResponse(BaseModel):
    items: list[SiteOut]
