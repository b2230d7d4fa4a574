from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status

from ..logging_conf import get_logger
from ..service.auth_service import AuthService, Site, User
from .models import (
    Credentials,
    MeResponse,
    RefreshRequest,
    SiteCreateRequest,
    SiteListResponse,
    SiteOut,
    TokenPairResponse,
)

router = APIRouter(prefix="/api")
logger = get_logger("api")


def get_service(request: Request) -> AuthService:
    return request.app.state.auth


def current_user(
    service: Annotated[AuthService, Depends(get_service)],
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the bearer token; AuthFailure becomes a 401."""
    return service.authenticate(authorization)


def _site_out(site: Site) -> SiteOut:
    return SiteOut(id=site.id, name=site.name, createdAt=site.created_at)


@router.post(
    "/public/register",
    response_model=TokenPairResponse,
    summary="Create an account and return its first token pair",
)
async def register(
    req: Credentials, service: Annotated[AuthService, Depends(get_service)]
) -> TokenPairResponse:
    return TokenPairResponse(**service.register(email=req.email, password=req.password))


@router.post("/auth/login", response_model=TokenPairResponse, summary="Log in")
async def login(
    req: Credentials, service: Annotated[AuthService, Depends(get_service)]
) -> TokenPairResponse:
    return TokenPairResponse(**service.login(email=req.email, password=req.password))


@router.post(
    "/auth/refresh",
    response_model=TokenPairResponse,
    summary="Exchange a refresh token for a new pair (single use)",
)
async def refresh(
    req: RefreshRequest, service: Annotated[AuthService, Depends(get_service)]
) -> TokenPairResponse:
    return TokenPairResponse(**service.refresh(refresh_token=req.refresh_token))


@router.get("/me", response_model=MeResponse, summary="The authenticated user")
async def me(user: Annotated[User, Depends(current_user)]) -> MeResponse:
    return MeResponse(id=user.id, email=user.email)


@router.get("/sites", response_model=SiteListResponse, summary="Sites owned by the caller")
async def list_sites(
    user: Annotated[User, Depends(current_user)],
    service: Annotated[AuthService, Depends(get_service)],
) -> SiteListResponse:
    return SiteListResponse(items=[_site_out(s) for s in service.list_sites(user=user)])


@router.post(
    "/sites",
    response_model=SiteOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a site",
)
async def create_site(
    req: SiteCreateRequest,
    user: Annotated[User, Depends(current_user)],
    service: Annotated[AuthService, Depends(get_service)],
) -> SiteOut:
    return _site_out(service.create_site(user=user, name=req.name))
