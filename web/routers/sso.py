"""Signed-payload SSO endpoints: login initiation and provider callback."""

from __future__ import annotations

import secrets
from functools import lru_cache
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from core.logging import get_logger
from core.sso.constants import ACCESS_TOKEN_COOKIE, SSO_ERROR_CODE, SSO_ERROR_MESSAGE
from database import open_session
from schemas.api.sso import SsoAuthorizeResponse, SsoErrorResponse, SsoSessionResponse
from services.auth_tokens import AuthTokenError, create_access_token, decode_token
from services.sso import (
    AuthSessionBinder,
    InMemoryNonceStore,
    NonceGuard,
    NonceStore,
    RedisNonceStore,
    SsoLoginPipeline,
    SsoNotConfiguredError,
    SsoSettings,
    SystemActor,
    UserDirectory,
    UserProvisioner,
)
from services.sso.directory_http import HttpUserDirectory
from services.sso.directory_sql import SqlUserDirectory
from services.sso_metrics import record_sso_login, record_sso_provisioning

logger = get_logger(__name__)

router = APIRouter(prefix="/auth/sso", tags=["SSO"])


@lru_cache(maxsize=1)
def get_sso_settings() -> SsoSettings:
    return SsoSettings.load().validate()


@lru_cache(maxsize=1)
def _default_nonce_store() -> NonceStore:
    settings = get_sso_settings()
    if settings.nonce_redis_url:
        return RedisNonceStore.from_url(settings.nonce_redis_url, ttl_seconds=settings.nonce_ttl_seconds)
    logger.info("SSO_NONCE_REDIS_URL not set; nonces are kept in process memory.")
    return InMemoryNonceStore(ttl_seconds=settings.nonce_ttl_seconds)


def get_nonce_store() -> NonceStore:
    return _default_nonce_store()


def build_http_directory(settings: SsoSettings) -> HttpUserDirectory:
    return HttpUserDirectory(
        settings.user_api_url or "",
        timeout_seconds=settings.user_api_timeout_seconds,
    )


def get_user_directory(settings: SsoSettings = Depends(get_sso_settings)) -> Iterator[UserDirectory]:
    """The SQL session is opened only for the SQL backend."""
    if settings.directory_backend == "http":
        directory = build_http_directory(settings)
        try:
            yield directory
        finally:
            directory.close()
        return
    db = open_session()
    try:
        yield SqlUserDirectory(db)
    finally:
        db.close()


def get_sso_pipeline(
    settings: SsoSettings = Depends(get_sso_settings),
    store: NonceStore = Depends(get_nonce_store),
    directory: UserDirectory = Depends(get_user_directory),
) -> SsoLoginPipeline:
    actor = SystemActor(user_id=settings.system_actor_id, api_key=settings.user_api_key)
    return SsoLoginPipeline(
        secret=settings.secret,
        nonce_guard=NonceGuard(store),
        provisioner=UserProvisioner(directory=directory, actor=actor),
        binder=AuthSessionBinder(
            store,
            default_url=settings.default_redirect_url,
            allowed_hosts=settings.allowed_redirect_hosts,
        ),
        provider_login_url=settings.provider_login_url,
        return_url=settings.return_url,
        nonce_ttl_seconds=settings.nonce_ttl_seconds,
    )


def _session_id(request: Request, settings: SsoSettings) -> Optional[str]:
    value = request.cookies.get(settings.session_cookie)
    return value or None


def _attach_session_cookie(response: Response, session_id: str, settings: SsoSettings) -> None:
    response.set_cookie(
        settings.session_cookie,
        session_id,
        max_age=settings.nonce_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def _start(request: Request, settings: SsoSettings, pipeline: SsoLoginPipeline, return_to: Optional[str]):
    session_id = _session_id(request, settings) or secrets.token_urlsafe(32)
    try:
        result = pipeline.start(session_id, return_to=return_to)
    except SsoNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "auth.sso_disabled", "message": str(exc)},
        ) from exc
    return session_id, result


def _invalid_login() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": SSO_ERROR_CODE, "message": SSO_ERROR_MESSAGE},
    )


@router.get("/login", summary="Redirect to the identity provider with a fresh nonce")
def sso_login_route(
    request: Request,
    returnTo: Optional[str] = None,
    settings: SsoSettings = Depends(get_sso_settings),
    pipeline: SsoLoginPipeline = Depends(get_sso_pipeline),
) -> RedirectResponse:
    session_id, result = _start(request, settings, pipeline, returnTo)
    response = RedirectResponse(result.authorization_url, status_code=status.HTTP_302_FOUND)
    _attach_session_cookie(response, session_id, settings)
    return response


@router.get(
    "/authorize",
    response_model=SsoAuthorizeResponse,
    summary="Build the identity provider login URL",
)
def sso_authorize_route(
    request: Request,
    response: Response,
    returnTo: Optional[str] = None,
    settings: SsoSettings = Depends(get_sso_settings),
    pipeline: SsoLoginPipeline = Depends(get_sso_pipeline),
) -> SsoAuthorizeResponse:
    session_id, result = _start(request, settings, pipeline, returnTo)
    _attach_session_cookie(response, session_id, settings)
    return SsoAuthorizeResponse(authorizationUrl=result.authorization_url, expiresIn=result.expires_in)


@router.get(
    "/callback",
    summary="Verify the signed payload and sign the user in",
    status_code=status.HTTP_302_FOUND,
    responses={status.HTTP_400_BAD_REQUEST: {"model": SsoErrorResponse, "description": "Generic SSO rejection."}},
)
def sso_callback_route(
    request: Request,
    sso: Optional[str] = None,
    sig: Optional[str] = None,
    settings: SsoSettings = Depends(get_sso_settings),
    pipeline: SsoLoginPipeline = Depends(get_sso_pipeline),
) -> RedirectResponse:
    outcome = pipeline.run(_session_id(request, settings), sso, sig)
    if outcome.provisioning is not None:
        record_sso_provisioning(outcome.provisioning.status)
    if not outcome.success or outcome.redirect is None:
        record_sso_login(False, outcome.failure.value if outcome.failure else None)
        raise _invalid_login()

    redirect = outcome.redirect
    token, ttl = create_access_token(user_id=redirect.user_id, email=redirect.identity_email)
    response = RedirectResponse(redirect.target_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        max_age=ttl,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.delete_cookie(settings.session_cookie)
    record_sso_login(True)
    return response


@router.get("/session", response_model=SsoSessionResponse, summary="Describe the current SSO session")
def sso_session_route(request: Request) -> SsoSessionResponse:
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "auth.required", "message": "Login required."},
        )
    try:
        claims = decode_token(token)
    except AuthTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": exc.code, "message": str(exc)},
        ) from exc
    return SsoSessionResponse(userId=str(claims["sub"]), email=claims["email"], expiresAt=int(claims["exp"]))


__all__ = ["router", "get_nonce_store", "get_sso_pipeline", "get_sso_settings", "get_user_directory"]
