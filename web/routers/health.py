"""Readiness checks for the user store and the session nonce store."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database import open_session
from services.sso import NonceStore, RedisNonceStore, SsoSettings
from web.routers import sso as sso_routes
from web.routers.sso import get_nonce_store, get_sso_settings

router = APIRouter(prefix="/health", tags=["Health"])


def ping_database() -> Tuple[bool, Optional[str]]:
    """Return SQL user store connectivity and the driver error, if any."""
    try:
        db = open_session()
    except RuntimeError as exc:
        return False, str(exc)
    try:
        db.execute(text("SELECT 1"))
        return True, None
    except SQLAlchemyError as exc:
        return False, str(exc)
    finally:
        db.close()


def _summary(backend: str, ok: bool, error: Optional[str]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"backend": backend, "ok": ok}
    if error:
        summary["error"] = error
    return summary


def check_user_store(settings: SsoSettings) -> Dict[str, Any]:
    if settings.directory_backend == "http":
        directory = sso_routes.build_http_directory(settings)
        try:
            ok, error = directory.ping()
        finally:
            directory.close()
        return _summary("http", ok, error)
    ok, error = ping_database()
    return _summary("sql", ok, error)


def describe_nonce_store(store: NonceStore) -> Dict[str, Any]:
    if isinstance(store, RedisNonceStore):
        ok, error = store.ping()
        return _summary("redis", ok, error)
    # Process memory cannot be unreachable.
    return _summary("memory", True, None)


@router.get(
    "/status",
    summary="SSO bridge dependency status",
    description="User store and nonce store connectivity used by readiness probes.",
)
def read_service_status(
    settings: SsoSettings = Depends(get_sso_settings),
    store: NonceStore = Depends(get_nonce_store),
):
    user_store = check_user_store(settings)
    nonce_store = describe_nonce_store(store)
    healthy = user_store["ok"] and nonce_store["ok"]
    return {"status": "ok" if healthy else "degraded", "userStore": user_store, "nonceStore": nonce_store}


__all__ = ["router", "check_user_store", "describe_nonce_store", "ping_database"]
