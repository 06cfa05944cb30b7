from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from core.env import env_bool
from core.logging import get_logger
from database import create_schema
from services.auth_tokens import require_jwt_secret
from web import routers

logger = get_logger(__name__)

app = FastAPI(
    title="SSO Bridge API",
    description="Verifies signed SSO payloads from the identity provider and provisions local users.",
    version="0.1.0",
)


@app.on_event("startup")
def validate_sso_configuration() -> None:
    """Fail fast when a required secret or the user store is not configured."""
    settings = routers.sso.get_sso_settings()
    require_jwt_secret()
    logger.info("SSO bridge starting with '%s' user directory backend.", settings.directory_backend)
    if settings.directory_backend == "sql" and env_bool("SSO_AUTO_CREATE_SCHEMA", False):
        create_schema()


@app.get("/", summary="Health Check", tags=["Default"])
def health_check():
    """Liveness probe."""
    return {"status": "ok", "message": "SSO bridge is running."}


@app.get("/healthz", include_in_schema=False)
def readiness_check():
    user_store = routers.health.check_user_store(routers.sso.get_sso_settings())
    payload = {"status": "ok" if user_store["ok"] else "unhealthy", "userStore": user_store}
    status_code = status.HTTP_200_OK if user_store["ok"] else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=payload)


@app.get("/metrics", include_in_schema=False)
def prometheus_metrics():
    """Expose Prometheus metrics."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(routers.sso.router, prefix="/api/v1")
app.include_router(routers.health.router, prefix="/api/v1")
