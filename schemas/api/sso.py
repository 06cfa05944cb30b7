"""Pydantic schemas for the signed-payload SSO endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

SsoErrorCode = Literal["auth.sso_invalid", "auth.sso_disabled"]


class SsoAuthorizeResponse(BaseModel):
    authorizationUrl: str = Field(..., description="Provider login URL carrying the signed nonce payload.")
    expiresIn: int = Field(..., description="Nonce lifetime in seconds.")


class SsoErrorDetail(BaseModel):
    code: SsoErrorCode
    message: str


class SsoSessionResponse(BaseModel):
    userId: str
    email: str
    expiresAt: int


class SsoErrorResponse(BaseModel):
    """Envelope FastAPI renders for ``HTTPException(detail=...)``."""

    detail: SsoErrorDetail
