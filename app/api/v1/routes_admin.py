from __future__ import annotations

import shutil
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.deps import AuthDependency
from app.core.config import Settings, get_settings
from app.core.errors import Forbidden

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])


class DevTokenRequest(BaseModel):
    user_id: str = Field(..., examples=["user-123"])
    scopes: list[str] = Field(default_factory=list)


class DevTokenResponse(BaseModel):
    token: str


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate ffmpeg toolchain")
async def env_check(context: AuthDependency, settings: Settings = Depends(get_settings)) -> EnvCheckResponse:
    if "admin" not in context.scopes:
        raise Forbidden("admin_scope_required")

    return EnvCheckResponse(
        ffmpeg=shutil.which(settings.ffmpeg_binary) is not None,
        ffprobe=shutil.which(settings.ffprobe_binary) is not None,
    )


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint development JWT")
async def mint_dev_token(payload: DevTokenRequest, settings: Settings = Depends(get_settings)) -> DevTokenResponse:
    if settings.environment_lower not in {"development", "dev"}:
        raise Forbidden("dev_token_disabled")

    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(hours=1)
    claims: dict[str, object] = {
        "sub": payload.user_id,
        "scopes": payload.scopes,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if settings.jwt_issuer:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience

    token = jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)
    return DevTokenResponse(token=token)


__all__ = ["router"]
