"""Auth API Routes - bearer tokens for the configured API user."""

import hmac
import logging
from typing import Dict, Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.deps import get_current_user
from src.core.config import get_settings
from src.core.security import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Credentials for POST /api/auth/login."""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


@router.post("/login", response_model=TokenResponse, summary="Exchange credentials for a bearer token")
async def login(body: LoginRequest) -> TokenResponse:
    settings = get_settings()

    valid = (
        bool(settings.API_PASSWORD)
        and hmac.compare_digest(body.username, settings.API_USERNAME)
        and hmac.compare_digest(body.password, settings.API_PASSWORD)
    )
    if not valid:
        logger.info(f"Rejected login for '{body.username}'")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(user_id=settings.API_USERNAME, username=settings.API_USERNAME)
    return TokenResponse(
        access_token=token,
        expires_in=settings.JWT_EXPIRATION_HOURS * 3600,
    )


@router.get("/me", summary="Current user")
async def me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return {"user_id": user["user_id"], "username": user.get("username")}
