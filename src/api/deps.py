"""Shared route dependencies: current user, LLM client, services."""

import logging
from typing import Dict, Any, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.core.config import get_settings
from src.core.database import DatabaseService, db_service
from src.core.llm import LLMClient
from src.core.security import decode_access_token
from src.services.canva_service import CanvaService, canva_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> DatabaseService:
    return db_service


def get_canva_service() -> CanvaService:
    return canva_service


def get_llm(request: Request) -> LLMClient:
    """LLM client created at startup; built from settings if startup was skipped."""
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        llm = LLMClient.from_settings(get_settings())
        request.app.state.llm = llm
    return llm


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """Verify the bearer token and return its claims."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return payload
