"""Core module - Configuration, database, LLM client and security helpers."""

from src.core.config import get_settings, Settings
from src.core.database import DatabaseService, db_service
from src.core.llm import LLMClient, LLMError

__all__ = [
    "get_settings",
    "Settings",
    "DatabaseService",
    "db_service",
    "LLMClient",
    "LLMError",
]
