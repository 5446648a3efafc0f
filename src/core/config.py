"""Configuration management for the RFP Proposal Engine."""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ===========================================
    # Supabase Configuration
    # ===========================================
    SUPABASE_URL: str = Field(default="", description="Supabase project URL")
    SUPABASE_KEY: str = Field(default="", description="Supabase service key")

    # ===========================================
    # LLM Configuration
    # ===========================================
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Chat completion model")
    LLM_TIMEOUT_SECONDS: int = Field(default=120, description="Per-call LLM timeout")

    # ===========================================
    # Auth Configuration
    # ===========================================
    JWT_SECRET: str = Field(default="your-secret-key", description="HMAC secret for bearer tokens")
    JWT_EXPIRATION_HOURS: int = Field(default=24, description="Bearer token lifetime")
    API_USERNAME: str = Field(default="admin", description="Username accepted by /api/auth/login")
    API_PASSWORD: str = Field(default="", description="Password accepted by /api/auth/login")

    # ===========================================
    # Canva Configuration
    # ===========================================
    CANVA_CLIENT_ID: str = Field(default="", description="Canva Connect client ID")
    CANVA_CLIENT_SECRET: str = Field(default="", description="Canva Connect client secret")
    CANVA_REDIRECT_URI: str = Field(default="", description="OAuth callback URL registered with Canva")
    CANVA_TOKEN_ENC_KEY: str = Field(default="", description="Key material for stored OAuth tokens")
    CANVA_API_URL: str = Field(default="https://api.canva.com/rest", description="Canva REST base URL")
    CANVA_AUTH_URL: str = Field(
        default="https://www.canva.com/api/oauth/authorize",
        description="Canva OAuth authorize URL"
    )
    CANVA_SCOPES: List[str] = Field(
        default=[
            "asset:read",
            "asset:write",
            "brandtemplate:meta:read",
            "brandtemplate:content:read",
            "design:content:read",
            "design:content:write",
            "design:meta:read",
        ],
        description="Scopes requested on connect"
    )
    FRONTEND_BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Where the OAuth callback sends the browser back to"
    )

    # ===========================================
    # Firecrawl Configuration
    # ===========================================
    FIRECRAWL_API_KEY: str = Field(default="", description="Firecrawl API key for URL analysis")

    # ===========================================
    # Google Service Account Configuration
    # ===========================================
    GOOGLE_CREDENTIALS_PATH: str = Field(
        default="./credentials/google-service-account.json",
        description="Path to Google service account JSON"
    )
    GOOGLE_DRIVE_FOLDER_ID: str = Field(default="", description="Drive folder for exported proposals")

    # ===========================================
    # Upload Configuration
    # ===========================================
    UPLOAD_DIR: str = Field(default="./uploads", description="Local directory for RFP attachments")
    MAX_RFP_UPLOAD_MB: int = Field(default=10, description="Size limit for RFP PDFs")
    MAX_ATTACHMENT_UPLOAD_MB: int = Field(default=50, description="Size limit for attachments")

    # ===========================================
    # Server Configuration
    # ===========================================
    DEBUG: bool = Field(default=True, description="Debug mode")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
