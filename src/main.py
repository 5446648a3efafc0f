"""
RFP Proposal Engine - FastAPI Application Entry Point.

Turns RFP documents into structured proposals:
- RFP analysis from PDF uploads or web pages
- Proposal assembly from AI sections and the content library
- PDF, Word, Google Drive and Canva exports

Run with:
    uvicorn src.main:app --reload --port 8000
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.config import get_settings
from src.core.database import db_service
from src.core.llm import LLMClient
from src.integrations.canva import CanvaError
from src.api.deps import get_current_user
from src.api.auth import router as auth_router
from src.api.rfps import router as rfp_router
from src.api.proposals import router as proposal_router
from src.api.templates import router as template_router
from src.api.content import router as content_router
from src.api.canva import router as canva_router
from src.api.ai import router as ai_router

SERVICE_NAME = "RFP Proposal Engine"
VERSION = "1.0.0"


# ===========================================
# Logging Configuration
# ===========================================

def setup_logging():
    """Configure application logging."""
    settings = get_settings()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    for name in ("httpx", "httpcore", "urllib3", "google", "LiteLLM", "weasyprint", "fontTools"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


# ===========================================
# Application Lifespan
# ===========================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    logger.info("=" * 50)
    logger.info(f"{SERVICE_NAME} Starting Up")
    logger.info("=" * 50)
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"LLM model: {settings.OPENAI_MODEL}")

    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        logger.warning("Supabase credentials not configured!")

    if not settings.OPENAI_API_KEY:
        logger.warning("OpenAI API key not configured - AI sections will be unavailable")

    if not settings.API_PASSWORD:
        logger.warning("API_PASSWORD not set - login is disabled")

    if not settings.CANVA_CLIENT_ID:
        logger.info("Canva not configured - design endpoints will report missing_config")

    app.state.llm = LLMClient.from_settings(settings)

    logger.info("Startup complete")

    yield

    logger.info(f"{SERVICE_NAME} shutting down...")


# ===========================================
# FastAPI Application
# ===========================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=SERVICE_NAME,
        description="""
        RFP analysis and proposal generation.

        ## Resources

        - `/api/auth` - bearer tokens
        - `/api/rfp` - RFP upload, URL analysis, editing and attachments
        - `/api/proposals` - generation, editing and PDF / Word / Drive export
        - `/api/templates` - proposal templates
        - `/api/content` - company profile, team members, past projects and references
        - `/api/canva` - Canva connection, brand templates and designs
        - `/api/ai` - editor assistant for rewriting and drafting text
        """,
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    protected = [Depends(get_current_user)]

    app.include_router(auth_router)
    app.include_router(rfp_router, dependencies=protected)
    app.include_router(proposal_router, dependencies=protected)
    app.include_router(template_router, dependencies=protected)
    app.include_router(content_router, dependencies=protected)
    app.include_router(ai_router, dependencies=protected)
    # Per-route auth: the OAuth callback is reached by a browser redirect
    app.include_router(canva_router)

    return app


app = create_app()


# ===========================================
# Root Endpoints
# ===========================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return JSONResponse({
        "service": SERVICE_NAME,
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "auth": "POST /api/auth/login",
            "rfp": "/api/rfp",
            "proposals": "/api/proposals",
            "templates": "/api/templates",
            "content": "/api/content",
            "canva": "/api/canva",
            "ai": "/api/ai",
            "health": "GET /health",
            "docs": "GET /docs"
        }
    })


@app.get("/health", tags=["root"])
async def health():
    """Service and database health."""
    database = await db_service.health_check()
    return JSONResponse(
        status_code=200 if database else 503,
        content={
            "status": "healthy" if database else "degraded",
            "service": SERVICE_NAME,
            "database": "connected" if database else "unavailable",
        }
    )


# ===========================================
# Error Handlers
# ===========================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """HTTP errors carry their message under 'error'."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Malformed request bodies and parameters."""
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(CanvaError)
async def canva_exception_handler(request, exc: CanvaError):
    """Canva failures keep their code and status."""
    logger.warning(f"Canva error on {request.url.path}: {exc.code} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) if get_settings().DEBUG else "An error occurred"
        }
    )


# ===========================================
# Main Entry Point
# ===========================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
