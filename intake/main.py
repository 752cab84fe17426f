"""
main.py — Business intake FastAPI application entry point.

Start with: uvicorn intake.main:app --reload --port 8000
(run from the repository root)
"""
import asyncio
import logging
import os
import subprocess
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from intake.config import settings
from intake.errors import IntakeError
from intake.profile.schemas import ErrorBody, ErrorDetail, ErrorResponse

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan — startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Run Alembic migrations
      2. Redis connection pool
      3. Shared httpx client for document downloads
      4. AI client + semaphore → analyzer
      5. Compile the analysis LangGraph
    Shutdown:
      Close httpx client and Redis pool
    """
    # --- 1. Database: run Alembic migrations ---
    package_dir = os.path.dirname(os.path.abspath(__file__))
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True,
        text=True,
        cwd=package_dir,
    )
    if result.returncode != 0:
        logger.error("Alembic migration failed:\n%s", result.stderr)
        raise RuntimeError(f"Alembic migration failed: {result.stderr}")
    msg = result.stdout.strip() or "No pending migrations"
    logger.info("Alembic: %s", msg)

    # --- 2. Redis ---
    from intake.cache import create_redis_pool
    app.state.redis = await create_redis_pool()

    # --- 3. HTTP client — pooled connections for storage downloads ---
    app.state.http_client = httpx.AsyncClient(
        timeout=settings.download_timeout_seconds,
        follow_redirects=True,
    )

    # --- 4. AI client — singleton for HTTP connection pool reuse ---
    from openai import AsyncOpenAI
    from intake.analysis.llm_service import MistralAnalyzer

    if settings.mistral_api_key:
        app.state.mistral = AsyncOpenAI(
            api_key=settings.mistral_api_key,
            base_url=settings.mistral_base_url,
        )
        logger.info("Mistral client initialized base_url=%s", settings.mistral_base_url)
    else:
        app.state.mistral = None
        logger.warning("MISTRAL_API_KEY not set — /api/analyze-profile will return 503")

    # asyncio.Semaphore MUST be created inside the running loop (not module level)
    semaphore = asyncio.Semaphore(settings.analysis_concurrency)
    app.state.analyzer = MistralAnalyzer(app.state.mistral, semaphore, model=settings.mistral_model)
    logger.info("Analyzer initialized (concurrency=%d)", settings.analysis_concurrency)

    # --- 5. LangGraph analysis pipeline ---
    from intake.graph.graph import build_graph
    app.state.analysis_graph = build_graph()

    if not settings.storage_configured:
        logger.warning("Storage credentials missing — signed URLs fall back to stored URLs")

    logger.info("Business intake v%s starting up", settings.app_version)
    yield

    # --- Shutdown ---
    await app.state.http_client.aclose()
    if app.state.mistral is not None:
        await app.state.mistral.close()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")
    logger.info("Business intake shutting down")


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Business Intake API",
    version=settings.app_version,
    description=(
        "Business-profile intake: document upload and text extraction, profile "
        "validation, AI service recommendations and an owner-scoped analysis history."
    ),
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ---------------------------------------------------------------------------
# CORS middleware — restricted to frontend origins from settings
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {error: {code, message, details}} response."""
    body = ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            details=[ErrorDetail(**d) for d in details or []],
        )
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


# ---------------------------------------------------------------------------
# Global exception handlers — registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    """Typed domain errors carry their own code and status."""
    log = logger.warning if exc.status_code >= 500 else logger.info
    log("%s on %s %s", exc.code, request.method, request.url.path)
    return _make_error_response(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Converts Pydantic / FastAPI 422 validation errors to standard format.
    Returns ALL field violations in one response.
    """
    details = []
    for error in exc.errors():
        # Build dot-notation field path, excluding the top-level 'body' loc
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=422,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Framework-raised HTTP errors (404 route, 405 method) in standard format."""
    code_map = {
        400: "BAD_INPUT",
        401: "UNAUTHENTICATED",
        403: "UNAUTHORIZED",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        413: "PAYLOAD_TOO_LARGE",
        415: "UNSUPPORTED_FILE_TYPE",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _make_error_response(
        code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → includes exception type & message in details (dev only).
    DEBUG=false → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=True,
    )
    if settings.debug:
        details = [{"issue": f"{type(exc).__name__}: {exc}"}]
        message = "An unexpected error occurred (debug details included)"
    else:
        details = []
        message = "An unexpected error occurred"
    return _make_error_response(
        code="INTERNAL_ERROR",
        message=message,
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Health endpoint (no auth required)
# ---------------------------------------------------------------------------
@app.get("/api/health", tags=["System"])
async def health_check() -> dict:
    """Returns service health status for load balancers and deploy checks."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from intake.analysis.routes import router as analysis_router  # noqa: E402
from intake.ingestion.routes import router as ingestion_router  # noqa: E402
from intake.session.routes import router as session_router  # noqa: E402

app.include_router(ingestion_router)
app.include_router(analysis_router)
app.include_router(session_router)
