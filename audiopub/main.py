"""
FastAPI backend for Audiopub.

Upload, browse, comment on and moderate short audio clips.

This main file handles app initialization and router mounting.
All endpoints are organized in the routers/ directory.
"""

import uuid
import logging
from pathlib import Path
from datetime import datetime
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables
env_paths = [
    Path(__file__).parent.parent / '.env',
    Path(__file__).parent / '.env',
]
for env_path in env_paths:
    if env_path.exists():
        load_dotenv(env_path)
        break

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .routers import audios, auth, comments, favorites, feed, notifications, users
from .config import settings
from .database import init_db, check_database_health
from .exceptions import AudiopubError
from .security_middleware import SecurityHeadersMiddleware, HTTPSRedirectMiddleware

# =============================================================================
# Logging
# =============================================================================

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# =============================================================================
# Lifespan Event Handler
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the audio storage directory on startup."""
    init_db()
    logger.info("Database initialized")

    audio_dir = Path(settings.audio_dir)
    audio_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Storing audio files in {audio_dir.resolve()}")

    yield

    logger.info("Application shutting down")

# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Audiopub",
    description="Share, listen to and discuss short audio clips",
    version="1.0.0",
    lifespan=lifespan
)

# =============================================================================
# Error Handlers
# =============================================================================

async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.
    Includes Retry-After header for better client handling.
    """
    detail = str(exc.detail).lower()
    retry_after = 60
    if 'hour' in detail:
        retry_after = 3600
    elif 'second' in detail:
        retry_after = 1

    logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "detail": str(exc.detail),
            "error": "rate_limit_exceeded",
            "retry_after_seconds": retry_after,
            "message": f"Rate limit exceeded. Please wait {retry_after} seconds before retrying."
        },
        headers={"Retry-After": str(retry_after)}
    )


async def audiopub_error_handler(request: Request, exc: AudiopubError):
    """Render service errors as {"detail": ..., "error": ...} with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.error_code},
    )


# The auth router owns the limiter its decorators are bound to
app.state.limiter = auth.limiter
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
app.add_exception_handler(AudiopubError, audiopub_error_handler)
if settings.is_testing:
    logger.info("Rate limits relaxed (test mode)")

# =============================================================================
# Middleware
# =============================================================================

# CORS
origins = settings.allowed_origins.split(',') if settings.allowed_origins != '*' else ['*']

# Warn if using wildcard CORS in production
if origins == ['*']:
    logger.warning(
        "SECURITY WARNING: CORS is set to allow ALL origins (*). "
        "This is insecure for production. Set AUDIOPUB_ALLOWED_ORIGINS to specific domains."
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=origins != ['*'],
    allow_methods=["*"],
    allow_headers=["*"],
)

environment = settings.environment
logger.info(f"Running in {environment} environment")

app.add_middleware(SecurityHeadersMiddleware, environment=environment)

if environment == "production":
    app.add_middleware(HTTPSRedirectMiddleware, environment=environment)
    logger.info("HTTPS enforcement enabled")


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Tag each request with an id, echoed back in X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# =============================================================================
# Mount Routers
# =============================================================================

app.include_router(auth.router)
app.include_router(audios.router)
app.include_router(comments.router)
app.include_router(favorites.router)
app.include_router(users.router)
app.include_router(notifications.router)
app.include_router(feed.router)

# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Service status, database connectivity and audio storage."""
    health_data = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": environment,
        "dependencies": {
            "database": check_database_health(),
            "audio_dir_exists": Path(settings.audio_dir).is_dir(),
        },
    }

    if not health_data["dependencies"]["database"].get("database_connected", False):
        health_data["status"] = "degraded"

    return health_data
