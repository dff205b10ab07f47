"""Creator Stats Hub - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from config import get_settings
from database import async_session, engine
from middleware.rate_limit import limiter, rate_limit_exceeded_handler
from models import Base
from routers import analytics_router, connections_router
from services.container import build_container
from services.errors import ReauthRequired, StorageError, UnsupportedPlatformError
from services.scheduler import create_scheduler, start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)
settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - create tables and services on startup, cleanup on shutdown."""
    # Startup: create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Security check: Warn if using default secrets in production
    if not settings.debug and settings.jwt_secret == "dev-secret-change-in-production":
        logger.warning("SECURITY WARNING: Using default JWT secret in production!")
    if not settings.credential_encryption_key:
        logger.warning("CREDENTIAL_ENCRYPTION_KEY not set - stored tokens won't survive a restart")

    services = build_container(settings, async_session)
    app.state.services = services
    logger.info(f"Providers registered: {', '.join(services.registry.platforms())}")

    # Start background scheduler for periodic tasks
    scheduler = create_scheduler(services.cleanup, settings)
    start_scheduler(scheduler)

    yield

    # Shutdown: stop scheduler and close database connections
    stop_scheduler(scheduler)
    await engine.dispose()


app = FastAPI(
    title="Creator Stats Hub API",
    description="Per-creator platform statistics, growth and revenue analytics",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(ReauthRequired)
async def reauth_required_handler(request: Request, exc: ReauthRequired):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "platform": exc.platform, "reauth_required": True},
    )


@app.exception_handler(UnsupportedPlatformError)
async def unsupported_platform_handler(request: Request, exc: UnsupportedPlatformError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage temporarily unavailable"},
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analytics_router)
app.include_router(connections_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "creator-stats-hub"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Creator Stats Hub API",
        "version": "0.1.0",
        "docs": "/docs",
    }
