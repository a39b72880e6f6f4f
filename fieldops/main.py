"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fieldops.core.config import settings
from fieldops.core.middleware import get_request_id, setup_middleware
from fieldops.core.exceptions import FieldOpsError

from fieldops.api.auth import router as auth_router
from fieldops.api.teams import router as teams_router
from fieldops.api.users import router as users_router
from fieldops.api.sites import router as sites_router
from fieldops.api.reports import router as reports_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("fieldops")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    # Ensure MinIO bucket exists
    try:
        from fieldops.services.storage_service import get_media_storage
        get_media_storage().ensure_bucket()
        logger.info("MinIO bucket ready")
    except Exception as e:
        logger.warning("MinIO not available: %s", e)

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="FieldOps Teams API",
    description="Team membership, invitations and tenant-scoped field resources",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


# Every domain error maps to its own status code
@app.exception_handler(FieldOpsError)
async def fieldops_exception_handler(request: Request, exc: FieldOpsError):
    if exc.status_code >= 500:
        logger.warning("[%s] %s: %s", get_request_id(request), exc.error, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.error},
    )

# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(teams_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(sites_router, prefix="/api")
app.include_router(reports_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
