"""
FastAPI Application Entry Point

This module initializes the FastAPI application with:
- Error tracking (Sentry) and the {error, code} error format
- CORS configuration
- Route registration
- Health check endpoints
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import AppError, BadRequestError, InternalServerError, app_error_handler
from app.core.monitoring import capture_exception, init_sentry
from app.db.database import check_db_connection, close_db
from app.db.redis import check_redis_connection, close_arq_pool
from app.api.v1.router import api_router, public_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

init_sentry()


# ============================================================
# Application Lifespan Events
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Startup:
    - Check database connection
    - Check Redis (job queues)

    Shutdown:
    - Close the ARQ pool and the database engine
    """
    # ========== STARTUP ==========
    logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})...")
    logger.info(f"Debug mode: {settings.DEBUG}")

    try:
        if await check_db_connection():
            logger.info("Database connection established successfully")
        else:
            logger.warning("Database connection check failed")
    except Exception as e:
        logger.error(f"Database connection error on startup: {e}")

    # Don't fail startup - uploads fall back to in-process indexing without Redis
    if await check_redis_connection():
        logger.info("Redis connection established successfully")
    else:
        logger.warning("Redis connection check failed - background jobs will run in-process")

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")

    await close_arq_pool()
    await close_db()

    logger.info("Shutdown complete")


# ============================================================
# Create FastAPI Application
# ============================================================
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Multi-tenant document RAG service

    Features:
    - Organization document upload with background indexing
    - Streaming chat grounded in the organization's documents
    - Signed download links for cited documents
    - Admin reconciliation of the remote index against local documents
    """,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ----------------------------------------------------
# Middleware Configuration
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# ----------------------------------------------------
# Exception Handlers
# ----------------------------------------------------
app.add_exception_handler(AppError, app_error_handler)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures as BAD_REQUEST."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return await app_error_handler(request, BadRequestError(message))


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    """Report unexpected errors and answer with a generic message."""
    logger.exception(f"Internal server error on {request.method} {request.url.path}: {exc}")
    capture_exception(exc, tags={"component": "api", "path": request.url.path})
    return await app_error_handler(request, InternalServerError())


# ----------------------------------------------------
# Health Check Endpoints
# ----------------------------------------------------
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.

    Checks:
    - Database connectivity
    - Redis connectivity
    """
    try:
        db_healthy = await check_db_connection()
        redis_healthy = await check_redis_connection()

        return {
            "status": "healthy" if db_healthy and redis_healthy else "degraded",
            "database": "connected" if db_healthy else "disconnected",
            "redis": "connected" if redis_healthy else "disconnected",
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": str(e)
            }
        )

# ============================================================
# Include API Routers
# ============================================================
app.include_router(
    api_router,
    prefix=settings.API_V1_PREFIX
)

app.include_router(
    public_router,
    prefix="/api"
)
