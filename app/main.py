"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes (Telegram webhook)
- Recovers generations orphaned by a previous crash
- No business logic should be written here
- Manages application lifecycle (startup/shutdown)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from app.db.indexes import create_indexes
from app.services.flow_service import FlowStore, PresentationFlow
from app.services.quota_service import get_quota_ledger
from app.api import webhook

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Starting SlideBot application...")

    try:
        validate_settings()
        logger.info("✅ Configuration validated")

        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        await create_indexes()
        logger.info("✅ Database indexes created")

        # Reservations left pending by a crash would hold quota forever
        recovered = await get_quota_ledger().recover_orphaned_on_startup()
        if recovered:
            logger.warning(f"⚠️ Marked {recovered} orphaned generation(s) as failed")
        else:
            logger.info("✅ No orphaned generations")

        app.state.flow = PresentationFlow(FlowStore())

        logger.info("🎉 SlideBot application started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    # Shutdown
    logger.info("🛑 Shutting down SlideBot application...")
    await close_mongo_connection()
    logger.info("👋 SlideBot application shut down")


# Create FastAPI app with lifespan
app = FastAPI(
    title="SlideBot - Presentation Generator",
    description="Telegram bot that turns a topic into a PDF presentation",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

add_exception_handlers(app)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    if process_time > 5.0:
        logger.warning(f"Slow request detected: {request.method} {request.url.path}")

    return response


# Register API routes
app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhook"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "SlideBot API",
        "version": APP_VERSION,
        "description": "Telegram presentation generator",
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Checks database connectivity and bot configuration.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    db_healthy = await check_database_health()
    health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
    if not db_healthy:
        health_status["status"] = "degraded"

    health_status["checks"]["telegram"] = "configured" if settings.TELEGRAM_BOT_TOKEN else "not_configured"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check():
    if await check_database_health():
        return {"status": "ready"}
    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": "database_unavailable"}
    )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
