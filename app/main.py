"""M365 Assessment Platform - Main Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.dependencies import ServiceContainer, get_services
from app.api.routes import assessments_router, customers_router
from app.core.cache import cache_manager
from app.core.config import get_settings
from app.core.exceptions import StoreError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting M365 Assessment Platform...")

    # The backing store is initialized lazily by the first request
    await cache_manager.initialize()
    logger.info("Cache initialized")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Security posture assessments for Microsoft 365 tenants: license "
                "utilization, Secure Score, scoring, recommendations and history.",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(assessments_router)
app.include_router(customers_router)


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/health/detailed")
async def detailed_health_check(services: ServiceContainer = Depends(get_services)):
    """Detailed health check with component status."""
    components = {
        "database": "unknown",
        "cache": "unknown",
        "azure_configured": settings.is_configured,
        "key_vault_configured": bool(settings.key_vault_url),
    }

    # Check database
    try:
        await services.store_init.ensure()
        services.gateway.ping()
        components["database"] = "healthy"
    except StoreError as e:
        logger.warning(f"Database health check failed: {e}")
        components["database"] = f"unhealthy: {str(e)}"

    # Check cache
    cache_metrics = cache_manager.get_metrics()
    components["cache"] = cache_metrics.get("backend", "unknown")

    return {
        "status": "healthy" if components["database"] == "healthy" else "degraded",
        "version": settings.app_version,
        "components": components,
        "cache_metrics": cache_metrics,
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "InternalServerError",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
