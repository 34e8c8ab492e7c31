"""
Orders Microservice
Checkout for the Near & Now local-delivery marketplace: splits carts across
nearby stores and persists customer orders with their per-store sub-orders.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import subprocess
import os

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from nearandnow.core_settings import get_settings
from nearandnow.api.routes import router as orders_router
from nearandnow.application.errors import OrderPlacementError
from nearandnow.infrastructure.db import engine, init_models

# Service configuration
SERVICE_NAME = "orders-service"
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")
SERVICE_DESCRIPTION = "Order placement and multi-store fulfillment allocation"
PROJECT_ROOT = os.path.join(os.path.dirname(__file__), "..")

# Setup structured logging
setup_logging(
    service_name=SERVICE_NAME,
    level=get_settings().LOG_LEVEL
)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    logger.info(f"Starting {SERVICE_NAME} version {SERVICE_VERSION}")

    # Startup
    try:
        # Run database migrations
        logger.info("Running database migrations")
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
            check=False
        )
        if result.returncode != 0:
            logger.warning(f"Migration output: {result.stderr}")
        else:
            logger.info("Database migrations completed")
    except OSError as e:
        logger.error(f"Migration error: {e}")

    # Initialize database models
    try:
        init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise

    logger.info(f"{SERVICE_NAME} started successfully")

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME}")

# Create FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

@app.exception_handler(OrderPlacementError)
async def order_error_handler(request: Request, exc: OrderPlacementError) -> JSONResponse:
    """Typed checkout failures become structured, user-facing responses"""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Initialize health checks
health_service = ServiceHealth(SERVICE_NAME, SERVICE_VERSION, engine=engine)
health_router = health_service.create_health_router()
app.include_router(health_router)

# Include business logic routes
app.include_router(orders_router)

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }

@app.get("/info")
async def info():
    """Service information endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "endpoints": {
            "orders": "/orders",
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "docs": "/api/docs"
        }
    }


def run():
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting {SERVICE_NAME} on {settings.HOST}:{settings.PORT}")
    uvicorn.run("nearandnow.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
