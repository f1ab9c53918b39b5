"""
Admin panel service.

Staff-facing API for the tailoring shop: dashboard statistics, orders with
their line items, and the product catalogue. All data lives in the hosted
backend; this service only reads it, renders display fragments, and writes
edited orders back.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from shared.core import RequestLoggingMiddleware, ServiceHealth, get_logger, setup_logging

from app.api.auth import router as auth_router
from app.api.routes import router as admin_router
from app.core_settings import get_settings
from app.infrastructure.gateway import create_gateway

settings = get_settings()
SERVICE_DESCRIPTION = "Order and product administration for the tailoring shop"

setup_logging(service_name=settings.SERVICE_NAME, level=settings.LOG_LEVEL)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Owns the gateway connection pool for the application's lifetime."""
    logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")
    if not getattr(app.state, "gateway", None):
        app.state.gateway = create_gateway(settings)
    logger.info(f"{settings.SERVICE_NAME} started successfully")

    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME}")
    await app.state.gateway.aclose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        return response


app = FastAPI(
    title=settings.SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url=None,
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


async def _gateway_probe() -> float:
    return await app.state.gateway.ping()


health_service = ServiceHealth(
    settings.SERVICE_NAME,
    settings.SERVICE_VERSION,
    dependencies={"gateway": _gateway_probe},
    required_config={
        "GATEWAY_URL": settings.GATEWAY_URL,
        "GATEWAY_API_KEY": settings.GATEWAY_API_KEY,
        "SESSION_SECRET": settings.SESSION_SECRET,
    },
)
app.include_router(health_service.create_health_router())
app.include_router(auth_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs",
    }


@app.get("/info")
async def info():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "login": "/auth/login",
            "dashboard": "/api/dashboard",
            "orders": "/api/orders",
            "products": "/api/products",
            "docs": "/api/docs",
        },
    }
