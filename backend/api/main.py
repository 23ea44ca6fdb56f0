"""
HSSEOps API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("HSSEOps API starting up", version=settings.app_version)
    yield
    logger.info("HSSEOps API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant HSSE incident, SLA and KPI intelligence",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from alerts.websocket import router as ws_router
from api.v1.routers import alerts, dashboard, kpi, sla

app.include_router(kpi.router)
app.include_router(sla.router)
app.include_router(dashboard.router)
app.include_router(alerts.router)
app.include_router(ws_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
