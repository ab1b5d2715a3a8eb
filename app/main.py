"""
CRM Client Risk Engine — FastAPI Application Entry Point

POST /v1/risk/clients/{id}/assess  → assess one client
GET  /v1/risk/high-risk             → clients at or above a risk level
GET  /v1/risk/health                → health check
GET  /docs                          → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from app.api.risk_endpoint import router as risk_router
from app.core.config import get_settings
from app.services.event_publisher import close_producer

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer() if get_settings().app_env == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("risk_engine_starting", env=get_settings().app_env)
    yield
    await close_producer()
    logger.info("risk_engine_shutting_down")


app = FastAPI(
    title="CRM Client Risk Engine",
    description="Multi-factor risk assessment for CRM clients",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (CRM web app) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["POST", "GET", "PUT"],
    allow_headers=["*"],
)

# ── Prometheus metrics ──
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(risk_router)


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "assess": "POST /v1/risk/clients/{client_id}/assess",
    }
