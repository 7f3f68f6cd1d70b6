"""
FastAPI application entry point for Diabetes Risk Service.

This module configures and creates the FastAPI application with:
- Structured JSON Logging with request ID propagation
- Dependency Injection: PredictionService and InferenceClient via Depends()
- Exception Handling: Consistent error responses via setup_exception_handlers()
- CORS Middleware for the browser frontend
- Lifespan Management: logging setup and optional endpoint probe

Architecture Overview:
    ┌─────────────────────────────────────────────────────────────┐
    │                     FastAPI Application                      │
    ├─────────────────────────────────────────────────────────────┤
    │  Middleware Stack (order matters!)                          │
    │    ├── LoggingMiddleware  - Request logging & metrics       │
    │    └── CORSMiddleware     - Cross-origin support            │
    ├─────────────────────────────────────────────────────────────┤
    │  Routers (api/routers/)                                     │
    │    ├── health.py       - /, /api/health, /api/endpoint-health, /metrics │
    │    └── predictions.py  - /api/predict, /api/predict-batch   │
    ├─────────────────────────────────────────────────────────────┤
    │  PredictionService (services/)  ← Injected via Depends()    │
    │    ├── patient_validator - boundary validation              │
    │    ├── error_classifier  - failure → error kind             │
    │    └── InferenceClient   - remote scoring endpoint (httpx)  │
    └─────────────────────────────────────────────────────────────┘
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from core.config import API_HOST, API_PORT, API_RELOAD, SERVICE_NAME, SERVICE_VERSION, settings
from core.dependencies import get_inference_client, get_prediction_service
from core.exceptions import setup_exception_handlers
from core.logging_config import setup_logging
from core.middleware import LoggingMiddleware
from api.routers import api_health_router, health_router, predictions_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application.

    Startup:
        - Configures structured JSON logging
        - Logs the inference endpoint configuration
        - Optionally probes the inference endpoint (never blocks startup)

    Shutdown:
        - Logs shutdown message
    """
    setup_logging(level="INFO", json_format=True)

    logger = logging.getLogger(__name__)
    logger.info(
        "Starting Diabetes Risk Service",
        extra={
            "port": API_PORT,
            "environment": settings.risk_svc_environment,
            "endpoint": settings.inference_endpoint_name,
            "cors_origin": settings.frontend_url,
            "rate_limit": f"{settings.rate_limit_max_requests} per {settings.rate_limit_window_seconds:g}s",
        }
    )

    if settings.risk_svc_startup_probe:
        service = get_prediction_service(inference_client=get_inference_client())
        check = await service.check_endpoint()
        if check["healthy"]:
            logger.info("Inference endpoint reachable", extra={"response_time_ms": check["response_time_ms"]})
        else:
            logger.error("Inference endpoint unreachable - check configuration", extra={"error": check["error"]})

    yield

    logger.info("Diabetes Risk Service shutting down...")


app = FastAPI(
    title=SERVICE_NAME,
    description="Validates clinical measurements, scores them on a hosted diabetes risk model "
                "and returns the risk level, probability and recommendations.",
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================
setup_exception_handlers(app)

# =============================================================================
# MIDDLEWARE
# =============================================================================
# Middleware is executed in REVERSE order of registration.

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

app.add_middleware(LoggingMiddleware)

# =============================================================================
# ROUTERS
# =============================================================================
app.include_router(health_router)
app.include_router(api_health_router)
app.include_router(predictions_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD
    )
