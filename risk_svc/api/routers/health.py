"""
Health, endpoint-probe and metrics endpoints for operational visibility.

This module provides:
- /: API information and endpoint map
- /api/health: Liveness (is the process up?)
- /api/endpoint-health: Sends a reference record to the inference endpoint
- /metrics, /metrics/json: In-memory metrics for Prometheus/Grafana scraping
"""
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from core.config import SERVICE_NAME, SERVICE_VERSION
from core.datetime_utils import iso_timestamp
from core.dependencies import get_prediction_service
from core.middleware import get_metrics_collector
from core.rate_limiter import enforce_rate_limit
from services import PredictionService

logger = logging.getLogger(__name__)

# Process start, for uptime reporting
_STARTED_AT = time.monotonic()

router = APIRouter(tags=["Health & Observability"])

api_router = APIRouter(
    prefix="/api",
    tags=["Health & Observability"],
    dependencies=[Depends(enforce_rate_limit)],
)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for /api/health."""
    status: str
    timestamp: str
    endpoint: str
    version: str
    uptime: float


class EndpointHealthResponse(BaseModel):
    """Response model for /api/endpoint-health."""
    status: str  # "healthy" or "unhealthy"
    endpoint: str
    response_time_ms: int | None = None
    error: str | None = None
    timestamp: str


class MetricsResponse(BaseModel):
    """Response model for JSON metrics endpoint."""
    http_requests_total: int
    http_requests_2xx_total: int
    http_requests_4xx_total: int
    http_requests_5xx_total: int
    http_request_duration_ms_p50: float
    http_request_duration_ms_p95: float
    http_request_duration_ms_p99: float
    inference_duration_ms_p50: float
    inference_duration_ms_p95: float
    inference_duration_ms_p99: float
    predictions_success_total: int
    predictions_failure_total: int
    prediction_failures_by_kind: Dict[str, int]


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@router.get(
    "/",
    summary="API root",
    description="Root endpoint with basic API information."
)
async def root() -> Dict[str, Any]:
    """Service name, version, status and links to the other endpoints."""
    return {
        "message": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "timestamp": iso_timestamp(),
        "endpoints": {
            "health": "/api/health",
            "prediction": "/api/predict",
            "batch_prediction": "/api/predict-batch",
            "endpoint_health": "/api/endpoint-health",
            "metrics": "/metrics",
        }
    }


# =============================================================================
# LIVENESS & ENDPOINT PROBE
# =============================================================================

@api_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns immediately without contacting the inference endpoint."
)
async def health_check(
    prediction_service: PredictionService = Depends(get_prediction_service),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=iso_timestamp(),
        endpoint=prediction_service.endpoint_name,
        version=SERVICE_VERSION,
        uptime=round(time.monotonic() - _STARTED_AT, 3),
    )


@api_router.get(
    "/endpoint-health",
    response_model=EndpointHealthResponse,
    summary="Inference endpoint probe",
    description="Scores a reference patient record on the inference endpoint. "
                "Returns 503 if the endpoint cannot produce a prediction."
)
async def endpoint_health(
    response: Response,
    prediction_service: PredictionService = Depends(get_prediction_service),
) -> EndpointHealthResponse:
    """
    Readiness of the external scoring service.

    The probe is a real endpoint call, so it is subject to the same
    inbound rate limit as predictions.
    """
    check = await prediction_service.check_endpoint()

    if not check["healthy"]:
        response.status_code = 503
        return EndpointHealthResponse(
            status="unhealthy",
            endpoint=prediction_service.endpoint_name,
            error=check["error"],
            timestamp=iso_timestamp(),
        )

    return EndpointHealthResponse(
        status="healthy",
        endpoint=prediction_service.endpoint_name,
        response_time_ms=check["response_time_ms"],
        timestamp=iso_timestamp(),
    )


# =============================================================================
# METRICS ENDPOINT
# =============================================================================

@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Export metrics in Prometheus text format. "
                "Includes HTTP request counts, latency percentiles and prediction outcomes."
)
async def get_metrics() -> Response:
    collector = get_metrics_collector()
    return Response(
        content=collector.get_prometheus_format(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@router.get(
    "/metrics/json",
    response_model=MetricsResponse,
    summary="JSON metrics",
    description="Export metrics in JSON format for custom dashboards."
)
async def get_metrics_json() -> MetricsResponse:
    collector = get_metrics_collector()
    return MetricsResponse(**collector.get_summary())
