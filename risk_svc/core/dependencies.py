"""
FastAPI Dependency Injection configuration for Diabetes Risk Service.

Architecture Flow:
    API Layer (Routers)
         ↓ Depends()
    PredictionService (orchestration)
         ↓ Injected
    InferenceClient (remote endpoint) + MetricsCollector

Usage in Routers:
    from core.dependencies import get_prediction_service

    @router.post("/predict")
    async def predict(
        payload: Any = Body(None),
        prediction_service: PredictionService = Depends(get_prediction_service)
    ):
        return await prediction_service.predict(payload)

Testing:
    app.dependency_overrides[get_inference_client] = lambda: fake_client
"""
import logging
from typing import Optional

from fastapi import Depends

from core.config import settings
from core.middleware import get_metrics_collector
from services import InferenceClient, PredictionService

logger = logging.getLogger(__name__)


# =============================================================================
# INFERENCE CLIENT DEPENDENCY
# =============================================================================

_inference_client_instance: Optional[InferenceClient] = None


def get_inference_client() -> InferenceClient:
    """
    Get the inference client (created once, reused across requests).

    The client holds only configuration; each invoke() opens its own
    connection, so sharing it between requests shares no mutable state.
    """
    global _inference_client_instance

    if _inference_client_instance is None:
        logger.info(
            "Initializing inference client",
            extra={
                "endpoint": settings.inference_endpoint_name,
                "endpoint_url": settings.inference_endpoint_url,
                "timeout_s": settings.inference_timeout,
            }
        )
        _inference_client_instance = InferenceClient()

    return _inference_client_instance


def reset_inference_client() -> None:
    """Reset the inference client instance (for testing only)."""
    global _inference_client_instance
    _inference_client_instance = None


# =============================================================================
# SERVICE DEPENDENCIES
# =============================================================================

def get_prediction_service(
    inference_client: InferenceClient = Depends(get_inference_client),
) -> PredictionService:
    """
    Get a PredictionService with the inference client and metrics injected.

    Returns:
        PredictionService: Per-request orchestrator instance.
    """
    return PredictionService(
        inference_client=inference_client,
        metrics=get_metrics_collector(),
    )
