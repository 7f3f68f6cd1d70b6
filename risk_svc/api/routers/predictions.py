"""
Predictions router - single and batch diabetes risk predictions.

Architecture:
    HTTP Request → Router (this file) → PredictionService → InferenceClient → endpoint

Request bodies are accepted as raw JSON and validated by the service layer,
so missing fields and range violations come back in the service's own
error shape rather than FastAPI's 422 format.

All routes here are rate limited per client IP.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from core.dependencies import get_prediction_service
from core.rate_limiter import enforce_rate_limit
from schemas import BatchPredictionResponse, ErrorResponse, PredictionResponse
from services import MAX_BATCH_SIZE, PredictionService
from services.validators import REFERENCE_PATIENT

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Predictions"],
    dependencies=[Depends(enforce_rate_limit)],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    403: {"model": ErrorResponse, "description": "Access denied to inference endpoint"},
    429: {"model": ErrorResponse, "description": "Rate limited (inbound or by the endpoint)"},
    500: {"model": ErrorResponse, "description": "Unclassified failure"},
    502: {"model": ErrorResponse, "description": "Model error"},
    503: {"model": ErrorResponse, "description": "Inference endpoint unavailable"},
}


@router.post(
    "/predict",
    summary="Predict diabetes risk for one patient",
    description="Validate ten clinical measurements, score them on the inference endpoint and "
                "return the risk level, probability and recommendations with request metadata.",
    responses={200: {"model": PredictionResponse}, **ERROR_RESPONSES},
)
async def predict(
    payload: Any = Body(None, example=REFERENCE_PATIENT),
    prediction_service: PredictionService = Depends(get_prediction_service),
):
    """
    Predict diabetes risk.

    Raises PredictionError (handled by setup_exception_handlers) with a
    status chosen by error kind: 400 invalid input, 403 access denied,
    429 rate limited, 502 model error, 503 unavailable, 500 otherwise.
    """
    return await prediction_service.predict(payload)


@router.post(
    "/predict-batch",
    summary="Predict diabetes risk for a batch of patients",
    description=f"Score 1-{MAX_BATCH_SIZE} patients in order. A failed patient does not stop "
                "the rest of the batch; each outcome is reported at its input index.",
    responses={200: {"model": BatchPredictionResponse}, 400: ERROR_RESPONSES[400], 500: ERROR_RESPONSES[500]},
)
async def predict_batch(
    payload: Any = Body(None, example={"patients": [REFERENCE_PATIENT]}),
    prediction_service: PredictionService = Depends(get_prediction_service),
):
    """
    Batch prediction.

    - **patients**: array of patient records (1-10)

    Returns 400 without scoring anything if patients is not a non-empty
    array or has more than 10 entries.
    """
    patients = payload.get("patients") if isinstance(payload, dict) else None
    return await prediction_service.predict_batch(patients)
