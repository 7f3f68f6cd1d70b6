"""
Pydantic schemas for prediction API responses.

The prediction result itself is owned by the deployed scoring service, so
these models document the response shape (OpenAPI) rather than constrain it:
unknown fields from the endpoint are allowed and passed through.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PredictionResponse(BaseModel):
    """Scoring result enriched with pipeline metadata."""
    risk_level: str = Field(..., description="Risk classification", example="Moderate Risk")
    probability: float = Field(..., description="Predicted probability (0-1)", example=0.42)
    recommendations: Optional[Dict[str, List[str]]] = Field(
        None,
        description="Advice grouped by category, in display order",
        example={"diet": ["Reduce refined sugar intake"]}
    )
    request_id: str = Field(..., description="Identifier for correlating with server logs", example="req_1700000000000_k3j9x2a1b")
    backend_processing_time_ms: int = Field(..., description="Total pipeline latency (ms)", example=143)
    inference_response_time_ms: int = Field(..., description="Inference endpoint call latency (ms)", example=121)
    processed_at: str = Field(..., description="ISO 8601 UTC completion time", example="2025-01-01T10:00:00.000Z")
    endpoint_used: str = Field(..., description="Inference endpoint identifier", example="diabetes-risk-endpoint")
    backend_version: str = Field(..., description="Service version", example="1.0.0")

    class Config:
        extra = "allow"


class BatchItemResult(BaseModel):
    """Outcome of one patient in a batch; exactly one of result/error is present."""
    patient_index: int = Field(..., description="Position of the patient in the request")
    status: Literal["success", "failed"]
    result: Optional[Dict[str, Any]] = Field(None, description="Scoring result (success only)")
    error: Optional[str] = Field(None, description="Failure message (failed only)")


class BatchPredictionResponse(BaseModel):
    """Per-patient outcomes in input order plus aggregate counts."""
    batch_results: List[BatchItemResult]
    total_patients: int
    successful_predictions: int
    failed_predictions: int
    processed_at: str


class ErrorResponse(BaseModel):
    """Standard error body. Validation failures add missing_fields or validation_errors."""
    error: str = Field(..., example="Missing required fields")
    request_id: Optional[str] = None
    timestamp: str
    missing_fields: Optional[List[str]] = None
    validation_errors: Optional[List[str]] = None
    processing_time_ms: Optional[int] = None
    details: Optional[str] = Field(None, description="Original error message (non-production only)")
