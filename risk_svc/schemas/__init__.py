"""
Pydantic schemas for API request/response validation.

This module contains all Pydantic models used at API boundaries.
"""
from schemas.patient import PatientRecord
from schemas.prediction import (
    PredictionResponse,
    BatchItemResult,
    BatchPredictionResponse,
    ErrorResponse,
)

__all__ = [
    # Patient schemas
    "PatientRecord",
    # Prediction schemas
    "PredictionResponse",
    "BatchItemResult",
    "BatchPredictionResponse",
    "ErrorResponse",
]
