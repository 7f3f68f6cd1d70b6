"""
Service layer for business logic.

This module contains the prediction pipeline: the inference endpoint client,
error classification and the prediction orchestrator.
"""
from services.inference_client import InferenceClient, InvocationResult
from services.error_classifier import ClassifiedError, ErrorKind, classify_error
from services.prediction_service import PredictionService, BatchItemOutcome, MAX_BATCH_SIZE

__all__ = [
    "InferenceClient",
    "InvocationResult",
    "ClassifiedError",
    "ErrorKind",
    "classify_error",
    "PredictionService",
    "BatchItemOutcome",
    "MAX_BATCH_SIZE",
]
