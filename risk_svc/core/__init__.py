"""
Core module for application configuration, logging, and shared constants.

This module provides:
- Settings: Application configuration via pydantic-settings
- Exceptions: Domain-specific exception classes with HTTP status codes
- Datetime utilities: UTC timestamps and elapsed-time helpers

Dependency injection functions live in core.dependencies and are imported
from there directly, since they depend on the services package.
"""
from core.config import settings, Settings

# Exception classes for consistent error handling
from core.exceptions import (
    RiskServiceError,
    PatientValidationError,
    InvalidBatchError,
    InferenceError,
    InferenceTransportError,
    InferenceServiceError,
    PredictionError,
    RateLimitExceededError,
    setup_exception_handlers,
)

# UTC datetime utilities
from core.datetime_utils import (
    utc_now,
    to_utc,
    format_iso,
    iso_timestamp,
    monotonic_ms,
    elapsed_ms,
)
from core.config import (
    SERVICE_NAME,
    SERVICE_VERSION,
    API_HOST,
    API_PORT,
    API_RELOAD,
    INFERENCE_ENDPOINT_NAME,
    INFERENCE_ENDPOINT_URL,
    INFERENCE_TIMEOUT,
)

__all__ = [
    # Settings
    "settings",
    "Settings",
    # Exceptions
    "RiskServiceError",
    "PatientValidationError",
    "InvalidBatchError",
    "InferenceError",
    "InferenceTransportError",
    "InferenceServiceError",
    "PredictionError",
    "RateLimitExceededError",
    "setup_exception_handlers",
    # Datetime utilities
    "utc_now",
    "to_utc",
    "format_iso",
    "iso_timestamp",
    "monotonic_ms",
    "elapsed_ms",
    # Module-level config exports
    "SERVICE_NAME",
    "SERVICE_VERSION",
    "API_HOST",
    "API_PORT",
    "API_RELOAD",
    "INFERENCE_ENDPOINT_NAME",
    "INFERENCE_ENDPOINT_URL",
    "INFERENCE_TIMEOUT",
]
