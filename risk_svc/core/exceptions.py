"""
Shared exception classes and error handling utilities for Diabetes Risk Service.

This module provides:
- Custom exception hierarchy for domain-specific errors
- Consistent error response formatting ({"error", "timestamp", ...})
- Exception handlers for FastAPI integration

Usage:
    from core.exceptions import PatientValidationError, InvalidBatchError

    # In service layer - raise domain exceptions
    raise InvalidBatchError("Batch size limited to 10 patients")

    # In FastAPI - register handlers via setup_exception_handlers(app)
"""
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.datetime_utils import iso_timestamp

if TYPE_CHECKING:
    from services.error_classifier import ClassifiedError

logger = logging.getLogger(__name__)


# =============================================================================
# BASE EXCEPTION CLASSES
# =============================================================================

class RiskServiceError(Exception):
    """
    Base exception for all Diabetes Risk Service domain errors.

    All custom exceptions should inherit from this class.
    Provides consistent error structure with status code and detail message.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any
    ):
        """
        Initialize the exception.

        Args:
            detail: Human-readable error message. Uses class default if not provided.
            status_code: HTTP status code. Uses class default if not provided.
            **kwargs: Additional fields to include in the error response body.
        """
        self.detail = detail or self.__class__.detail
        self.status_code = status_code or self.__class__.status_code
        self.context = kwargs
        super().__init__(self.detail)

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Args:
            include_details: Expose diagnostic details (non-production only).
        """
        result: Dict[str, Any] = {"error": self.detail}
        result.update({k: v for k, v in self.context.items() if v is not None})
        result["timestamp"] = iso_timestamp()
        return result


# =============================================================================
# INPUT EXCEPTIONS
# =============================================================================

class PatientValidationError(RiskServiceError):
    """
    Raised when a patient record fails boundary validation.

    Carries exactly one of two disjoint payloads: the names of missing
    fields, or human-readable range violations. Never both.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid patient data"

    def __init__(
        self,
        missing_fields: Optional[List[str]] = None,
        range_errors: Optional[List[str]] = None,
    ):
        if bool(missing_fields) == bool(range_errors):
            raise ValueError("Exactly one of missing_fields or range_errors must be provided")

        self.missing_fields = list(missing_fields or [])
        self.range_errors = list(range_errors or [])

        if self.missing_fields:
            super().__init__(detail="Missing required fields", missing_fields=self.missing_fields)
        else:
            super().__init__(detail="Invalid data ranges", validation_errors=self.range_errors)

    @property
    def is_missing_fields(self) -> bool:
        return bool(self.missing_fields)

    def describe(self) -> str:
        """Single-line description used where only a message fits (batch outcomes)."""
        if self.missing_fields:
            return f"Missing required fields: {', '.join(self.missing_fields)}"
        return f"Invalid data ranges: {'; '.join(self.range_errors)}"


class InvalidBatchError(RiskServiceError):
    """Raised when a batch request is structurally invalid (not a list, empty, over cap)."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid batch data - expecting array of patients"


# =============================================================================
# INFERENCE ENDPOINT EXCEPTIONS
# =============================================================================

class InferenceError(RiskServiceError):
    """Base class for failures talking to the remote inference endpoint."""

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Inference endpoint error"


class InferenceTransportError(InferenceError):
    """Raised when the endpoint could not be reached (network failure or timeout)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Could not communicate with the inference endpoint"

    def __init__(self, detail: Optional[str] = None, timed_out: bool = False):
        self.timed_out = timed_out
        super().__init__(detail=detail)


class InferenceServiceError(InferenceError):
    """
    Raised when the endpoint answered but the call failed.

    `code` is the endpoint's own error code (e.g. "ThrottlingException"),
    or "malformed-response" when a success response could not be used.
    """

    MALFORMED_RESPONSE = "malformed-response"

    def __init__(
        self,
        code: str,
        detail: Optional[str] = None,
        upstream_status: Optional[int] = None,
    ):
        self.code = code
        self.upstream_status = upstream_status
        super().__init__(detail=detail or f"Inference endpoint returned {code}")


# =============================================================================
# PIPELINE EXCEPTIONS
# =============================================================================

class PredictionError(RiskServiceError):
    """
    Raised by the prediction orchestrator for any failed prediction.

    Wraps the classified error so the response status and message come from
    the error kind, while the original message stays available for diagnostics.
    """

    def __init__(
        self,
        classified: "ClassifiedError",
        request_id: str,
        processing_time_ms: int,
    ):
        self.classified = classified
        self.request_id = request_id
        self.processing_time_ms = processing_time_ms
        super().__init__(
            detail=classified.message,
            status_code=classified.status_code,
            request_id=request_id,
            processing_time_ms=processing_time_ms,
        )

    @property
    def kind(self) -> str:
        return self.classified.kind

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        result = super().to_dict(include_details)
        cause = self.__cause__
        if isinstance(cause, PatientValidationError):
            result.update(cause.context)
        if include_details:
            result["details"] = self.classified.detail
        return result


class RateLimitExceededError(RiskServiceError):
    """Raised when a client exceeds the inbound request rate."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    detail = "Too many requests from this IP"

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(retry_after=f"{retry_after:.0f} seconds")


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def risk_service_exception_handler(
    request: Request,
    exc: RiskServiceError
) -> JSONResponse:
    """
    Handle RiskServiceError exceptions and return consistent JSON responses.

    Diagnostic details are only attached outside production.
    """
    logger.warning(
        f"RiskServiceError: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "context": exc.context
        }
    )
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(max(1, int(exc.retry_after)))}
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=not settings.is_production),
        headers=headers,
    )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies (e.g. invalid JSON) use the standard error shape."""
    errors = [str(err.get("msg", err)) for err in exc.errors()]
    logger.warning(
        "Request body rejected",
        extra={"path": request.url.path, "method": request.method, "errors": errors}
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request body",
            "validation_errors": errors,
            "timestamp": iso_timestamp(),
        }
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (404, 405, ...) in the standard error shape."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.warning(
            "Route not found",
            extra={"path": request.url.path, "method": request.method}
        )
        content = {
            "error": "Route not found",
            "path": request.url.path,
            "method": request.method,
            "timestamp": iso_timestamp(),
        }
    else:
        content = {"error": str(exc.detail), "timestamp": iso_timestamp()}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions with a generic error response.

    Logs the full exception for debugging but returns a safe error message.
    """
    logger.exception(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "request_id": _request_id(request),
            "timestamp": iso_timestamp(),
        }
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Call this function during app initialization to enable consistent
    error handling across all endpoints.

    Example:
        app = FastAPI()
        setup_exception_handlers(app)
    """
    app.add_exception_handler(RiskServiceError, risk_service_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
