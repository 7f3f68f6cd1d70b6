"""
Error classification for the prediction pipeline.

Maps any failure raised while serving a prediction onto one of six stable
error kinds. The kind decides the HTTP status and the client-facing message;
the original message is kept in ClassifiedError.detail for diagnostics.

    invalid-input        400   validation failure, upstream ValidationException
    access-denied        403   endpoint authorization rejected
    service-unavailable  503   endpoint down, unreachable or timed out
    rate-limited         429   endpoint throttling
    model-error          502   scoring computation failed or unusable response
    internal             500   anything else

The mapping is total: classify_error() never raises and unknown upstream
codes fall through to `internal`.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from fastapi import status

from core.exceptions import (
    InferenceServiceError,
    InferenceTransportError,
    PatientValidationError,
)

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid-input"
    ACCESS_DENIED = "access-denied"
    SERVICE_UNAVAILABLE = "service-unavailable"
    RATE_LIMITED = "rate-limited"
    MODEL_ERROR = "model-error"
    INTERNAL = "internal"


KIND_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.MODEL_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

KIND_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.INVALID_INPUT: "Invalid input data format",
    ErrorKind.ACCESS_DENIED: "Access denied to inference endpoint",
    ErrorKind.SERVICE_UNAVAILABLE: "Inference service temporarily unavailable",
    ErrorKind.RATE_LIMITED: "Too many requests - rate limit exceeded",
    ErrorKind.MODEL_ERROR: "Machine learning model error",
    ErrorKind.INTERNAL: "Internal server error",
}

# Error codes the inference endpoint is known to return
UPSTREAM_CODE_KINDS: Dict[str, ErrorKind] = {
    "ValidationException": ErrorKind.INVALID_INPUT,
    "ValidationError": ErrorKind.INVALID_INPUT,
    "AccessDenied": ErrorKind.ACCESS_DENIED,
    "AccessDeniedException": ErrorKind.ACCESS_DENIED,
    "UnrecognizedClientException": ErrorKind.ACCESS_DENIED,
    "ServiceUnavailable": ErrorKind.SERVICE_UNAVAILABLE,
    "ServiceUnavailableException": ErrorKind.SERVICE_UNAVAILABLE,
    "ThrottlingException": ErrorKind.RATE_LIMITED,
    "TooManyRequestsException": ErrorKind.RATE_LIMITED,
    "ModelError": ErrorKind.MODEL_ERROR,
    "ModelNotReadyError": ErrorKind.MODEL_ERROR,
    "ModelNotReadyException": ErrorKind.MODEL_ERROR,
    InferenceServiceError.MALFORMED_RESPONSE: ErrorKind.MODEL_ERROR,
    "InternalFailure": ErrorKind.INTERNAL,
}


@dataclass(frozen=True)
class ClassifiedError:
    """A failure reduced to its client-visible kind plus the original message."""
    kind: ErrorKind
    status_code: int
    message: str
    detail: str

    @classmethod
    def of(cls, kind: ErrorKind, detail: str, message: str = "") -> "ClassifiedError":
        return cls(
            kind=kind,
            status_code=KIND_STATUS_CODES[kind],
            message=message or KIND_MESSAGES[kind],
            detail=detail,
        )


def kind_for_upstream_code(code: str) -> ErrorKind:
    """Error kind for an inference endpoint error code; unknown codes are internal."""
    return UPSTREAM_CODE_KINDS.get(code, ErrorKind.INTERNAL)


def classify_error(exc: BaseException) -> ClassifiedError:
    """
    Classify any pipeline failure.

    Args:
        exc: The exception raised by validation, the inference client or
            anything else in the pipeline.

    Returns:
        ClassifiedError: Never raises.
    """
    detail = str(exc) or type(exc).__name__

    if isinstance(exc, PatientValidationError):
        return ClassifiedError.of(ErrorKind.INVALID_INPUT, exc.describe(), message=exc.detail)

    if isinstance(exc, InferenceTransportError):
        return ClassifiedError.of(ErrorKind.SERVICE_UNAVAILABLE, detail)

    if isinstance(exc, InferenceServiceError):
        kind = kind_for_upstream_code(exc.code)
        if exc.code not in UPSTREAM_CODE_KINDS:
            logger.warning(
                "Unmapped inference endpoint error code",
                extra={"code": exc.code, "upstream_status": exc.upstream_status}
            )
        return ClassifiedError.of(kind, f"{exc.code}: {detail}")

    return ClassifiedError.of(ErrorKind.INTERNAL, detail)
