"""
Tests for error classification.

The classifier must be total: every failure maps to exactly one kind,
and the kind alone decides the HTTP status.
"""
import pytest

from core.exceptions import (
    InferenceServiceError,
    InferenceTransportError,
    PatientValidationError,
)
from services.error_classifier import (
    KIND_MESSAGES,
    KIND_STATUS_CODES,
    UPSTREAM_CODE_KINDS,
    ClassifiedError,
    ErrorKind,
    classify_error,
    kind_for_upstream_code,
)
from services.inference_client import STATUS_ERROR_CODES


def test_error_kinds():
    assert {kind.value for kind in ErrorKind} == {
        "invalid-input",
        "access-denied",
        "service-unavailable",
        "rate-limited",
        "model-error",
        "internal",
    }
    assert set(KIND_STATUS_CODES) == set(ErrorKind)
    assert set(KIND_MESSAGES) == set(ErrorKind)


@pytest.mark.parametrize("kind, status_code", [
    (ErrorKind.INVALID_INPUT, 400),
    (ErrorKind.ACCESS_DENIED, 403),
    (ErrorKind.RATE_LIMITED, 429),
    (ErrorKind.INTERNAL, 500),
    (ErrorKind.MODEL_ERROR, 502),
    (ErrorKind.SERVICE_UNAVAILABLE, 503),
])
def test_kind_status_codes(kind, status_code):
    assert ClassifiedError.of(kind, "detail").status_code == status_code


@pytest.mark.parametrize("code, kind", sorted(UPSTREAM_CODE_KINDS.items()))
def test_known_upstream_codes(code, kind):
    classified = classify_error(InferenceServiceError(code, "upstream said no"))

    assert classified.kind == kind
    assert classified.status_code == KIND_STATUS_CODES[kind]
    assert classified.message == KIND_MESSAGES[kind]


def test_status_fallback_codes_are_all_classified():
    """Codes derived from bare HTTP statuses never fall through to internal."""
    for code in STATUS_ERROR_CODES.values():
        assert code in UPSTREAM_CODE_KINDS
        assert kind_for_upstream_code(code) != ErrorKind.INTERNAL


def test_unknown_upstream_code_is_internal():
    classified = classify_error(InferenceServiceError("FluxCapacitorException", "1.21 gigawatts"))

    assert classified.kind == ErrorKind.INTERNAL
    assert classified.status_code == 500
    assert "FluxCapacitorException" in classified.detail
    assert "1.21 gigawatts" in classified.detail


def test_malformed_response_is_model_error():
    classified = classify_error(InferenceServiceError(InferenceServiceError.MALFORMED_RESPONSE))
    assert classified.kind == ErrorKind.MODEL_ERROR
    assert classified.status_code == 502


@pytest.mark.parametrize("timed_out", [True, False])
def test_transport_failures_are_service_unavailable(timed_out):
    """A timeout is never reported as bad input."""
    classified = classify_error(InferenceTransportError("endpoint gone", timed_out=timed_out))

    assert classified.kind == ErrorKind.SERVICE_UNAVAILABLE
    assert classified.kind != ErrorKind.INVALID_INPUT
    assert classified.status_code == 503
    assert classified.detail == "endpoint gone"


def test_validation_failure_is_invalid_input():
    classified = classify_error(PatientValidationError(missing_fields=["Age"]))

    assert classified.kind == ErrorKind.INVALID_INPUT
    assert classified.status_code == 400
    assert classified.message == "Missing required fields"
    assert classified.detail == "Missing required fields: Age"


def test_unexpected_exception_is_internal_and_keeps_message():
    classified = classify_error(KeyError("risk_level"))
    assert classified.kind == ErrorKind.INTERNAL
    assert "risk_level" in classified.detail

    classified = classify_error(RuntimeError())
    assert classified.kind == ErrorKind.INTERNAL
    assert classified.detail == "RuntimeError"
