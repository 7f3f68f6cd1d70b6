"""
Tests for the prediction endpoints.

These exercise the full HTTP path: rate limit dependency, router,
PredictionService, InferenceClient (against the fake endpoint) and the
exception handlers that shape error responses.
"""
import json

import httpx

from conftest import PREDICTION_RESULT, TEST_ENDPOINT_NAME, patient
from core.config import settings
from core.rate_limiter import RateLimiter, get_rate_limiter
from services.validators import REFERENCE_PATIENT, REQUIRED_FIELDS


# =============================================================================
# SINGLE PREDICTION
# =============================================================================

def test_predict_success(client, endpoint):
    response = client.post("/api/predict", json=REFERENCE_PATIENT)

    assert response.status_code == 200
    data = response.json()
    assert data["risk_level"] == PREDICTION_RESULT["risk_level"]
    assert data["probability"] == PREDICTION_RESULT["probability"]
    assert data["recommendations"] == PREDICTION_RESULT["recommendations"]
    assert data["request_id"].startswith("req_")
    assert data["endpoint_used"] == TEST_ENDPOINT_NAME
    assert data["backend_version"] == "1.0.0"
    assert "backend_processing_time_ms" in data
    assert "inference_response_time_ms" in data
    assert "processed_at" in data
    assert len(endpoint.calls) == 1


def test_predict_out_of_range(client, endpoint):
    response = client.post("/api/predict", json=patient(Age=15))

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid data ranges"
    assert data["validation_errors"] == ["Age must be a number between 18 and 120 years"]
    assert data["request_id"].startswith("req_")
    assert "processing_time_ms" in data
    assert "timestamp" in data
    assert endpoint.calls == []


def test_predict_oversized_integer_is_range_error(client, endpoint):
    """An integer too large for a float is an invalid value, not a server error."""
    response = client.post(
        "/api/predict",
        content=json.dumps(patient(Age=10 ** 400)),
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid data ranges"
    assert data["validation_errors"] == ["Age must be a number between 18 and 120 years"]
    assert endpoint.calls == []


def test_predict_missing_fields(client, endpoint):
    data = dict(REFERENCE_PATIENT)
    del data["Diastolic_BP_mmHg"]

    response = client.post("/api/predict", json=data)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Missing required fields"
    assert body["missing_fields"] == ["Diastolic_BP_mmHg"]
    assert endpoint.calls == []


def test_predict_empty_body(client):
    response = client.post("/api/predict")

    assert response.status_code == 400
    assert response.json()["missing_fields"] == REQUIRED_FIELDS


def test_predict_invalid_json(client, endpoint):
    response = client.post(
        "/api/predict",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "error" in response.json()
    assert endpoint.calls == []


def test_predict_endpoint_unavailable(client, endpoint):
    endpoint.queue(httpx.ConnectError)

    response = client.post("/api/predict", json=REFERENCE_PATIENT)

    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "Inference service temporarily unavailable"
    assert "Request to inference endpoint failed" in data["details"]


def test_predict_endpoint_access_denied(client, endpoint):
    endpoint.queue({"status_code": 403, "json": {"message": "not authorized"}})

    response = client.post("/api/predict", json=REFERENCE_PATIENT)

    assert response.status_code == 403
    assert response.json()["error"] == "Access denied to inference endpoint"


def test_predict_model_error(client, endpoint):
    endpoint.queue({"status_code": 200, "json": {"unexpected": True}})

    response = client.post("/api/predict", json=REFERENCE_PATIENT)

    assert response.status_code == 502
    assert response.json()["error"] == "Machine learning model error"


def test_predict_hides_details_in_production(client, endpoint, monkeypatch):
    monkeypatch.setattr(settings, "risk_svc_environment", "production")
    endpoint.queue(httpx.ReadTimeout)

    response = client.post("/api/predict", json=REFERENCE_PATIENT)

    assert response.status_code == 503
    assert "details" not in response.json()


# =============================================================================
# BATCH PREDICTION
# =============================================================================

def test_batch_success(client, endpoint):
    response = client.post("/api/predict-batch", json={"patients": [REFERENCE_PATIENT, patient(BMI=33)]})

    assert response.status_code == 200
    data = response.json()
    assert data["total_patients"] == 2
    assert data["successful_predictions"] == 2
    assert data["failed_predictions"] == 0
    assert data["batch_results"][1] == {"patient_index": 1, "status": "success", "result": PREDICTION_RESULT}
    assert len(endpoint.calls) == 2


def test_batch_partial_failure(client, endpoint):
    response = client.post(
        "/api/predict-batch",
        json={"patients": [REFERENCE_PATIENT, patient(Hypertension=3), REFERENCE_PATIENT]},
    )

    assert response.status_code == 200
    data = response.json()
    assert [item["status"] for item in data["batch_results"]] == ["success", "failed", "success"]
    assert data["batch_results"][1]["error"] == "Invalid data ranges: Hypertension must be 0 or 1"
    assert data["failed_predictions"] == 1
    assert len(endpoint.calls) == 2


def test_batch_too_large(client, endpoint):
    response = client.post("/api/predict-batch", json={"patients": [REFERENCE_PATIENT] * 11})

    assert response.status_code == 400
    assert response.json()["error"] == "Batch size limited to 10 patients"
    assert endpoint.calls == []


def test_batch_invalid_shapes(client, endpoint):
    for body in ({"patients": []}, {"patients": REFERENCE_PATIENT}, {}, [REFERENCE_PATIENT]):
        response = client.post("/api/predict-batch", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid batch data - expecting array of patients"

    assert endpoint.calls == []


# =============================================================================
# FRAMEWORK ERRORS & RATE LIMITING
# =============================================================================

def test_unknown_route(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    data = response.json()
    assert data["error"] == "Route not found"
    assert data["path"] == "/api/does-not-exist"
    assert data["method"] == "GET"
    assert "timestamp" in data


def test_rate_limit_rejects_before_scoring(test_app, client, endpoint):
    limiter = RateLimiter(max_requests=2, window_seconds=60)
    test_app.dependency_overrides[get_rate_limiter] = lambda: limiter

    assert client.post("/api/predict", json=REFERENCE_PATIENT).status_code == 200
    assert client.post("/api/predict", json=REFERENCE_PATIENT).status_code == 200

    response = client.post("/api/predict", json=REFERENCE_PATIENT)

    assert response.status_code == 429
    data = response.json()
    assert data["error"] == "Too many requests from this IP"
    assert data["retry_after"].endswith("seconds")
    assert int(response.headers["retry-after"]) >= 1
    assert len(endpoint.calls) == 2


def test_rate_limit_does_not_apply_outside_api(test_app, client):
    limiter = RateLimiter(max_requests=1, window_seconds=60)
    test_app.dependency_overrides[get_rate_limiter] = lambda: limiter

    for _ in range(3):
        assert client.get("/").status_code == 200
