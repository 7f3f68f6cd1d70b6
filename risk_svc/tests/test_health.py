"""
Tests for root, health, endpoint-probe and metrics endpoints.

These tests verify the observability endpoints work correctly:
- /: Root endpoint with API info
- /api/health: Liveness probe
- /api/endpoint-health: Inference endpoint probe
- /metrics, /metrics/json: Prometheus and JSON metrics
"""
import httpx

from conftest import TEST_ENDPOINT_NAME
from core.config import SERVICE_NAME
from core.middleware import MetricsCollector, RequestMetrics
from core.datetime_utils import utc_now


# =============================================================================
# ROOT ENDPOINT TESTS
# =============================================================================

def test_root_endpoint(client):
    """Test the root endpoint returns API info."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == SERVICE_NAME
    assert data["version"] == "1.0.0"
    assert data["status"] == "running"
    # Verify links to other endpoints
    assert data["endpoints"]["prediction"] == "/api/predict"
    assert data["endpoints"]["batch_prediction"] == "/api/predict-batch"
    assert data["endpoints"]["health"] == "/api/health"


# =============================================================================
# HEALTH ENDPOINT TESTS (LIVENESS)
# =============================================================================

def test_health_endpoint(client, endpoint):
    """Liveness never contacts the inference endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["endpoint"] == TEST_ENDPOINT_NAME
    assert data["uptime"] >= 0
    assert "timestamp" in data
    assert endpoint.calls == []


# =============================================================================
# ENDPOINT PROBE TESTS
# =============================================================================

def test_endpoint_health_healthy(client, endpoint):
    response = client.get("/api/endpoint-health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["endpoint"] == TEST_ENDPOINT_NAME
    assert data["response_time_ms"] >= 0
    assert data["error"] is None
    assert len(endpoint.calls) == 1


def test_endpoint_health_unhealthy(client, endpoint):
    endpoint.queue({"status_code": 503, "text": "maintenance"})

    response = client.get("/api/endpoint-health")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert "maintenance" in data["error"]


def test_endpoint_health_timeout(client, endpoint):
    endpoint.queue(httpx.ReadTimeout)

    response = client.get("/api/endpoint-health")
    assert response.status_code == 503
    assert "timed out" in response.json()["error"]


# =============================================================================
# METRICS ENDPOINT TESTS
# =============================================================================

def test_metrics_endpoint(client):
    """Test the /metrics Prometheus endpoint."""
    response = client.get("/metrics")
    assert response.status_code == 200
    # Check content type is Prometheus text format
    assert "text/plain" in response.headers.get("content-type", "")
    content = response.text
    assert "http_requests_total" in content
    assert "http_request_duration_ms" in content
    assert "predictions_total" in content


def test_metrics_json_endpoint(client):
    client.get("/")
    response = client.get("/metrics/json")
    assert response.status_code == 200
    data = response.json()
    assert data["http_requests_total"] >= 1
    assert "predictions_success_total" in data
    assert "predictions_failure_total" in data
    assert isinstance(data["prediction_failures_by_kind"], dict)


def test_metrics_collector_counts():
    collector = MetricsCollector()
    for status_code, duration in ((200, 10.0), (404, 20.0), (503, 30.0)):
        collector.record_request(RequestMetrics(
            timestamp=utc_now(),
            method="POST",
            path="/api/predict",
            status_code=status_code,
            duration_ms=duration,
            request_id="r",
        ))
    collector.record_prediction(True, inference_ms=40)
    collector.record_prediction(False, "model-error")
    collector.record_prediction(False, "model-error")

    summary = collector.get_summary()
    assert summary["http_requests_total"] == 3
    assert summary["http_requests_2xx_total"] == 1
    assert summary["http_requests_4xx_total"] == 1
    assert summary["http_requests_5xx_total"] == 1
    assert summary["http_request_duration_ms_p50"] == 20.0
    assert summary["inference_duration_ms_p50"] == 40
    assert summary["predictions_success_total"] == 1
    assert summary["predictions_failure_total"] == 2
    assert summary["prediction_failures_by_kind"] == {"model-error": 2}
    assert 'prediction_failures_total{kind="model-error"} 2' in collector.get_prometheus_format()


# =============================================================================
# REQUEST ID TESTS
# =============================================================================

def test_request_id_header(client):
    response = client.get("/api/health")
    assert response.headers.get("X-Request-ID")


def test_request_id_header_on_errors(client):
    response = client.post("/api/predict", json={})
    assert response.status_code == 400
    assert response.headers.get("X-Request-ID")
