"""
Shared pytest fixtures for API and service tests.

The inference endpoint is replaced by a scriptable FakeEndpoint served
through httpx.MockTransport, so the real InferenceClient (request
encoding, error-code extraction, response parsing) runs in every test.

Fixture Hierarchy:
    endpoint → inference_client → prediction_service → test_app → client
"""
import json
from typing import Any, Dict, List, Union

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core import dependencies as deps
from core.exceptions import setup_exception_handlers
from core.middleware import LoggingMiddleware, MetricsCollector
from core.rate_limiter import RateLimiter, get_rate_limiter
from services import InferenceClient, PredictionService
from services.validators import REFERENCE_PATIENT

TEST_ENDPOINT_URL = "http://inference.test/invocations"
TEST_ENDPOINT_NAME = "test-diabetes-endpoint"

PREDICTION_RESULT = {
    "risk_level": "Moderate Risk",
    "probability": 0.42,
    "recommendations": {"activity": ["Aim for 150 minutes of moderate exercise per week"]},
}


class FakeEndpoint:
    """
    Scriptable inference endpoint.

    Queued entries are consumed one per call: a dict of httpx.Response
    kwargs, or an httpx exception class to raise. With an empty queue
    every call succeeds with PREDICTION_RESULT.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.calls: List[Dict[str, Any]] = []
        self._queue: List[Union[Dict[str, Any], type]] = []

    def queue(self, *entries: Union[Dict[str, Any], type]) -> None:
        self._queue.extend(entries)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.calls.append(json.loads(request.content))

        entry = self._queue.pop(0) if self._queue else {"status_code": 200, "json": PREDICTION_RESULT}
        if isinstance(entry, type):
            raise entry("simulated failure", request=request)
        return httpx.Response(**entry)


def patient(**overrides) -> Dict[str, Any]:
    """Reference patient record with selected fields replaced."""
    return {**REFERENCE_PATIENT, **overrides}


@pytest.fixture
def endpoint():
    return FakeEndpoint()


@pytest.fixture
def inference_client(endpoint):
    """Real InferenceClient wired to the fake endpoint."""
    return InferenceClient(
        endpoint_url=TEST_ENDPOINT_URL,
        endpoint_name=TEST_ENDPOINT_NAME,
        timeout=5,
        api_key="",
        transport=httpx.MockTransport(endpoint.handler),
    )


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def prediction_service(inference_client, metrics):
    return PredictionService(inference_client=inference_client, metrics=metrics)


@pytest.fixture
def rate_limiter():
    """Generous limiter so ordinary tests never hit the inbound limit."""
    return RateLimiter(max_requests=1000, window_seconds=900)


@pytest.fixture
def test_app(inference_client, prediction_service, rate_limiter):
    """
    Create a FastAPI test app with dependency overrides.

    Uses the real routers, exception handlers and logging middleware; only
    the inference client, service and rate limiter are swapped for test
    instances.
    """
    from api.routers import api_health_router, health_router, predictions_router

    app = FastAPI(title="Diabetes Risk Service Test")

    setup_exception_handlers(app)
    app.add_middleware(LoggingMiddleware)

    app.dependency_overrides[deps.get_inference_client] = lambda: inference_client
    app.dependency_overrides[deps.get_prediction_service] = lambda: prediction_service
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    app.include_router(health_router)
    app.include_router(api_health_router)
    app.include_router(predictions_router)

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    """Create a test client for the API."""
    return TestClient(test_app)
