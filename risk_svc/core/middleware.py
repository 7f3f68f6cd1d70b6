"""
FastAPI middleware and in-memory metrics.

This module provides:
- LoggingMiddleware: request_id per request, start/completion logs, X-Request-ID header
- MetricsCollector: HTTP traffic counters, request latency and prediction outcomes

The collector is process-local; /metrics exposes it in Prometheus text format.

Middleware Stack Order (in main.py):
    1. LoggingMiddleware (outermost - captures everything)
    2. CORS Middleware
    3. Application routes
"""

import logging
import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.datetime_utils import utc_now
from core.logging_config import set_request_id, clear_request_id

logger = logging.getLogger(__name__)

PERCENTILES = (50, 95, 99)


def percentiles(values: Iterable[float]) -> Dict[int, float]:
    """Nearest-rank percentiles of the given samples; zeros when empty."""
    ordered = sorted(values)
    if not ordered:
        return {p: 0.0 for p in PERCENTILES}
    last = len(ordered) - 1
    return {p: round(ordered[min(int(len(ordered) * p / 100), last)], 2) for p in PERCENTILES}


def _prometheus_metric(name: str, help_text: str, metric_type: str,
                       samples: List[Tuple[str, float]]) -> List[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} {metric_type}"]
    lines.extend(f"{name}{labels} {value}" for labels, value in samples)
    return lines


# =============================================================================
# IN-MEMORY METRICS COLLECTOR
# =============================================================================

@dataclass
class RequestMetrics:
    """Container for a single request's metrics."""
    timestamp: datetime
    method: str
    path: str
    status_code: int
    duration_ms: float
    request_id: str

    @property
    def status_class(self) -> str:
        return f"{self.status_code // 100}xx"


@dataclass
class MetricsCollector:
    """
    Process-wide counters for HTTP traffic and prediction outcomes.

    Latency samples are kept in bounded deques (last `max_history` entries)
    for both inbound requests and inference endpoint calls.
    """
    max_history: int = 1000

    total_requests: int = 0
    requests_by_class: Counter = field(default_factory=Counter)

    predictions_success: int = 0
    predictions_failure: int = 0
    failures_by_kind: Dict[str, int] = field(default_factory=dict)

    _request_ms: Deque[float] = field(init=False, repr=False)
    _inference_ms: Deque[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._request_ms = deque(maxlen=self.max_history)
        self._inference_ms = deque(maxlen=self.max_history)

    def record_request(self, metrics: RequestMetrics) -> None:
        """Record a completed request's metrics."""
        self.total_requests += 1
        self.requests_by_class[metrics.status_class] += 1
        self._request_ms.append(metrics.duration_ms)

    def record_prediction(
        self,
        success: bool,
        kind: Optional[str] = None,
        inference_ms: Optional[int] = None,
    ) -> None:
        """Record one prediction outcome (single request or batch item)."""
        if inference_ms is not None:
            self._inference_ms.append(inference_ms)
        if success:
            self.predictions_success += 1
            return
        self.predictions_failure += 1
        if kind:
            self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1

    def get_summary(self) -> Dict:
        """Flat metrics dictionary for /metrics/json."""
        request_p = percentiles(self._request_ms)
        inference_p = percentiles(self._inference_ms)

        summary = {
            "http_requests_total": self.total_requests,
            "http_requests_2xx_total": self.requests_by_class["2xx"],
            "http_requests_4xx_total": self.requests_by_class["4xx"],
            "http_requests_5xx_total": self.requests_by_class["5xx"],
        }
        summary.update({f"http_request_duration_ms_p{p}": request_p[p] for p in PERCENTILES})
        summary.update({f"inference_duration_ms_p{p}": inference_p[p] for p in PERCENTILES})
        summary.update({
            "predictions_success_total": self.predictions_success,
            "predictions_failure_total": self.predictions_failure,
            "prediction_failures_by_kind": dict(self.failures_by_kind),
        })
        return summary

    def get_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        request_p = percentiles(self._request_ms)
        inference_p = percentiles(self._inference_ms)

        blocks = [
            _prometheus_metric("http_requests_total", "Total HTTP requests", "counter",
                               [("", self.total_requests)]),
            _prometheus_metric("http_requests_by_status", "HTTP requests by status category", "counter",
                               [(f'{{status="{c}"}}', self.requests_by_class[c]) for c in ("2xx", "4xx", "5xx")]),
            _prometheus_metric("http_request_duration_ms", "Request duration in milliseconds", "gauge",
                               [(f'{{quantile="{p / 100:g}"}}', request_p[p]) for p in PERCENTILES]),
            _prometheus_metric("inference_duration_ms", "Inference endpoint call duration in milliseconds",
                               "gauge",
                               [(f'{{quantile="{p / 100:g}"}}', inference_p[p]) for p in PERCENTILES]),
            _prometheus_metric("predictions_total", "Prediction outcomes", "counter",
                               [('{result="success"}', self.predictions_success),
                                ('{result="failure"}', self.predictions_failure)]),
            _prometheus_metric("prediction_failures_total", "Failed predictions by error kind", "counter",
                               [(f'{{kind="{kind}"}}', count)
                                for kind, count in sorted(self.failures_by_kind.items())]),
        ]
        return "\n\n".join("\n".join(block) for block in blocks) + "\n"


# Global metrics collector instance, shared across all requests
metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return metrics_collector


# =============================================================================
# LOGGING MIDDLEWARE
# =============================================================================

def new_trace_id() -> str:
    """Per-request trace id: '<epoch ms>_<9 hex chars>'."""
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/Response logging middleware with request_id propagation.

    The id is stored in the logging context and on request.state so that
    exception handlers running outside this middleware can still report it.
    """

    QUIET_PATHS = frozenset({"/metrics", "/metrics/json", "/docs", "/redoc", "/openapi.json"})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = new_trace_id()
        set_request_id(request_id)
        request.state.request_id = request_id

        path = request.url.path
        verbose = path not in self.QUIET_PATHS
        started = time.perf_counter()

        if verbose:
            logger.info(
                f"{request.method} {path}",
                extra={
                    "client_ip": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent"),
                }
            )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{request.method} {path} raised")
            raise
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            clear_request_id()

        metrics_collector.record_request(RequestMetrics(
            timestamp=utc_now(),
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            request_id=request_id,
        ))

        if verbose:
            logger.log(
                logging.WARNING if response.status_code >= 400 else logging.INFO,
                f"{request.method} {path} -> {response.status_code}",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

        response.headers["X-Request-ID"] = request_id
        return response
