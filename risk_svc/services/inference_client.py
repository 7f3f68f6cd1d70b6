"""
HTTP client for the hosted diabetes risk inference endpoint.

The endpoint is an opaque scoring service: it accepts a PatientRecord as
JSON and answers with a PredictionResult (at minimum `risk_level` and
`probability`). One call per invoke(), never retried here.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.config import settings
from core.datetime_utils import elapsed_ms, monotonic_ms
from core.exceptions import InferenceServiceError, InferenceTransportError
from schemas.patient import PatientRecord

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

REQUIRED_RESULT_FIELDS = ("risk_level", "probability")

# Fallback error codes when the endpoint reports none in its body or headers
STATUS_ERROR_CODES = {
    400: "ValidationException",
    403: "AccessDenied",
    424: "ModelError",
    429: "ThrottlingException",
    503: "ServiceUnavailable",
}

# Body keys the endpoint may carry its error code / message under
_CODE_KEYS = ("code", "errorCode", "ErrorCode", "__type")
_MESSAGE_KEYS = ("message", "Message", "error")


@dataclass(frozen=True)
class InvocationResult:
    """Parsed endpoint response and how long the call took."""
    body: Dict[str, Any]
    elapsed_ms: int


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def extract_error_code(response: httpx.Response) -> str:
    """
    Error code for a failed endpoint response.

    Looks at the JSON body first, then the x-amzn-ErrorType header, then
    falls back to a code derived from the HTTP status.
    """
    body = _json_or_none(response)
    if isinstance(body, dict):
        for key in _CODE_KEYS:
            value = body.get(key)
            if isinstance(value, str) and value:
                # "__type" may be namespaced: "com.amazon.coral#ThrottlingException"
                return value.rsplit("#", 1)[-1]

    header = response.headers.get("x-amzn-errortype")
    if header:
        return header.split(":", 1)[0].strip()

    return STATUS_ERROR_CODES.get(response.status_code, f"HTTP{response.status_code}")


def extract_error_message(response: httpx.Response) -> str:
    body = _json_or_none(response)
    if isinstance(body, dict):
        for key in _MESSAGE_KEYS:
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    text = response.text.strip()
    return text[:200] if text else f"HTTP {response.status_code}"


def parse_prediction_body(response: httpx.Response) -> Dict[str, Any]:
    """
    Decode a successful endpoint response.

    Raises:
        InferenceServiceError: "malformed-response" if the body is not a JSON
            object with risk_level and probability; "ModelError" if the
            endpoint reported a scoring error in an otherwise successful reply.
    """
    body = _json_or_none(response)
    if body is None:
        raise InferenceServiceError(
            InferenceServiceError.MALFORMED_RESPONSE,
            "Invalid response format from prediction service",
            upstream_status=response.status_code,
        )
    if not isinstance(body, dict):
        raise InferenceServiceError(
            InferenceServiceError.MALFORMED_RESPONSE,
            "Invalid response structure from inference endpoint",
            upstream_status=response.status_code,
        )
    if body.get("error"):
        raise InferenceServiceError(
            "ModelError",
            f"Model error: {body['error']}",
            upstream_status=response.status_code,
        )
    missing = [key for key in REQUIRED_RESULT_FIELDS if body.get(key) is None]
    if missing:
        raise InferenceServiceError(
            InferenceServiceError.MALFORMED_RESPONSE,
            f"Invalid response format: missing {' or '.join(missing)}",
            upstream_status=response.status_code,
        )
    return body


class InferenceClient:
    """Client for the remote inference endpoint."""

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        endpoint_name: Optional[str] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            endpoint_url: URL to POST records to. Defaults to settings.
            endpoint_name: Endpoint identifier reported in responses and logs.
            timeout: Transport timeout in seconds.
            api_key: Optional key sent as X-API-Key.
            transport: Custom httpx transport (tests use httpx.MockTransport).

        Raises:
            ValueError: If no endpoint URL is configured.
        """
        self.endpoint_url = endpoint_url or settings.inference_endpoint_url
        if not self.endpoint_url:
            raise ValueError("INFERENCE_ENDPOINT_URL must be set in config")

        self.endpoint_name = endpoint_name or settings.inference_endpoint_name
        self.timeout = timeout if timeout is not None else settings.inference_timeout
        self.api_key = api_key if api_key is not None else settings.inference_api_key
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": JSON_CONTENT_TYPE,
            "Accept": JSON_CONTENT_TYPE,
        }
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    async def invoke(self, record: PatientRecord) -> InvocationResult:
        """
        Send one patient record to the endpoint.

        Returns:
            InvocationResult: Parsed JSON body and call latency.

        Raises:
            InferenceTransportError: Endpoint unreachable or timed out.
            InferenceServiceError: Endpoint answered with an error status,
                or with a body that is not a usable prediction.
        """
        content = json.dumps(record.to_payload())
        # No retries: every prediction is exactly one remote call
        transport = self._transport or httpx.AsyncHTTPTransport(retries=0)

        started = monotonic_ms()
        try:
            async with httpx.AsyncClient(transport=transport, timeout=self.timeout) as client:
                response = await client.post(self.endpoint_url, content=content, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error(
                "Inference endpoint timed out",
                extra={"endpoint": self.endpoint_name, "timeout_s": self.timeout}
            )
            raise InferenceTransportError(
                f"Inference endpoint timed out after {self.timeout:g}s",
                timed_out=True,
            ) from e
        except httpx.RequestError as e:
            logger.error(
                "Request to inference endpoint failed",
                extra={"endpoint": self.endpoint_name, "error": str(e)}
            )
            raise InferenceTransportError(f"Request to inference endpoint failed: {e}") from e

        took_ms = elapsed_ms(started)

        if not response.is_success:
            code = extract_error_code(response)
            message = extract_error_message(response)
            logger.error(
                "Inference endpoint returned an error",
                extra={
                    "endpoint": self.endpoint_name,
                    "status_code": response.status_code,
                    "code": code,
                    "duration_ms": took_ms,
                }
            )
            raise InferenceServiceError(code, message, upstream_status=response.status_code)

        body = parse_prediction_body(response)
        logger.debug(
            "Inference endpoint responded",
            extra={"endpoint": self.endpoint_name, "duration_ms": took_ms}
        )
        return InvocationResult(body=body, elapsed_ms=took_ms)
