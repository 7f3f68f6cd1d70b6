"""
Prediction pipeline: validation, endpoint invocation and error classification.

Single prediction:
    raw input → validate_patient_record → InferenceClient.invoke → enriched result
    Any failure is classified and raised as PredictionError carrying the
    request id and elapsed time.

Batch prediction:
    Structural checks first (non-empty list, at most MAX_BATCH_SIZE items),
    then each item runs the single-item path in order, one endpoint call at a
    time. An item failure is recorded as that item's outcome and the loop
    moves on; it never aborts the batch.

Nothing is cached or retried: the same record submitted twice is two
independent clinical queries and two endpoint calls.
"""
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.config import SERVICE_VERSION
from core.datetime_utils import elapsed_ms, iso_timestamp, monotonic_ms
from core.exceptions import InvalidBatchError, PredictionError
from core.middleware import MetricsCollector
from services.error_classifier import classify_error
from services.inference_client import InferenceClient, InvocationResult
from services.validators import REFERENCE_PATIENT, validate_patient_record

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_request_id() -> str:
    """Unique prediction request id, e.g. 'req_1700000000000_k3j9x2a1b'."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class BatchItemOutcome:
    """Result of one batch item: a prediction on success, a message on failure."""
    patient_index: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.succeeded:
            return {"patient_index": self.patient_index, "status": "success", "result": self.result}
        return {"patient_index": self.patient_index, "status": "failed", "error": self.error}


class PredictionService:
    """Orchestrates single and batch predictions against the inference endpoint."""

    def __init__(
        self,
        inference_client: InferenceClient,
        metrics: Optional[MetricsCollector] = None,
        version: str = SERVICE_VERSION,
    ):
        self.inference_client = inference_client
        self.metrics = metrics
        self.version = version

    @property
    def endpoint_name(self) -> str:
        return self.inference_client.endpoint_name

    def _record(self, success: bool, kind: Optional[str] = None, inference_ms: Optional[int] = None) -> None:
        if self.metrics is not None:
            self.metrics.record_prediction(success, kind, inference_ms)

    async def _invoke(self, data: Any) -> InvocationResult:
        record = validate_patient_record(data)
        return await self.inference_client.invoke(record)

    async def predict(self, data: Any) -> Dict[str, Any]:
        """
        Run one prediction.

        Args:
            data: Decoded JSON request body.

        Returns:
            The endpoint's result with request_id, timing fields, processed_at,
            endpoint_used and backend_version added.

        Raises:
            PredictionError: For any failure, classified per error kind.
        """
        request_id = new_request_id()
        started = monotonic_ms()
        logger.info("Prediction request started", extra={"prediction_id": request_id})

        try:
            invocation = await self._invoke(data)
        except Exception as e:
            classified = classify_error(e)
            took_ms = elapsed_ms(started)
            logger.error(
                "Prediction request failed",
                extra={
                    "prediction_id": request_id,
                    "kind": classified.kind.value,
                    "error": classified.detail,
                    "processing_time_ms": took_ms,
                }
            )
            self._record(False, classified.kind.value)
            raise PredictionError(classified, request_id=request_id, processing_time_ms=took_ms) from e

        logger.info(
            "Prediction successful",
            extra={
                "prediction_id": request_id,
                "inference_response_time_ms": invocation.elapsed_ms,
                "risk_level": invocation.body.get("risk_level"),
                "probability": invocation.body.get("probability"),
            }
        )
        self._record(True, inference_ms=invocation.elapsed_ms)

        return {
            **invocation.body,
            "request_id": request_id,
            "backend_processing_time_ms": elapsed_ms(started),
            "inference_response_time_ms": invocation.elapsed_ms,
            "processed_at": iso_timestamp(),
            "endpoint_used": self.endpoint_name,
            "backend_version": self.version,
        }

    async def _predict_item(self, index: int, data: Any) -> BatchItemOutcome:
        try:
            invocation = await self._invoke(data)
        except Exception as e:
            classified = classify_error(e)
            logger.warning(
                "Batch item failed",
                extra={"patient_index": index, "kind": classified.kind.value, "error": classified.detail}
            )
            self._record(False, classified.kind.value)
            return BatchItemOutcome(patient_index=index, error=classified.detail)

        self._record(True, inference_ms=invocation.elapsed_ms)
        return BatchItemOutcome(patient_index=index, result=invocation.body)

    async def predict_batch(self, patients: Any) -> Dict[str, Any]:
        """
        Run predictions for up to MAX_BATCH_SIZE patients, strictly in order.

        Args:
            patients: The decoded "patients" value of the request body.

        Returns:
            batch_results (one outcome per input item, in input order),
            total_patients, successful_predictions, failed_predictions, processed_at.

        Raises:
            InvalidBatchError: If patients is not a non-empty list or exceeds
                MAX_BATCH_SIZE. No endpoint call is made in that case.
        """
        if not isinstance(patients, list) or not patients:
            raise InvalidBatchError()
        if len(patients) > MAX_BATCH_SIZE:
            raise InvalidBatchError(f"Batch size limited to {MAX_BATCH_SIZE} patients")

        logger.info("Batch prediction started", extra={"total_patients": len(patients)})

        outcomes: List[BatchItemOutcome] = []
        for index, data in enumerate(patients):
            outcomes.append(await self._predict_item(index, data))

        successful = sum(1 for outcome in outcomes if outcome.succeeded)
        failed = len(outcomes) - successful
        logger.info(
            "Batch prediction completed",
            extra={"total_patients": len(outcomes), "successful": successful, "failed": failed}
        )

        return {
            "batch_results": [outcome.to_dict() for outcome in outcomes],
            "total_patients": len(outcomes),
            "successful_predictions": successful,
            "failed_predictions": failed,
            "processed_at": iso_timestamp(),
        }

    async def check_endpoint(self) -> Dict[str, Any]:
        """
        Probe the inference endpoint with a known-good record.

        Returns:
            {"healthy": bool, "response_time_ms": int} plus "error" when unhealthy.
            Does not raise.
        """
        started = monotonic_ms()
        try:
            await self._invoke(REFERENCE_PATIENT)
        except Exception as e:
            took_ms = elapsed_ms(started)
            logger.error(
                "Endpoint health check failed",
                extra={"endpoint": self.endpoint_name, "error": str(e)}
            )
            return {"healthy": False, "response_time_ms": took_ms, "error": str(e)}

        took_ms = elapsed_ms(started)
        logger.info(
            "Endpoint health check successful",
            extra={"endpoint": self.endpoint_name, "response_time_ms": took_ms}
        )
        return {"healthy": True, "response_time_ms": took_ms}
