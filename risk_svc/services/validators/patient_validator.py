"""
Validation utilities for patient records.

This module is the boundary between untrusted request payloads and the
prediction pipeline. Only a PatientRecord produced here flows deeper.

Validation runs in two stages:
1. Presence - every field must be present, not None and not an empty string.
   If any are missing, only the missing names are reported.
2. Range - every value is coerced to a finite number, then checked against
   its closed interval. Binary flags must be exactly 0 or 1.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from core.exceptions import PatientValidationError
from schemas.patient import PatientRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    """Accepted values for one clinical field."""
    name: str
    minimum: float
    maximum: float
    unit: str = ""
    binary: bool = False

    def describe(self) -> str:
        if self.binary:
            return f"{self.name} must be 0 or 1"
        unit = f" {self.unit}" if self.unit else ""
        return f"{self.name} must be a number between {self.minimum:g} and {self.maximum:g}{unit}"

    def accepts(self, value: float) -> bool:
        if self.binary:
            return value in (0, 1)
        return self.minimum <= value <= self.maximum


def _field_rule(name: str, unit: str = "") -> FieldRule:
    """Build a rule from the bounds declared on PatientRecord."""
    info = PatientRecord.model_fields[name]
    minimum = next(c.ge for c in info.metadata if getattr(c, "ge", None) is not None)
    maximum = next(c.le for c in info.metadata if getattr(c, "le", None) is not None)
    return FieldRule(name, minimum, maximum, unit, binary=info.annotation is int)


# Units used in error messages; order matches the inference endpoint's
# feature order and the order errors are reported in
FIELD_UNITS = {
    "Age": "years",
    "BMI": "",
    "Waist_Circumference_cm": "cm",
    "Fasting_Glucose_mg_dL": "mg/dL",
    "HbA1c_percent": "%",
    "Systolic_BP_mmHg": "mmHg",
    "Diastolic_BP_mmHg": "mmHg",
    "Family_History_Diabetes": "",
    "Hypertension": "",
    "Physical_Activity_Hours_Week": "hours per week",
}

PATIENT_FIELDS = tuple(_field_rule(name, unit) for name, unit in FIELD_UNITS.items())

REQUIRED_FIELDS = [rule.name for rule in PATIENT_FIELDS]

# Known-good record used to probe the inference endpoint
REFERENCE_PATIENT = {
    "Age": 45,
    "BMI": 25.0,
    "Waist_Circumference_cm": 85,
    "Fasting_Glucose_mg_dL": 95,
    "HbA1c_percent": 5.5,
    "Systolic_BP_mmHg": 120,
    "Diastolic_BP_mmHg": 80,
    "Family_History_Diabetes": 0,
    "Hypertension": 0,
    "Physical_Activity_Hours_Week": 5.0,
}


@dataclass(frozen=True)
class ValidationResult:
    """Tagged outcome of parse_patient_record: exactly one of record/error is set."""
    record: Optional[PatientRecord] = None
    error: Optional[PatientValidationError] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce a JSON value to a finite float.

    Accepts numbers, booleans and numeric strings. Returns None for anything
    that is not a finite number (NaN, infinity, integers too large for a float).
    """
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (bool, int, float)):
        return None

    try:
        number = float(value)
    except (OverflowError, ValueError):
        # ints beyond float range overflow rather than becoming inf
        return None

    if not math.isfinite(number):
        return None
    return number


def find_missing_fields(data: Any) -> List[str]:
    """
    Names of required fields that are absent, None or empty strings.

    Input that is not a mapping has every field missing.
    """
    if not isinstance(data, Mapping):
        return list(REQUIRED_FIELDS)
    return [name for name in REQUIRED_FIELDS if _is_missing(data.get(name))]


def validate_patient_record(data: Any) -> PatientRecord:
    """
    Validate untrusted input and build a normalized PatientRecord.

    Args:
        data: Decoded JSON payload (any type).

    Returns:
        PatientRecord: Flags as int, every other field as float.

    Raises:
        PatientValidationError: With missing_fields if any field is missing,
            otherwise with range_errors if any value is out of range.
    """
    missing = find_missing_fields(data)
    if missing:
        logger.warning(
            "Validation failed: missing required fields",
            extra={"missing_fields": missing}
        )
        raise PatientValidationError(missing_fields=missing)

    normalized = {}
    range_errors = []
    for rule in PATIENT_FIELDS:
        number = coerce_number(data[rule.name])
        if number is None or not rule.accepts(number):
            range_errors.append(rule.describe())
            continue
        normalized[rule.name] = int(number) if rule.binary else number

    if range_errors:
        logger.warning(
            "Validation failed: invalid data ranges",
            extra={"validation_errors": range_errors}
        )
        raise PatientValidationError(range_errors=range_errors)

    return PatientRecord(**normalized)


def parse_patient_record(data: Any) -> ValidationResult:
    """Non-raising variant of validate_patient_record."""
    try:
        return ValidationResult(record=validate_patient_record(data))
    except PatientValidationError as e:
        return ValidationResult(error=e)
