"""
Validation utilities for services.
"""
from services.validators.patient_validator import (
    validate_patient_record,
    parse_patient_record,
    find_missing_fields,
    coerce_number,
    ValidationResult,
    FieldRule,
    PATIENT_FIELDS,
    REQUIRED_FIELDS,
    REFERENCE_PATIENT,
)

__all__ = [
    "validate_patient_record",
    "parse_patient_record",
    "find_missing_fields",
    "coerce_number",
    "ValidationResult",
    "FieldRule",
    "PATIENT_FIELDS",
    "REQUIRED_FIELDS",
    "REFERENCE_PATIENT",
]
