"""
Pydantic schema for the validated patient record.

A PatientRecord is only ever built by the patient validator
(services/validators/patient_validator.py) from untrusted input, and is
immutable for the rest of the request.
"""
from typing import Any, Dict

from pydantic import BaseModel, Field


class PatientRecord(BaseModel):
    """Validated, normalized clinical and lifestyle measurements for one individual.

    Field names match the inference endpoint's JSON contract exactly.
    """
    Age: float = Field(..., ge=18, le=120, description="Age in years", example=45)
    BMI: float = Field(..., ge=10, le=60, description="Body-mass index", example=25.0)
    Waist_Circumference_cm: float = Field(..., ge=30, le=200, description="Waist circumference (cm)", example=85)
    Fasting_Glucose_mg_dL: float = Field(..., ge=50, le=500, description="Fasting glucose (mg/dL)", example=95)
    HbA1c_percent: float = Field(..., ge=3, le=20, description="Glycated hemoglobin (%)", example=5.5)
    Systolic_BP_mmHg: float = Field(..., ge=70, le=300, description="Systolic blood pressure (mmHg)", example=120)
    Diastolic_BP_mmHg: float = Field(..., ge=40, le=200, description="Diastolic blood pressure (mmHg)", example=80)
    Family_History_Diabetes: int = Field(..., ge=0, le=1, description="Family history of diabetes (0 or 1)", example=0)
    Hypertension: int = Field(..., ge=0, le=1, description="Diagnosed hypertension (0 or 1)", example=0)
    Physical_Activity_Hours_Week: float = Field(..., ge=0, le=50, description="Physical activity (hours/week)", example=5.0)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "Age": 45,
                "BMI": 25.0,
                "Waist_Circumference_cm": 85,
                "Fasting_Glucose_mg_dL": 95,
                "HbA1c_percent": 5.5,
                "Systolic_BP_mmHg": 120,
                "Diastolic_BP_mmHg": 80,
                "Family_History_Diabetes": 0,
                "Hypertension": 0,
                "Physical_Activity_Hours_Week": 5.0
            }
        }

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready body for the inference endpoint."""
        return self.model_dump()
