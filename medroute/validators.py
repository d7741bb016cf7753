"""
Input validation for raw payloads entering the dispatch service.

Converts dictionaries into typed models and turns pydantic errors into
InputValidationError so callers see one error type for bad input.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from medroute.core.exceptions import InputValidationError
from medroute.core.models import (
    HospitalSnapshot,
    Location,
    LocationSample,
    PatientCondition,
)

M = TypeVar("M", bound=BaseModel)


def parse_model(model: Type[M], payload: Any, label: Optional[str] = None) -> M:
    """
    Validate a payload against a model.

    Args:
        model: Target pydantic model class
        payload: A model instance or a mapping
        label: Name used in error messages; defaults to the model name

    Returns:
        The validated model instance

    Raises:
        InputValidationError: if the payload is missing or invalid
    """
    label = label or model.__name__
    if payload is None:
        raise InputValidationError(f"{label} is required", details={"field": label})
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise InputValidationError(f"Invalid {label}", details={"errors": errors}) from e


def validate_coordinates(payload: Any, label: str = "location") -> Location:
    """Validate a coordinate pair, rejecting missing latitude or longitude."""
    if isinstance(payload, dict):
        missing = [k for k in ("latitude", "longitude") if payload.get(k) is None]
        if missing:
            raise InputValidationError(
                f"{label} is missing {', '.join(missing)}",
                details={"field": label, "missing": missing},
            )
    return parse_model(Location, payload, label)


def validate_location_sample(payload: Any) -> LocationSample:
    if isinstance(payload, dict):
        missing = [k for k in ("latitude", "longitude") if payload.get(k) is None]
        if missing:
            raise InputValidationError(
                f"location sample is missing {', '.join(missing)}",
                details={"field": "location", "missing": missing},
            )
    return parse_model(LocationSample, payload, "location sample")


def validate_condition(payload: Any) -> PatientCondition:
    """Validate the patient condition, requiring severity and condition code."""
    if isinstance(payload, dict):
        missing = [k for k in ("severity", "condition") if not payload.get(k)]
        if missing:
            raise InputValidationError(
                f"patient condition is missing {', '.join(missing)}",
                details={"field": "patient_condition", "missing": missing},
            )
    return parse_model(PatientCondition, payload, "patient condition")


def validate_candidates(payload: Optional[Sequence[Any]]) -> List[HospitalSnapshot]:
    """Validate a non-empty list of hospital candidates."""
    if not payload:
        raise InputValidationError(
            "At least one hospital candidate is required",
            details={"field": "hospitals"},
        )
    return [parse_model(HospitalSnapshot, item, "hospital") for item in payload]


def require_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise InputValidationError(f"{label} is required", details={"field": label})
    return str(value)


def validate_payload(payload: Optional[Dict[str, Any]], label: str) -> Dict[str, Any]:
    """Require a non-empty mapping, e.g. an alert resolution payload."""
    if not payload:
        raise InputValidationError(f"{label} is required", details={"field": label})
    return payload
