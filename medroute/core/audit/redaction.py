"""
Redaction of personal identifiers in audit details.

Only the listed field names are masked. Masking applies to top-level keys and
recurses into patient sub-objects; every other value is copied unchanged.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

REDACTED = "***REDACTED***"

SENSITIVE_FIELDS = frozenset(
    ["name", "phone", "patient_name", "patient_phone", "phone_number", "contact_phone"]
)
PATIENT_KEYS = frozenset(["patient", "patient_info", "patient_condition"])


def _redact_mapping(
    data: Mapping[str, Any],
    sensitive: frozenset,
    nested: frozenset,
    marker: str,
) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in data.items():
        if key in sensitive and value is not None:
            redacted[key] = marker
        elif key in nested and isinstance(value, Mapping):
            redacted[key] = _redact_mapping(value, sensitive, nested, marker)
        else:
            redacted[key] = value
    return redacted


def redact(
    details: Union[BaseModel, Mapping[str, Any], None],
    sensitive_fields: Optional[Iterable[str]] = None,
    patient_keys: Optional[Iterable[str]] = None,
    marker: str = REDACTED,
) -> Dict[str, Any]:
    """
    Return a redacted, JSON-compatible copy of an audit detail payload.

    Args:
        details: Typed detail model or plain mapping
        sensitive_fields: Field names to mask
        patient_keys: Keys whose sub-objects are searched for sensitive fields
        marker: Replacement value for masked fields

    Returns:
        New dictionary; the input is never modified
    """
    if details is None:
        return {}
    if isinstance(details, BaseModel):
        data = details.model_dump(mode="json", exclude_none=True)
    else:
        data = to_jsonable_python(dict(details))
    sensitive = frozenset(sensitive_fields) if sensitive_fields is not None else SENSITIVE_FIELDS
    nested = frozenset(patient_keys) if patient_keys is not None else PATIENT_KEYS
    return _redact_mapping(data, sensitive, nested, marker)
