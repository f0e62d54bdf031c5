# ezfoia/validator.py
"""
Submission field validator.

This module provides:
- validate_request_fields(raw) -> RequestValidation(valid, data, errors)

Rules:
- agencyName: trimmed, 2..200 characters
- agencyType / recordType: non-empty selection, at most 64 characters
- recordDescription: trimmed, 20..2000 characters

Errors come back as {field: message} with user-facing messages; malformed
but well-typed input never raises.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, StringConstraints, ValidationError


class RequestFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    agencyName: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=200)]
    agencyType: Annotated[str, StringConstraints(min_length=1, max_length=64)]
    recordType: Annotated[str, StringConstraints(min_length=1, max_length=64)]
    recordDescription: Annotated[str, StringConstraints(strip_whitespace=True, min_length=20, max_length=2000)]


# (field, pydantic error type) -> message shown to the user
_MESSAGES = {
    ("agencyName", "string_too_short"): "Agency name must be at least 2 characters",
    ("agencyName", "string_too_long"): "Agency name must be less than 200 characters",
    ("agencyType", "string_too_short"): "Please select an agency type",
    ("agencyType", "string_too_long"): "Agency type must be 64 characters or less",
    ("recordType", "string_too_short"): "Please select a record type",
    ("recordType", "string_too_long"): "Record type must be 64 characters or less",
    ("recordDescription", "string_too_short"):
        "Please provide at least 20 characters describing what you're looking for",
    ("recordDescription", "string_too_long"): "Description must be less than 2000 characters",
}

_MISSING = {
    "agencyName": "Agency name is required",
    "agencyType": "Please select an agency type",
    "recordType": "Please select a record type",
    "recordDescription": "Please describe the records you're looking for",
}


@dataclass
class RequestValidation:
    valid: bool
    data: Optional[Dict[str, str]] = None
    errors: Dict[str, str] = field(default_factory=dict)


def _message_for(field_name: str, error_type: str) -> str:
    if error_type == "missing":
        return _MISSING.get(field_name, "This field is required")
    if error_type == "string_type":
        return "Must be text"
    return _MESSAGES.get((field_name, error_type), "Invalid value")


def validate_request_fields(raw: Mapping[str, Any]) -> RequestValidation:
    if not isinstance(raw, Mapping):
        return RequestValidation(valid=False, errors={"__root__": "Expected an object"})
    try:
        parsed = RequestFields.model_validate(dict(raw))
    except ValidationError as ve:
        errors: Dict[str, str] = {}
        for err in ve.errors():
            loc = err.get("loc") or ("__root__",)
            name = str(loc[0])
            # first error per field wins
            errors.setdefault(name, _message_for(name, err.get("type", "")))
        return RequestValidation(valid=False, errors=errors)
    return RequestValidation(valid=True, data=parsed.model_dump())
