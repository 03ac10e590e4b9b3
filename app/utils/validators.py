# app/utils/validators.py
import json
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import HTTPException
from fastapi import status
from pydantic import ValidationError

from app.models.patient import PatientBase

REQUIRED_FIELDS = ("name", "age", "diagnosis", "operation", "details")

REQUIRED_FIELDS_MESSAGE = "Name, age, diagnosis, operation and details are required fields"
INVALID_RELATIVES_MESSAGE = "Invalid relatives data format"

_WHITESPACE = re.compile(r"\s+")

# Human readable messages keyed by (field, pydantic error type)
FIELD_MESSAGES = {
    ("name", "missing"): "Patient name is required",
    ("name", "string_too_short"): "Name must be at least 2 characters long",
    ("name", "string_too_long"): "Name cannot exceed 100 characters",
    ("age", "missing"): "Patient age is required",
    ("age", "int_parsing"): "Age must be a whole number",
    ("age", "int_from_float"): "Age must be a whole number",
    ("age", "int_type"): "Age must be a whole number",
    ("age", "greater_than_equal"): "Age cannot be negative",
    ("age", "less_than_equal"): "Age cannot exceed 120",
    ("diagnosis", "missing"): "Diagnosis is required",
    ("diagnosis", "string_too_short"): "Diagnosis must be at least 5 characters long",
    ("diagnosis", "string_too_long"): "Diagnosis cannot exceed 2000 characters",
    ("operation", "missing"): "Operation is required",
    ("operation", "string_too_short"): "Operation must be at least 5 characters long",
    ("operation", "string_too_long"): "Operation cannot exceed 2000 characters",
    ("details", "missing"): "Details is required",
    ("details", "string_too_short"): "Details must be at least 5 characters long",
    ("details", "string_too_long"): "Details cannot exceed 2000 characters",
}


class RelativesFormatError(ValueError):
    """Relatives payload could not be decoded"""


def validate_object_id(object_id: str) -> ObjectId:
    """Validate a MongoDB ObjectId"""
    if not ObjectId.is_valid(object_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "error": "Invalid patient ID format"}
        )
    return ObjectId(object_id)


def missing_required_fields(data: Dict[str, Any]) -> List[str]:
    """Required fields that are absent or empty, checked before any coercion"""
    return [field for field in REQUIRED_FIELDS if not data.get(field)]


def parse_relatives(raw: Any) -> List[str]:
    """
    Decode relatives sent either as a JSON encoded string or as a list.
    Anything that is not a list after decoding becomes an empty list;
    null and blank entries are dropped, any other non-string entry is rejected.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise RelativesFormatError(INVALID_RELATIVES_MESSAGE)
    if not isinstance(raw, list):
        return []
    relatives = []
    for rel in raw:
        if rel is None:
            continue
        if not isinstance(rel, str):
            raise RelativesFormatError(INVALID_RELATIVES_MESSAGE)
        if rel.strip():
            relatives.append(rel)
    return relatives


def normalize_phone(phone: str) -> str:
    return _WHITESPACE.sub(" ", phone).strip()


def normalize_relatives(relatives: List[str]) -> List[str]:
    return [normalize_phone(phone) for phone in relatives]


def _error_message(error: Dict[str, Any]) -> str:
    field = error["loc"][0] if error["loc"] else ""
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return FIELD_MESSAGES.get((field, error["type"]), f"{field}: {error['msg']}")


def validate_patient(data: Dict[str, Any]) -> List[str]:
    """Return the field-level failures for a full patient record (empty when valid)"""
    try:
        PatientBase.model_validate(data)
    except ValidationError as e:
        messages = []
        for error in e.errors():
            message = _error_message(error)
            if message not in messages:
                messages.append(message)
        return messages
    return []


def clean_patient(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize a full patient record before persistence.

    Raises HTTPException(400) with all failures joined into one message.
    Returns the trimmed fields, the integer age and the normalized relatives.
    """
    data = dict(data)
    if isinstance(data.get("age"), str):
        data["age"] = data["age"].strip()
    data["relatives"] = normalize_relatives(data.get("relatives") or [])
    errors = validate_patient(data)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "error": ", ".join(errors)}
        )
    return PatientBase.model_validate(data).model_dump(exclude={"picture"})


def read_form_fields(form) -> Dict[str, Any]:
    """Pull the patient fields out of a submitted multipart form"""
    data = {}
    for field in REQUIRED_FIELDS:
        value = form.get(field)
        if isinstance(value, str):
            data[field] = value
    relatives = [value for value in form.getlist("relatives") if isinstance(value, str)]
    if len(relatives) == 1:
        data["relatives"] = relatives[0]
    elif relatives:
        data["relatives"] = relatives
    return data


def build_patient_create(data: Dict[str, Any]) -> Dict[str, Any]:
    if missing_required_fields(data):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "error": REQUIRED_FIELDS_MESSAGE}
        )
    try:
        # An empty relatives value means no relatives on create
        relatives = parse_relatives(data.get("relatives") or None)
    except RelativesFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "error": str(e)}
        )
    record = {field: data[field] for field in REQUIRED_FIELDS}
    record["relatives"] = relatives
    return clean_patient(record)


def build_patient_update(existing: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge an update into the stored record. Scalars are replaced only when
    provided and non-empty; relatives are replaced whenever the key is present.
    Returns only the changed fields, already validated against the merged record.
    """
    changes: Dict[str, Any] = {}
    for field in REQUIRED_FIELDS:
        value: Optional[str] = data.get(field)
        if value:
            changes[field] = value
    if "relatives" in data:
        try:
            changes["relatives"] = parse_relatives(data["relatives"])
        except RelativesFormatError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"success": False, "error": str(e)}
            )

    merged = {field: existing.get(field) for field in REQUIRED_FIELDS}
    merged["relatives"] = existing.get("relatives") or []
    merged.update(changes)
    cleaned = clean_patient(merged)
    return {field: cleaned[field] for field in changes}
