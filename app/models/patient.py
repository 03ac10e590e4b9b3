import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Optional "+", optional leading non-zero digit, then 7-15 digits
PHONE_PATTERN = re.compile(r"^[+]?[1-9]?[0-9]{7,15}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(PHONE_SEPARATORS.sub("", phone)))


class PatientBase(BaseModel):
    """Fields a client can write. Text fields are trimmed before length checks."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=100, description="Patient full name")
    age: int = Field(..., ge=0, le=120, description="Patient age in years")
    diagnosis: str = Field(..., min_length=5, max_length=2000, description="Diagnosis")
    operation: str = Field(..., min_length=5, max_length=2000, description="Operation performed")
    details: str = Field(..., min_length=5, max_length=2000, description="Additional details")
    picture: Optional[str] = Field(default=None, description="Stored picture path")
    relatives: List[str] = Field(default_factory=list, description="Relatives phone numbers")

    @field_validator("relatives")
    @classmethod
    def validate_relatives(cls, v):
        for phone in v:
            if not is_valid_phone(phone):
                raise ValueError("Please provide a valid phone number")
        return v


class Patient(PatientBase):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Unique patient ID")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt", description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt", description="Last update timestamp")


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage")
    total_pages: int = Field(..., alias="totalPages")
    total_results: int = Field(..., alias="totalResults")
    limit: int


class PatientStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_patients: int = Field(0, alias="totalPatients")
    average_age: int = Field(0, alias="averageAge")
    total_relatives: int = Field(0, alias="totalRelatives")
