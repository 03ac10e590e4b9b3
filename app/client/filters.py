import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from app.models.patient import Patient

SORT_FIELDS = ("name", "age", "diagnosis", "operation")
RECENT_COUNT = 5

AgeBound = Union[int, str, None]


@dataclass
class PatientFilters:
    """Filter and sort state of the patients list page"""
    search: str = ""
    diagnosis: str = ""
    operation: str = ""
    min_age: AgeBound = None
    max_age: AgeBound = None
    sort_by: str = "name"
    sort_order: str = "asc"


def _bound(value: AgeBound) -> Optional[float]:
    """Age box value; None when empty, NaN when not a number so no patient passes"""
    # Form inputs hand over "" for an empty box
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return math.nan


def _sort_key(sort_by: str) -> Callable[[Patient], Any]:
    if sort_by == "age":
        return lambda p: p.age
    if sort_by in ("diagnosis", "operation"):
        return lambda p: getattr(p, sort_by).lower()
    return lambda p: p.name.lower()


def matches(patient: Patient, filters: PatientFilters) -> bool:
    if filters.search:
        term = filters.search
        in_name = term.lower() in patient.name.lower()
        # Phone numbers are matched exactly as typed
        in_relatives = any(term in rel for rel in patient.relatives)
        if not (in_name or in_relatives):
            return False

    if filters.diagnosis and filters.diagnosis.lower() not in patient.diagnosis.lower():
        return False

    if filters.operation and filters.operation.lower() not in patient.operation.lower():
        return False

    min_age = _bound(filters.min_age)
    if min_age is not None and not patient.age >= min_age:
        return False

    max_age = _bound(filters.max_age)
    if max_age is not None and not patient.age <= max_age:
        return False

    return True


def filter_and_sort(patients: Sequence[Patient], filters: PatientFilters) -> List[Patient]:
    """
    Apply every filter conjunctively, then sort. Equal keys keep their
    incoming order in both directions.
    """
    filtered = [p for p in patients if matches(p, filters)]
    return sorted(
        filtered,
        key=_sort_key(filters.sort_by),
        reverse=filters.sort_order == "desc"
    )


def dashboard_summary(patients: Sequence[Patient]) -> Dict[str, Any]:
    """Totals and the most recent patients for the dashboard page"""
    total = len(patients)
    average_age = int(sum(p.age for p in patients) / total + 0.5) if total else 0
    return {
        "totalPatients": total,
        "averageAge": average_age,
        "totalRelatives": sum(len(p.relatives) for p in patients),
        "recentPatients": list(patients[:RECENT_COUNT])
    }
