import math
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
SEARCH_LIMIT = 20
MIN_SEARCH_LENGTH = 2

VALID_SORT_FIELDS = ("name", "age", "createdAt", "updatedAt")
DEFAULT_SORT_FIELD = "createdAt"

SEARCH_PROJECTION = {"name": 1, "age": 1, "diagnosis": 1, "operation": 1, "relatives": 1}


def contains(text: str) -> Dict[str, str]:
    """Case-insensitive literal substring match"""
    return {"$regex": re.escape(text), "$options": "i"}


def build_patient_filter(
        search: Optional[str] = None,
        diagnosis: Optional[str] = None,
        min_age: Optional[int] = None,
        max_age: Optional[int] = None
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}

    if search:
        query["$or"] = [
            {"name": contains(search)},
            {"relatives": contains(search)}
        ]

    if diagnosis:
        query["diagnosis"] = contains(diagnosis)

    if min_age is not None or max_age is not None:
        query["age"] = {}
        if min_age is not None:
            query["age"]["$gte"] = min_age
        if max_age is not None:
            query["age"]["$lte"] = max_age

    return query


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]) -> List[Tuple[str, int]]:
    field = sort_by if sort_by in VALID_SORT_FIELDS else DEFAULT_SORT_FIELD
    order = ASCENDING if sort_order == "asc" else DESCENDING
    return [(field, order)]


def resolve_pagination(limit: Optional[int], page: Optional[int]) -> Tuple[int, int, int]:
    """Returns (limit, page, skip) with limit clamped to [1, MAX_LIMIT] and page >= 1"""
    limit = DEFAULT_LIMIT if limit is None else min(max(limit, 1), MAX_LIMIT)
    page = 1 if page is None else max(page, 1)
    return limit, page, (page - 1) * limit


def pagination_meta(total: int, limit: int, page: int) -> Dict[str, int]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit),
        "totalResults": total,
        "limit": limit
    }


def build_search_filter(q: Optional[str]) -> Optional[Dict[str, Any]]:
    """OR match across name, diagnosis, operation and relatives; None if the query is too short"""
    if not q or len(q.strip()) < MIN_SEARCH_LENGTH:
        return None
    return {
        "$or": [
            {"name": contains(q)},
            {"diagnosis": contains(q)},
            {"operation": contains(q)},
            {"relatives": contains(q)}
        ]
    }


STATS_PIPELINE = [
    {"$project": {"age": 1, "relativesCount": {"$size": "$relatives"}}},
    {
        "$group": {
            "_id": None,
            "count": {"$sum": 1},
            "avgAge": {"$avg": "$age"},
            "totalRelatives": {"$sum": "$relativesCount"}
        }
    }
]


def summarize_stats(groups: List[Dict[str, Any]]) -> Dict[str, int]:
    if not groups:
        return {"totalPatients": 0, "averageAge": 0, "totalRelatives": 0}
    group = groups[0]
    total = group.get("count") or 0
    average = group.get("avgAge") or 0
    return {
        "totalPatients": total,
        # Half-up rounding, not banker's rounding
        "averageAge": int(math.floor(average + 0.5)) if total else 0,
        "totalRelatives": group.get("totalRelatives") or 0
    }
