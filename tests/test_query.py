from __future__ import annotations

import re

from pymongo import ASCENDING, DESCENDING

from app.utils.query import (
    build_patient_filter,
    build_search_filter,
    pagination_meta,
    resolve_pagination,
    resolve_sort,
    summarize_stats,
)


def test_empty_filter():
    assert build_patient_filter() == {}


def test_full_filter():
    query = build_patient_filter(search="ann", diagnosis="flu", min_age=0, max_age=40)
    assert query["$or"] == [
        {"name": {"$regex": "ann", "$options": "i"}},
        {"relatives": {"$regex": "ann", "$options": "i"}},
    ]
    assert query["diagnosis"] == {"$regex": "flu", "$options": "i"}
    assert query["age"] == {"$gte": 0, "$lte": 40}


def test_single_age_bound():
    assert build_patient_filter(max_age=10) == {"age": {"$lte": 10}}


def test_search_text_is_escaped():
    pattern = build_patient_filter(search="+1 (555)")["$or"][0]["name"]["$regex"]
    assert re.search(pattern, "call +1 (555) now")
    assert not re.search(pattern, "1 555")


def test_resolve_sort():
    assert resolve_sort("age", "asc") == [("age", ASCENDING)]
    assert resolve_sort("name", None) == [("name", DESCENDING)]
    assert resolve_sort("diagnosis", "asc") == [("createdAt", ASCENDING)]


def test_resolve_pagination():
    assert resolve_pagination(None, None) == (50, 1, 0)
    assert resolve_pagination(500, 3) == (100, 3, 200)
    assert resolve_pagination(0, -2) == (1, 1, 0)


def test_pagination_meta():
    assert pagination_meta(101, 50, 1) == {"currentPage": 1, "totalPages": 3, "totalResults": 101, "limit": 50}
    assert pagination_meta(0, 50, 1)["totalPages"] == 0


def test_search_filter_requires_two_characters():
    assert build_search_filter(None) is None
    assert build_search_filter(" x  ") is None
    fields = [next(iter(clause)) for clause in build_search_filter("ab")["$or"]]
    assert fields == ["name", "diagnosis", "operation", "relatives"]


def test_summarize_stats():
    assert summarize_stats([]) == {"totalPatients": 0, "averageAge": 0, "totalRelatives": 0}
    assert summarize_stats([{"count": 2, "avgAge": 20.5, "totalRelatives": 3}]) == {
        "totalPatients": 2,
        "averageAge": 21,
        "totalRelatives": 3,
    }
