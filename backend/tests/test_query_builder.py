"""Tests for filter-to-predicate translation."""

import pytest

from sankey_proxy.models.data_models import FilterField, FilterSelection
from sankey_proxy.services.query_builder import (
    ALLOWED_FIELDS,
    InvalidFilterFieldError,
    build_predicate,
    where_clause,
)


def test_empty_selection_gives_empty_predicate():
    assert build_predicate(FilterSelection()) == ("", [])
    assert build_predicate({}) == ("", [])
    assert build_predicate(None) == ("", [])


def test_all_empty_values_give_empty_predicate():
    selection = {name: [] for name in ALLOWED_FIELDS}
    assert build_predicate(selection) == ("", [])


def test_single_value():
    predicate, binds = build_predicate(FilterSelection(CATEGORY_FIELD_1=["Retail"]))
    assert predicate == "CATEGORY_FIELD_1 IN (?)"
    assert binds == ["Retail"]


def test_placeholder_count_matches_values():
    predicate, binds = build_predicate({"SOURCE": ["A", "B", "C"]})
    assert predicate == "SOURCE IN (?, ?, ?)"
    assert predicate.count("?") == 3
    assert binds == ["A", "B", "C"]


def test_clauses_follow_encounter_order():
    predicate, binds = build_predicate({
        "CATEGORY_FIELD_3": ["Q1"],
        "CATEGORY_FIELD_1": ["Retail", "Wholesale"],
        "TARGET": [],
    })
    assert predicate == "CATEGORY_FIELD_3 IN (?) AND CATEGORY_FIELD_1 IN (?, ?)"
    assert binds == ["Q1", "Retail", "Wholesale"]


def test_model_selection_uses_declaration_order():
    selection = FilterSelection(TARGET=["Z"], CATEGORY_FIELD_2=["North"])
    predicate, binds = build_predicate(selection)
    assert predicate == "CATEGORY_FIELD_2 IN (?) AND TARGET IN (?)"
    assert binds == ["North", "Z"]


def test_enum_keys_accepted():
    predicate, binds = build_predicate({FilterField.SOURCE: ["A"]})
    assert predicate == "SOURCE IN (?)"
    assert binds == ["A"]


def test_unknown_field_rejected():
    with pytest.raises(InvalidFilterFieldError) as exc_info:
        build_predicate({"CATEGORY_FIELD_1": ["x"], "1=1; DROP TABLE FLOWS; --": ["y"]})
    assert exc_info.value.field == "1=1; DROP TABLE FLOWS; --"


def test_unknown_field_rejected_even_when_empty():
    with pytest.raises(InvalidFilterFieldError):
        build_predicate({"VALUE": []})


def test_values_never_interpolated():
    hostile = "x') OR ('1'='1"
    predicate, binds = build_predicate({"SOURCE": [hostile]})
    assert hostile not in predicate
    assert binds == [hostile]


def test_where_clause():
    assert where_clause("") == ""
    assert where_clause("SOURCE IN (?)") == "WHERE SOURCE IN (?)"
