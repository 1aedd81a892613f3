"""Unit tests for query/filters.py -- namespace guard and filter compiler.

The compiler is a pure function, so these tests need no store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import INVALID_QUERY_PATTERN, RESTRICTED_DATA_COLLECTION, PolicyError, ValidationError
from query.filters import (
    Compare,
    Condition,
    DateValue,
    Equals,
    Filter,
    InSet,
    Matches,
    NotInSet,
    Range,
    classify,
    compile_condition,
    compile_filter,
    guard_collection,
    is_restricted,
)

# ---------------------------------------------------------------------------
# Namespace guard
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("name", ["sys.keys", "sys.anything", "system.anything", "sys.", "system.users"])
def test_guard_rejects_reserved_prefixes(name):
    with pytest.raises(PolicyError) as exc_info:
        guard_collection(name)
    assert exc_info.value.code == RESTRICTED_DATA_COLLECTION
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("name", ["widgets", "Sys.keys", "SYSTEM.x", "system", "sys", "mysys.keys"])
def test_guard_allows_other_names(name):
    assert guard_collection(name) == name
    assert not is_restricted(name)


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


def test_classify_date_only():
    assert classify("2020-01-01") == DateValue(datetime(2020, 1, 1), "2020-01-01")


def test_classify_date_time_with_offset():
    value = classify("2021-06-15T10:30:00Z")
    assert value.moment == datetime(2021, 6, 15, 10, 30, tzinfo=timezone.utc)
    assert value.text == "2021-06-15T10:30:00Z"


def test_classify_keeps_text_without_seconds():
    value = classify("2020-01-01T10:00")
    assert value.moment == datetime(2020, 1, 1, 10, 0)
    assert value.text == "2020-01-01T10:00"


def test_classify_date_time_with_numeric_offset():
    value = classify("2021-06-15T10:30:00+02:00")
    assert value.moment.utcoffset() == timedelta(hours=2)


@pytest.mark.parametrize("raw", ["5", "abc", "2020-13-01", "2021-02-30", "2020-W01", "2020", "20200101x", ""])
def test_classify_leaves_non_dates_unchanged(raw):
    assert classify(raw) == raw


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def test_plain_value_is_equality_on_raw_string():
    flt = compile_filter({"color": "red", "count": "5"})
    assert flt.conditions == (
        Condition("color", Equals("red")),
        Condition("count", Equals("5")),
    )


@pytest.mark.parametrize("op", ["gt", "gte", "lt", "lte"])
def test_comparison_keeps_numbers_as_strings(op):
    flt = compile_filter({"price": f"[{op}:5]"})
    assert flt.conditions == (Condition("price", Compare(op, "5")),)


def test_comparison_reclassifies_dates():
    flt = compile_filter({"createdAt": "[gte:2020-01-01]"})
    assert flt.conditions[0].predicate == Compare("gte", DateValue(datetime(2020, 1, 1), "2020-01-01"))


def test_in_uses_literal_split_values():
    flt = compile_filter({"tag": "[in:a,b,c]"})
    assert flt.conditions == (Condition("tag", InSet(("a", "b", "c"))),)


def test_in_does_not_reclassify_dates():
    flt = compile_filter({"day": "[in:2020-01-01,2020-01-02]"})
    assert flt.conditions[0].predicate == InSet(("2020-01-01", "2020-01-02"))


def test_nin_is_negated_membership():
    flt = compile_filter({"tag": "[nin:x,y]"})
    assert flt.conditions == (Condition("tag", NotInSet(("x", "y"))),)


def test_range_with_dates_yields_closed_date_interval():
    flt = compile_filter({"createdAt": "[range:2020-01-01|2020-12-31]"})
    low = DateValue(datetime(2020, 1, 1), "2020-01-01")
    high = DateValue(datetime(2020, 12, 31), "2020-12-31")
    assert flt.conditions == (Condition("createdAt", Range(low, high)),)


def test_range_bounds_classified_independently():
    flt = compile_filter({"x": "[range:10|2020-12-31]"})
    assert flt.conditions[0].predicate == Range("10", DateValue(datetime(2020, 12, 31), "2020-12-31"))


@pytest.mark.parametrize("payload", ["10", "1|2|3", ""])
def test_range_without_two_bounds_drops_field(payload):
    assert len(compile_filter({"x": f"[range:{payload}]"})) == 0


@pytest.mark.parametrize("op", ["text", "regex"])
def test_text_and_regex_are_synonyms(op):
    flt = compile_filter({"name": f"[{op}:^wid]"})
    assert flt.conditions == (Condition("name", Matches("^wid", case_insensitive=True)),)


def test_invalid_pattern_raises():
    with pytest.raises(ValidationError) as exc_info:
        compile_filter({"name": "[regex:(unclosed]"})
    assert exc_info.value.code == INVALID_QUERY_PATTERN


def test_unknown_operator_drops_field():
    with_unknown = compile_filter({"x": "[foo:bar]", "y": "1"})
    without = compile_filter({"y": "1"})
    assert with_unknown == without
    assert "x" not in with_unknown.fields


def test_partial_bracket_is_plain_equality():
    flt = compile_filter({"x": "[gt:5", "y": "gt:5]"})
    assert flt.conditions == (Condition("x", Equals("[gt:5")), Condition("y", Equals("gt:5]")))


def test_compile_condition_returns_none_for_dropped_field():
    assert compile_condition("x", "[nope:1]") is None


# ---------------------------------------------------------------------------
# Purity
# ---------------------------------------------------------------------------


def test_pagination_keys_are_skipped():
    flt = compile_filter({"page": "2", "pageSize": "5", "color": "red"})
    assert flt.fields == ("color",)


def test_compile_does_not_mutate_input():
    params = {"price": "[gt:5]", "page": "2", "x": "[foo:bar]"}
    snapshot = dict(params)
    compile_filter(params)
    assert params == snapshot


def test_compile_is_repeatable():
    params = {"price": "[range:10|20]", "tag": "[in:a,b]", "name": "[text:bolt]"}
    assert compile_filter(params) == compile_filter(params)


def test_empty_params_compile_to_empty_filter():
    flt = compile_filter({})
    assert flt == Filter()
    assert list(flt) == []
    assert flt.describe() == {}
