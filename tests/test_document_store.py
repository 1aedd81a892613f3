"""Unit tests for documents/store.py -- CRUD and filter translation.

Covers:
- insert() assigns _id; find_by_id/update_by_id/delete_by_id round-trip
- collections are isolated from one another
- every compiled predicate against numeric, string, date and nested fields
- find() keeps insertion order and honours offset/limit
"""

import pytest

from documents.store import DocumentStore
from query.filters import compile_filter

# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def widgets(store):
    """Five widgets with numeric prices, ISO dates and a nested owner."""
    rows = [
        {"name": "Bolt", "price": 5, "tag": "a", "createdAt": "2020-01-15", "owner": {"team": "x"}},
        {"name": "Nut", "price": 10, "tag": "b", "createdAt": "2020-06-01", "owner": {"team": "y"}},
        {"name": "Washer", "price": 15.5, "tag": "c", "createdAt": "2020-12-31", "owner": {"team": "x"}},
        {"name": "Widget", "price": 20, "tag": "a", "createdAt": "2021-03-01"},
        {"name": "gadget", "price": 25, "createdAt": "2021-07-04T12:00:00"},
    ]
    return store, [store.insert("widgets", r) for r in rows]


def _names(store, params):
    return [d["name"] for d in store.find("widgets", compile_filter(params))]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def test_insert_assigns_id(store):
    doc = store.insert("widgets", {"name": "bolt"})
    assert len(doc["_id"]) == 32
    assert doc["name"] == "bolt"


def test_insert_ignores_caller_id(store):
    doc = store.insert("widgets", {"_id": "mine", "name": "bolt"})
    assert doc["_id"] != "mine"
    assert store.find_by_id("widgets", "mine") is None


def test_find_by_id(store):
    doc = store.insert("widgets", {"name": "bolt", "meta": {"a": [1, 2]}})
    assert store.find_by_id("widgets", doc["_id"]) == doc


def test_find_by_id_is_scoped_to_collection(store):
    doc = store.insert("widgets", {"name": "bolt"})
    assert store.find_by_id("gadgets", doc["_id"]) is None


def test_update_merges_top_level_fields(store):
    doc = store.insert("widgets", {"name": "bolt", "price": 5})
    updated = store.update_by_id("widgets", doc["_id"], {"price": 7, "color": "red", "_id": "ignored"})
    assert updated == {"_id": doc["_id"], "name": "bolt", "price": 7, "color": "red"}
    assert store.find_by_id("widgets", doc["_id"]) == updated


def test_update_unknown_id_returns_none(store):
    assert store.update_by_id("widgets", "missing", {"a": 1}) is None


def test_delete_returns_removed_document(store):
    doc = store.insert("widgets", {"name": "bolt"})
    assert store.delete_by_id("widgets", doc["_id"]) == doc
    assert store.find_by_id("widgets", doc["_id"]) is None
    assert store.delete_by_id("widgets", doc["_id"]) is None


def test_collections_are_isolated(store):
    store.insert("widgets", {"n": 1})
    store.insert("gadgets", {"n": 2})
    assert store.count("widgets") == 1
    assert [d["n"] for d in store.find("gadgets")] == [2]


def test_ping(store):
    assert store.ping() is True


def test_new_collection_needs_no_setup(tmp_path):
    s = DocumentStore(f"sqlite:///{tmp_path / 'docs.db'}")
    try:
        s.insert("brand.new", {"ok": True})
        assert s.count("brand.new") == 1
    finally:
        s.close()


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------


def test_find_keeps_insertion_order_with_offset_and_limit(store):
    for i in range(10):
        store.insert("widgets", {"n": i})
    assert [d["n"] for d in store.find("widgets", offset=3, limit=4)] == [3, 4, 5, 6]


# ---------------------------------------------------------------------------
# Filter translation
# ---------------------------------------------------------------------------


def test_equality_on_string(widgets):
    store, _ = widgets
    assert _names(store, {"tag": "a"}) == ["Bolt", "Widget"]


def test_equality_on_number(widgets):
    store, _ = widgets
    assert _names(store, {"price": "10"}) == ["Nut"]


def test_equality_on_id(widgets):
    store, docs = widgets
    assert _names(store, {"_id": docs[2]["_id"]}) == ["Washer"]


def test_comparison_is_numeric_for_numeric_fields(widgets):
    store, _ = widgets
    # Text comparison would put "5" after "25".
    assert _names(store, {"price": "[gt:5]"}) == ["Nut", "Washer", "Widget", "gadget"]
    assert _names(store, {"price": "[lte:10]"}) == ["Bolt", "Nut"]


def test_comparison_with_decimal_operand(widgets):
    store, _ = widgets
    assert _names(store, {"price": "[gte:15.5]"}) == ["Washer", "Widget", "gadget"]


def test_range_is_inclusive(widgets):
    store, _ = widgets
    assert _names(store, {"price": "[range:10|20]"}) == ["Nut", "Washer", "Widget"]


def test_range_over_dates(widgets):
    store, _ = widgets
    assert _names(store, {"createdAt": "[range:2020-01-01|2020-12-31]"}) == ["Bolt", "Nut", "Washer"]


def test_comparison_over_date_time(widgets):
    store, _ = widgets
    assert _names(store, {"createdAt": "[gt:2021-01-01T00:00:00Z]"}) == ["Widget", "gadget"]


def test_in_and_nin(widgets):
    store, _ = widgets
    assert _names(store, {"tag": "[in:a,c]"}) == ["Bolt", "Washer", "Widget"]
    # gadget has no tag and is therefore not in {a}.
    assert _names(store, {"tag": "[nin:a]"}) == ["Nut", "Washer", "gadget"]


def test_in_on_numbers(widgets):
    store, _ = widgets
    assert _names(store, {"price": "[in:5,20]"}) == ["Bolt", "Widget"]


def test_regex_is_case_insensitive_and_unanchored(widgets):
    store, _ = widgets
    assert _names(store, {"name": "[regex:dget]"}) == ["Widget", "gadget"]
    assert _names(store, {"name": "[text:^W]"}) == ["Washer", "Widget"]


def test_nested_field(widgets):
    store, _ = widgets
    assert _names(store, {"owner.team": "x"}) == ["Bolt", "Washer"]


def test_conditions_are_combined_with_and(widgets):
    store, _ = widgets
    assert _names(store, {"tag": "a", "price": "[gt:5]"}) == ["Widget"]


def test_count_matches_find(widgets):
    store, _ = widgets
    flt = compile_filter({"price": "[gt:5]"})
    assert store.count("widgets", flt) == len(store.find("widgets", flt)) == 4


def test_missing_field_never_matches_equality(widgets):
    store, _ = widgets
    assert _names(store, {"nope": "x"}) == []


def test_utc_suffix_date_time_is_not_greater_than_itself(store):
    store.insert("events", {"at": "2020-01-01T12:00:00Z"})
    assert store.count("events", compile_filter({"at": "[gt:2020-01-01T12:00:00Z]"})) == 0
    assert store.count("events", compile_filter({"at": "[gte:2020-01-01T12:00:00Z]"})) == 1


def test_date_time_without_seconds_matches_itself(store):
    store.insert("events", {"at": "2020-01-01T10:00"})
    assert store.count("events", compile_filter({"at": "[gte:2020-01-01T10:00]"})) == 1
    assert store.count("events", compile_filter({"at": "[range:2020-01-01T09:30|2020-01-01T10:00]"})) == 1
    assert store.count("events", compile_filter({"at": "[lt:2020-01-01T10:00]"})) == 0
