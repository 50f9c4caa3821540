# tests/test_search.py
import pytest

from shop_engagement.schemas.search import SearchOptions
from shop_engagement.services.search_service import (
    get_suggestions,
    levenshtein,
    search,
    search_products,
    string_similarity,
    to_pinyin_initials,
)


def test_substring_match_on_name():
    [result] = search([{"name": "Apple Watch"}], "watch")
    assert result.matches == ["name"]
    assert result.score >= 0.8


def test_no_match_without_fuzzy_is_empty(catalog):
    assert search(catalog, "zzz-no-match", fuzzy=False) == []


def test_exact_match_outranks_substring():
    items = [{"name": "Apple Watch"}, {"name": "Watch"}]
    results = search(items, "WATCH")
    assert [result.item["name"] for result in results] == ["Watch", "Apple Watch"]
    assert [result.score for result in results] == [1.0, 0.8]


def test_equal_scores_keep_input_order_and_respect_limit():
    items = [{"name": "Red Watch", "id": 1}, {"name": "Blue Watch", "id": 2}, {"name": "Green Watch", "id": 3}]
    results = search(items, "watch")
    assert [result.item["id"] for result in results] == [1, 2, 3]
    assert [result.item["id"] for result in search(items, "watch", limit=2)] == [1, 2]


def test_unsorted_results_keep_input_order():
    items = [{"name": "Apple Watch"}, {"name": "Watch"}]
    results = search(items, "watch", sort=False)
    assert [result.score for result in results] == [0.8, 1.0]


@pytest.mark.parametrize("query", ["", "   "])
def test_blank_query_returns_every_item(catalog, query):
    results = search(catalog, query, limit=2)
    assert [result.item for result in results] == catalog
    assert all(result.score == 1.0 and result.matches == [] for result in results)


def test_threshold_is_a_hard_filter():
    items = [{"name": "kitten"}]
    # similarity("sitting", "kitten") is 1 - 3/7
    assert len(search(items, "sitting", threshold=0.5)) == 1
    assert search(items, "sitting", threshold=0.6) == []
    assert search(items, "sitting", threshold=0.5, fuzzy=False) == []


def test_pinyin_initials_match_chinese_names(catalog):
    [result] = search_products(catalog, "dhsb", fuzzy=False)
    assert result.item.id == "p6"
    assert result.score == pytest.approx(0.6)
    assert "name" in result.matches


def test_search_products_reads_object_attributes(catalog):
    results = search_products(catalog, "audio", fuzzy=False)
    assert [result.item.id for result in results] == ["p3", "p4"]
    assert all(result.matches == ["category"] for result in results)


def test_missing_and_none_fields_are_skipped():
    items = [{"name": None, "category": "Watch"}, {"description": "watch strap"}]
    results = search(items, "watch", fuzzy=False)
    assert [result.matches for result in results] == [["category"], ["description"]]


def test_explicit_options_and_overrides():
    options = SearchOptions(fields=("title",), fuzzy=False)
    items = [{"title": "Watch", "name": "Other"}]
    assert search(items, "watch", options)[0].matches == ["title"]
    assert search(items, "watch", options, fields=("name",)) == []


def test_search_is_idempotent(catalog):
    first = search_products(catalog, "phone")
    second = search_products(catalog, "phone")
    assert [(r.item.id, r.score, r.matches) for r in first] == [(r.item.id, r.score, r.matches) for r in second]


def test_levenshtein_and_similarity():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert string_similarity("abc", "abc") == 1.0
    assert string_similarity("", "a") == 0.0
    assert string_similarity("abcd", "abcf") == pytest.approx(0.75)


def test_module_doc_example_matches_pinyin_table():
    [result] = search([{"name": "电话"}], "dh")
    assert result.score == pytest.approx(0.6)


def test_to_pinyin_initials_passes_unknown_characters_through():
    assert to_pinyin_initials("电话") == "dh"
    assert to_pinyin_initials("手机abc") == "s机abc"


# ---------- suggestions ----------

def test_suggestions_interleave_names_and_categories():
    items = [
        {"name": "Apple Watch", "category": "Wearables"},
        {"name": "Apple iPhone", "category": "Phones"},
        {"name": "Apple Pencil", "category": "Accessories"},
    ]
    assert get_suggestions(items, "apple", limit=4) == ["Apple Watch", "Wearables", "Apple iPhone", "Phones"]


def test_suggestions_are_distinct():
    items = [
        {"name": "Apple Watch", "category": "Wearables"},
        {"name": "Apple Band", "category": "Wearables"},
    ]
    assert get_suggestions(items, "apple") == ["Apple Watch", "Wearables", "Apple Band"]


def test_suggestions_for_blank_query_are_empty(catalog):
    assert get_suggestions(catalog, " ") == []
