"""Relevance search over in-memory record collections.

Scoring per field, on lower-cased text, first rule that applies wins:

* exact match: 1.0
* substring: 0.8
* pinyin-initial containment (``"dh"`` finds ``"电话"``): 0.6
* normalized Levenshtein similarity, when ``fuzzy`` is on

A field counts only above ``threshold``; an item with no counting field is
dropped. The item's score is the best field score.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional, TypeVar

from shop_engagement.core.config import settings
from shop_engagement.core.logging import get_logger
from shop_engagement.domain.pinyin import PINYIN_INITIALS
from shop_engagement.schemas.search import PRODUCT_SEARCH_FIELDS, SearchOptions, SearchResult

logger = get_logger(__name__)

T = TypeVar("T")

EXACT_SCORE = 1.0
SUBSTRING_SCORE = 0.8
INITIALS_SCORE = 0.6


def to_pinyin_initials(text: str) -> str:
    return "".join(PINYIN_INITIALS.get(char, char) for char in text)


def levenshtein(a: str, b: str) -> int:
    rows, cols = len(a) + 1, len(b) + 1
    table = [[0] * cols for _ in range(rows)]
    for i in range(rows):
        table[i][0] = i
    for j in range(cols):
        table[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            table[i][j] = min(
                table[i - 1][j] + 1,
                table[i][j - 1] + 1,
                table[i - 1][j - 1] + cost,
            )
    return table[-1][-1]


def string_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein(a, b) / max(len(a), len(b))


def _field_value(item: Any, field: str) -> Optional[Any]:
    if isinstance(item, Mapping):
        return item.get(field)
    return getattr(item, field, None)


def _score_field(value: str, query: str, query_initials: str, fuzzy: bool) -> float:
    if value == query:
        return EXACT_SCORE
    if query in value:
        return SUBSTRING_SCORE
    if query_initials in to_pinyin_initials(value):
        return INITIALS_SCORE
    if fuzzy:
        return string_similarity(query, value)
    return 0.0


def _score_item(item: T, query: str, query_initials: str, options: SearchOptions) -> Optional[SearchResult[T]]:
    best = 0.0
    matches: list[str] = []
    for field in options.fields:
        raw = _field_value(item, field)
        if raw is None:
            continue
        score = _score_field(str(raw).lower(), query, query_initials, options.fuzzy)
        if score > options.threshold and score > 0:
            matches.append(field)
            best = max(best, score)

    if not matches:
        return None
    return SearchResult(item=item, score=best, matches=matches)


def _resolve_options(options: SearchOptions | None, overrides: dict[str, Any]) -> SearchOptions:
    options = options or SearchOptions()
    if not overrides:
        return options
    return SearchOptions.model_validate({**options.model_dump(), **overrides})


def search(
    items: Iterable[T],
    query: str,
    options: SearchOptions | None = None,
    **overrides: Any,
) -> list[SearchResult[T]]:
    """Rank ``items`` (mappings or objects) against ``query``.

    Keyword overrides (``fields``, ``fuzzy``, ``threshold``, ``limit``,
    ``sort``) are applied on top of ``options``.
    """
    options = _resolve_options(options, overrides)

    if not query.strip():
        return [SearchResult(item=item, score=1.0, matches=[]) for item in items]

    query_lower = query.lower()
    query_initials = to_pinyin_initials(query_lower)

    results: list[SearchResult[T]] = []
    for item in items:
        result = _score_item(item, query_lower, query_initials, options)
        if result is not None:
            results.append(result)

    if options.sort:
        # sorted() is stable, so equal scores keep their input order.
        results = sorted(results, key=lambda result: result.score, reverse=True)

    if options.limit and options.limit > 0:
        results = results[: options.limit]

    logger.debug("search query=%r results=%s", query, len(results))
    return results


def search_products(
    products: Iterable[T],
    query: str,
    options: SearchOptions | None = None,
    **overrides: Any,
) -> list[SearchResult[T]]:
    if options is None:
        overrides.setdefault("fields", PRODUCT_SEARCH_FIELDS)
    return search(products, query, options, **overrides)


def get_suggestions(items: Sequence[T], query: str, limit: int = 5) -> list[str]:
    """Distinct product names and categories for a type-ahead box."""
    if not query.strip() or limit <= 0:
        return []

    results = search_products(items, query, threshold=settings.SUGGESTION_THRESHOLD, limit=limit)

    suggestions: dict[str, None] = {}
    for result in results:
        name = _field_value(result.item, "name")
        if name:
            suggestions.setdefault(str(name))
        if len(suggestions) < limit:
            category = _field_value(result.item, "category")
            if category:
                suggestions.setdefault(str(category))
        if len(suggestions) >= limit:
            break

    return list(suggestions)[:limit]
