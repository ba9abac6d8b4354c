import datetime
from typing import Dict, Iterable, List

from ..models.news import NewsItem

MAX_ITEMS = 200

# One extra match outranks any difference in epoch seconds
MATCH_WEIGHT = 10 ** 10


def dedup_key(item: NewsItem) -> str:
    if item.canonical_url:
        return item.canonical_url
    return f"{item.source_name}::{item.title}".lower()


def relevance_score(item: NewsItem) -> float:
    return item.match_count * MATCH_WEIGHT + item.published_at.timestamp()


def dedupe(items: Iterable[NewsItem]) -> List[NewsItem]:
    """One item per key; the later publish time wins, ties go to the later arrival."""
    by_key: Dict[str, NewsItem] = {}
    for item in items:
        key = dedup_key(item)
        prev = by_key.get(key)
        if prev is None or item.published_at >= prev.published_at:
            by_key[key] = item
    return list(by_key.values())


def rank(items: Iterable[NewsItem]) -> List[NewsItem]:
    """Most matches first, then newest first."""
    return sorted(items, key=relevance_score, reverse=True)


def within_window(items: Iterable[NewsItem], since: datetime.datetime) -> List[NewsItem]:
    return [it for it in items if it.published_at >= since]


def merge_items(
    existing: Iterable[NewsItem],
    incoming: Iterable[NewsItem],
    *,
    limit: int = MAX_ITEMS,
) -> List[NewsItem]:
    """
    Merge a new batch into the day's accumulated items.
    Existing items go first so equal timestamps resolve to the fresh copy.
    """
    merged = dedupe(list(existing) + list(incoming))
    return rank(merged)[:limit]
