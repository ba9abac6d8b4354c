from typing import Iterable, List, Tuple

from ..models.news import FeedQuery, NewsItem
from .normalizer import RawEntry
from .urls import canonicalize_url, fingerprint


def _dedup(values: Iterable[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v not in out:
            out.append(v)
    return out


def match_entry(
    query: FeedQuery,
    title: str,
    tickers: List[str],
    topics: List[str],
) -> Tuple[List[str], List[str]]:
    """
    Tickers and topics an entry belongs to.
    Ticker/topic feeds tag with their own value; extra feeds match on the title.
    """
    if query.kind == "ticker":
        return [query.value], []
    if query.kind == "topic":
        return [], [query.value]

    title_lower = title.lower()
    matched_tickers = [t for t in tickers if t.lower() in title_lower]
    matched_topics = [t for t in topics if t.lower() in title_lower]
    return _dedup(matched_tickers), _dedup(matched_topics)


def to_news_item(
    query: FeedQuery,
    entry: RawEntry,
    tickers: List[str],
    topics: List[str],
) -> NewsItem:
    canonical = canonicalize_url(entry.link)
    matched_tickers, matched_topics = match_entry(query, entry.title, tickers, topics)
    return NewsItem(
        title=entry.title,
        url=entry.link,
        canonical_url=canonical,
        published_at=entry.published_at,
        source_name=query.source_name,
        description=entry.description,
        matched_tickers=matched_tickers,
        matched_topics=matched_topics,
        fingerprint=fingerprint(canonical),
    )
