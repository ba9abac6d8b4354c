import logging
import concurrent.futures
from typing import List, Optional

import requests
from pydantic import BaseModel

from ..models.news import FeedQuery

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "newsdigest/1.0"
ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"


class FetchResult(BaseModel):
    """Raw body for one query, or the reason it is skipped this pass."""
    query: FeedQuery
    ok: bool
    status: int = 0
    body: bytes = b""
    error: Optional[str] = None


def fetch_feed(
    query: FeedQuery,
    *,
    timeout: float = 15.0,
    user_agent: str = DEFAULT_USER_AGENT,
    session=None,
) -> FetchResult:
    """Single GET, no retries. Failures are returned, never raised."""
    http = session or requests
    try:
        resp = http.get(
            query.feed_url,
            headers={"User-Agent": user_agent, "Accept": ACCEPT},
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.warning(f"Feed fetch failed for {query.source_name}: {e}")
        return FetchResult(query=query, ok=False, status=0, error=str(e))

    if not (200 <= resp.status_code < 300):
        logger.warning(f"Feed {query.source_name} returned HTTP {resp.status_code}")
        return FetchResult(query=query, ok=False, status=resp.status_code)

    # raw bytes; feedparser reads the charset from headers and the XML prolog
    return FetchResult(query=query, ok=True, status=resp.status_code, body=resp.content or b"")


def fetch_feeds(
    queries: List[FeedQuery],
    *,
    max_workers: int = 8,
    timeout: float = 15.0,
    user_agent: str = DEFAULT_USER_AGENT,
    session=None,
) -> List[FetchResult]:
    """
    Fetch a page of feeds with at most `max_workers` requests in flight.
    Results come back in query order; each worker only fills its own slot.
    """
    if not queries:
        return []

    results: List[Optional[FetchResult]] = [None] * len(queries)

    def _fetch_into(idx: int) -> None:
        results[idx] = fetch_feed(
            queries[idx],
            timeout=timeout,
            user_agent=user_agent,
            session=session,
        )

    workers = max(1, min(max_workers, len(queries)))
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_fetch_into, i) for i in range(len(queries))]
        for fut in concurrent.futures.as_completed(futures):
            fut.result()

    ok = sum(1 for r in results if r and r.ok)
    logger.info(f"Fetched {ok}/{len(queries)} feeds")
    return results
