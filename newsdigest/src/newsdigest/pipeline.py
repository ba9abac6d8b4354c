import datetime
import logging
import time
from typing import Callable, List, Optional

from .config import Settings
from .dates import digest_date, utc_now, window_start
from .digest.merge import MAX_ITEMS, dedupe, merge_items, rank, within_window
from .errors import ConfigError
from .feeds.fetcher import FetchResult, fetch_feeds
from .feeds.matcher import to_news_item
from .feeds.normalizer import parse_feed
from .feeds.sources import build_queries, page_of
from .models.news import AccumulationStats, DailyAccumulation, NewsItem, PageStats
from .models.preferences import Preferences
from .models.run import Paging, RunResult
from .preferences import normalize_preferences
from .store.sqlite import DigestStore
from .summarize.client import SummaryClient
from .summarize.generator import generate_group_summaries

logger = logging.getLogger(__name__)


def load_user_preferences(store: DigestStore, user_id: str) -> Preferences:
    store.ensure_user(user_id)
    stored = store.get_preferences(user_id)
    return normalize_preferences(stored.tickers, stored.topics)


def collect_items(
    fetched: List[FetchResult],
    prefs: Preferences,
    since: datetime.datetime,
) -> List[NewsItem]:
    """Normalize and tag every successfully fetched feed, dropping items older than `since`."""
    items: List[NewsItem] = []
    for result in fetched:
        if not result.ok:
            continue
        for entry in parse_feed(result.body):
            items.append(to_news_item(result.query, entry, prefs.tickers, prefs.topics))
    return within_window(items, since)


def _summarize(
    store: DigestStore,
    settings: Settings,
    date: str,
    items: List[NewsItem],
    prefs: Preferences,
    summarizer,
    sleep: Callable[[float], None],
):
    return generate_group_summaries(
        store,
        date,
        items,
        prefs,
        summarizer,
        max_items=settings.max_group_items,
        throttle=settings.throttle_seconds,
        sleep=sleep,
    )


def run_digest(
    store: DigestStore,
    settings: Settings,
    *,
    offset: int = 0,
    limit: Optional[int] = None,
    final: bool = False,
    now: Optional[datetime.datetime] = None,
    session=None,
    summarizer=None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunResult:
    """
    One invocation: fetch one page of feeds and merge it into today's
    accumulation; on a final pass also summarize every group.
    """
    offset = max(0, offset)
    if limit is not None:
        limit = max(0, limit)
    paging = Paging(offset=offset, limit=limit, final=final)

    prefs = load_user_preferences(store, settings.user_id)
    queries = build_queries(prefs)
    page = page_of(queries, offset, limit)

    if prefs.is_empty:
        return RunResult(ok=False, error="No tickers or topics configured. Set preferences first.", paging=paging)

    if final and summarizer is None:
        try:
            summarizer = SummaryClient(
                settings.openai_api_key,
                settings.openai_model,
                base_url=settings.openai_base_url,
                sleep=sleep,
            )
        except ConfigError as e:
            return RunResult(ok=False, error=e.message, paging=paging)

    now = now or utc_now()
    date = digest_date(now, settings.timezone)
    logger.info(f"Run date={date} offset={offset} limit={limit} final={final} page={len(page)}/{len(queries)}")

    if final and not page:
        existing = store.get_accumulation(date)
        merged = existing.items if existing else []
        counts = _summarize(store, settings, date, merged, prefs, summarizer, sleep)
        return RunResult(ok=True, date=date, final_only=True, paging=paging, summaries=counts)

    fetched = fetch_feeds(
        page,
        max_workers=settings.fetch_workers,
        timeout=settings.fetch_timeout,
        user_agent=settings.user_agent,
        session=session,
    )
    batch = collect_items(fetched, prefs, window_start(now))
    unique = rank(dedupe(batch))[:MAX_ITEMS]
    inserted = store.insert_news_items(unique)

    existing = store.get_accumulation(date)
    prev_items = existing.items if existing else []
    prev_stats = existing.stats if existing else AccumulationStats()
    merged = merge_items(prev_items, unique)

    stats = AccumulationStats(
        page=PageStats(
            offset=offset,
            limit=len(page) if limit is None else limit,
            fetched_feeds=len(fetched),
            failed_feeds=sum(1 for r in fetched if not r.ok),
        ),
        fetched_total=prev_stats.fetched_total + len(batch),
        unique_count=len(merged),
        inserted_count=prev_stats.inserted_count + inserted,
        tickers_count=len(prefs.tickers),
        topics_count=len(prefs.topics),
        queries_total=len(queries),
    )
    store.put_accumulation(DailyAccumulation(date=date, items=merged, stats=stats))
    logger.info(f"Accumulated {len(merged)} items for {date} (+{len(batch)} fetched, {inserted} new)")

    counts = None
    if final:
        counts = _summarize(store, settings, date, merged, prefs, summarizer, sleep)

    return RunResult(
        ok=True,
        date=date,
        stats=stats,
        sample=[it.model_dump(mode="json") for it in unique[:5]],
        paging=paging,
        summaries=counts,
    )


def plan_steps(limit: int = 20, pages: int = 4) -> List[Paging]:
    """Fetch pages followed by one summaries-only final step."""
    limit = max(0, limit)
    steps = [Paging(offset=i * limit, limit=limit, final=False) for i in range(max(1, pages))]
    steps.append(Paging(offset=0, limit=0, final=True))
    return steps


def run_schedule(
    store: DigestStore,
    settings: Settings,
    *,
    limit: int = 20,
    pages: int = 4,
    now: Optional[datetime.datetime] = None,
    session=None,
    summarizer=None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[RunResult]:
    """Run a whole day's plan in one process, as the scheduled trigger does."""
    now = now or utc_now()
    results = []
    for step in plan_steps(limit, pages):
        results.append(run_digest(
            store,
            settings,
            offset=step.offset,
            limit=step.limit,
            final=step.final,
            now=now,
            session=session,
            summarizer=summarizer,
            sleep=sleep,
        ))
    return results
