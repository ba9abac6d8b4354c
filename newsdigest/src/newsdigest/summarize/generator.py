import logging
import time
from typing import Callable, List

from ..digest.aggregator import (
    DEFAULT_MAX_ITEMS,
    build_group_plan,
    error_bullets,
    groups_for,
    sparse_bullets,
)
from ..errors import StoreError, SummaryFormatError, SummaryServiceError
from ..models.news import NewsItem
from ..models.preferences import Preferences
from ..models.run import SummaryCounts
from ..models.summary import MODEL_ERROR, MODEL_NONE, GroupSummary
from ..store.sqlite import DigestStore
from .client import describe_failure

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE = 0.4


def generate_group_summaries(
    store: DigestStore,
    date: str,
    items: List[NewsItem],
    prefs: Preferences,
    summarizer,
    *,
    max_items: int = DEFAULT_MAX_ITEMS,
    throttle: float = DEFAULT_THROTTLE,
    sleep: Callable[[float], None] = time.sleep,
) -> SummaryCounts:
    """
    Write one GroupSummary per configured ticker/topic for `date`.

    Groups already holding a real summary are left alone. Groups are handled
    one at a time, with `throttle` seconds after each one that was processed.
    `summarizer` needs a `summarize(kind, value, items) -> (bullets, model)` method.
    """
    counts = SummaryCounts()

    for kind, value in groups_for(prefs):
        prev = store.get_group_summary(date, kind, value)
        if prev is not None and not prev.needs_refresh:
            logger.info(f"Summary exists for {kind}:{value} on {date} (model={prev.model}), skipping")
            counts.skipped += 1
            continue

        plan = build_group_plan(items, kind, value, max_items=max_items)
        logger.info(f"Summarizing {kind}:{value} on {date} ({plan.items_count} items)")

        try:
            if plan.is_sparse:
                bullets, model = sparse_bullets(value, plan.items_count), MODEL_NONE
                counts.empty += 1
            else:
                try:
                    bullets, model = summarizer.summarize(kind, value, plan.items)
                    counts.fresh += 1
                except (SummaryServiceError, SummaryFormatError) as e:
                    status = getattr(e, "status", None)
                    logger.error(
                        f"OpenAI failed for {kind}:{value} status={status} "
                        f"details={e.details} message={e.message[:900]}"
                    )
                    bullets, model = error_bullets(value, plan.items_count, describe_failure(e)), MODEL_ERROR
                    counts.error += 1
                except Exception as e:
                    logger.exception(f"Unexpected summarizer failure for {kind}:{value}")
                    bullets, model = error_bullets(value, plan.items_count, describe_failure(e)), MODEL_ERROR
                    counts.error += 1

            try:
                store.upsert_group_summary(GroupSummary(
                    date=date,
                    kind=kind,
                    value=value,
                    bullets=bullets,
                    top_links=plan.top_links,
                    items_count=plan.items_count,
                    model=model,
                ))
            except StoreError as e:
                # next pass recomputes it; the remaining groups still run
                logger.error(f"Could not store summary for {kind}:{value}: {e.message}")
        finally:
            if throttle > 0:
                sleep(throttle)

    logger.info(
        f"Summaries for {date}: fresh={counts.fresh} empty={counts.empty} "
        f"error={counts.error} skipped={counts.skipped}"
    )
    return counts
