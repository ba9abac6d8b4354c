from typing import Any, Dict, List

from ..models.news import DailyAccumulation
from ..models.preferences import Preferences
from ..store.sqlite import DigestStore


def today_digest(store: DigestStore, date: str) -> DailyAccumulation:
    """Stored accumulation for `date`, or an empty one."""
    return store.get_accumulation(date) or DailyAccumulation(date=date)


def today_summaries(store: DigestStore, date: str, prefs: Preferences) -> Dict[str, Any]:
    """
    Group summaries for `date`, limited to tickers/topics still in preferences.
    Rows are ordered by items count (desc), then value.
    """
    allowed = {"ticker": set(prefs.tickers), "topic": set(prefs.topics)}
    tickers: List[Dict[str, Any]] = []
    topics: List[Dict[str, Any]] = []

    for s in store.list_group_summaries(date):
        if s.value not in allowed.get(s.kind, set()):
            continue
        entry = {
            "value": s.value,
            "bullets": s.bullets,
            "top_links": [link.model_dump(mode="json") for link in s.top_links],
            "items_count": s.items_count,
            "model": s.model,
        }
        if s.kind == "ticker":
            tickers.append(entry)
        else:
            topics.append(entry)

    return {"date": date, "tickers": tickers, "topics": topics}
