from typing import Iterable, List

from pydantic import BaseModel, Field

from ..models.news import NewsItem
from ..models.preferences import Preferences
from ..models.summary import TopLink

MIN_ITEMS_FOR_SUMMARY = 2
CHAR_BUDGET = 14000
DEFAULT_MAX_ITEMS = 30
TOP_LINKS = 5


class GroupPlan(BaseModel):
    """What the generator needs for one (kind, value) group."""
    kind: str
    value: str
    items_count: int
    items: List[NewsItem] = Field(default_factory=list)
    top_links: List[TopLink] = Field(default_factory=list)

    @property
    def is_sparse(self) -> bool:
        return self.items_count < MIN_ITEMS_FOR_SUMMARY


def groups_for(prefs: Preferences) -> List[tuple]:
    """Tickers first, then topics, in preference order."""
    return [("ticker", t) for t in prefs.tickers] + [("topic", t) for t in prefs.topics]


def take_by_char_budget(items: Iterable[NewsItem], budget: int = CHAR_BUDGET) -> List[NewsItem]:
    """Longest prefix whose title+description text fits the budget."""
    out: List[NewsItem] = []
    used = 0
    for it in items:
        piece = len(it.title) + len(it.description or "") + 2
        if used + piece > budget:
            break
        out.append(it)
        used += piece
    return out


def pick_top_links(items: List[NewsItem], limit: int = TOP_LINKS) -> List[TopLink]:
    return [
        TopLink(
            title=it.title,
            url=it.canonical_url or it.url,
            source=it.source_name,
            published_at=it.published_at,
        )
        for it in items[:limit]
    ]


def build_group_plan(
    items: Iterable[NewsItem],
    kind: str,
    value: str,
    *,
    max_items: int = DEFAULT_MAX_ITEMS,
    char_budget: int = CHAR_BUDGET,
) -> GroupPlan:
    group_items = sorted(
        (it for it in items if it.matches(kind, value)),
        key=lambda it: it.published_at,
        reverse=True,
    )
    selected = take_by_char_budget(group_items, char_budget)[:max_items]
    return GroupPlan(
        kind=kind,
        value=value,
        items_count=len(group_items),
        items=selected,
        top_links=pick_top_links(selected),
    )


def sparse_bullets(value: str, items_count: int) -> List[str]:
    return [
        f"Little or no significant news on {value} in the last 24 hours.",
        f"Publications in the last 24 hours: {items_count}.",
    ]


def error_bullets(value: str, items_count: int, description: str) -> List[str]:
    return [
        f"Could not generate a summary for {value} (AI error).",
        f"Publications in the last 24 hours: {items_count}.",
        f"AI error: {description}",
    ]
