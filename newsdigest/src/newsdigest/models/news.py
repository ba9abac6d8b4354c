from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

QueryKind = Literal["ticker", "topic", "extra"]


class FeedQuery(BaseModel):
    """
    One feed to poll, derived from preferences.
    """
    model_config = ConfigDict(frozen=True)

    kind: QueryKind
    value: str
    feed_url: str
    source_name: str


class NewsItem(BaseModel):
    """
    Normalized, tagged news item. Identity is canonical_url.
    """
    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    canonical_url: str
    published_at: datetime
    source_name: str
    description: Optional[str] = None
    matched_tickers: List[str] = Field(default_factory=list)
    matched_topics: List[str] = Field(default_factory=list)
    fingerprint: str

    @property
    def match_count(self) -> int:
        return len(self.matched_tickers) + len(self.matched_topics)

    def matches(self, kind: str, value: str) -> bool:
        if kind == "ticker":
            return value in self.matched_tickers
        if kind == "topic":
            return value in self.matched_topics
        return False


class PageStats(BaseModel):
    offset: int = 0
    limit: int = 0
    fetched_feeds: int = 0
    failed_feeds: int = 0


class AccumulationStats(BaseModel):
    """
    Running totals for one date, carried across invocations.
    """
    page: PageStats = Field(default_factory=PageStats)
    fetched_total: int = 0
    unique_count: int = 0
    inserted_count: int = 0
    tickers_count: int = 0
    topics_count: int = 0
    queries_total: int = 0


class DailyAccumulation(BaseModel):
    date: str
    items: List[NewsItem] = Field(default_factory=list)
    stats: AccumulationStats = Field(default_factory=AccumulationStats)
    updated_at: Optional[str] = None
