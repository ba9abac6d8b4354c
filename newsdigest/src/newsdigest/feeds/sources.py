from typing import Dict, List
from urllib.parse import quote

from ..models.news import FeedQuery
from ..models.preferences import Preferences

# hl / gl / ceid per Google News edition
_GOOGLE_REGIONS: Dict[str, str] = {
    "US": "hl=en-US&gl=US&ceid=US:en",
    "KZ": "hl=ru&gl=KZ&ceid=KZ:ru",
    "RU": "hl=ru&gl=RU&ceid=RU:ru",
}

TICKER_REGIONS = ("RU", "KZ", "US")
TOPIC_REGIONS = ("RU", "US", "KZ")

# General market feeds, matched against titles rather than a single value
EXTRA_FEEDS: List[Dict[str, str]] = [
    {"name": "Reuters:TopNews", "url": "https://www.reuters.com/rssFeed/topNews"},
    {"name": "MarketWatch:TopStories", "url": "https://feeds.marketwatch.com/marketwatch/topstories"},
    {"name": "Investing:StockMarket", "url": "https://www.investing.com/rss/news_25.rss"},
    {"name": "NasdaqTrader:Headlines", "url": "https://www.nasdaqtrader.com/rss.aspx?categorylist=0&feed=currentheadlines"},
    {"name": "NasdaqTrader:TradeHalt", "url": "https://www.nasdaqtrader.com/rss.aspx?name=TradeHalt"},
    {"name": "Fed:PressAll", "url": "https://www.federalreserve.gov/feeds/press_all.xml"},
    {"name": "SEC:PressReleases", "url": "https://www.sec.gov/news/pressreleases.rss"},
]


def google_news_url(query: str, region: str = "RU") -> str:
    params = _GOOGLE_REGIONS.get(region, _GOOGLE_REGIONS["RU"])
    return f"https://news.google.com/rss/search?q={quote(query, safe='')}&{params}"


def yahoo_finance_url(ticker: str) -> str:
    symbol = quote(ticker.strip().upper(), safe="")
    return f"https://feeds.finance.yahoo.com/rss/2.0/headline?s={symbol}&region=US&lang=en-US"


def build_queries(prefs: Preferences) -> List[FeedQuery]:
    """
    Expand preferences into the ordered list of feeds polled across pages.
    Order is stable so that offset/limit pages line up between invocations.
    """
    queries: List[FeedQuery] = []

    for t in prefs.tickers:
        for region in TICKER_REGIONS:
            queries.append(FeedQuery(
                kind="ticker",
                value=t,
                feed_url=google_news_url(f"{t} stock", region),
                source_name=f"GoogleNews{region}:{t}",
            ))
        queries.append(FeedQuery(
            kind="ticker",
            value=t,
            feed_url=yahoo_finance_url(t),
            source_name=f"YahooFinance:{t}",
        ))

    for topic in prefs.topics:
        for region in TOPIC_REGIONS:
            queries.append(FeedQuery(
                kind="topic",
                value=topic,
                feed_url=google_news_url(topic, region),
                source_name=f"GoogleNews{region}:{topic}",
            ))

    for feed in EXTRA_FEEDS:
        queries.append(FeedQuery(
            kind="extra",
            value=feed["name"],
            feed_url=feed["url"],
            source_name=feed["name"],
        ))

    return queries


def page_of(queries: List[FeedQuery], offset: int, limit=None) -> List[FeedQuery]:
    """Slice one page; limit None means all remaining, 0 means none."""
    offset = max(0, offset)
    if limit is None:
        return queries[offset:]
    if limit <= 0:
        return []
    return queries[offset:offset + limit]
