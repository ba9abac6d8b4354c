import datetime
import unittest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "newsdigest" / "src"
sys.path.insert(0, str(SRC))

from newsdigest.digest.aggregator import (
    build_group_plan,
    groups_for,
    sparse_bullets,
    take_by_char_budget,
)
from newsdigest.digest.merge import MAX_ITEMS, dedup_key, dedupe, merge_items, within_window
from newsdigest.feeds.urls import canonicalize_url, fingerprint
from newsdigest.models.news import NewsItem
from newsdigest.models.preferences import Preferences

UTC = datetime.timezone.utc
NOW = datetime.datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def make_item(url, *, hours_ago=1.0, tickers=(), topics=(), title=None, source="Src", description=None):
    return NewsItem(
        title=title or f"Title for {url}",
        url=url,
        canonical_url=url,
        published_at=NOW - datetime.timedelta(hours=hours_ago),
        source_name=source,
        description=description,
        matched_tickers=list(tickers),
        matched_topics=list(topics),
        fingerprint=fingerprint(url),
    )


class TestMerge(unittest.TestCase):
    def test_one_item_per_url_later_wins(self):
        old = make_item("https://example.com/a", hours_ago=5, title="old")
        new = make_item("https://example.com/a", hours_ago=1, title="new")
        merged = merge_items([new], [old])
        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].title, "new")

        merged = merge_items([old], [new])
        self.assertEqual([m.title for m in merged], ["new"])

    def test_query_encoding_variants_merge(self):
        raw_a = "https://e.com/a?q=a%20b&utm_source=x"
        raw_b = "https://e.com/a?q=a%20b"
        items = []
        for raw, hours in ((raw_a, 2), (raw_b, 1)):
            canonical = canonicalize_url(raw)
            items.append(NewsItem(
                title="Same story", url=raw, canonical_url=canonical,
                published_at=NOW - datetime.timedelta(hours=hours), source_name="Src",
                fingerprint=fingerprint(canonical),
            ))
        merged = merge_items([items[0]], [items[1]])
        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].url, raw_b)

    def test_fallback_key_without_url(self):
        a = make_item("", title="Same Headline", source="Feed")
        b = make_item("", title="same headline", source="feed", hours_ago=0.5)
        self.assertEqual(dedup_key(a), "feed::same headline")
        self.assertEqual(len(dedupe([a, b])), 1)

    def test_match_count_outranks_recency(self):
        fresh = make_item("https://example.com/fresh", hours_ago=0.1, tickers=["AAPL"])
        stale_two = make_item("https://example.com/two", hours_ago=23, tickers=["AAPL"], topics=["oil"])
        none = make_item("https://example.com/none", hours_ago=0)
        older_one = make_item("https://example.com/older", hours_ago=3, tickers=["TSLA"])
        merged = merge_items([], [none, older_one, fresh, stale_two])
        self.assertEqual(
            [m.url for m in merged],
            [
                "https://example.com/two",
                "https://example.com/fresh",
                "https://example.com/older",
                "https://example.com/none",
            ],
        )

    def test_truncates_to_limit(self):
        existing = [make_item(f"https://example.com/e{i}", hours_ago=i / 100) for i in range(150)]
        incoming = [make_item(f"https://example.com/n{i}", hours_ago=i / 100, tickers=["AAPL"]) for i in range(100)]
        merged = merge_items(existing, incoming)
        self.assertEqual(len(merged), MAX_ITEMS)
        self.assertEqual(len({m.canonical_url for m in merged}), MAX_ITEMS)
        # every matched item survives ahead of unmatched ones
        self.assertTrue(all(m.matched_tickers for m in merged[:100]))

    def test_window(self):
        items = [make_item("https://example.com/in", hours_ago=23), make_item("https://example.com/out", hours_ago=25)]
        kept = within_window(items, NOW - datetime.timedelta(hours=24))
        self.assertEqual([i.url for i in kept], ["https://example.com/in"])


class TestAggregator(unittest.TestCase):
    def test_filters_and_sorts_group(self):
        items = [
            make_item("https://example.com/1", hours_ago=5, tickers=["AAPL"]),
            make_item("https://example.com/2", hours_ago=1, tickers=["AAPL", "TSLA"]),
            make_item("https://example.com/3", hours_ago=2, topics=["AAPL"]),
            make_item("https://example.com/4", hours_ago=3, tickers=["TSLA"]),
        ]
        plan = build_group_plan(items, "ticker", "AAPL")
        self.assertEqual(plan.items_count, 2)
        self.assertEqual([i.url for i in plan.items], ["https://example.com/2", "https://example.com/1"])
        self.assertFalse(plan.is_sparse)
        self.assertEqual(plan.top_links[0].url, "https://example.com/2")
        self.assertEqual(plan.top_links[0].source, "Src")

    def test_top_links_capped_at_five(self):
        items = [make_item(f"https://example.com/{i}", hours_ago=i + 1, topics=["oil"]) for i in range(8)]
        plan = build_group_plan(items, "topic", "oil")
        self.assertEqual(plan.items_count, 8)
        self.assertEqual(len(plan.items), 8)
        self.assertEqual(len(plan.top_links), 5)

    def test_max_items(self):
        items = [make_item(f"https://example.com/{i}", hours_ago=i + 1, topics=["oil"]) for i in range(40)]
        plan = build_group_plan(items, "topic", "oil", max_items=30)
        self.assertEqual(plan.items_count, 40)
        self.assertEqual(len(plan.items), 30)

    def test_char_budget_prefix(self):
        items = [
            make_item(f"https://example.com/{i}", hours_ago=i + 1, title="t" * 98, topics=["oil"])
            for i in range(5)
        ]
        # 100 characters per item including separators
        self.assertEqual(len(take_by_char_budget(items, budget=350)), 3)
        self.assertEqual(len(take_by_char_budget(items, budget=500)), 5)
        plan = build_group_plan(items, "topic", "oil", char_budget=250)
        self.assertEqual(len(plan.items), 2)
        self.assertEqual(plan.items_count, 5)

    def test_sparse(self):
        plan = build_group_plan([make_item("https://example.com/1", topics=["oil"])], "topic", "oil")
        self.assertTrue(plan.is_sparse)
        self.assertEqual(
            sparse_bullets("oil", 1),
            [
                "Little or no significant news on oil in the last 24 hours.",
                "Publications in the last 24 hours: 1.",
            ],
        )

    def test_groups_order(self):
        prefs = Preferences(tickers=["AAPL", "TSLA"], topics=["oil"])
        self.assertEqual(groups_for(prefs), [("ticker", "AAPL"), ("ticker", "TSLA"), ("topic", "oil")])


if __name__ == "__main__":
    unittest.main()
