import datetime
import tempfile
import unittest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "newsdigest" / "src"
sys.path.insert(0, str(SRC))

from newsdigest.errors import StoreError, SummaryFormatError, SummaryServiceError
from newsdigest.feeds.urls import fingerprint
from newsdigest.models.news import NewsItem
from newsdigest.models.preferences import Preferences
from newsdigest.models.summary import SummaryOutcome
from newsdigest.store.sqlite import DigestStore
from newsdigest.summarize.generator import generate_group_summaries

UTC = datetime.timezone.utc
DATE = "2026-10-17"


def make_item(i, tickers=(), topics=()):
    url = f"https://example.com/{i}"
    return NewsItem(
        title=f"Headline {i}",
        url=url,
        canonical_url=url,
        published_at=datetime.datetime(2026, 10, 17, 6, i, tzinfo=UTC),
        source_name="Src",
        matched_tickers=list(tickers),
        matched_topics=list(topics),
        fingerprint=fingerprint(url),
    )


class FakeSummarizer:
    def __init__(self, failures=None, model="gpt-4o-mini"):
        self.failures = failures or {}
        self.model = model
        self.calls = []

    def summarize(self, kind, value, items):
        self.calls.append((kind, value, len(items)))
        if value in self.failures:
            raise self.failures[value]
        return [f"{value} news one", f"{value} news two"], self.model


class FlakyStore(DigestStore):
    """Fails to write summaries for the given values."""
    def __init__(self, db_path, broken):
        super().__init__(db_path=db_path)
        self.broken = broken

    def upsert_group_summary(self, summary):
        if summary.value in self.broken:
            raise StoreError("disk full")
        super().upsert_group_summary(summary)


class TestGenerateGroupSummaries(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = str(Path(self.tmpdir.name) / "digest.db")
        self.store = DigestStore(db_path=self.db_path)
        self.sleeps = []
        self.prefs = Preferences(tickers=["AAPL", "TSLA"], topics=["oil"])
        self.items = [
            make_item(1, tickers=["AAPL"]),
            make_item(2, tickers=["AAPL"], topics=["oil"]),
            make_item(3, tickers=["TSLA"]),
            make_item(4, topics=["oil"]),
        ]

    def tearDown(self):
        self.tmpdir.cleanup()

    def generate(self, summarizer, store=None, throttle=0.4):
        return generate_group_summaries(
            store or self.store, DATE, self.items, self.prefs, summarizer,
            throttle=throttle, sleep=self.sleeps.append,
        )

    def test_fresh_and_sparse_groups(self):
        summarizer = FakeSummarizer()
        counts = self.generate(summarizer)

        self.assertEqual((counts.fresh, counts.empty, counts.error, counts.skipped), (2, 1, 0, 0))
        self.assertEqual(summarizer.calls, [("ticker", "AAPL", 2), ("topic", "oil", 2)])

        rows = {r.value: r for r in self.store.list_group_summaries(DATE)}
        self.assertEqual(rows["AAPL"].model, "gpt-4o-mini")
        self.assertEqual(rows["AAPL"].items_count, 2)
        self.assertEqual(len(rows["AAPL"].top_links), 2)
        self.assertEqual(rows["TSLA"].model, "none")
        self.assertEqual(rows["TSLA"].bullets[1], "Publications in the last 24 hours: 1.")
        self.assertEqual(self.sleeps, [0.4, 0.4, 0.4])

    def test_existing_summaries_are_kept(self):
        self.generate(FakeSummarizer())
        self.sleeps.clear()

        again = FakeSummarizer(model="other-model")
        counts = self.generate(again)

        self.assertEqual(again.calls, [])
        self.assertEqual(counts.skipped, 2)
        # the sparse group is recomputed, without a service call
        self.assertEqual(counts.empty, 1)
        self.assertEqual(self.sleeps, [0.4])
        self.assertEqual(self.store.get_group_summary(DATE, "ticker", "AAPL").model, "gpt-4o-mini")

    def test_service_error_becomes_error_bullets(self):
        summarizer = FakeSummarizer(failures={"AAPL": SummaryServiceError(503, "overloaded")})
        counts = self.generate(summarizer)

        self.assertEqual(counts.error, 1)
        self.assertEqual(counts.fresh, 1)
        row = self.store.get_group_summary(DATE, "ticker", "AAPL")
        self.assertEqual(row.model, "openai_error")
        self.assertEqual(row.outcome, SummaryOutcome.ERROR)
        self.assertEqual(len(row.bullets), 3)
        self.assertIn("Publications in the last 24 hours: 2.", row.bullets)
        self.assertIn("HTTP 503", row.bullets[2])
        self.assertEqual(len(row.top_links), 2)

    def test_error_rows_are_retried(self):
        self.generate(FakeSummarizer(failures={"oil": SummaryFormatError("OpenAI returned invalid JSON")}))
        self.assertEqual(self.store.get_group_summary(DATE, "topic", "oil").model, "openai_error")

        summarizer = FakeSummarizer()
        counts = self.generate(summarizer)
        self.assertEqual(summarizer.calls, [("topic", "oil", 2)])
        self.assertEqual(counts.fresh, 1)
        self.assertEqual(self.store.get_group_summary(DATE, "topic", "oil").model, "gpt-4o-mini")

    def test_one_group_failure_does_not_stop_others(self):
        store = FlakyStore(self.db_path, broken={"AAPL"})
        counts = self.generate(FakeSummarizer(), store=store)

        self.assertEqual(counts.fresh, 2)
        self.assertIsNone(store.get_group_summary(DATE, "ticker", "AAPL"))
        self.assertIsNotNone(store.get_group_summary(DATE, "ticker", "TSLA"))
        self.assertIsNotNone(store.get_group_summary(DATE, "topic", "oil"))

    def test_unexpected_exception_does_not_stop_others(self):
        summarizer = FakeSummarizer(failures={"AAPL": RuntimeError("unexpected")})
        counts = self.generate(summarizer)

        self.assertEqual(summarizer.calls, [("ticker", "AAPL", 2), ("topic", "oil", 2)])
        self.assertEqual((counts.fresh, counts.empty, counts.error), (1, 1, 1))
        row = self.store.get_group_summary(DATE, "ticker", "AAPL")
        self.assertEqual(row.model, "openai_error")
        self.assertEqual(row.bullets[2], "AI error: unexpected")
        self.assertIsNotNone(self.store.get_group_summary(DATE, "ticker", "TSLA"))
        self.assertEqual(self.store.get_group_summary(DATE, "topic", "oil").model, "gpt-4o-mini")

    def test_no_throttle(self):
        self.generate(FakeSummarizer(), throttle=0)
        self.assertEqual(self.sleeps, [])

    def test_group_without_items(self):
        self.prefs = Preferences(topics=["copper"])
        counts = self.generate(FakeSummarizer())
        row = self.store.get_group_summary(DATE, "topic", "copper")
        self.assertEqual(counts.empty, 1)
        self.assertEqual(row.items_count, 0)
        self.assertEqual(row.top_links, [])
        self.assertEqual(row.bullets[0], "Little or no significant news on copper in the last 24 hours.")


if __name__ == "__main__":
    unittest.main()
