import datetime
import tempfile
import unittest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "newsdigest" / "src"
sys.path.insert(0, str(SRC))

from newsdigest.dates import digest_date, window_start
from newsdigest.errors import ValidationError
from newsdigest.preferences import load_preferences_file, normalize_list, normalize_preferences

UTC = datetime.timezone.utc


class TestNormalize(unittest.TestCase):
    def test_string_input(self):
        self.assertEqual(normalize_list(" aapl, msft;\nAAPL ,, ", upper=True), ["AAPL", "MSFT"])
        self.assertEqual(normalize_list("oil; interest rates"), ["oil", "interest rates"])

    def test_list_input(self):
        self.assertEqual(normalize_list(["oil", " oil ", "gold,silver"]), ["oil", "gold", "silver"])
        self.assertEqual(normalize_list(None), [])

    def test_preferences(self):
        prefs = normalize_preferences("tsla,aapl", ["Oil"])
        self.assertEqual(prefs.tickers, ["TSLA", "AAPL"])
        self.assertEqual(prefs.topics, ["Oil"])
        self.assertTrue(normalize_preferences("", []).is_empty)


class TestPreferencesFile(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "preferences.yaml"

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_load(self):
        self.path.write_text(
            "preferences:\n"
            "  tickers: [aapl, MSFT]\n"
            "  topics:\n"
            "    - oil\n"
            "    - interest rates\n"
        )
        prefs = load_preferences_file(str(self.path))
        self.assertEqual(prefs.tickers, ["AAPL", "MSFT"])
        self.assertEqual(prefs.topics, ["oil", "interest rates"])

    def test_missing_file(self):
        with self.assertRaises(ValidationError):
            load_preferences_file(str(self.path))

    def test_bad_shapes(self):
        for text in (
            "tickers: [AAPL]\n",
            "preferences:\n  tickers: AAPL\n",
            "preferences:\n  tickers: ['']\n",
            "preferences:\n  tickers: []\n  topics: []\n",
            "42\n",
            "- AAPL\n- MSFT\n",
        ):
            self.path.write_text(text)
            with self.assertRaises(ValidationError):
                load_preferences_file(str(self.path))


class TestDates(unittest.TestCase):
    def test_digest_date_uses_reference_timezone(self):
        late_utc = datetime.datetime(2026, 10, 17, 21, 0, tzinfo=UTC)
        self.assertEqual(digest_date(late_utc, "UTC"), "2026-10-17")
        self.assertEqual(digest_date(late_utc, "Asia/Almaty"), "2026-10-18")
        self.assertEqual(digest_date(late_utc, "America/New_York"), "2026-10-17")

    def test_naive_time_treated_as_utc(self):
        self.assertEqual(digest_date(datetime.datetime(2026, 10, 17, 21, 0), "Asia/Almaty"), "2026-10-18")

    def test_window_start(self):
        now = datetime.datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
        self.assertEqual(window_start(now), datetime.datetime(2026, 10, 16, 12, 0, tzinfo=UTC))


if __name__ == "__main__":
    unittest.main()
