import sqlite3
import json
import logging
import datetime
from typing import List, Optional

from pydantic import ValidationError as ModelValidationError

from ..errors import StoreError
from ..models.news import AccumulationStats, DailyAccumulation, NewsItem
from ..models.preferences import Preferences
from ..models.summary import GroupSummary

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS user_preferences (
        user_id TEXT PRIMARY KEY,
        tickers TEXT NOT NULL DEFAULT '[]',
        topics TEXT NOT NULL DEFAULT '[]',
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_digests (
        date TEXT PRIMARY KEY,
        items TEXT NOT NULL DEFAULT '[]',
        stats TEXT NOT NULL DEFAULT '{}',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS news_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT,
        url TEXT,
        canonical_url TEXT,
        published_at TEXT,
        source_name TEXT,
        matched_tickers TEXT,
        matched_topics TEXT,
        fingerprint TEXT NOT NULL UNIQUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_group_summaries (
        date TEXT NOT NULL,
        kind TEXT NOT NULL,
        value TEXT NOT NULL,
        bullets TEXT NOT NULL,
        top_links TEXT NOT NULL,
        items_count INTEGER NOT NULL DEFAULT 0,
        model TEXT NOT NULL,
        created_at TEXT,
        PRIMARY KEY (date, kind, value)
    )
    """,
]


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class DigestStore:
    """
    SQLite-backed store for preferences, daily accumulations and group summaries.
    Collections are kept as JSON text; models are (de)serialized only here.
    """
    def __init__(self, db_path: str = "newsdigest.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        try:
            with sqlite3.connect(self.db_path) as conn:
                for stmt in _SCHEMA:
                    conn.execute(stmt)
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to init store at {self.db_path}: {e}")
            raise StoreError(f"Cannot open store: {e}", {"db_path": self.db_path})

    # --- preferences -------------------------------------------------------

    def ensure_user(self, user_id: str) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO user_preferences (user_id, tickers, topics)
                    VALUES (?, '[]', '[]')
                    ON CONFLICT(user_id) DO NOTHING
                    """,
                    (user_id,),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to create preferences row: {e}", {"user_id": user_id})

    def get_preferences(self, user_id: str) -> Preferences:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT tickers, topics FROM user_preferences WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read preferences: {e}", {"user_id": user_id})
        if not row:
            return Preferences()
        return Preferences(
            tickers=_load_json(row[0], []),
            topics=_load_json(row[1], []),
        )

    def set_preferences(self, user_id: str, prefs: Preferences) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO user_preferences (user_id, tickers, topics, updated_at)
                    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(user_id) DO UPDATE SET
                        tickers = excluded.tickers,
                        topics = excluded.topics,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (user_id, json.dumps(prefs.tickers), json.dumps(prefs.topics)),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write preferences: {e}", {"user_id": user_id})

    # --- daily accumulation ------------------------------------------------

    def get_accumulation(self, date: str) -> Optional[DailyAccumulation]:
        """Current accumulated row for a date, or None if nothing was written yet."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT items, stats, created_at FROM daily_digests WHERE date = ?",
                    (date,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read accumulation: {e}", {"date": date})
        if not row:
            return None

        items = []
        for raw in _load_json(row[0], []):
            try:
                items.append(NewsItem.model_validate(raw))
            except ModelValidationError as e:
                logger.warning(f"Skipping unreadable stored item for {date}: {e.errors()[:1]}")
        stats = AccumulationStats.model_validate(_load_json(row[1], {}))
        return DailyAccumulation(date=date, items=items, stats=stats, updated_at=row[2])

    def put_accumulation(self, acc: DailyAccumulation) -> None:
        """Upsert the date's items and stats, refreshing the write timestamp."""
        items_json = json.dumps([i.model_dump(mode="json") for i in acc.items])
        stats_json = json.dumps(acc.stats.model_dump(mode="json"))
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO daily_digests (date, items, stats, created_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(date) DO UPDATE SET
                        items = excluded.items,
                        stats = excluded.stats,
                        created_at = excluded.created_at
                    """,
                    (acc.date, items_json, stats_json, _now_iso()),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write accumulation: {e}", {"date": acc.date})

    def insert_news_items(self, items: List[NewsItem]) -> int:
        """Record items by fingerprint; returns how many were new."""
        if not items:
            return 0
        rows = [
            (
                it.title,
                it.url,
                it.canonical_url,
                it.published_at.isoformat(),
                it.source_name,
                json.dumps(it.matched_tickers),
                json.dumps(it.matched_topics),
                it.fingerprint,
            )
            for it in items
        ]
        try:
            with sqlite3.connect(self.db_path) as conn:
                before = conn.total_changes
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO news_items
                        (title, url, canonical_url, published_at, source_name,
                         matched_tickers, matched_topics, fingerprint)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                conn.commit()
                return conn.total_changes - before
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert news items: {e}")

    # --- group summaries ---------------------------------------------------

    def get_group_summary(self, date: str, kind: str, value: str) -> Optional[GroupSummary]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    """
                    SELECT date, kind, value, bullets, top_links, items_count, model, created_at
                    FROM daily_group_summaries
                    WHERE date = ? AND kind = ? AND value = ?
                    """,
                    (date, kind, value),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read group summary: {e}", {"date": date, "kind": kind, "value": value})
        return _summary_from_row(row) if row else None

    def upsert_group_summary(self, summary: GroupSummary) -> None:
        payload = summary.model_dump(mode="json")
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO daily_group_summaries
                        (date, kind, value, bullets, top_links, items_count, model, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(date, kind, value) DO UPDATE SET
                        bullets = excluded.bullets,
                        top_links = excluded.top_links,
                        items_count = excluded.items_count,
                        model = excluded.model,
                        created_at = excluded.created_at
                    """,
                    (
                        summary.date,
                        summary.kind,
                        summary.value,
                        json.dumps(payload["bullets"]),
                        json.dumps(payload["top_links"]),
                        summary.items_count,
                        summary.model,
                        summary.created_at or _now_iso(),
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(
                f"Failed to write group summary: {e}",
                {"date": summary.date, "kind": summary.kind, "value": summary.value},
            )

    def list_group_summaries(self, date: str) -> List[GroupSummary]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute(
                    """
                    SELECT date, kind, value, bullets, top_links, items_count, model, created_at
                    FROM daily_group_summaries
                    WHERE date = ?
                    ORDER BY kind, items_count DESC, value ASC
                    """,
                    (date,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list group summaries: {e}", {"date": date})
        return [_summary_from_row(r) for r in rows]


def _load_json(text, default):
    if not text:
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Stored JSON is unreadable, using default")
        return default


def _summary_from_row(row) -> GroupSummary:
    date, kind, value, bullets, top_links, items_count, model, created_at = row
    return GroupSummary(
        date=date,
        kind=kind,
        value=value,
        bullets=_load_json(bullets, []),
        top_links=_load_json(top_links, []),
        items_count=items_count or 0,
        model=model,
        created_at=created_at,
    )
