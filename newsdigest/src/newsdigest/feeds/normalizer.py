import datetime
import html
import logging
import re
from typing import Any, List, Optional, Union

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as dtparse
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

# field preference per dialect
_RSS_DATE_FIELDS = ("published", "updated")
_ATOM_DATE_FIELDS = ("updated", "published")


class RawEntry(BaseModel):
    """Feed entry after parsing, before matching."""
    title: str
    link: str
    published_at: datetime.datetime
    description: Optional[str] = None


def clean_text(text: Optional[str]) -> str:
    """Decode entities, strip tags and collapse whitespace."""
    if not text:
        return ""
    decoded = html.unescape(text)
    if "<" in decoded:
        decoded = BeautifulSoup(decoded, "html.parser").get_text(separator=" ")
    return _WS_RE.sub(" ", decoded).strip()


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Parse a feed date string to an aware UTC datetime, or None."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = dtparse.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def _from_struct(st) -> Optional[datetime.datetime]:
    if not st:
        return None
    try:
        return datetime.datetime(*st[:6], tzinfo=datetime.timezone.utc)
    except (TypeError, ValueError):
        return None


def _entry_timestamp(entry, fields) -> Optional[datetime.datetime]:
    for field in fields:
        dt = parse_timestamp(entry.get(field))
        if dt is None:
            dt = _from_struct(entry.get(f"{field}_parsed"))
        if dt is not None:
            return dt
    return None


def _entry_link(entry) -> str:
    links = entry.get("links") or []
    for link in links:
        if link.get("rel") == "alternate" and link.get("href"):
            return link["href"].strip()
    if entry.get("link"):
        return str(entry["link"]).strip()
    for link in links:
        if link.get("href"):
            return link["href"].strip()
    return ""


def parse_feed(document: Union[str, bytes]) -> List[RawEntry]:
    """
    Parse an RSS or Atom document (raw bytes or already-decoded text).
    Unknown documents give an empty list; incomplete entries are dropped.
    """
    if not document:
        return []

    parsed = feedparser.parse(document)
    version = parsed.get("version") or ""
    if version.startswith("atom"):
        date_fields = _ATOM_DATE_FIELDS
    elif version.startswith("rss"):
        date_fields = _RSS_DATE_FIELDS
    else:
        logger.debug(f"Unrecognized feed format (version={version!r})")
        return []

    entries: List[RawEntry] = []
    for entry in parsed.entries:
        title = clean_text(entry.get("title"))
        link = _entry_link(entry)
        published_at = _entry_timestamp(entry, date_fields)
        if not title or not link or published_at is None:
            logger.debug(f"Dropping incomplete entry title={title[:60]!r} link={link[:60]!r}")
            continue
        description = clean_text(entry.get("summary") or entry.get("description"))
        entries.append(RawEntry(
            title=title,
            link=link,
            published_at=published_at,
            description=description or None,
        ))
    return entries
