import hashlib
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_DROP_QUERY_KEYS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "gclid",
    "fbclid",
    "yclid",
}


def _is_tracking(key: str) -> bool:
    k = key.lower()
    return k in _DROP_QUERY_KEYS or k.startswith("utm_")


def canonicalize_url(url: str) -> str:
    """
    Remove tracking query parameters, keep everything else.
    The query is always re-encoded so equivalent spellings compare equal.
    Returns the input untouched if it cannot be parsed.
    """
    if not url:
        return url
    try:
        parts = urlsplit(url)
        if not parts.query:
            return url
        pairs = parse_qsl(parts.query, keep_blank_values=True)
        kept = [(k, v) for (k, v) in pairs if not _is_tracking(k)]
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(kept, doseq=True), parts.fragment))
    except ValueError:
        return url


def fingerprint(canonical_url: str) -> str:
    """sha256 of the canonical URL, used as the storage-level dedup key."""
    return hashlib.sha256(canonical_url.encode("utf-8")).hexdigest()
