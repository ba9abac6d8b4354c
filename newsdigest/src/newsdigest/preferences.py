import re
from pathlib import Path
from typing import Any, List
import yaml
from .errors import ValidationError
from .models.preferences import Preferences

_SPLIT_RE = re.compile(r"[,\n;]+")


def normalize_list(value: Any, *, upper: bool = False) -> List[str]:
    """
    Accept a list or a comma/semicolon/newline separated string.
    Returns trimmed, de-duplicated values in first-seen order.
    """
    if isinstance(value, str):
        raw = [value]
    elif isinstance(value, (list, tuple, set)):
        raw = [str(v) for v in value]
    else:
        raw = []

    out: List[str] = []
    seen = set()
    for chunk in raw:
        for part in _SPLIT_RE.split(chunk):
            part = part.strip()
            if not part:
                continue
            if upper:
                part = part.upper()
            if part in seen:
                continue
            seen.add(part)
            out.append(part)
    return out


def normalize_preferences(tickers: Any, topics: Any) -> Preferences:
    return Preferences(
        tickers=normalize_list(tickers, upper=True),
        topics=normalize_list(topics),
    )


def load_preferences_file(path: str = "preferences.yaml") -> Preferences:
    """
    Load tickers/topics from YAML.
    Expected shape:
      preferences:
        tickers: [AAPL, MSFT]
        topics: [oil, "interest rates"]
    """
    p = Path(path)
    if not p.exists():
        raise ValidationError(f"Preferences file not found: {path}")

    try:
        data = yaml.safe_load(p.read_text()) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid preferences YAML: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("preferences"), dict):
        raise ValidationError("Preferences file must contain a 'preferences' object.")

    prefs = data["preferences"]
    tickers = prefs.get("tickers") or []
    topics = prefs.get("topics") or []

    for field, values in (("tickers", tickers), ("topics", topics)):
        if not isinstance(values, list):
            raise ValidationError(f"'preferences.{field}' must be a list.")
        for v in values:
            if not isinstance(v, str) or not v.strip():
                raise ValidationError(f"All {field} must be non-empty strings.")

    result = normalize_preferences(tickers, topics)
    if result.is_empty:
        raise ValidationError("Preferences must include at least one ticker or topic.")
    return result
