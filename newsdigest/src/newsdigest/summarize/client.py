import json
import logging
import random
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from ..digest.aggregator import sparse_bullets
from ..errors import ConfigError, SummaryFormatError, SummaryServiceError
from ..models.news import NewsItem

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_ATTEMPTS = 5
BACKOFF_BASE = 0.6
BACKOFF_JITTER = 0.3
REQUEST_TIMEOUT = 60

TITLE_LIMIT = 220
DESCRIPTION_LIMIT = 320
SOURCE_LIMIT = 60
ERROR_TEXT_LIMIT = 320
RAW_BODY_LIMIT = 2000

MIN_BULLETS = 2
MAX_BULLETS = 5

SYSTEM_PROMPT = "\n".join([
    "You are a news aggregator.",
    "Task: from the news list below, write 2-5 SHORT bullet points describing what happened in the last 24 hours.",
    "Use ONLY facts stated in the titles and descriptions. No guesses, causes, forecasts, opinions or outside knowledge.",
    "If there is little news or no clear events, say plainly that there is little or no significant news.",
    "Respond with JSON matching the given schema (only the bullets array).",
])

OUTPUT_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "bullets": {
            "type": "array",
            "minItems": MIN_BULLETS,
            "maxItems": MAX_BULLETS,
            "items": {"type": "string"},
        },
    },
    "required": ["bullets"],
}

_WS_RE = re.compile(r"\s+")


def truncate(value: Any, limit: int) -> str:
    text = "" if value is None else str(value)
    return text[:limit] + "…" if len(text) > limit else text


def compact_items(items: List[NewsItem]) -> List[Dict[str, str]]:
    """Per-field truncated payload; URLs are never sent."""
    return [
        {
            "title": truncate(it.title, TITLE_LIMIT),
            "description": truncate(it.description or "", DESCRIPTION_LIMIT),
            "source": truncate(it.source_name, SOURCE_LIMIT),
            "publishedAt": it.published_at.isoformat(),
        }
        for it in items
    ]


def build_request(model: str, kind: str, value: str, items: List[NewsItem]) -> Dict[str, Any]:
    compact = compact_items(items)
    user = "\n".join([
        f"Group: kind={kind}, value={value}",
        "News (JSON):",
        json.dumps(compact, ensure_ascii=False),
    ])
    return {
        "model": model,
        "store": False,
        "temperature": 0.2,
        "max_output_tokens": 350,
        "input": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ],
        "text": {
            "format": {
                "type": "json_schema",
                "name": "group_summary",
                "strict": True,
                "schema": OUTPUT_SCHEMA,
            },
        },
    }


def parse_error_body(text: str) -> Dict[str, Optional[str]]:
    """Fields from an {"error": {...}} envelope, or {} when the body is not one."""
    try:
        data = json.loads(text)
    except (ValueError, TypeError):
        return {}
    err = data.get("error") if isinstance(data, dict) else None
    if not isinstance(err, dict):
        return {}

    def _str(key):
        v = err.get(key)
        return v if isinstance(v, str) else None

    return {
        "message": _str("message"),
        "code": _str("code"),
        "type": _str("type"),
        "param": _str("param"),
    }


def _retry_after(headers) -> Optional[float]:
    raw = headers.get("retry-after") if headers is not None else None
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


def error_from_response(resp) -> SummaryServiceError:
    status = resp.status_code or 0
    headers = resp.headers or {}
    request_id = (
        headers.get("x-request-id")
        or headers.get("x-requestid")
        or headers.get("request-id")
    )
    body = resp.text or ""
    parsed = parse_error_body(body)
    return SummaryServiceError(
        status,
        parsed.get("message") or f"OpenAI error (HTTP {status})",
        code=parsed.get("code"),
        type=parsed.get("type"),
        param=parsed.get("param"),
        request_id=request_id,
        raw=body[:RAW_BODY_LIMIT],
        retry_after=_retry_after(headers),
    )


def describe_failure(exc: Exception) -> str:
    """Short human-readable description for the error bullet."""
    if isinstance(exc, SummaryServiceError):
        parts = []
        if exc.status:
            parts.append(f"HTTP {exc.status}")
        if exc.code:
            parts.append(exc.code)
        elif exc.type:
            parts.append(exc.type)
        prefix = f"{' '.join(parts)}: " if parts else ""
        message = exc.message or exc.raw or "unknown error"
        out = f"{prefix}{_WS_RE.sub(' ', message).strip()}"
        if exc.request_id:
            out += f" (req_id={exc.request_id})"
    else:
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        out = _WS_RE.sub(" ", message).strip()
    return truncate(out, ERROR_TEXT_LIMIT)


def backoff_delay(attempt: int) -> float:
    return BACKOFF_BASE * (2 ** attempt) + random.uniform(0, BACKOFF_JITTER)


def extract_output_text(data: Any) -> str:
    """
    Locate the text payload in a response envelope.
    Handles Responses API (`output_text` or `output[].content[]`) and chat completions.
    """
    if not isinstance(data, dict):
        return ""
    if isinstance(data.get("output_text"), str) and data["output_text"]:
        return data["output_text"]

    for item in data.get("output") or []:
        if not isinstance(item, dict):
            continue
        for chunk in item.get("content") or []:
            if isinstance(chunk, dict) and chunk.get("type") == "output_text" and isinstance(chunk.get("text"), str):
                return chunk["text"]

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
    return ""


def parse_bullets(text: str) -> List[str]:
    """
    Bullets from the JSON payload. Raises SummaryFormatError for
    non-JSON text or a missing/non-list `bullets` field.
    """
    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        raise SummaryFormatError(
            "OpenAI returned invalid JSON",
            {"preview": truncate(text, 400)},
        )
    bullets = parsed.get("bullets") if isinstance(parsed, dict) else None
    if not isinstance(bullets, list):
        raise SummaryFormatError(
            "OpenAI response has no bullets array",
            {"preview": truncate(text, 400)},
        )
    return [b.strip() for b in bullets if isinstance(b, str) and b.strip()]


class SummaryClient:
    """
    Thin client for the Responses API with retry/backoff on transient failures.
    """
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        *,
        base_url: str = DEFAULT_BASE_URL,
        session=None,
        attempts: int = DEFAULT_ATTEMPTS,
        timeout: float = REQUEST_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is missing. Please add it to your .env file.")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.attempts = max(1, attempts)
        self.timeout = timeout
        self.sleep = sleep

    def post_with_retry(self, path: str, payload: Dict[str, Any]):
        """POST, retrying transient statuses and transport errors; raises SummaryServiceError."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        last_err: Optional[SummaryServiceError] = None

        for attempt in range(self.attempts):
            try:
                resp = self.session.post(url, headers=headers, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                last_err = SummaryServiceError(0, str(e) or e.__class__.__name__)
            else:
                if 200 <= resp.status_code < 300:
                    return resp
                last_err = error_from_response(resp)
                if not last_err.retryable:
                    raise last_err

            if attempt == self.attempts - 1:
                break
            delay = backoff_delay(attempt)
            if last_err.retry_after:
                delay = max(delay, last_err.retry_after)
            logger.warning(
                f"OpenAI attempt {attempt + 1}/{self.attempts} failed "
                f"({last_err.kind.value}, status={last_err.status}); retrying in {delay:.2f}s"
            )
            self.sleep(delay)

        raise last_err

    def summarize(self, kind: str, value: str, items: List[NewsItem]) -> Tuple[List[str], str]:
        """
        Return (bullets, model). Raises SummaryServiceError or SummaryFormatError.
        """
        payload = build_request(self.model, kind, value, items)
        logger.info(
            f"OpenAI -> request kind={kind} value={value} model={self.model} "
            f"items={len(items)} chars={len(payload['input'][1]['content'])}"
        )
        resp = self.post_with_retry("responses", payload)
        logger.info(f"OpenAI <- ok kind={kind} value={value} status={resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            raise SummaryFormatError("OpenAI response body is not JSON", {"preview": truncate(resp.text, 400)})

        bullets = parse_bullets(extract_output_text(data))
        if len(bullets) < MIN_BULLETS:
            logger.warning(f"OpenAI returned {len(bullets)} usable bullets for {value}; using fallback text")
            return sparse_bullets(value, len(items)), self.model
        return bullets[:MAX_BULLETS], self.model
