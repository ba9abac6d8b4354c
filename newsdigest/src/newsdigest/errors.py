import json
import traceback
from enum import Enum
from typing import Optional

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    TERMINAL = "terminal"
    TRANSPORT = "transport"


def classify_status(status: int) -> FailureKind:
    """Map an HTTP status (0 = no response) to a failure kind."""
    if not status:
        return FailureKind.TRANSPORT
    if status in RETRYABLE_STATUSES:
        return FailureKind.TRANSIENT
    return FailureKind.TERMINAL


class NewsDigestError(Exception):
    """Base exception for newsdigest"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class ValidationError(NewsDigestError):
    """Input validation errors"""
    pass

class ConfigError(NewsDigestError):
    """Missing credentials or empty preferences"""
    pass

class ProviderError(NewsDigestError):
    """External provider errors"""
    pass

class StoreError(NewsDigestError):
    """Storage read/write failures"""
    pass

class UnknownError(NewsDigestError):
    """Unexpected errors"""
    pass


class SummaryServiceError(ProviderError):
    """
    Failed call to the summarization service.
    status is the HTTP status, or 0 when no response was received.
    """
    def __init__(
        self,
        status: int,
        message: str,
        *,
        code: Optional[str] = None,
        type: Optional[str] = None,
        param: Optional[str] = None,
        request_id: Optional[str] = None,
        raw: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        self.status = status
        self.code = code
        self.type = type
        self.param = param
        self.request_id = request_id
        self.raw = raw
        self.retry_after = retry_after
        details = {
            k: v for k, v in {
                "status": status,
                "code": code,
                "type": type,
                "param": param,
                "request_id": request_id,
            }.items() if v is not None
        }
        super().__init__(message or f"OpenAI error (HTTP {status})", details)

    @property
    def kind(self) -> FailureKind:
        return classify_status(self.status)

    @property
    def retryable(self) -> bool:
        return self.kind is not FailureKind.TERMINAL


class SummaryFormatError(ProviderError):
    """The service answered, but not with the agreed JSON shape"""
    pass


def format_error(e: Exception) -> str:
    """Format exception as a JSON error envelope"""

    if isinstance(e, NewsDigestError):
        error_type = e.__class__.__name__
        message = e.message
        details = e.details
    else:
        error_type = "UnknownError"
        message = str(e)
        details = {
            "traceback": traceback.format_exc().splitlines()
        }

    payload = {
        "ok": False,
        "error": {
            "type": error_type,
            "message": message,
            "details": details
        },
        "meta": {
            "version": 1
        }
    }

    return json.dumps(payload, indent=2)
