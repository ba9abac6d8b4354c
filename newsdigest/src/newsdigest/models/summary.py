from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

GroupKind = Literal["ticker", "topic"]

MODEL_NONE = "none"
MODEL_ERROR = "openai_error"


class SummaryOutcome(str, Enum):
    FRESH = "fresh"
    EMPTY = "empty"
    ERROR = "error"

    @classmethod
    def from_model(cls, model: str) -> "SummaryOutcome":
        if model == MODEL_NONE:
            return cls.EMPTY
        if model == MODEL_ERROR:
            return cls.ERROR
        return cls.FRESH


class TopLink(BaseModel):
    title: str
    url: str
    source: str = ""
    published_at: datetime


class GroupSummary(BaseModel):
    """
    Stored summary for one (date, kind, value).
    `model` is the model name, or a sentinel for sparse/failed groups.
    """
    date: str
    kind: GroupKind
    value: str
    bullets: List[str]
    top_links: List[TopLink] = Field(default_factory=list)
    items_count: int = 0
    model: str
    created_at: Optional[str] = None

    @property
    def outcome(self) -> SummaryOutcome:
        return SummaryOutcome.from_model(self.model)

    @property
    def needs_refresh(self) -> bool:
        return self.outcome is not SummaryOutcome.FRESH
