from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from .news import AccumulationStats


class Paging(BaseModel):
    offset: int = 0
    limit: Optional[int] = None
    final: bool = False


class SummaryCounts(BaseModel):
    fresh: int = 0
    empty: int = 0
    error: int = 0
    skipped: int = 0


class RunResult(BaseModel):
    """
    Outcome of one pipeline invocation, as reported to the scheduler.
    """
    ok: bool
    date: Optional[str] = None
    error: Optional[str] = None
    stats: Optional[AccumulationStats] = None
    final_only: bool = False
    sample: List[Dict[str, Any]] = Field(default_factory=list)
    paging: Paging = Field(default_factory=Paging)
    summaries: Optional[SummaryCounts] = None
