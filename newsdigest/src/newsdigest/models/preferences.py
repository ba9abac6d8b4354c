from typing import List
from pydantic import BaseModel, Field


class Preferences(BaseModel):
    """
    Tickers (uppercase) and topics to follow. Owned by the user, read-only to the pipeline.
    """
    tickers: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.tickers and not self.topics
