"""Alignment output models.

ResolvedSpan is what the player timeline consumes: a clickable
``{start, end, text, confidence}`` record. Citation is the chat-answer
counterpart, a numbered pointer from rendered text back to a timestamp.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .transcript import Quote


class MatchStrategy(str, Enum):
    """Which matching strategy produced a span."""
    exact = "exact"
    multi_exact = "multi_exact"
    fuzzy = "fuzzy"
    time_guided = "time_guided"
    timestamp_fallback = "timestamp_fallback"


class ResolvedSpan(BaseModel):
    """A time interval attributed to one or more quotes."""

    model_config = ConfigDict(extra="forbid")

    start: float = Field(ge=0, description="Start time in seconds")
    end: float = Field(ge=0, description="End time in seconds")
    text: str = Field(description="Display text of the covered segments")
    confidence: float = Field(ge=0, le=1)
    start_segment_idx: Optional[int] = Field(default=None, ge=0)
    end_segment_idx: Optional[int] = Field(default=None, ge=0)
    match_strategy: Optional[MatchStrategy] = None
    source_quotes: List[str] = Field(
        default_factory=list,
        description="Quotes that resolved into this span",
    )

    @property
    def duration(self) -> float:
        return self.end - self.start


class Citation(BaseModel):
    """A numbered reference from a chat answer to a transcript moment."""

    model_config = ConfigDict(extra="forbid")

    number: int = Field(ge=1, description="1-based, first-appearance order")
    timestamp: float = Field(ge=0, description="Cited start time in seconds")
    end_time: Optional[float] = Field(default=None, ge=0)
    text: str = Field(description="Text of the segment containing the timestamp")
    context: str = Field(default="", description="Answer text around the token")


class CitationExtraction(BaseModel):
    """Rewritten answer text plus the citations it references."""

    content: str
    citations: List[Citation] = Field(default_factory=list)


class TopicQuotes(BaseModel):
    """A highlight-reel topic as proposed by the LLM."""

    model_config = ConfigDict(extra="ignore")

    title: str
    description: str = ""
    quotes: List[Quote] = Field(default_factory=list)


class AlignedTopic(BaseModel):
    """A highlight-reel topic with its quotes anchored to the transcript."""

    id: str
    title: str
    description: str = ""
    duration: int = Field(ge=0, description="Rounded total seconds across segments")
    segments: List[ResolvedSpan] = Field(default_factory=list)
    quotes: List[Quote] = Field(default_factory=list)
