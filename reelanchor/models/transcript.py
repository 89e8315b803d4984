"""Transcript input models.

Segments arrive from the transcript fetcher in chronological order and are
treated as immutable for the lifetime of one alignment request. Quotes come
from the LLM and carry no guarantees at all.

Pydantic v2. Extra fields are ignored so upstream payloads (which may carry
``lang`` or ``offset`` keys) validate without pre-processing.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TranscriptSegment(BaseModel):
    """One timed unit of transcript text."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    text: str = Field(default="", description="Raw caption text")
    start: float = Field(ge=0, description="Start time in seconds")
    duration: float = Field(default=0.0, ge=0, description="Duration in seconds")

    @property
    def end(self) -> float:
        return self.start + self.duration


class Quote(BaseModel):
    """A quote proposed by the LLM, optionally with a [MM:SS-MM:SS] hint."""

    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[str] = Field(
        default=None,
        description="Approximate range, e.g. '[03:10-04:05]'",
    )
    text: str = Field(default="", description="Quote text, possibly paraphrased")
