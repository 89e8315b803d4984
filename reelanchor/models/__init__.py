"""Alignment models package.

Note: keep these as the source-of-truth schemas for OpenAPI + frontend types.
"""

from .transcript import Quote, TranscriptSegment
from .alignment import (
    AlignedTopic,
    Citation,
    CitationExtraction,
    MatchStrategy,
    ResolvedSpan,
    TopicQuotes,
)

__all__ = [
    "Quote",
    "TranscriptSegment",
    "AlignedTopic",
    "Citation",
    "CitationExtraction",
    "MatchStrategy",
    "ResolvedSpan",
    "TopicQuotes",
]
