"""Inline citation extraction for chat answers.

The chat model is told to cite ``[MM:SS]`` or ``[MM:SS-MM:SS]`` after each
claim. This module turns those tokens into numbered citations:

- each token's start time must fall inside a transcript segment, otherwise
  the token is dropped (precision over coverage, no nearest-segment guess)
- the same ``(start, end)`` pair always gets the same number, assigned in
  order of first appearance
- tokens are rewritten to ``[n]``; dropped tokens are removed so no raw
  timestamp the UI cannot act on leaks through
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence, Union

from reelanchor.models import Citation, CitationExtraction

from .thresholds import DEFAULT_THRESHOLDS, Thresholds
from .timestamps import parse_timestamp
from .transcript_index import SegmentInput, TranscriptIndex, build_transcript_index

logger = logging.getLogger(__name__)

_TIME = r"(?:\d{1,2}:)?\d{1,2}:\d{2}"
TIMESTAMP_TOKEN_RE = re.compile(rf"\[({_TIME})(?:\s*-\s*({_TIME}))?\]")

# Runs of spaces/tabs, leaving newlines alone
_INLINE_WHITESPACE_RE = re.compile(r"[^\S\n]+")

CitationKey = tuple[int, Optional[int]]


def _token_key(match: re.Match) -> Optional[CitationKey]:
    start = parse_timestamp(match.group(1))
    if start is None:
        return None
    if match.group(2) is None:
        return start, None
    end = parse_timestamp(match.group(2))
    if end is None:
        return None
    return start, end


def _context_around(
    answer: str,
    match: re.Match,
    thresholds: Thresholds,
) -> str:
    """Answer text around a token, other tokens stripped, capped in words."""
    radius = thresholds.citation_context_chars
    window = answer[max(0, match.start() - radius):match.end() + radius]
    window = TIMESTAMP_TOKEN_RE.sub("", window).strip()
    return " ".join(window.split()[:thresholds.citation_context_words])


def extract_citations(
    answer: str,
    transcript: Union[TranscriptIndex, Sequence[SegmentInput]],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> CitationExtraction:
    """Replace timestamp tokens in ``answer`` with numbered citations.

    Args:
        answer: Free-form LLM answer text.
        transcript: Transcript index, or the raw segments to build one from.
        thresholds: Threshold set to use.

    Returns:
        CitationExtraction with the rewritten content and the citations in
        numbering order.
    """
    if not answer:
        return CitationExtraction(content="", citations=[])

    index = transcript if isinstance(transcript, TranscriptIndex) else build_transcript_index(transcript)

    numbers: dict[CitationKey, int] = {}
    citations: list[Citation] = []
    dropped = 0

    def replace(match: re.Match) -> str:
        nonlocal dropped
        key = _token_key(match)
        if key is None:
            dropped += 1
            return ""
        if key in numbers:
            return f"[{numbers[key]}]"

        segment_idx = index.segment_for_time(key[0])
        if segment_idx is None:
            dropped += 1
            return ""

        number = len(citations) + 1
        numbers[key] = number
        citations.append(Citation(
            number=number,
            timestamp=key[0],
            end_time=key[1],
            text=index.segments[segment_idx].text,
            context=_context_around(answer, match, thresholds),
        ))
        return f"[{number}]"

    content = TIMESTAMP_TOKEN_RE.sub(replace, answer)
    content = _INLINE_WHITESPACE_RE.sub(" ", content).strip()

    if dropped:
        logger.info(f"Dropped {dropped} timestamp token(s) with no matching segment")
    return CitationExtraction(content=content, citations=citations)
