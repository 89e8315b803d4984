"""Transcript index built once per transcript.

The index holds the joined raw text, the joined normalized text and a
boundary map from normalized-text offsets back to segment indices, plus the
per-segment word lists the fuzzy matcher slides over and a q-gram posting
list it uses to skip windows that cannot reach the similarity floor. It is
a frozen dataclass of tuples and strings so concurrent quote lookups can
share one instance without locking. Rebuild it whenever the transcript changes.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from reelanchor.models import TranscriptSegment

from .text_normalizer import normalize_for_matching, normalize_whitespace, split_words

logger = logging.getLogger(__name__)

SegmentInput = Union[TranscriptSegment, dict[str, Any]]

# Length of the character q-grams posted in the index
QGRAM_SIZE = 3


@dataclass(frozen=True)
class SegmentBoundary:
    """Where one segment lives inside the joined normalized text.

    ``[start_pos, end_pos)`` includes the single space separating this
    segment from the previous non-empty one, so consecutive boundaries are
    contiguous and together cover the whole normalized text. The segment's
    own text starts at ``text_start_pos``.
    """

    segment_idx: int
    start_pos: int
    end_pos: int
    text_start_pos: int


@dataclass(frozen=True)
class TranscriptIndex:
    """Read-only lookup structure over a transcript."""

    segments: tuple[TranscriptSegment, ...]
    raw_text: str
    normalized_text: str
    normalized_segments: tuple[str, ...]
    boundaries: tuple[SegmentBoundary, ...]
    # Flattened word list with the owning segment of every word
    words: tuple[str, ...]
    word_segments: tuple[int, ...]
    segment_word_starts: tuple[int, ...]
    # Offset of every flattened word inside normalized_text
    word_char_starts: tuple[int, ...] = ()
    # q-gram -> sorted offsets in normalized_text; never mutated after build
    qgram_positions: dict[str, tuple[int, ...]] = field(repr=False, default_factory=dict)
    _boundary_ends: tuple[int, ...] = field(repr=False, default=())

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def is_empty(self) -> bool:
        return not self.segments

    @property
    def total_duration(self) -> float:
        """End time of the transcript (max segment end, 0 when empty)."""
        return max((seg.end for seg in self.segments), default=0.0)

    def segment_at_offset(self, offset: int) -> Optional[int]:
        """Resolve a normalized-text offset to its segment index.

        Binary search over boundary ends, O(log n). Returns None for offsets
        outside the text.
        """
        if offset < 0 or offset >= len(self.normalized_text):
            return None
        i = bisect_right(self._boundary_ends, offset)
        if i >= len(self.boundaries):
            return None
        return self.boundaries[i].segment_idx

    def locate(self, offset: int) -> Optional[tuple[int, int]]:
        """Resolve an offset to ``(segment_idx, offset within segment text)``.

        An offset that lands on a separator maps to position 0 of the
        segment that follows it.
        """
        idx = self.segment_at_offset(offset)
        if idx is None:
            return None
        boundary = self.boundaries[idx]
        return idx, max(0, offset - boundary.text_start_pos)

    def segment_for_time(self, seconds: float) -> Optional[int]:
        """First segment with ``start <= seconds <= start + duration``.

        Linear scan; transcripts are bounded in practice (a few thousand
        segments for multi-hour videos) and overlapping segments make the
        first containing one the expected answer.
        """
        for idx, seg in enumerate(self.segments):
            if seg.start <= seconds <= seg.end:
                return idx
        return None

    def segments_in_range(self, start: float, end: float) -> list[int]:
        """Indices of segments overlapping ``[start, end]``."""
        return [
            idx for idx, seg in enumerate(self.segments)
            if seg.start <= end and seg.end >= start
        ]

    def segments_near(self, seconds: float, radius: float) -> list[int]:
        """Indices of segments starting within ``radius`` of ``seconds``."""
        return [
            idx for idx, seg in enumerate(self.segments)
            if abs(seg.start - seconds) <= radius
        ]

    def joined_normalized(self, start_idx: int, end_idx: int) -> str:
        """Normalized text of segments ``start_idx..end_idx`` (inclusive)."""
        return " ".join(t for t in self.normalized_segments[start_idx:end_idx + 1] if t)

    def display_text(self, start_idx: int, end_idx: int) -> str:
        """Display text of segments ``start_idx..end_idx`` (inclusive)."""
        return normalize_whitespace(
            " ".join(seg.text for seg in self.segments[start_idx:end_idx + 1])
        )


def _coerce_segment(segment: SegmentInput) -> TranscriptSegment:
    if isinstance(segment, TranscriptSegment):
        return segment
    return TranscriptSegment.model_validate(segment)


def build_transcript_index(segments: Iterable[SegmentInput]) -> TranscriptIndex:
    """Build the index for a transcript.

    Args:
        segments: Chronologically ordered segments (models or plain dicts).

    Returns:
        TranscriptIndex. An empty input yields an empty index.
    """
    segs = tuple(_coerce_segment(s) for s in segments)

    parts: list[str] = []
    normalized_segments: list[str] = []
    boundaries: list[SegmentBoundary] = []
    words: list[str] = []
    word_char_starts: list[int] = []
    word_segments: list[int] = []
    segment_word_starts: list[int] = []
    pos = 0

    for idx, seg in enumerate(segs):
        norm = normalize_for_matching(seg.text)
        normalized_segments.append(norm)

        start_pos = pos
        if norm and pos > 0:
            parts.append(" ")
            pos += 1
        text_start_pos = pos
        parts.append(norm)
        pos += len(norm)
        boundaries.append(SegmentBoundary(idx, start_pos, pos, text_start_pos))

        segment_word_starts.append(len(words))
        seg_words = split_words(norm)
        offset = text_start_pos
        for word in seg_words:
            word_char_starts.append(offset)
            offset += len(word) + 1
        words.extend(seg_words)
        word_segments.extend([idx] * len(seg_words))

    normalized_text = "".join(parts)
    postings: dict[str, list[int]] = {}
    for p in range(len(normalized_text) - QGRAM_SIZE + 1):
        postings.setdefault(normalized_text[p:p + QGRAM_SIZE], []).append(p)

    index = TranscriptIndex(
        segments=segs,
        raw_text=" ".join(seg.text for seg in segs),
        normalized_text=normalized_text,
        normalized_segments=tuple(normalized_segments),
        boundaries=tuple(boundaries),
        words=tuple(words),
        word_segments=tuple(word_segments),
        segment_word_starts=tuple(segment_word_starts),
        word_char_starts=tuple(word_char_starts),
        qgram_positions={gram: tuple(offsets) for gram, offsets in postings.items()},
        _boundary_ends=tuple(b.end_pos for b in boundaries),
    )
    logger.debug(
        f"Built transcript index: {len(segs)} segments, {len(words)} words, "
        f"{len(index.normalized_text)} chars"
    )
    return index
