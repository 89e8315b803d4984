"""Span resolution and merging.

Turns matcher output into player-ready time spans:

- segment range → seconds, optionally widened by a few segments of context
- a minimum viewable duration, reached by moving ``end`` forward only so the
  jump target the user expects never shifts
- merging of near-adjacent spans so the timeline does not show a burst of
  flickering micro-highlights for quotes that belong together
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from reelanchor.models import MatchStrategy, ResolvedSpan

from .quote_matcher import MatchResult
from .thresholds import DEFAULT_THRESHOLDS, Thresholds
from .transcript_index import TranscriptIndex

logger = logging.getLogger(__name__)


def enforce_min_duration(
    span: ResolvedSpan,
    min_span_seconds: float = DEFAULT_THRESHOLDS.min_span_seconds,
) -> ResolvedSpan:
    """Extend ``end`` so the span lasts at least ``min_span_seconds``.

    ``start`` is never moved. The floor wins over the transcript's total
    duration when the transcript itself is shorter than the floor.
    """
    if span.end - span.start >= min_span_seconds:
        return span
    return span.model_copy(update={"end": span.start + min_span_seconds})


def _span_for_segments(
    index: TranscriptIndex,
    start_idx: int,
    end_idx: int,
    confidence: float,
    strategy: MatchStrategy,
    source_quotes: list[str],
) -> ResolvedSpan:
    start_segment = index.segments[start_idx]
    end_segment = index.segments[end_idx]
    return ResolvedSpan(
        start=start_segment.start,
        end=max(start_segment.start, end_segment.end),
        text=index.display_text(start_idx, end_idx),
        confidence=confidence,
        start_segment_idx=start_idx,
        end_segment_idx=end_idx,
        match_strategy=strategy,
        source_quotes=source_quotes,
    )


def resolve_match(
    match: MatchResult,
    index: TranscriptIndex,
    with_context: bool = False,
    enforce_floor: bool = True,
    source_quote: Optional[str] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> ResolvedSpan:
    """Convert a MatchResult into a ResolvedSpan.

    Args:
        match: Matcher output.
        index: Index the match was made against.
        with_context: Widen the span by ``context_segments`` segments on
            each side, for "viewing context" rather than a tight citation.
        enforce_floor: Apply the minimum duration. Batch alignment turns
            this off and applies the floor after merging.
        source_quote: Quote text to attribute the span to.
        thresholds: Threshold set to use.

    Returns:
        ResolvedSpan covering the matched segments.
    """
    start_idx = match.start_segment_idx
    end_idx = match.end_segment_idx
    if with_context:
        start_idx = max(0, start_idx - thresholds.context_segments)
        end_idx = min(len(index) - 1, end_idx + thresholds.context_segments)

    span = _span_for_segments(
        index,
        start_idx,
        end_idx,
        confidence=match.confidence,
        strategy=match.match_strategy,
        source_quotes=[source_quote] if source_quote else [],
    )
    if enforce_floor:
        span = enforce_min_duration(span, thresholds.min_span_seconds)
    return span


def resolve_timestamp_range(
    start: float,
    end: float,
    index: TranscriptIndex,
    source_quote: Optional[str] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[ResolvedSpan]:
    """Build a low-confidence span from a quote's stated time range.

    Used when no strategy matched the quote text but the caller would rather
    show an unverified span than drop the quote. Returns None when no
    segment overlaps the range.
    """
    overlapping = index.segments_in_range(start, end)
    if not overlapping:
        return None
    return _span_for_segments(
        index,
        overlapping[0],
        overlapping[-1],
        confidence=thresholds.timestamp_fallback_confidence,
        strategy=MatchStrategy.timestamp_fallback,
        source_quotes=[source_quote] if source_quote else [],
    )


def dedupe_spans(spans: Iterable[ResolvedSpan]) -> list[ResolvedSpan]:
    """Collapse spans covering the same segment range, unioning their quotes."""
    by_range: dict[tuple, ResolvedSpan] = {}
    for span in spans:
        key = (span.start_segment_idx, span.end_segment_idx, span.start, span.end)
        existing = by_range.get(key)
        if existing is None:
            by_range[key] = span
            continue
        by_range[key] = existing.model_copy(update={
            "confidence": max(existing.confidence, span.confidence),
            "source_quotes": _union(existing.source_quotes, span.source_quotes),
        })
    return list(by_range.values())


def _union(first: list[str], second: list[str]) -> list[str]:
    merged = list(first)
    for item in second:
        if item not in merged:
            merged.append(item)
    return merged


def merge_spans(
    spans: Iterable[ResolvedSpan],
    merge_gap: float = DEFAULT_THRESHOLDS.merge_gap_seconds,
    separator: str = DEFAULT_THRESHOLDS.merge_separator,
) -> list[ResolvedSpan]:
    """Merge spans whose gap is at most ``merge_gap`` seconds.

    Spans are sorted by start. A span that starts no later than
    ``previous.end + merge_gap`` is folded into the previous one: the end
    becomes the larger end, texts are joined with ``separator`` (a span that
    lies entirely inside the previous one adds no text), source quotes are
    unioned and the confidence drops to the lower of the two.
    """
    ordered = sorted(spans, key=lambda s: (s.start, s.end))
    merged: list[ResolvedSpan] = []

    for span in ordered:
        if not merged:
            merged.append(span)
            continue
        last = merged[-1]
        if span.start - last.end > merge_gap:
            merged.append(span)
            continue

        contained = span.end <= last.end
        end_idx = last.end_segment_idx
        if span.end_segment_idx is not None and (end_idx is None or span.end_segment_idx > end_idx):
            end_idx = span.end_segment_idx
        strategy = last.match_strategy if last.match_strategy == span.match_strategy else None
        merged[-1] = last.model_copy(update={
            "end": max(last.end, span.end),
            "text": last.text if contained else f"{last.text}{separator}{span.text}",
            "confidence": min(last.confidence, span.confidence),
            "end_segment_idx": end_idx,
            "match_strategy": strategy,
            "source_quotes": _union(last.source_quotes, span.source_quotes),
        })

    if len(merged) < len(ordered):
        logger.debug(f"Merged {len(ordered)} spans into {len(merged)}")
    return merged
