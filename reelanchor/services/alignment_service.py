"""Batch quote alignment.

Aligns a batch of LLM quotes against one transcript: the index is built
once, each quote is matched and resolved independently, then the spans are
deduplicated, merged and given the minimum viewable duration.

A quote that fails to resolve never affects the others. No-match is the
normal outcome for a hallucinated quote and is simply omitted (or replaced
by a timestamp-only span when the caller asks for that). A malformed quote
is logged and skipped the same way, as is an unexpected error while
processing one quote. The async variants share one deadline across the
batch and keep whatever finished in time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from reelanchor.models import AlignedTopic, Quote, ResolvedSpan, TopicQuotes

from .quote_matcher import match_quote
from .span_resolver import (
    dedupe_spans,
    enforce_min_duration,
    merge_spans,
    resolve_match,
    resolve_timestamp_range,
)
from .thresholds import DEFAULT_THRESHOLDS, Thresholds
from .timestamps import parse_timestamp_range
from .transcript_index import SegmentInput, TranscriptIndex, build_transcript_index

logger = logging.getLogger(__name__)

TranscriptInput = Union[TranscriptIndex, Sequence[SegmentInput]]


class AlignmentTimeoutError(Exception):
    """Raised when a batch alignment exceeds its time budget."""

    def __init__(self, timeout: float, quote_count: int):
        self.timeout = timeout
        self.quote_count = quote_count
        super().__init__(
            f"Aligning {quote_count} quote(s) exceeded the {timeout:g}s time budget"
        )


def _ensure_index(transcript: TranscriptInput) -> TranscriptIndex:
    if isinstance(transcript, TranscriptIndex):
        return transcript
    return build_transcript_index(transcript)


def _coerce_quote(quote: Union[Quote, dict, str]) -> Optional[Quote]:
    """Validate one LLM quote; malformed input is logged and dropped."""
    if isinstance(quote, Quote):
        return quote
    if isinstance(quote, str):
        return Quote(text=quote)
    try:
        return Quote.model_validate(quote)
    except PydanticValidationError as e:
        logger.warning(
            f"Skipping malformed quote ({e.error_count()} validation errors): {quote!r:.120}"
        )
        return None


def _coerce_quotes(quotes: Iterable[Union[Quote, dict, str]]) -> list[Quote]:
    return [q for q in (_coerce_quote(raw) for raw in quotes) if q is not None]


def _coerce_topic(raw: Union[TopicQuotes, dict]) -> Optional[TopicQuotes]:
    """Validate a topic, keeping its well-formed quotes.

    Quotes are validated one by one so a single bad quote does not sink the
    topic. Returns None when the topic itself is malformed.
    """
    if isinstance(raw, TopicQuotes):
        return raw
    if not isinstance(raw, dict):
        logger.warning(f"Skipping malformed topic: {raw!r:.120}")
        return None
    raw_quotes = raw.get("quotes") or []
    if not isinstance(raw_quotes, list):
        raw_quotes = []
    try:
        topic = TopicQuotes.model_validate({**raw, "quotes": []})
    except PydanticValidationError as e:
        logger.warning(f"Skipping malformed topic ({e.error_count()} validation errors)")
        return None
    return topic.model_copy(update={"quotes": _coerce_quotes(raw_quotes)})


def align_single_quote(
    quote: Quote,
    index: TranscriptIndex,
    with_context: bool = True,
    fallback_to_timestamp: bool = False,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[ResolvedSpan]:
    """Match and resolve one quote, without the duration floor.

    Returns:
        ResolvedSpan, or None when the quote could not be placed.
    """
    text = quote.text.strip()
    if not text:
        return None

    match = match_quote(quote, index, thresholds)
    if match is not None:
        return resolve_match(
            match,
            index,
            with_context=with_context,
            enforce_floor=False,
            source_quote=text,
            thresholds=thresholds,
        )

    if fallback_to_timestamp:
        time_range = parse_timestamp_range(quote.timestamp)
        if time_range is not None:
            return resolve_timestamp_range(
                *time_range, index, source_quote=text, thresholds=thresholds
            )
    return None


def _safe_align(
    quote: Quote,
    index: TranscriptIndex,
    with_context: bool,
    fallback_to_timestamp: bool,
    thresholds: Thresholds,
) -> Optional[ResolvedSpan]:
    try:
        return align_single_quote(quote, index, with_context, fallback_to_timestamp, thresholds)
    except Exception:
        logger.exception(f"Failed to align quote: {quote.text[:80]!r}")
        return None


def _finalize(
    spans: Iterable[Optional[ResolvedSpan]],
    thresholds: Thresholds,
) -> list[ResolvedSpan]:
    resolved = [span for span in spans if span is not None]
    merged = merge_spans(
        dedupe_spans(resolved),
        merge_gap=thresholds.merge_gap_seconds,
        separator=thresholds.merge_separator,
    )
    return [enforce_min_duration(span, thresholds.min_span_seconds) for span in merged]


def align_quotes(
    transcript: TranscriptInput,
    quotes: Iterable[Union[Quote, dict, str]],
    with_context: bool = True,
    fallback_to_timestamp: bool = False,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> list[ResolvedSpan]:
    """Align a batch of quotes against one transcript.

    Args:
        transcript: Transcript index, or segments to build it from.
        quotes: Quotes (models, dicts, or bare strings). Malformed entries
            are skipped.
        with_context: Widen each span by a few segments of viewing context.
        fallback_to_timestamp: Use the stated timestamp range when the text
            cannot be matched.
        thresholds: Threshold set to use.

    Returns:
        Merged spans sorted by start, each at least the minimum duration.
    """
    index = _ensure_index(transcript)
    quote_list = _coerce_quotes(quotes)
    spans = [
        _safe_align(q, index, with_context, fallback_to_timestamp, thresholds)
        for q in quote_list
    ]
    matched = sum(1 for s in spans if s is not None)
    logger.info(f"Aligned {matched}/{len(quote_list)} quotes against {len(index)} segments")
    return _finalize(spans, thresholds)


async def _align_concurrently(
    quote_list: list[Quote],
    index: TranscriptIndex,
    with_context: bool,
    fallback_to_timestamp: bool,
    thresholds: Thresholds,
    budget: float,
) -> list[Optional[ResolvedSpan]]:
    """Align quotes in worker threads under one shared deadline.

    Quotes still running at the deadline are treated as unmatched; the
    results that did finish are returned in input order.

    Raises:
        AlignmentTimeoutError: If not a single quote finished in time.
    """
    if not quote_list:
        return []
    tasks = [
        asyncio.create_task(asyncio.to_thread(
            _safe_align, q, index, with_context, fallback_to_timestamp, thresholds
        ))
        for q in quote_list
    ]
    done, pending = await asyncio.wait(tasks, timeout=budget)
    for task in pending:
        task.cancel()

    if pending:
        logger.warning(
            f"{len(pending)}/{len(tasks)} quotes still aligning after {budget:g}s; "
            f"keeping the {len(done)} that finished"
        )
        if not done:
            raise AlignmentTimeoutError(budget, len(tasks))
    return [task.result() if task in done else None for task in tasks]


async def align_quotes_async(
    transcript: TranscriptInput,
    quotes: Iterable[Union[Quote, dict, str]],
    with_context: bool = True,
    fallback_to_timestamp: bool = False,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    timeout: Optional[float] = None,
) -> list[ResolvedSpan]:
    """Async variant of ``align_quotes``.

    Quotes are matched in worker threads against the shared, read-only
    index, so the event loop stays responsive during the fuzzy search. The
    batch is bounded by ``timeout`` (defaults to the configured
    ``alignment_timeout_seconds``); quotes that miss the deadline are
    dropped and the rest are returned.

    Raises:
        AlignmentTimeoutError: If no quote finishes in time.
    """
    index = _ensure_index(transcript)
    quote_list = _coerce_quotes(quotes)
    budget = thresholds.alignment_timeout_seconds if timeout is None else timeout

    spans = await _align_concurrently(
        quote_list, index, with_context, fallback_to_timestamp, thresholds, budget
    )
    matched = sum(1 for s in spans if s is not None)
    logger.info(f"Aligned {matched}/{len(quote_list)} quotes against {len(index)} segments")
    return _finalize(spans, thresholds)


def _aligned_topic(
    position: int,
    topic: TopicQuotes,
    spans: list[ResolvedSpan],
) -> AlignedTopic:
    total = sum(span.end - span.start for span in spans)
    return AlignedTopic(
        id=f"topic-{position}",
        title=topic.title,
        description=topic.description,
        duration=round(total),
        segments=spans,
        quotes=topic.quotes,
    )


def _coerce_topics(topics: Iterable[Union[TopicQuotes, dict]]) -> list[tuple[int, TopicQuotes]]:
    """Valid topics paired with their input position (used for the topic id)."""
    coerced = []
    for position, raw in enumerate(topics):
        topic = _coerce_topic(raw)
        if topic is not None:
            coerced.append((position, topic))
    return coerced


def align_topics(
    transcript: TranscriptInput,
    topics: Iterable[Union[TopicQuotes, dict]],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> list[AlignedTopic]:
    """Anchor every highlight-reel topic's quotes to the transcript.

    The index is built once and shared across topics. Each topic gets its own
    merged span list and a rounded total duration. Malformed topics are
    skipped; the remaining ones keep ids based on their input position.
    """
    index = _ensure_index(transcript)
    return [
        _aligned_topic(
            position,
            topic,
            align_quotes(index, topic.quotes, with_context=True, thresholds=thresholds),
        )
        for position, topic in _coerce_topics(topics)
    ]


async def align_topics_async(
    transcript: TranscriptInput,
    topics: Iterable[Union[TopicQuotes, dict]],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    timeout: Optional[float] = None,
) -> list[AlignedTopic]:
    """Async variant of ``align_topics``.

    Every quote of every topic runs under one shared deadline. Quotes that
    miss it are dropped from their topic's spans.

    Raises:
        AlignmentTimeoutError: If no quote finishes in time.
    """
    index = _ensure_index(transcript)
    coerced = _coerce_topics(topics)
    budget = thresholds.alignment_timeout_seconds if timeout is None else timeout

    flat = [quote for _, topic in coerced for quote in topic.quotes]
    spans = await _align_concurrently(flat, index, True, False, thresholds, budget)

    aligned: list[AlignedTopic] = []
    cursor = 0
    for position, topic in coerced:
        topic_spans = spans[cursor:cursor + len(topic.quotes)]
        cursor += len(topic.quotes)
        aligned.append(_aligned_topic(position, topic, _finalize(topic_spans, thresholds)))
    logger.info(f"Aligned {len(aligned)} topics ({len(flat)} quotes) against {len(index)} segments")
    return aligned
