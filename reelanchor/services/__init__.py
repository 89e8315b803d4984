"""Services package for quote alignment logic."""

from .alignment_service import (
    AlignmentTimeoutError,
    align_quotes,
    align_quotes_async,
    align_single_quote,
    align_topics,
    align_topics_async,
)
from .citation_extractor import extract_citations
from .quote_matcher import (
    MatchOptions,
    MatchResult,
    calculate_similarity,
    find_quote,
    levenshtein_distance,
    match_quote,
)
from .span_resolver import (
    dedupe_spans,
    enforce_min_duration,
    merge_spans,
    resolve_match,
    resolve_timestamp_range,
)
from .text_normalizer import normalize_for_matching, normalize_whitespace, split_words
from .thresholds import DEFAULT_THRESHOLDS, Thresholds, load_thresholds
from .transcript_index import SegmentBoundary, TranscriptIndex, build_transcript_index

__all__ = [
    # Batch alignment
    "AlignmentTimeoutError",
    "align_quotes",
    "align_quotes_async",
    "align_single_quote",
    "align_topics",
    "align_topics_async",
    # Citations
    "extract_citations",
    # Matcher
    "MatchOptions",
    "MatchResult",
    "calculate_similarity",
    "find_quote",
    "levenshtein_distance",
    "match_quote",
    # Span resolver
    "dedupe_spans",
    "enforce_min_duration",
    "merge_spans",
    "resolve_match",
    "resolve_timestamp_range",
    # Normalization
    "normalize_for_matching",
    "normalize_whitespace",
    "split_words",
    # Configuration
    "DEFAULT_THRESHOLDS",
    "Thresholds",
    "load_thresholds",
    # Index
    "SegmentBoundary",
    "TranscriptIndex",
    "build_transcript_index",
]
