"""Centralized threshold definitions for quote alignment.

Single source of truth for every matching and span-shaping constant. The
values were tuned empirically against real LLM output; treat them as knobs,
not derived quantities. Each one can be overridden through an environment
variable named ``REELANCHOR_<FIELD_NAME_UPPER>``.
"""

import os
from dataclasses import dataclass, fields

ENV_PREFIX = "REELANCHOR_"


@dataclass(frozen=True)
class Thresholds:
    """Threshold configuration for the matcher, resolver and citation extractor."""

    # =========================================================================
    # Matcher
    # =========================================================================

    # Quotes with fewer normalized words are rejected as too ambiguous
    min_quote_words: int = 3

    exact_confidence: float = 1.0
    multi_exact_confidence: float = 0.95

    # Sliding-window fuzzy similarity floor (global search)
    fuzzy_min_similarity: float = 0.8

    # Fuzzy floor when searching only inside the quote's stated time range
    hinted_min_similarity: float = 0.75

    # Segments on either side of the stated range included in the hinted search
    hinted_range_padding: int = 2

    # Ceiling on consecutive segments joined per candidate window
    max_segment_window: int = 5

    # Time-guided search radius around the stated start time
    time_guided_radius_seconds: float = 30.0
    time_guided_max_span: int = 3
    time_guided_phrase_words: int = 3
    time_guided_phrase_confidence: float = 0.7
    time_guided_min_similarity: float = 0.6

    # =========================================================================
    # Span resolver
    # =========================================================================

    min_span_seconds: float = 15.0
    merge_gap_seconds: float = 5.0
    context_segments: int = 2
    merge_separator: str = " ... "
    timestamp_fallback_confidence: float = 0.5

    # =========================================================================
    # Citation extractor
    # =========================================================================

    citation_context_chars: int = 150
    citation_context_words: int = 40

    # =========================================================================
    # Batch alignment
    # =========================================================================

    alignment_timeout_seconds: float = 30.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_thresholds(environ: dict | None = None) -> Thresholds:
    """Build Thresholds, applying ``REELANCHOR_*`` environment overrides.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        Thresholds with overrides applied.

    Raises:
        ValueError: If an override cannot be converted to the field's type.
    """
    env = os.environ if environ is None else environ
    overrides = {}
    for f in fields(Thresholds):
        raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
        if raw is None:
            continue
        default = f.default
        if isinstance(default, bool):
            overrides[f.name] = raw.lower() == "true"
        elif isinstance(default, int):
            overrides[f.name] = int(raw)
        elif isinstance(default, float):
            overrides[f.name] = float(raw)
        else:
            overrides[f.name] = raw
    return Thresholds(**overrides)


# Default thresholds for production use
DEFAULT_THRESHOLDS = load_thresholds()
