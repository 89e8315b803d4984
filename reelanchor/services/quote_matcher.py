"""Multi-strategy quote matcher.

Locates an LLM-produced quote inside a transcript. The quote may be
verbatim, straddle segment boundaries, drift in wording, or be invented
outright, so strategies are tried from most to least exact:

1. exact substring inside one segment (confidence 1.0)
2. exact substring across 2..5 consecutive segments (confidence 0.95)
3. sliding-window fuzzy match scored by normalized edit distance
4. time-guided relaxed search near the quote's stated timestamp

The first strategy that clears its own bar wins. There is no global
maximum search across strategies: an exact hit always beats an
approximate one, and runtime stays predictable. A quote nobody said is an
expected outcome, reported as ``None`` rather than an exception.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from reelanchor.models import MatchStrategy, Quote

from .text_normalizer import normalize_for_matching, split_words
from .thresholds import DEFAULT_THRESHOLDS, Thresholds
from .timestamps import parse_timestamp_range
from .transcript_index import QGRAM_SIZE, TranscriptIndex

logger = logging.getLogger(__name__)

STRATEGY_ALL = "all"


@dataclass(frozen=True)
class MatchResult:
    """Segment/character range a quote was matched to.

    Character offsets index the normalized text of the start segment
    (inclusive) and of the end segment (exclusive).
    """

    start_segment_idx: int
    end_segment_idx: int
    start_char_offset: int
    end_char_offset: int
    confidence: float
    match_strategy: MatchStrategy

    @property
    def segment_count(self) -> int:
        return self.end_segment_idx - self.start_segment_idx + 1


@dataclass(frozen=True)
class MatchOptions:
    """Knobs for a single ``find_quote`` call.

    Attributes:
        strategy: ``"all"`` for the full cascade, or one MatchStrategy value
            to run that strategy alone.
        min_similarity: Fuzzy floor; defaults to the configured threshold.
        max_segment_window: Most consecutive segments one match may span.
        start_idx: First segment index eligible for matching.
        end_idx: Last segment index eligible for matching (inclusive).
        time_hint: Stated ``(start, end)`` seconds of the quote, if any.
        thresholds: Threshold set to use.
    """

    strategy: str = STRATEGY_ALL
    min_similarity: Optional[float] = None
    max_segment_window: Optional[int] = None
    start_idx: int = 0
    end_idx: Optional[int] = None
    time_hint: Optional[tuple[float, float]] = None
    thresholds: Thresholds = field(default=DEFAULT_THRESHOLDS)

    @property
    def similarity_floor(self) -> float:
        if self.min_similarity is not None:
            return self.min_similarity
        return self.thresholds.fuzzy_min_similarity

    @property
    def window(self) -> int:
        if self.max_segment_window is not None:
            return max(1, self.max_segment_window)
        return self.thresholds.max_segment_window


@dataclass(frozen=True)
class _Query:
    normalized: str
    words: tuple[str, ...]
    qgrams: Counter


# ==============================================================================
# Edit distance
# ==============================================================================

def levenshtein_distance(a: str, b: str, max_distance: Optional[int] = None) -> int:
    """Levenshtein distance between two strings.

    With ``max_distance`` set, only the diagonal band of that width is
    computed and the scan stops as soon as every cell in a row exceeds it;
    any distance above the cut-off is reported as ``max_distance + 1``.
    Results at or below the cut-off are exact.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    n, m = len(a), len(b)
    if m == 0:
        return n if max_distance is None else min(n, max_distance + 1)

    if max_distance is None:
        previous = list(range(m + 1))
        for i in range(1, n + 1):
            ca = a[i - 1]
            current = [i] + [0] * m
            for j in range(1, m + 1):
                cost = 0 if ca == b[j - 1] else 1
                current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            previous = current
        return previous[m]

    k = max_distance
    if n - m > k:
        return k + 1

    over = k + 1
    previous = [j if j <= k else over for j in range(m + 1)]
    for i in range(1, n + 1):
        ca = a[i - 1]
        lo = max(1, i - k)
        hi = min(m, i + k)
        current = [over] * (m + 1)
        current[0] = i if i <= k else over
        row_min = current[0]
        for j in range(lo, hi + 1):
            cost = 0 if ca == b[j - 1] else 1
            value = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            if value > over:
                value = over
            current[j] = value
            if value < row_min:
                row_min = value
        if row_min > k:
            return over
        previous = current
    return min(previous[m], over)


def calculate_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1]: ``(maxLen - levenshtein(a, b)) / maxLen``."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein_distance(a, b)) / longest


def _qgrams(text: str) -> Counter:
    return Counter(text[i:i + QGRAM_SIZE] for i in range(len(text) - QGRAM_SIZE + 1))


def _similarity_at_least(query: _Query, candidate: str, floor: float) -> Optional[float]:
    """Similarity of ``candidate`` to the query, or None if below ``floor``.

    Filters run cheapest first and never reject a candidate that would
    pass: the length difference bounds the distance from below, and an edit
    destroys at most q of the query's q-grams, so a candidate within
    distance k shares at least ``len(query) - q + 1 - k*q`` of them.
    """
    text = query.normalized
    longest = max(len(text), len(candidate))
    if longest == 0:
        return 1.0
    max_edits = int((1.0 - floor) * longest + 1e-9)
    if abs(len(text) - len(candidate)) > max_edits:
        return None

    required = (len(text) - QGRAM_SIZE + 1) - max_edits * QGRAM_SIZE
    if required > 0:
        shared = sum((query.qgrams & _qgrams(candidate)).values())
        if shared < required:
            return None

    distance = levenshtein_distance(text, candidate, max_distance=max_edits)
    if distance > max_edits:
        return None
    return (longest - distance) / longest


# ==============================================================================
# Strategies
# ==============================================================================

def _search_bounds(index: TranscriptIndex, options: MatchOptions) -> tuple[int, int]:
    """Inclusive segment range eligible for matching."""
    lo = max(0, options.start_idx)
    hi = len(index) - 1 if options.end_idx is None else min(len(index) - 1, options.end_idx)
    return lo, hi


def _match_exact(query: _Query, index: TranscriptIndex, options: MatchOptions) -> Optional[MatchResult]:
    """Quote appears verbatim inside one segment."""
    lo, hi = _search_bounds(index, options)
    for idx in range(lo, hi + 1):
        pos = index.normalized_segments[idx].find(query.normalized)
        if pos >= 0:
            return MatchResult(
                start_segment_idx=idx,
                end_segment_idx=idx,
                start_char_offset=pos,
                end_char_offset=pos + len(query.normalized),
                confidence=options.thresholds.exact_confidence,
                match_strategy=MatchStrategy.exact,
            )
    return None


def _match_multi_segment(
    query: _Query, index: TranscriptIndex, options: MatchOptions
) -> Optional[MatchResult]:
    """Quote appears verbatim across a bounded run of consecutive segments.

    Scans occurrences in the joined normalized text, which equals the
    concatenation of every segment window, and keeps the first one that
    crosses at least one segment boundary and fits the window ceiling.
    Single-segment hits belong to the exact strategy.
    """
    lo, hi = _search_bounds(index, options)
    if hi < lo:
        return None
    text = index.normalized_text
    needle = query.normalized
    search_from = index.boundaries[lo].text_start_pos
    search_to = index.boundaries[hi].end_pos

    pos = text.find(needle, search_from, search_to)
    while pos >= 0:
        start = index.locate(pos)
        end = index.locate(pos + len(needle) - 1)
        if start and end and start[0] < end[0] <= start[0] + options.window - 1:
            return MatchResult(
                start_segment_idx=start[0],
                end_segment_idx=end[0],
                start_char_offset=start[1],
                end_char_offset=end[1] + 1,
                confidence=options.thresholds.multi_exact_confidence,
                match_strategy=MatchStrategy.multi_exact,
            )
        pos = text.find(needle, pos + 1, search_to)
    return None


def _word_char_offset(index: TranscriptIndex, word_pos: int) -> int:
    """Offset of a flattened word inside its segment's normalized text."""
    segment_idx = index.word_segments[word_pos]
    return index.word_char_starts[word_pos] - index.boundaries[segment_idx].text_start_pos


def _add_votes(votes: list[int], base: int, ranges: Iterable[tuple[int, int]]) -> None:
    """Add one vote over the union of ranges sorted by both ends."""
    current: Optional[tuple[int, int]] = None
    for lo, hi in ranges:
        if lo > hi:
            continue
        if current is not None and lo <= current[1] + 1:
            current = (current[0], max(current[1], hi))
            continue
        if current is not None:
            votes[current[0] - base] += 1
            votes[current[1] - base + 1] -= 1
        current = (lo, hi)
    if current is not None:
        votes[current[0] - base] += 1
        votes[current[1] - base + 1] -= 1


def _candidate_starts(
    query: _Query,
    index: TranscriptIndex,
    first_word: int,
    last_word: int,
    floor: float,
) -> Optional[list[int]]:
    """Window start positions that could still reach ``floor``.

    A window within edit distance k of the query shares at least
    ``len(query) - q + 1 - k*q`` q-grams with it. Postings of the query's
    q-grams vote for the window starts whose run contains them, each gram
    capped at its count in the query; windows with too few votes are skipped
    without building the candidate string. The vote count bounds the shared
    q-grams from above, so no window that would pass the full check is lost.

    Returns:
        Sorted word positions, or None when the bound is too weak to prune
        (short quotes, low floors).
    """
    length = len(query.words)
    text_len = len(query.normalized)
    if floor <= 0:
        return None
    # Longest candidate that can pass is len(query) / floor
    max_edits = int((1.0 - floor) * text_len / floor + 1e-9)
    required = (text_len - QGRAM_SIZE + 1) - max_edits * QGRAM_SIZE
    if required <= 0:
        return None

    start_count = last_word - first_word - length + 1
    if start_count <= 0:
        return []
    last_start = first_word + start_count - 1

    starts = index.word_char_starts
    char_lo = starts[first_word]
    char_hi = starts[last_word - 1] + len(index.words[last_word - 1]) - QGRAM_SIZE

    votes = [0] * (start_count + 1)
    for gram, wanted in query.qgrams.items():
        postings = index.qgram_positions.get(gram)
        if not postings:
            continue
        # Window starts containing each posting; both ends grow with p
        spans = []
        for p in postings[bisect_left(postings, char_lo):bisect_right(postings, char_hi)]:
            first = bisect_right(starts, p) - 1
            last = bisect_right(starts, p + QGRAM_SIZE - 1) - 1
            lo = max(last - length + 1, first_word)
            hi = min(first, last_start)
            if lo <= hi:
                spans.append((lo, hi))
        # A gram counts at most ``wanted`` times per window: level j adds one
        # vote where at least j + 1 postings overlap
        for level in range(min(wanted, len(spans))):
            _add_votes(votes, first_word, (
                (spans[i + level][0], spans[i][1]) for i in range(len(spans) - level)
            ))

    # Tighten the bound with each window's real length
    words = index.words
    candidates = []
    running = 0
    for offset in range(start_count):
        running += votes[offset]
        if running < required:
            continue
        pos = first_word + offset
        end = pos + length - 1
        window_len = starts[end] + len(words[end]) - starts[pos]
        edits = int((1.0 - floor) * max(text_len, window_len) + 1e-9)
        if abs(window_len - text_len) > edits:
            continue
        if running >= (text_len - QGRAM_SIZE + 1) - edits * QGRAM_SIZE:
            candidates.append(pos)
    return candidates


def _fuzzy_window_search(
    query: _Query,
    index: TranscriptIndex,
    lo: int,
    hi: int,
    window: int,
    floor: float,
) -> Optional[MatchResult]:
    """Slide a quote-length word run over segments ``lo..hi``.

    Every run whose words span at most ``window`` segments is scored; the
    first best-scoring run at or above ``floor`` wins. The q-gram vote in
    ``_candidate_starts`` narrows the runs to score, so cost follows the
    number of plausible windows rather than transcript length.
    """
    length = len(query.words)
    if hi < lo or length == 0:
        return None
    first_word = index.segment_word_starts[lo]
    last_word = (
        index.segment_word_starts[hi + 1] if hi + 1 < len(index) else len(index.words)
    )

    starts = _candidate_starts(query, index, first_word, last_word, floor)
    if starts is None:
        starts = range(first_word, last_word - length + 1)

    best_score = 0.0
    best_pos = -1
    for pos in starts:
        start_segment = index.word_segments[pos]
        end_segment = index.word_segments[pos + length - 1]
        if end_segment - start_segment + 1 > window:
            continue
        candidate = " ".join(index.words[pos:pos + length])
        score = _similarity_at_least(query, candidate, max(floor, best_score))
        if score is not None and score > best_score:
            best_score = score
            best_pos = pos
            if score >= 1.0:
                break

    if best_pos < 0 or best_score < floor:
        return None

    end_pos = best_pos + length - 1
    return MatchResult(
        start_segment_idx=index.word_segments[best_pos],
        end_segment_idx=index.word_segments[end_pos],
        start_char_offset=_word_char_offset(index, best_pos),
        end_char_offset=_word_char_offset(index, end_pos) + len(index.words[end_pos]),
        confidence=best_score,
        match_strategy=MatchStrategy.fuzzy,
    )


def _match_fuzzy(query: _Query, index: TranscriptIndex, options: MatchOptions) -> Optional[MatchResult]:
    """Fuzzy match over the whole range, then inside the stated time range.

    The second pass only runs with a time hint and uses the lower hinted
    threshold, since the producer's timestamp narrows the search.
    """
    lo, hi = _search_bounds(index, options)
    result = _fuzzy_window_search(query, index, lo, hi, options.window, options.similarity_floor)
    if result or options.time_hint is None:
        return result

    hinted = index.segments_in_range(*options.time_hint)
    if not hinted:
        return None
    padding = options.thresholds.hinted_range_padding
    hinted_lo = max(lo, hinted[0] - padding)
    hinted_hi = min(hi, hinted[-1] + padding)
    floor = min(options.similarity_floor, options.thresholds.hinted_min_similarity)
    return _fuzzy_window_search(query, index, hinted_lo, hinted_hi, options.window, floor)


def _match_time_guided(
    query: _Query, index: TranscriptIndex, options: MatchOptions
) -> Optional[MatchResult]:
    """Relaxed search near the stated start time.

    Candidate segments are visited nearest-to-hint first. A span containing
    the quote's first or last few words wins immediately; otherwise the
    best whole-quote similarity above the relaxed floor is used.
    """
    if options.time_hint is None:
        return None
    th = options.thresholds
    lo, hi = _search_bounds(index, options)
    target = options.time_hint[0]

    candidates = [
        idx for idx in index.segments_near(target, th.time_guided_radius_seconds)
        if lo <= idx <= hi
    ]
    candidates.sort(key=lambda idx: (abs(index.segments[idx].start - target), idx))

    phrase_len = th.time_guided_phrase_words
    first_phrase = " ".join(query.words[:phrase_len])
    last_phrase = " ".join(query.words[-phrase_len:])

    best: Optional[tuple[float, int, int]] = None
    for idx in candidates:
        for span in range(1, th.time_guided_max_span + 1):
            end_idx = idx + span - 1
            if end_idx > hi:
                break
            combined = index.joined_normalized(idx, end_idx)
            if not combined:
                continue
            if first_phrase in combined or last_phrase in combined:
                return MatchResult(
                    start_segment_idx=idx,
                    end_segment_idx=end_idx,
                    start_char_offset=0,
                    end_char_offset=len(index.normalized_segments[end_idx]),
                    confidence=th.time_guided_phrase_confidence,
                    match_strategy=MatchStrategy.time_guided,
                )
            floor = th.time_guided_min_similarity if best is None else best[0]
            score = _similarity_at_least(query, combined, floor)
            if score is not None and score > th.time_guided_min_similarity:
                if best is None or score > best[0]:
                    best = (score, idx, end_idx)

    if best is None:
        return None
    score, start_idx, end_idx = best
    return MatchResult(
        start_segment_idx=start_idx,
        end_segment_idx=end_idx,
        start_char_offset=0,
        end_char_offset=len(index.normalized_segments[end_idx]),
        confidence=score,
        match_strategy=MatchStrategy.time_guided,
    )


_STRATEGIES: tuple[
    tuple[MatchStrategy, Callable[[_Query, TranscriptIndex, MatchOptions], Optional[MatchResult]]],
    ...,
] = (
    (MatchStrategy.exact, _match_exact),
    (MatchStrategy.multi_exact, _match_multi_segment),
    (MatchStrategy.fuzzy, _match_fuzzy),
    (MatchStrategy.time_guided, _match_time_guided),
)


# ==============================================================================
# Entry points
# ==============================================================================

def find_quote(
    quote_text: str,
    index: TranscriptIndex,
    options: Optional[MatchOptions] = None,
) -> Optional[MatchResult]:
    """Find the transcript range a quote refers to.

    Args:
        quote_text: Quote as produced by the LLM.
        index: Index of the transcript to search.
        options: Matching options; defaults apply when omitted.

    Returns:
        MatchResult from the first strategy that clears its bar, or None
        when the quote is empty, shorter than the minimum word count, or
        not found.
    """
    options = options or MatchOptions()
    if index.is_empty or not quote_text:
        return None

    normalized = normalize_for_matching(quote_text)
    words = tuple(split_words(normalized))
    if len(words) < options.thresholds.min_quote_words:
        logger.debug(f"Quote too short to match safely ({len(words)} words)")
        return None

    query = _Query(normalized=normalized, words=words, qgrams=_qgrams(normalized))
    for strategy, matcher in _STRATEGIES:
        if options.strategy not in (STRATEGY_ALL, strategy.value):
            continue
        result = matcher(query, index, options)
        if result is not None:
            logger.debug(
                f"Matched quote via {strategy.value} "
                f"(segments {result.start_segment_idx}-{result.end_segment_idx}, "
                f"confidence {result.confidence:.2f})"
            )
            return result
    return None


def match_quote(
    quote: Quote,
    index: TranscriptIndex,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[MatchResult]:
    """Run the full cascade for a Quote, using its timestamp as a hint."""
    return find_quote(
        quote.text,
        index,
        MatchOptions(time_hint=parse_timestamp_range(quote.timestamp), thresholds=thresholds),
    )
