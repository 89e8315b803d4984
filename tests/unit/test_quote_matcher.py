"""Unit tests for the multi-strategy quote matcher."""

from unittest.mock import patch

import pytest

from reelanchor.models import MatchStrategy, Quote
from reelanchor.services import quote_matcher
from reelanchor.services.quote_matcher import (
    MatchOptions,
    calculate_similarity,
    find_quote,
    levenshtein_distance,
    match_quote,
)
from reelanchor.services.transcript_index import build_transcript_index


class TestLevenshteinDistance:
    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("", "", 0),
            ("abc", "abc", 0),
            ("", "abc", 3),
            ("kitten", "sitting", 3),
            ("flaw", "lawn", 2),
        ],
    )
    def test_distance(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected
        assert levenshtein_distance(b, a) == expected

    def test_cutoff_reports_distance_above_limit(self):
        assert levenshtein_distance("kitten", "sitting", max_distance=1) == 2

    def test_cutoff_is_exact_within_limit(self):
        assert levenshtein_distance("kitten", "sitting", max_distance=5) == 3
        assert levenshtein_distance("kitten", "sitting", max_distance=3) == 3

    def test_cutoff_on_length_difference(self):
        assert levenshtein_distance("a", "abcdef", max_distance=2) == 3


class TestCalculateSimilarity:
    def test_identical(self):
        assert calculate_similarity("abc", "abc") == 1.0

    def test_both_empty(self):
        assert calculate_similarity("", "") == 1.0

    def test_one_substitution(self):
        assert calculate_similarity("abcd", "abcf") == 0.75


class TestExactStrategy:
    def test_exact_substring_in_one_segment(self, sample_index):
        result = find_quote("where new memories form", sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.exact
        assert result.confidence == 1.0
        assert result.start_segment_idx == result.end_segment_idx == 2
        assert result.start_char_offset == 19
        assert result.end_char_offset == 42

    def test_case_and_curly_quotes_do_not_matter(self, sample_index):
        result = find_quote("TODAY we’re talking about", sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.exact
        assert result.start_segment_idx == 1

    def test_every_segment_text_matches_exactly(self, sample_index):
        for idx, normalized in enumerate(sample_index.normalized_segments):
            result = find_quote(normalized, sample_index)
            assert result is not None
            assert result.match_strategy == MatchStrategy.exact
            assert result.confidence == 1.0
            assert result.start_segment_idx == idx


class TestMultiSegmentStrategy:
    def test_quote_straddling_boundary(self, sample_index):
        result = find_quote("memories form. Sleep plays a huge role", sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.multi_exact
        assert result.confidence == 0.95
        assert (result.start_segment_idx, result.end_segment_idx) == (2, 3)
        assert result.start_char_offset == len("the hippocampus is where new ")
        assert result.end_char_offset == len("sleep plays a huge role")

    def test_multi_only_skips_single_segment_hits(self, sample_index):
        options = MatchOptions(strategy="multi_exact")

        assert find_quote("where new memories form", sample_index, options) is None

        result = find_quote("memories form. Sleep plays", sample_index, options)
        assert result is not None
        assert result.end_segment_idx > result.start_segment_idx

    def test_window_ceiling_applies(self, sample_index):
        quote = "where new memories form. sleep plays a huge role in consolidating them. without deep"
        assert find_quote(quote, sample_index, MatchOptions(max_segment_window=2)) is None

        result = find_quote(quote, sample_index, MatchOptions(max_segment_window=3))
        assert result is not None
        assert (result.start_segment_idx, result.end_segment_idx) == (2, 4)

    def test_scenario_quick_brown_fox(self, fox_segments):
        index = build_transcript_index(fox_segments)

        result = find_quote("brown fox jumps over the lazy", index)

        assert result is not None
        assert result.confidence >= 0.8
        assert (result.start_segment_idx, result.end_segment_idx) == (0, 1)


class TestFuzzyStrategy:
    def test_typo_matches_single_segment(self, sample_index):
        result = find_quote("Researchers tracked two hundred studnets for a year", sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.fuzzy
        assert result.confidence >= 0.9
        assert result.start_segment_idx == result.end_segment_idx == 6
        assert result.start_char_offset == 0
        assert result.end_char_offset == len(sample_index.normalized_segments[6])

    def test_drift_across_segments(self, sample_index):
        result = find_quote("recall drops dramatically. Lets look at a study", sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.fuzzy
        assert (result.start_segment_idx, result.end_segment_idx) == (4, 5)
        assert result.start_char_offset == 20
        assert result.end_char_offset == 21

    def test_strategy_option_runs_fuzzy_alone(self, sample_index):
        result = find_quote(
            "where new memories form", sample_index, MatchOptions(strategy="fuzzy")
        )

        assert result is not None
        assert result.match_strategy == MatchStrategy.fuzzy
        assert result.start_segment_idx == 2
        assert result.confidence < 1.0

    def test_needle_in_long_transcript(self):
        segments = [
            {"text": f"filler line number {i} covers ordinary background chatter",
             "start": i * 4.0, "duration": 4.0}
            for i in range(400)
        ]
        segments[350] = {
            "text": "The secret ingredient is patience and careful timing.",
            "start": 1400.0,
            "duration": 4.0,
        }
        index = build_transcript_index(segments)

        result = find_quote("the secret ingrediant is patience and careful timing", index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.fuzzy
        assert result.start_segment_idx == 350


class TestTimeGuidedStrategy:
    QUOTE = "So prioritize sleep if you want to ace every single test you ever take"

    def test_rescues_drifted_quote_near_stated_time(self, sample_index):
        result = match_quote(Quote(timestamp="[00:38-00:45]", text=self.QUOTE), sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.time_guided
        assert result.confidence == 0.7
        assert result.start_segment_idx == 9

    @pytest.mark.parametrize("timestamp", ["0m38s", "(0m38s - 0m45s)"])
    def test_loose_timestamp_is_used_as_hint(self, sample_index, timestamp):
        result = match_quote(Quote(timestamp=timestamp, text=self.QUOTE), sample_index)

        assert result is not None
        assert result.match_strategy == MatchStrategy.time_guided
        assert result.start_segment_idx == 9

    def test_no_hint_means_no_rescue(self, sample_index):
        assert match_quote(Quote(text=self.QUOTE), sample_index) is None

    def test_hint_too_far_away(self, sample_index):
        # Stated time is well past the 30s radius of the matching segment
        assert match_quote(Quote(timestamp="[02:00-02:30]", text=self.QUOTE), sample_index) is None


class TestRejection:
    def test_nonsense_quote_returns_none(self, sample_index):
        quote = Quote(
            timestamp="[00:10-00:20]",
            text="Quantum chromodynamics explains the color charge of gluons",
        )
        assert match_quote(quote, sample_index) is None

    @pytest.mark.parametrize("text", ["", "   ", "memory works", "sleep"])
    def test_short_or_empty_quote_returns_none(self, sample_index, text):
        assert find_quote(text, sample_index) is None

    def test_empty_transcript_returns_none(self):
        index = build_transcript_index([])
        assert find_quote("anything at all here", index) is None

    def test_start_idx_excludes_earlier_segments(self, sample_index):
        assert find_quote("where new memories form", sample_index, MatchOptions(start_idx=3)) is None

    def test_end_idx_excludes_later_segments(self, sample_index):
        options = MatchOptions(end_idx=5)
        assert find_quote("so prioritize sleep before your next exam", sample_index, options) is None

    def test_exact_only_does_not_fall_through(self, sample_index):
        options = MatchOptions(strategy="exact")
        assert find_quote("memories form. Sleep plays a huge role", sample_index, options) is None


def _long_transcript(count: int = 6000) -> list[dict]:
    topics = ["budget", "hiring", "roadmap", "pricing", "support", "security"]
    return [
        {
            "text": f"in part {i} we covered the {topics[i % 6]} update and next steps",
            "start": i * 5.0,
            "duration": 5.0,
        }
        for i in range(count)
    ]


class TestLongTranscript:
    @pytest.fixture(scope="class")
    def long_index(self):
        segments = _long_transcript()
        segments[4321] = {
            "text": "Our churn dropped by half once onboarding calls became mandatory.",
            "start": 4321 * 5.0,
            "duration": 5.0,
        }
        return build_transcript_index(segments)

    def test_unmatched_quote_scores_few_windows(self, long_index):
        real = quote_matcher._similarity_at_least
        with patch.object(quote_matcher, "_similarity_at_least", side_effect=real) as scored:
            result = find_quote(
                "Quantum chromodynamics explains the color charge of gluons", long_index
            )

        assert result is None
        assert scored.call_count < len(long_index.words) // 100

    def test_drifted_quote_still_found(self, long_index):
        result = find_quote(
            "our churn dropped by half once onboarding calls became mandatory", long_index
        )
        assert result is not None
        assert result.start_segment_idx == 4321

        result = find_quote(
            "Our churn droped by half once the onboarding calls became mandatory", long_index
        )
        assert result is not None
        assert result.match_strategy == MatchStrategy.fuzzy
        assert result.start_segment_idx == 4321


class TestCandidateFilter:
    @pytest.mark.parametrize(
        "quote",
        [
            "Researchers tracked two hundred studnets for a year",
            "recall drops dramatically. Lets look at a study",
            "the ones who slept eight hours scored much higher",
            "Quantum chromodynamics explains the color charge of gluons",
        ],
    )
    def test_same_result_as_full_scan(self, sample_index, quote):
        options = MatchOptions(strategy="fuzzy")
        filtered = find_quote(quote, sample_index, options)

        with patch.object(quote_matcher, "_candidate_starts", return_value=None):
            full_scan = find_quote(quote, sample_index, options)

        assert filtered == full_scan
