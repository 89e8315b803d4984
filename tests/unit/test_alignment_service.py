"""Unit tests for batch quote alignment."""

import time
from unittest.mock import patch

import pytest

from reelanchor.models import MatchStrategy, Quote, TopicQuotes
from reelanchor.services import alignment_service
from reelanchor.services.alignment_service import (
    AlignmentTimeoutError,
    align_quotes,
    align_quotes_async,
    align_single_quote,
    align_topics,
    align_topics_async,
)
from reelanchor.services.quote_matcher import match_quote as real_match_quote
from reelanchor.services.thresholds import Thresholds


class TestAlignSingleQuote:
    def test_matched_quote_has_no_floor(self, sample_index):
        span = align_single_quote(Quote(text="where new memories form"), sample_index, with_context=False)

        assert span is not None
        assert (span.start, span.end) == (8.0, 13.0)
        assert span.source_quotes == ["where new memories form"]

    def test_unmatched_quote_without_fallback(self, sample_index):
        quote = Quote(timestamp="[00:09-00:14]", text="entirely invented words about nothing")
        assert align_single_quote(quote, sample_index) is None

    def test_unmatched_quote_with_fallback(self, sample_index):
        quote = Quote(timestamp="[00:09-00:14]", text="entirely invented words about nothing")
        span = align_single_quote(quote, sample_index, fallback_to_timestamp=True)

        assert span is not None
        assert span.match_strategy == MatchStrategy.timestamp_fallback
        assert span.confidence == 0.5
        assert (span.start_segment_idx, span.end_segment_idx) == (2, 3)

    def test_blank_quote(self, sample_index):
        assert align_single_quote(Quote(text="   "), sample_index) is None


class TestAlignQuotes:
    def test_adjacent_quotes_merge_then_get_floor(self, sample_index):
        spans = align_quotes(
            sample_index,
            ["where new memories form", "sleep plays a huge role"],
            with_context=False,
        )

        assert len(spans) == 1
        span = spans[0]
        assert (span.start, span.end) == (8.0, 23.0)
        assert span.text == (
            "The hippocampus is where new memories form. ... "
            "Sleep plays a huge role in consolidating them."
        )
        assert span.source_quotes == ["where new memories form", "sleep plays a huge role"]

    def test_duplicate_quotes_collapse(self, sample_index):
        spans = align_quotes(
            sample_index,
            [{"text": "where new memories form"}, {"text": "Where new memories form!"}],
            with_context=False,
        )
        assert len(spans) == 1

    def test_unmatched_quotes_are_omitted(self, sample_index):
        spans = align_quotes(
            sample_index,
            ["where new memories form", "quantum chromodynamics of gluon fields"],
        )
        assert len(spans) == 1
        assert spans[0].source_quotes == ["where new memories form"]

    def test_every_span_meets_floor(self, sample_segments):
        spans = align_quotes(
            sample_segments,
            ["where new memories form", "so prioritize sleep before your next exam"],
            with_context=False,
        )

        assert spans
        for span in spans:
            assert span.end - span.start >= 15.0

    def test_spans_sorted_and_disjoint(self, sample_index):
        spans = align_quotes(
            sample_index,
            [
                "so prioritize sleep before your next exam",
                "welcome back to the channel",
            ],
            with_context=False,
        )

        assert [s.start for s in spans] == sorted(s.start for s in spans)
        for left, right in zip(spans, spans[1:]):
            assert left.end <= right.start

    def test_one_failing_quote_does_not_sink_the_batch(self, sample_index):
        def flaky(quote, index, thresholds):
            if "boom" in quote.text:
                raise RuntimeError("matcher exploded")
            return real_match_quote(quote, index, thresholds)

        with patch("reelanchor.services.alignment_service.match_quote", side_effect=flaky):
            spans = align_quotes(
                sample_index,
                ["boom goes the matcher", "where new memories form"],
                with_context=False,
            )

        assert len(spans) == 1
        assert spans[0].source_quotes == ["where new memories form"]

    def test_malformed_quotes_are_skipped(self, sample_index):
        spans = align_quotes(
            sample_index,
            [
                {"text": None},
                {"timestamp": 12, "text": "where new memories form"},
                42,
                "where new memories form",
            ],
            with_context=False,
        )

        assert len(spans) == 1
        assert spans[0].source_quotes == ["where new memories form"]

    def test_custom_thresholds(self, sample_index):
        spans = align_quotes(
            sample_index,
            ["where new memories form"],
            with_context=False,
            thresholds=Thresholds(min_span_seconds=2.0),
        )
        assert (spans[0].start, spans[0].end) == (8.0, 13.0)

    def test_empty_batch(self, sample_index):
        assert align_quotes(sample_index, []) == []


class TestAlignQuotesAsync:
    @pytest.mark.asyncio
    async def test_matches_sync_result(self, sample_index):
        quotes = ["where new memories form", "so prioritize sleep before your next exam"]

        expected = align_quotes(sample_index, quotes)
        actual = await align_quotes_async(sample_index, quotes)

        assert actual == expected

    @pytest.mark.asyncio
    async def test_timeout_raises(self, sample_index):
        def slow(*args, **kwargs):
            time.sleep(0.5)
            return None

        with patch("reelanchor.services.alignment_service._safe_align", side_effect=slow):
            with pytest.raises(AlignmentTimeoutError) as exc_info:
                await align_quotes_async(sample_index, ["where new memories form"], timeout=0.05)

        assert exc_info.value.quote_count == 1
        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_timeout_keeps_finished_quotes(self, sample_index):
        real = alignment_service._safe_align

        def slow_for_some(quote, *args):
            if "slow" in quote.text:
                time.sleep(1.0)
                return None
            return real(quote, *args)

        with patch.object(alignment_service, "_safe_align", side_effect=slow_for_some):
            spans = await align_quotes_async(
                sample_index,
                ["slow quote that never finishes", "where new memories form"],
                with_context=False,
                timeout=0.5,
            )

        assert len(spans) == 1
        assert spans[0].source_quotes == ["where new memories form"]

    @pytest.mark.asyncio
    async def test_malformed_quotes_are_skipped(self, sample_index):
        spans = await align_quotes_async(
            sample_index, [{"text": None}, "where new memories form"], with_context=False
        )
        assert len(spans) == 1


class TestAlignTopics:
    def test_topics_get_ids_spans_and_duration(self, sample_index):
        topics = [
            TopicQuotes(
                title="Memory formation",
                description="Where memories come from",
                quotes=[Quote(timestamp="[00:08-00:13]", text="where new memories form")],
            ),
            {"title": "Off topic", "quotes": [{"text": "nothing like this was ever said"}]},
        ]

        aligned = align_topics(sample_index, topics)

        assert [t.id for t in aligned] == ["topic-0", "topic-1"]
        first, second = aligned
        assert first.title == "Memory formation"
        assert len(first.segments) == 1
        assert (first.segments[0].start, first.segments[0].end) == (0.0, 22.0)
        assert first.duration == 22
        assert first.quotes[0].text == "where new memories form"
        assert second.segments == []
        assert second.duration == 0

    def test_malformed_quotes_and_topics_are_skipped(self, sample_index):
        topics = [
            {"description": "missing its title", "quotes": [{"text": "where new memories form"}]},
            {
                "title": "Memory formation",
                "quotes": [{"text": None}, {"timestamp": 12}, {"text": "where new memories form"}],
            },
        ]

        aligned = align_topics(sample_index, topics)

        assert [t.id for t in aligned] == ["topic-1"]
        assert [q.text for q in aligned[0].quotes] == ["where new memories form"]
        assert aligned[0].duration == 22

    @pytest.mark.asyncio
    async def test_async_matches_sync(self, sample_index):
        topics = [
            {"title": "Memory", "quotes": [{"text": "where new memories form"}]},
            {"title": "Exams", "quotes": [{"text": "so prioritize sleep before your next exam"}]},
            {"title": "Empty", "quotes": []},
        ]

        assert await align_topics_async(sample_index, topics) == align_topics(sample_index, topics)
